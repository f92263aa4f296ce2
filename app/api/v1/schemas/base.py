from typing import Generic, TypeVar

from app.shared.api.utils import ApiSuccess

ResultT = TypeVar("ResultT")


class ApiOut(ApiSuccess, Generic[ResultT]):
    """Success envelope with a typed ``results`` payload."""

    results: ResultT  # type: ignore[valid-type]
