"""Application error type and error codes.

Raise ``AppError`` from domain code; the API layer converts it into an
``ApiFailure`` envelope with the carried HTTP status.
"""

from __future__ import annotations

import inspect
from enum import Enum, IntEnum
from uuid import uuid4


class HttpStatusCode(IntEnum):
    OK = 200
    CREATED = 201
    BAD_REQUEST = 400
    UNAUTHORIZED = 401
    FORBIDDEN = 403
    NOT_FOUND = 404
    CONFLICT = 409
    INTERNAL_SERVER_ERROR = 500
    BAD_GATEWAY = 502
    SERVICE_UNAVAILABLE = 503


class AppErrorCode(str, Enum):
    E_INVALID_REQUEST = "E_INVALID_REQUEST"
    E_SESSION_NOT_FOUND = "E_SESSION_NOT_FOUND"
    E_PARTICIPANT_NOT_FOUND = "E_PARTICIPANT_NOT_FOUND"
    E_STATE_NOT_FOUND = "E_STATE_NOT_FOUND"
    E_ROOM_NAME_CONFLICT = "E_ROOM_NAME_CONFLICT"
    E_ALREADY_JOINED = "E_ALREADY_JOINED"
    E_SESSION_NOT_ACTIVE = "E_SESSION_NOT_ACTIVE"
    E_FORBIDDEN = "E_FORBIDDEN"
    E_LIVEKIT_ERROR = "E_LIVEKIT_ERROR"
    E_WEBHOOK_UNAUTHORIZED = "E_WEBHOOK_UNAUTHORIZED"
    E_WEBHOOK_MALFORMED = "E_WEBHOOK_MALFORMED"
    E_INTERNAL_ERROR = "E_INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value


class AppError(Exception):
    """Error surfaced to the immediate caller, never retried automatically."""

    def __init__(
        self,
        errcode: AppErrorCode | str,
        errmesg: str,
        status_code: int = HttpStatusCode.BAD_REQUEST,
        *,
        stacklevel: int = 1,
    ) -> None:
        super().__init__(errmesg)
        self.errcode = str(errcode)
        self.errmesg = errmesg
        self.status_code = int(status_code)
        self.erresid = uuid4().hex[:10]

        # stacklevel counts frames above __init__, like logging's stacklevel
        caller = inspect.currentframe()
        for _ in range(stacklevel):
            caller = caller.f_back if caller is not None else None
        self.caller_info = (
            f"{caller.f_code.co_filename}:{caller.f_code.co_name}:{caller.f_lineno}"
            if caller is not None
            else "unknown"
        )

    def __repr__(self) -> str:
        return f"AppError(errcode={self.errcode!r}, errmesg={self.errmesg!r}, status_code={self.status_code})"


def not_found(errcode: AppErrorCode, errmesg: str) -> AppError:
    return AppError(errcode=errcode, errmesg=errmesg, status_code=HttpStatusCode.NOT_FOUND, stacklevel=2)


def conflict(errcode: AppErrorCode, errmesg: str) -> AppError:
    return AppError(errcode=errcode, errmesg=errmesg, status_code=HttpStatusCode.CONFLICT, stacklevel=2)


def invalid_request(errmesg: str) -> AppError:
    return AppError(
        errcode=AppErrorCode.E_INVALID_REQUEST,
        errmesg=errmesg,
        status_code=HttpStatusCode.BAD_REQUEST,
        stacklevel=2,
    )
