from fastapi import APIRouter, Request

from .utils import ApiFailure, ApiSuccess, make_response

router = APIRouter()


@router.get('/health', response_model=ApiSuccess | ApiFailure)
async def health(request: Request):
    container = getattr(request.app.state, "container", None)
    if container is None:
        return make_response(ApiFailure(errmesg="starting"), status_code=503)

    checks = await container.health()
    if not checks["healthy"]:
        return make_response(ApiFailure(errmesg=f"degraded: {checks}"), status_code=503)
    return ApiSuccess(results=checks)
