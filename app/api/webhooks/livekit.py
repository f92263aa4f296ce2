"""LiveKit webhook endpoint.

The handler only verifies the signature and queues the notification; the
worker applies it. Anything that reaches the handler past signature
verification is acknowledged with 200 so LiveKit does not redeliver it.

References:
- https://docs.livekit.io/home/server/webhooks/
- Pydantic schemas: app.api.webhooks.schemas.livekit
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Header, Request
from loguru import logger

from app.api.v1.dependency import LivekitServiceDep, NotificationQueueDep
from app.shared.api.utils import ApiFailure, ApiSuccess, make_response
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])


class LiveKitWebhookSuccess(ApiSuccess):
    """Receipt for a webhook: whether it was queued, never what it caused."""

    results: dict[str, Any]  # type: ignore[assignment]


def _receipt(queued: bool, **extra: Any) -> LiveKitWebhookSuccess:
    return LiveKitWebhookSuccess(results={"queued": queued, **extra})


@router.post("/livekit", response_model=LiveKitWebhookSuccess | ApiFailure)
async def livekit_webhook(
    request: Request,
    livekit: LivekitServiceDep,
    queue: NotificationQueueDep,
    authorization: str | None = Header(None),
):
    """Receive a LiveKit webhook, verify it and hand it to the notification queue."""
    body = await request.body()

    try:
        payload = livekit.verify_webhook(body, authorization)
    except AppError as e:
        if e.errcode != AppErrorCode.E_WEBHOOK_MALFORMED:
            raise
        logger.warning(f"Dropping malformed LiveKit webhook: {e.errmesg}")
        return _receipt(False, reason="malformed")

    if payload is None:
        failure = ApiFailure(
            errcode=AppErrorCode.E_WEBHOOK_UNAUTHORIZED.value,
            errmesg="Invalid webhook signature",
        )
        return make_response(failure, status_code=HttpStatusCode.UNAUTHORIZED)

    notification_id = payload.get("id")
    event_type = payload.get("event")
    if not notification_id or not event_type:
        logger.warning(f"LiveKit webhook without id or event: id={notification_id} event={event_type}")
        return _receipt(False, reason="missing_id_or_event")

    logger.info(f"📨 LiveKit webhook {event_type} ({notification_id})")

    try:
        queued = await queue.submit(notification_id, event_type, payload)
    except Exception:
        logger.exception(f"Failed to queue LiveKit webhook {notification_id}")
        return _receipt(False, reason="queue_error")

    return _receipt(queued, duplicate=not queued)
