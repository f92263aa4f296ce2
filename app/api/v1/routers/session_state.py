"""Live session state: snapshot read and the SSE event stream."""

from fastapi import APIRouter, Request
from loguru import logger
from sse_starlette.sse import EventSourceResponse

from app.api.v1.dependency import StateFanoutDep
from app.api.v1.schemas.base import ApiOut
from app.domain.live.state.state_models import SessionLiveState
from app.domain.live.state.subscriber import QueueSubscriber
from app.utils.app_errors import AppErrorCode, not_found

router = APIRouter(prefix="/sessions", tags=["Session State"])

SSE_PING_SECONDS = 15


@router.get("/{session_id}/state")
async def get_session_state(session_id: str, fanout: StateFanoutDep) -> ApiOut[SessionLiveState]:
    state = await fanout.get_state(session_id)
    if state is None:
        raise not_found(AppErrorCode.E_STATE_NOT_FOUND, f"No live state for session {session_id}")
    return ApiOut[SessionLiveState](results=state)


@router.get("/{session_id}/events")
async def stream_session_events(session_id: str, request: Request, fanout: StateFanoutDep):
    """Server-sent events for one session.

    The first event is a ``state`` snapshot. The stream ends after ``room_ended``.
    """
    if await fanout.get_state(session_id) is None:
        raise not_found(AppErrorCode.E_STATE_NOT_FOUND, f"No live state for session {session_id}")

    subscriber = QueueSubscriber(session_id)
    await fanout.subscribe(session_id, subscriber)

    async def event_stream():
        try:
            async for message in subscriber.events():
                if await request.is_disconnected():
                    break
                yield message
        finally:
            subscriber.close()
            await fanout.unsubscribe(session_id, subscriber)
            logger.debug(f"SSE stream finished for session {session_id}")

    return EventSourceResponse(event_stream(), ping=SSE_PING_SECONDS)
