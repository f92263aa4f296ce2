from fastapi import APIRouter, Body, Query

from app.api.v1.dependency import SessionServiceDep
from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.session import (
    CreateSessionIn,
    DeleteSessionIn,
    JoinSessionIn,
    LeaveSessionIn,
)
from app.domain.live.session.session_models import (
    JoinSessionParams,
    JoinSessionResponse,
    ParticipantListResponse,
    ParticipantResponse,
    SessionCreateParams,
    SessionListResponse,
    SessionResponse,
)
from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus
from app.shared.api.utils import make_response

router = APIRouter(prefix="/sessions", tags=["Sessions"])


@router.post("", status_code=201)
async def create_session(body: CreateSessionIn, service: SessionServiceDep):
    """Create a session and its LiveKit room. The session is active on success."""
    session = await service.create_session(SessionCreateParams(**body.model_dump()))
    return make_response(ApiOut[SessionResponse](results=session), status_code=201)


@router.get("")
async def list_sessions(
    service: SessionServiceDep,
    status: SessionStatus | None = Query(None),
    owner_id: str | None = Query(None),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> ApiOut[SessionListResponse]:
    result = await service.list_sessions(status=status, owner_id=owner_id, limit=limit, offset=offset)
    return ApiOut[SessionListResponse](results=result)


@router.get("/{session_id}")
async def get_session(session_id: str, service: SessionServiceDep) -> ApiOut[SessionResponse]:
    session = await service.get_session(session_id)
    return ApiOut[SessionResponse](results=session)


@router.delete("/{session_id}")
async def delete_session(
    session_id: str,
    service: SessionServiceDep,
    body: DeleteSessionIn = Body(...),
) -> ApiOut[SessionResponse]:
    """End a session. Only the owner may do this; ending twice is a no-op."""
    session = await service.delete_session(session_id, body.requester_id)
    return ApiOut[SessionResponse](results=session)


@router.post("/{session_id}/join")
async def join_session(
    session_id: str,
    body: JoinSessionIn,
    service: SessionServiceDep,
) -> ApiOut[JoinSessionResponse]:
    """Register the caller as a participant and issue a LiveKit access token."""
    result = await service.join_session(session_id, JoinSessionParams(**body.model_dump()))
    return ApiOut[JoinSessionResponse](results=result)


@router.post("/{session_id}/leave")
async def leave_session(
    session_id: str,
    body: LeaveSessionIn,
    service: SessionServiceDep,
) -> ApiOut[ParticipantResponse]:
    participant = await service.leave_session(session_id, body.user_id)
    return ApiOut[ParticipantResponse](results=participant)


@router.get("/{session_id}/participants")
async def list_participants(
    session_id: str,
    service: SessionServiceDep,
    status: ParticipantStatus | None = Query(None),
    role: ParticipantRole | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
) -> ApiOut[ParticipantListResponse]:
    result = await service.list_participants(
        session_id, status=status, role=role, limit=limit, offset=offset
    )
    return ApiOut[ParticipantListResponse](results=result)
