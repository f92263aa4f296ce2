"""Tests for EndSessionOperations: owner deletion and the shared close path."""

import orjson
import pytest

from app.domain.live.state.subscriber import QueueSubscriber
from app.schemas import LiveStatus, ParticipantStatus, SessionStatus
from app.utils.app_errors import AppError, AppErrorCode


async def drain(subscriber: QueueSubscriber) -> list[dict]:
    return [message async for message in subscriber.events()]


class TestDeleteSession:
    async def test_owner_delete_ends_session(self, create_session, session_service, livekit, fanout):
        # Arrange
        session = await create_session(room_name="to-delete")

        # Act
        result = await session_service.delete_session(session.session_id, "u.host")

        # Assert
        assert result.status == SessionStatus.ENDED
        assert result.ended_at is not None
        livekit.delete_room.assert_awaited_once_with("to-delete")
        state = await fanout.get_state(session.session_id)
        assert state.status == LiveStatus.ENDED

    async def test_non_owner_forbidden(self, create_session, session_service, live_store):
        session = await create_session()

        with pytest.raises(AppError) as exc_info:
            await session_service.delete_session(session.session_id, "u.stranger")

        assert exc_info.value.errcode == AppErrorCode.E_FORBIDDEN
        assert exc_info.value.status_code == 403
        assert live_store.sessions[session.session_id].status == SessionStatus.ACTIVE

    async def test_delete_is_idempotent(self, create_session, session_service, livekit):
        session = await create_session()
        first = await session_service.delete_session(session.session_id, "u.host")

        # Even a non-owner gets the ended session back once it is over
        second = await session_service.delete_session(session.session_id, "u.stranger")

        assert second.status == SessionStatus.ENDED
        assert second.ended_at == first.ended_at
        livekit.delete_room.assert_awaited_once()

    async def test_livekit_delete_failure_still_ends_session(self, create_session, session_service, livekit):
        session = await create_session()
        livekit.delete_room.side_effect = RuntimeError("livekit down")

        result = await session_service.delete_session(session.session_id, "u.host")

        assert result.status == SessionStatus.ENDED

    async def test_delete_missing_session(self, session_service):
        with pytest.raises(AppError) as exc_info:
            await session_service.delete_session("se_missing", "u.host")

        assert exc_info.value.errcode == AppErrorCode.E_SESSION_NOT_FOUND


class TestCloseSession:
    async def test_close_flips_every_joined_participant(
        self, create_session, join_session, session_service, live_store, fanout
    ):
        # Arrange: one confirmed viewer, one that never reached LiveKit
        session = await create_session()
        await join_session(session.session_id, "u.confirmed")
        await join_session(session.session_id, "u.pending")
        await live_store.attach_livekit_sids(session.session_id, "u.confirmed", "PA_1", "RM_1")
        await fanout.record_join(session.session_id, "u.confirmed")

        # Act
        result = await session_service.close_session(session)

        # Assert
        assert result.participants_updated == 2
        assert result.already_ended is False
        assert all(p.status == ParticipantStatus.LEFT for p in live_store.participants.values())
        state = await fanout.get_state(session.session_id)
        assert state.viewer_count == 0
        assert state.status == LiveStatus.ENDED

    async def test_close_twice_changes_nothing(self, create_session, join_session, session_service, ephemeral_store):
        session = await create_session()
        await join_session(session.session_id, "u.viewer")
        await session_service.close_session(session)
        published = len(ephemeral_store.published)

        again = await session_service.close_session(session)

        assert again.already_ended is True
        assert again.participants_updated == 0
        assert again.session.status == SessionStatus.ENDED
        assert len(ephemeral_store.published) == published

    async def test_close_sends_room_ended_and_closes_subscribers(self, create_session, session_service, fanout):
        # Arrange
        session = await create_session()
        subscriber = QueueSubscriber(session.session_id)
        await fanout.subscribe(session.session_id, subscriber)

        # Act
        await session_service.close_session(session)

        # Assert
        messages = await drain(subscriber)
        assert [m["event"] for m in messages] == ["state", "room_ended"]
        assert orjson.loads(messages[-1]["data"])["status"] == "ended"
        assert subscriber.closed
        assert fanout.connection_count == 0
