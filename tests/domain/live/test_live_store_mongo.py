"""MongoLiveStore against a real MongoDB (skipped unless MONGO_URL_TEST is set)."""

import asyncio
from datetime import timedelta

import pytest

from app.domain.live.live_store import MongoLiveStore
from app.domain.live.session.session_models import ParticipantResponse, SessionResponse
from app.domain.utils.clock import utc_now
from app.domain.utils.idgen import new_participant_id, new_session_id
from app.schemas import ParticipantRole, ParticipantStatus, SessionStatus
from app.utils.app_errors import AppError, AppErrorCode


def make_session(room_name: str = "mongo-room", status: SessionStatus = SessionStatus.ACTIVE) -> SessionResponse:
    now = utc_now()
    return SessionResponse(
        session_id=new_session_id(),
        room_name=room_name,
        owner_id="u.host",
        title="Mongo Session",
        status=status,
        max_participants=10,
        empty_timeout=60,
        created_at=now,
        updated_at=now,
    )


def make_participant(session_id: str, user_id: str = "u.viewer") -> ParticipantResponse:
    return ParticipantResponse(
        participant_id=new_participant_id(),
        session_id=session_id,
        user_id=user_id,
        display_name=user_id,
        role=ParticipantRole.VIEWER,
        status=ParticipantStatus.JOINED,
        joined_at=utc_now(),
    )


@pytest.fixture
def store(mongo_client, clear_collections) -> MongoLiveStore:
    return MongoLiveStore(mongo_client)


class TestMongoSessions:
    async def test_room_name_unique(self, store):
        await store.insert_session(make_session("dup-room"))

        with pytest.raises(AppError) as exc_info:
            await store.insert_session(make_session("dup-room"))

        assert exc_info.value.errcode == AppErrorCode.E_ROOM_NAME_CONFLICT

    async def test_transition_is_conditional(self, store):
        session = await store.insert_session(make_session(status=SessionStatus.SCHEDULED))

        active = await store.transition_session(session.session_id, SessionStatus.ACTIVE, utc_now())
        ended = await store.transition_session(session.session_id, SessionStatus.ENDED, utc_now())
        again = await store.transition_session(session.session_id, SessionStatus.ENDED, utc_now())

        assert active.status == SessionStatus.ACTIVE
        assert active.started_at is not None
        assert ended.status == SessionStatus.ENDED
        assert ended.ended_at is not None
        assert again is None

    async def test_list_sessions(self, store):
        await store.insert_session(make_session("room-a"))
        await store.insert_session(make_session("room-b", status=SessionStatus.ENDED))

        active, total = await store.list_sessions(status=SessionStatus.ACTIVE)

        assert total == 1
        assert active[0].room_name == "room-a"
        assert len(await store.list_sessions_by_status(SessionStatus.ENDED)) == 1


class TestMongoParticipants:
    async def test_one_joined_row_per_user(self, store):
        session = await store.insert_session(make_session())
        await store.insert_participant(make_participant(session.session_id))

        with pytest.raises(AppError) as exc_info:
            await store.insert_participant(make_participant(session.session_id))

        assert exc_info.value.errcode == AppErrorCode.E_ALREADY_JOINED

    async def test_attach_and_leave_by_sid(self, store):
        session = await store.insert_session(make_session())
        row = await store.insert_participant(make_participant(session.session_id))

        attached = await store.attach_livekit_sids(session.session_id, "u.viewer", "PA_1", "RM_1")
        left = await store.mark_participant_left_by_sid("PA_1", utc_now())
        left_again = await store.mark_participant_left_by_sid("PA_1", utc_now())

        assert attached.participant_id == row.participant_id
        assert attached.livekit_participant_sid == "PA_1"
        assert left.status == ParticipantStatus.LEFT
        assert left_again is None

    async def test_sid_attached_to_one_row_only(self, store):
        session = await store.insert_session(make_session())
        await store.insert_participant(make_participant(session.session_id, "u.a"))
        await store.insert_participant(make_participant(session.session_id, "u.b"))

        first = await store.attach_livekit_sids(session.session_id, "u.a", "PA_same", None)
        second = await store.attach_livekit_sids(session.session_id, "u.b", "PA_same", None)

        assert first is not None
        assert second is None

    async def test_rejoin_after_leave(self, store):
        session = await store.insert_session(make_session())
        await store.insert_participant(make_participant(session.session_id))
        await store.mark_user_left(session.session_id, "u.viewer", utc_now())

        rejoined = await store.insert_participant(make_participant(session.session_id))

        joined = await store.list_joined_participants(session.session_id)
        assert [p.participant_id for p in joined] == [rejoined.participant_id]


class TestMongoLedger:
    async def test_record_once_under_concurrency(self, store):
        now = utc_now()

        results = await asyncio.gather(
            *(store.record_notification("EV_1", "room_started", now, timedelta(hours=1)) for _ in range(5))
        )

        assert sorted(results) == [False, False, False, False, True]
        assert await store.is_notification_processed("EV_1") is True

    async def test_purge_expired(self, store):
        now = utc_now()
        await store.record_notification("EV_old", "room_started", now - timedelta(hours=2), timedelta(hours=1))
        await store.record_notification("EV_new", "room_started", now, timedelta(hours=1))

        deleted = await store.purge_expired_notifications(now)

        assert deleted == 1
        assert await store.is_notification_processed("EV_new") is True

    async def test_ping(self, store):
        assert await store.ping() is True
