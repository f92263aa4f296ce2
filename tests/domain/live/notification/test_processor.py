"""Tests for NotificationProcessor idempotence."""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from app.domain.utils.clock import utc_now
from app.schemas import SessionStatus
from tests.fixtures.livekit_events import participant_payload, room_payload


class TestNotificationProcessor:
    async def test_processes_new_notification(self, create_session, processor, live_store):
        session = await create_session(room_name="stage")
        payload = room_payload("room_finished", "stage", event_id="EV_finish")

        result = await processor.process("EV_finish", "room_finished", payload)

        assert result.outcome == "processed"
        assert result.details["handled"] == "room_finished"
        assert "EV_finish" in live_store.ledger
        assert live_store.sessions[session.session_id].status == SessionStatus.ENDED

    async def test_redelivery_is_duplicate(self, create_session, processor, session_service):
        await create_session(room_name="stage")
        payload = room_payload("room_started", "stage", event_id="EV_dup")
        await processor.process("EV_dup", "room_started", payload)
        session_service.handle_notification = AsyncMock()

        result = await processor.process("EV_dup", "room_started", payload)

        assert result.outcome == "duplicate"
        session_service.handle_notification.assert_not_awaited()

    async def test_concurrent_deliveries_apply_once(
        self, create_session, join_session, processor, live_store, fanout
    ):
        # Arrange
        session = await create_session(room_name="stage")
        await join_session(session.session_id, "u.viewer")
        payload = participant_payload("participant_joined", "stage", "u.viewer", "PA_1", event_id="EV_race")

        # Act
        results = await asyncio.gather(
            *(processor.process("EV_race", "participant_joined", payload) for _ in range(3))
        )

        # Assert
        outcomes = sorted(r.outcome for r in results)
        assert outcomes == ["duplicate", "duplicate", "processed"]
        state = await fanout.get_state(session.session_id)
        assert state.total_viewers == 1

    async def test_unhandled_event_type_ignored(self, processor, live_store):
        payload = {"event": "track_published", "id": "EV_track", "room": {"name": "stage"}}

        result = await processor.process("EV_track", "track_published", payload)

        assert result.outcome == "ignored"
        assert "EV_track" in live_store.ledger

    async def test_invalid_payload_not_retried(self, processor):
        payload = {"event": "participant_left", "id": "EV_bad", "room": {"name": "stage"}}

        result = await processor.process("EV_bad", "participant_left", payload)

        assert result.outcome == "invalid"

    async def test_store_errors_propagate(self, processor, session_service):
        session_service.handle_notification = AsyncMock(side_effect=ConnectionError("mongo down"))

        with pytest.raises(ConnectionError):
            await processor.process("EV_err", "room_started", room_payload("room_started", "stage"))

    async def test_ledger_rows_expire(self, processor, live_store):
        await processor.process("EV_old", "room_started", room_payload("room_started", "stage"))

        deleted = await live_store.purge_expired_notifications(utc_now() + timedelta(hours=25))

        assert deleted == 1
        assert live_store.ledger == {}
