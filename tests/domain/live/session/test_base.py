"""Tests for room name normalisation and shared lookups."""

import pytest

from app.domain.live.session._base import BaseService, normalize_room_name
from app.utils.app_errors import AppError, AppErrorCode


class TestNormalizeRoomName:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("Main Stage", "main-stage"),
            ("  Friday   Night!! ", "friday-night"),
            ("already-clean_01", "already-clean_01"),
            ("--Edge--Case--", "edge-case"),
            ("Ünïcode Room", "n-code-room"),
        ],
    )
    def test_normalizes(self, raw, expected):
        assert normalize_room_name(raw) == expected

    def test_only_invalid_characters_yields_empty(self):
        assert normalize_room_name("!!!") == ""


class TestRequireSession:
    async def test_missing_session_raises_not_found(self, live_store, livekit, fanout):
        service = BaseService(live_store, livekit, fanout)

        with pytest.raises(AppError) as exc_info:
            await service._require_session("se_missing")

        assert exc_info.value.errcode == AppErrorCode.E_SESSION_NOT_FOUND
        assert exc_info.value.status_code == 404
