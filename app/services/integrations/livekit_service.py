"""LiveKit server API access: rooms, access tokens and webhook verification.

Wraps `livekit-api` (https://github.com/livekit/python-sdks).

Usage:
    livekit = LivekitService()

    room = await livekit.create_room(room_name="my-room", empty_timeout=600, max_participants=100)
    token = livekit.create_access_token(
        room="my-room", identity="user-123", display_name="John Doe", role=ParticipantRole.VIEWER
    )
    payload = livekit.verify_webhook(raw_body, authorization_header)
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import orjson
from google.protobuf.json_format import ParseError
from livekit import api
from loguru import logger
from pydantic import BaseModel

from app.app_config import AppEnvironConfig, get_app_environ_config
from app.schemas import ParticipantRole
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


class RoomSummary(BaseModel):
    name: str
    sid: str


class LivekitService:
    """The only place that talks to the LiveKit server.

    Room calls open a short-lived `LiveKitAPI` client each; token issue and
    webhook verification are local and synchronous.
    """

    def __init__(self, cfg: AppEnvironConfig | None = None) -> None:
        self._cfg = cfg or get_app_environ_config()
        logger.info("LivekitService initialized")

    @property
    def url(self) -> str | None:
        return self._cfg.LIVEKIT_URL

    def _credentials(self) -> tuple[str, str]:
        api_key = self._cfg.LIVEKIT_API_KEY
        api_secret = self._cfg.LIVEKIT_API_SECRET
        if not api_key or not api_secret:
            logger.error("LIVEKIT_API_KEY or LIVEKIT_API_SECRET not configured")
            raise AppError(
                errcode=AppErrorCode.E_LIVEKIT_ERROR,
                errmesg="LiveKit credentials must be configured. Set them in env.local or environment variables.",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            )
        return api_key, api_secret

    @asynccontextmanager
    async def _get_api_client(self) -> AsyncIterator[api.LiveKitAPI]:
        url = self._cfg.LIVEKIT_URL
        if not url:
            logger.error("LIVEKIT_URL not configured")
            raise AppError(
                errcode=AppErrorCode.E_LIVEKIT_ERROR,
                errmesg="LiveKit URL must be configured. Set it in env.local or environment variables.",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            )

        api_key, api_secret = self._credentials()
        async with api.LiveKitAPI(url, api_key, api_secret) as lkapi:
            yield lkapi

    async def create_room(
        self,
        room_name: str,
        empty_timeout: int = 600,
        max_participants: int = 100,
        metadata: str | None = None,
    ) -> Any:
        """Create a LiveKit room.

        Returns:
            Room object with .name, .sid, .empty_timeout, .max_participants attributes
        """
        logger.info(
            f"Creating LiveKit room: room_name={room_name}, empty_timeout={empty_timeout}, max_participants={max_participants}"
        )
        async with self._get_api_client() as lkapi:
            room = await lkapi.room.create_room(
                api.CreateRoomRequest(
                    name=room_name,
                    metadata=metadata or "",
                    empty_timeout=empty_timeout,
                    max_participants=max_participants,
                )
            )
            logger.debug(f"Successfully created LiveKit room: name={room.name}, sid={room.sid}")
            return room

    async def delete_room(self, room_name: str) -> None:
        """Delete a LiveKit room. A room that is already gone is not an error."""
        logger.info(f"Deleting LiveKit room: room_name={room_name}")
        async with self._get_api_client() as lkapi:
            try:
                await lkapi.room.delete_room(api.DeleteRoomRequest(room=room_name))
                logger.debug(f"Successfully deleted LiveKit room: name={room_name}")
            except Exception as e:
                if "not_found" in str(e) or "does not exist" in str(e):
                    logger.info(f"LiveKit room already deleted or not found: name={room_name}")
                else:
                    raise

    async def list_rooms(self) -> list[RoomSummary]:
        """List rooms currently live on the LiveKit server."""
        async with self._get_api_client() as lkapi:
            response = await lkapi.room.list_rooms(api.ListRoomsRequest())
            return [RoomSummary(name=r.name, sid=r.sid) for r in response.rooms]

    def create_access_token(
        self,
        room: str,
        identity: str,
        display_name: str,
        role: ParticipantRole = ParticipantRole.VIEWER,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create a LiveKit JWT access token.

        Hosts may publish; viewers only subscribe. Both may publish data.
        """
        api_key, api_secret = self._credentials()
        is_host = role == ParticipantRole.HOST

        logger.info(f"Creating LiveKit access token for identity={identity}, room={room}, role={role}")

        token = (
            api.AccessToken(api_key, api_secret)
            .with_identity(identity)
            .with_name(display_name)
            .with_ttl(timedelta(hours=self._cfg.TOKEN_EXPIRATION_HOURS))
            .with_grants(
                api.VideoGrants(
                    room_join=True,
                    room=room,
                    can_publish=is_host,
                    can_subscribe=True,
                    can_publish_data=True,
                )
            )
        )
        if metadata:
            token = token.with_metadata(orjson.dumps(metadata).decode())

        return token.to_jwt()

    def verify_webhook(self, raw_body: bytes | str, auth_header: str | None) -> dict[str, Any] | None:
        """Verify a LiveKit webhook signature and return the decoded payload.

        Returns None when the signature does not verify. Raises
        ``AppError(E_WEBHOOK_MALFORMED)`` when the signature verifies but the
        body is not a valid webhook event.
        """
        if not auth_header:
            logger.warning("LiveKit webhook without Authorization header")
            return None

        try:
            body = raw_body.decode("utf-8") if isinstance(raw_body, bytes) else raw_body
        except UnicodeDecodeError:
            logger.warning("LiveKit webhook body is not valid UTF-8")
            return None

        api_key, api_secret = self._credentials()
        receiver = api.WebhookReceiver(api.TokenVerifier(api_key, api_secret))
        try:
            receiver.receive(body, auth_header)
        except ParseError as e:
            raise AppError(
                errcode=AppErrorCode.E_WEBHOOK_MALFORMED,
                errmesg=f"Malformed LiveKit webhook body: {e}",
                status_code=HttpStatusCode.BAD_REQUEST,
            ) from e
        except Exception as e:
            logger.warning(f"LiveKit webhook signature verification failed: {e}")
            return None

        return orjson.loads(body)
