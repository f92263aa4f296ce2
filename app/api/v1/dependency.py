from typing import Annotated

from fastapi import Depends, Request

from app.container import AppContainer
from app.domain.live.session.session_domain import SessionService
from app.domain.live.state.state_fanout import StateFanout
from app.services.integrations.livekit_service import LivekitService
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode
from app.workers.notification_queue import NotificationQueue


def get_container(request: Request) -> AppContainer:
    container: AppContainer | None = getattr(request.app.state, "container", None)
    if container is None:
        raise AppError(
            errcode=AppErrorCode.E_INTERNAL_ERROR,
            errmesg="Application container is not ready",
            status_code=HttpStatusCode.SERVICE_UNAVAILABLE,
        )
    return container


def get_session_service(container: AppContainer = Depends(get_container)) -> SessionService:
    return container.sessions  # type: ignore[return-value]


def get_state_fanout(container: AppContainer = Depends(get_container)) -> StateFanout:
    return container.fanout  # type: ignore[return-value]


def get_livekit_service(container: AppContainer = Depends(get_container)) -> LivekitService:
    return container.livekit  # type: ignore[return-value]


def get_notification_queue(container: AppContainer = Depends(get_container)) -> NotificationQueue:
    return container.queue  # type: ignore[return-value]


SessionServiceDep = Annotated[SessionService, Depends(get_session_service)]
StateFanoutDep = Annotated[StateFanout, Depends(get_state_fanout)]
LivekitServiceDep = Annotated[LivekitService, Depends(get_livekit_service)]
NotificationQueueDep = Annotated[NotificationQueue, Depends(get_notification_queue)]
