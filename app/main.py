import time
import traceback
import uuid
from contextlib import asynccontextmanager
from os import environ

import logfire
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from granian import Granian
from livekit.api.twirp_client import TwirpError
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.errors import app_error_handler, twirp_error_handler
from app.api.v1.routers import session as session_routes
from app.api.v1.routers import session_state as session_state_routes
from app.api.webhooks import livekit as livekit_webhook
from app.app_config import get_app_environ_config
from app.container import AppContainer
from app.shared.api import health
from app.shared.api.utils import E_INTERNAL, api_failure, init_logger, validation_exception_handler
from app.utils.app_errors import AppError

cfg = get_app_environ_config()


class HTTPLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):  # type: ignore
        start_time = time.time()
        request_id = str(uuid.uuid4())[:8]

        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000
            logger.info(
                f"[{request_id}] {request.method} {request.url.path} - "
                f"Status: {response.status_code} - "
                f"Duration: {process_time:.2f}ms"
            )

            return response

        except Exception as exc:
            process_time = (time.time() - start_time) * 1000
            logger.error(
                f"[{request_id}] Unhandled exception in {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - "
                f"Error: {type(exc).__name__}: {exc}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )

            failure = api_failure(
                errcode=E_INTERNAL,
                errmesg=f"Internal server error (request_id: {request_id})",
            )
            return ORJSONResponse(status_code=500, content=failure.model_dump())


def configure_logfire(server: FastAPI) -> None:
    logger.info("Logfire initializing")

    logfire.configure(
        token=cfg.LOGFIRE_TOKEN,
        service_name=cfg.SERVICE_KEY,
        service_version=environ.get("BUILD_COMMIT") or "dev",
    )
    logfire.instrument_fastapi(server, capture_headers=True)
    logfire.instrument_pymongo(capture_statement=cfg.DEBUG)
    logfire.instrument_pydantic()


@asynccontextmanager
async def lifespan(server: FastAPI):
    init_logger()

    logger.info("Application startup...")

    server.state.container = await AppContainer(cfg).start()

    if cfg.LOGFIRE_ENABLE:
        configure_logfire(server)

    yield

    logger.info("Application shutdown...")

    await server.state.container.close()
    server.state.container = None


def create_app(lifespan_handler=lifespan) -> FastAPI:
    server = FastAPI(
        version="1.0",
        title="LiveCast API",
        docs_url="/docs" if cfg.DEBUG else None,
        redoc_url=None,
        openapi_url="/openapi.json" if cfg.DEBUG else None,
        default_response_class=ORJSONResponse,
        lifespan=lifespan_handler,
    )

    server.add_middleware(HTTPLoggingMiddleware)
    server.add_middleware(
        CORSMiddleware,  # type: ignore
        allow_origins=cfg.API_CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    server.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore
    server.add_exception_handler(AppError, app_error_handler)  # type: ignore
    server.add_exception_handler(TwirpError, twirp_error_handler)  # type: ignore

    server.include_router(health.router)
    server.include_router(livekit_webhook.router)
    server.include_router(session_routes.router, prefix="/api/v1")
    server.include_router(session_state_routes.router, prefix="/api/v1")

    return server


app = create_app()


def build_granian_kwargs():
    kwargs = {
        "interface": "asgi",
        "address": cfg.API_HOST,
        "port": cfg.API_PORT,
        "workers": cfg.API_WORKERS,
        "reload": cfg.DEBUG,
    }

    return kwargs


if __name__ == "__main__":
    granian_kwargs = build_granian_kwargs()
    Granian("app.main:app", **granian_kwargs).serve()
