"""FastAPI application entrypoint."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import logging

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from copy_engine.core.config import Settings, get_settings
from copy_engine.errors import ApiError
from copy_engine.repositories.memory import InMemoryStore
from copy_engine.routes import copy_router, health_router, media_router, tasks_router
from copy_engine.schemas.error import ErrorCode, ErrorResponse
from copy_engine.services.media_proxy import MediaProxyService
from copy_engine.services.task_runner import BackgroundTaskRunner

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Jobs are process-lifetime only; anything still running is abandoned.
    logger.info("app.shutdown pending_tasks=%s", app.state.task_runner.pending)
    await app.state.task_runner.cancel_all()


def create_app(
    settings: Settings | None = None,
    store: InMemoryStore | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="Douyin Copy Engine API", version="2.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store if store is not None else InMemoryStore()
    app.state.task_runner = BackgroundTaskRunner()
    app.state.upstream_transport = transport
    app.state.media_proxy = MediaProxyService(
        ttl_seconds=settings.media_proxy_ttl,
        max_records=settings.media_proxy_max_records,
        transport=transport,
    )

    @app.exception_handler(ApiError)
    async def handle_api_error(_, exc: ApiError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.payload.model_dump(mode="json", by_alias=True, exclude_none=True),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = [
            {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", ""), "type": error.get("type", "")}
            for error in exc.errors()
        ]
        logger.info("request.invalid method=%s path=%s errors=%s", request.method, request.url.path, len(errors))
        payload = ErrorResponse(
            error_code=ErrorCode.INVALID_INPUT.value,
            error_message="Invalid request payload",
            details={"errors": errors},
        )
        return JSONResponse(status_code=400, content=payload.model_dump(mode="json", by_alias=True, exclude_none=True))

    api_prefix = "/api"
    app.include_router(tasks_router, prefix=api_prefix)
    app.include_router(copy_router, prefix=api_prefix)
    app.include_router(media_router, prefix=api_prefix)
    app.include_router(health_router)

    return app


app = create_app()
