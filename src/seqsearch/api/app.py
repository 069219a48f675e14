"""
FastAPI application factory.

``create_app()`` wires the job service, error handlers, the queue-size
middleware and the job routes into a single ``FastAPI`` instance.

Startup order (lifespan):
    1. ``JobService.start()``: store initialization, then recovery of
       orphaned running jobs, then the Reaper and Result Collector loops
    2. only after that does the app accept requests

Shutdown stops the maintenance loops; live workers keep running and are
relaunched by the next start if still unfinished.

Tags:
    seqsearch, api, app-factory, composition-root, FastAPI
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from seqsearch import __version__
from seqsearch.api.errors import install_error_handlers
from seqsearch.api.routes import router
from seqsearch.core.logging import get_logger
from seqsearch.core.settings import JobSettings
from seqsearch.jobs.service import JobService

logger = get_logger(__name__)


class QueueHeadersMiddleware(BaseHTTPMiddleware):
    """Adds ``X-Job-Queue-Size`` / ``X-Job-Queue-Limit`` to every response."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        service: JobService = request.app.state.service
        running, limit = await run_in_threadpool(service.queue_size)
        response.headers["X-Job-Queue-Size"] = str(running)
        response.headers["X-Job-Queue-Limit"] = str(limit)
        return response


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: recover, start maintenance, stop on shutdown."""
    service: JobService = app.state.service
    logger.info("api.starting", version=app.version)
    await run_in_threadpool(service.start)
    yield
    await run_in_threadpool(service.stop)
    logger.info("api.stopped")


def create_app(
    settings: JobSettings | None = None,
    *,
    service: JobService | None = None,
) -> FastAPI:
    """Build the job server app.

    Parameters
    ----------
    settings : JobSettings | None
        Settings for a new :class:`JobService`; loaded from the environment
        when ``None``.
    service : JobService | None
        Pre-built service (tests inject one with a thread launcher).
    """
    if service is None:
        service = JobService(settings or JobSettings())

    app = FastAPI(title="seqsearch job server", version=__version__, lifespan=lifespan)
    app.state.service = service

    app.add_middleware(QueueHeadersMiddleware)
    install_error_handlers(app)
    app.include_router(router, tags=["jobs"])
    return app
