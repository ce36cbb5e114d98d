"""
FastAPI application entry point.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncGenerator
import asyncio

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from callqueue.config import get_settings
from callqueue.dispatch.errors import DispatchError
from callqueue.dispatch.router import get_queue_processor, get_queue_reconciler
from callqueue.dispatch.router import router as process_queue_router
from callqueue.shared.database import get_database_manager
from callqueue.shared.logging import get_logger, setup_logging
from callqueue.telephony.factory import get_call_provider

# Register every mapped table before the first session is opened.
import callqueue.agents.models  # noqa: F401
import callqueue.calls.models  # noqa: F401
import callqueue.dispatch.models  # noqa: F401
import callqueue.leads.models  # noqa: F401

logger = get_logger(__name__)


async def _queue_poller() -> None:
    """Drive the queue on an interval: release finished calls, requeue, dispatch.

    Safe under ``uvicorn --workers N`` and multiple replicas: each tick's
    dispatch goes through the shared invocation lock, and a tick that finds
    it held simply does nothing.
    """
    settings = get_settings()
    interval = settings.poller_interval_seconds

    logger.info(
        "Queue poller starting",
        extra={
            "interval_seconds": interval,
            "max_concurrent": settings.queue_max_concurrent_calls,
        },
    )

    processor = get_queue_processor()
    reconciler = get_queue_reconciler()

    while True:
        try:
            await reconciler.release()
            await reconciler.requeue()
            result = await processor.process()
            if result.processed:
                logger.info(
                    "Queue poller tick dispatched",
                    extra={"processed": result.processed, "active_calls": result.active_calls},
                )
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("Queue poller tick failed")

        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager."""
    setup_logging()
    settings = get_settings()

    logger.info("Application starting", extra={"env": settings.app_env})

    poller_task: asyncio.Task[None] | None = None
    if settings.poller_enabled:
        poller_task = asyncio.create_task(_queue_poller())
        app.state.poller_task = poller_task
        logger.info("Queue poller enabled; background task created")

    yield

    logger.info("Shutting down application")

    poller_task = getattr(app.state, "poller_task", None)
    if poller_task is not None:
        poller_task.cancel()
        try:
            await poller_task
        except asyncio.CancelledError:
            pass
        logger.info("Queue poller stopped")

    await get_call_provider().close()
    await get_database_manager().close()
    logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Call Queue Dispatcher API",
        description="Capacity-bounded dispatch of queued outbound AI voice calls",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )

    # Invocation-level failures outside the trigger route (status, maintenance)
    @app.exception_handler(DispatchError)
    async def _dispatch_error(_: Request, exc: DispatchError) -> JSONResponse:
        logger.error("Queue operation failed", extra={"error": str(exc)})
        return JSONResponse(status_code=500, content={"error": str(exc)})

    # Request validation (FastAPI/Pydantic) -> consistent 422 payload
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        errors = []
        for error in exc.errors():
            field = ".".join(str(loc) for loc in error["loc"])
            errors.append(
                {
                    "field": field,
                    "message": error["msg"],
                    "type": error["type"],
                }
            )
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "errors": errors,
                }
            },
        )

    # CORS middleware; the trigger is called from browser dashboards
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(process_queue_router)

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy"}

    return app


app = create_app()
