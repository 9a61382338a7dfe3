"""
FastAPI application
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config import Settings
from ..core.engine import ExecutionEngine
from ..core.parser import GraphParser
from ..core.scheduler import WorkflowScheduler
from ..integrations.event_bus import EventBus
from ..storage.sqlalchemy_repository import DatabaseManager, SQLAlchemyScheduleStore
from .middleware import RequestLoggingMiddleware
from .routers import schedules, workflows


logger = logging.getLogger(__name__)


def create_app(
    scheduler: WorkflowScheduler,
    parser: Optional[GraphParser] = None,
    db_manager: Optional[DatabaseManager] = None,
) -> FastAPI:
    """Wire an already constructed scheduler into an HTTP application"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting autoflow API...")
        if db_manager is not None:
            await db_manager.initialize()
        await scheduler.initialize()
        logger.info("autoflow API started successfully")

        yield

        logger.info("Shutting down autoflow API...")
        await scheduler.stop()
        if db_manager is not None:
            await db_manager.close()
        logger.info("autoflow API shut down successfully")

    app = FastAPI(
        title="autoflow API",
        description="Run and schedule automation workflows",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.scheduler = scheduler
    app.state.parser = parser or GraphParser()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.include_router(workflows.router, prefix="/api/v1/workflows", tags=["workflows"])
    app.include_router(schedules.router, prefix="/api/v1/schedules", tags=["schedules"])

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "request_id": getattr(request.state, "request_id", None)
            }
        )

    @app.get("/", tags=["root"])
    async def root():
        return {
            "name": "autoflow API",
            "version": __version__,
            "docs": "/docs",
            "health": "/api/v1/health"
        }

    @app.get("/api/v1/health", tags=["monitoring"])
    async def health():
        active = await scheduler.list_schedules()
        return {
            "status": "healthy",
            "heartbeat": scheduler.is_running,
            "active_schedules": len(active),
        }

    return app


def build_app(settings: Optional[Settings] = None) -> FastAPI:
    """Application factory backed by the configured database"""
    settings = settings or Settings.from_env()
    db_manager = DatabaseManager(settings.database_url)
    event_bus = EventBus()

    engine = ExecutionEngine(
        event_bus=event_bus,
        service_timeout=settings.service_timeout,
        conditional_branching=settings.conditional_branching,
    )
    scheduler = WorkflowScheduler(
        engine,
        store=SQLAlchemyScheduleStore(db_manager),
        heartbeat_interval=settings.heartbeat_seconds,
        event_bus=event_bus,
    )
    return create_app(scheduler, db_manager=db_manager)
