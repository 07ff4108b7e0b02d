"""Accounts Gate - FastAPI Application Factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from accounts_gate.api import api_router, register_exception_handlers
from accounts_gate.api.health import router as health_router
from accounts_gate.core import async_session_maker, engine, settings, setup_logging
from accounts_gate.core.logging import get_logger
from accounts_gate.middleware import (
    AdmissionController,
    AdmissionMiddleware,
    RouteLimit,
    SanitizeMiddleware,
    SecurityHeadersMiddleware,
    admission_cleanup_loop,
)
from accounts_gate.models import Base, RevokedToken
from accounts_gate.services import (
    AccountStore,
    DatabaseRevocationStore,
    InMemoryRevocationRegistry,
    RevocationStore,
    SessionResolver,
    SqlAccountStore,
    revocation_sweep_loop,
)

logger = get_logger("main")


def task_done_callback(task: asyncio.Task[None]) -> None:
    """Log unhandled exceptions from background tasks."""
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"Background task {task.get_name()} failed: {exc}")


def build_revocation_store() -> RevocationStore:
    """Create the revocation store selected by REVOCATION_BACKEND."""
    if settings.revocation_backend == "database":
        return DatabaseRevocationStore(async_session_maker)
    return InMemoryRevocationRegistry(max_entries=settings.revocation_max_entries)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    setup_logging(
        level=settings.log_level,
        format_type="dev" if settings.debug else "structured",
    )
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")

    for warning in settings.check_security_configuration():
        logger.warning(f"SECURITY: {warning}")

    revocation_store: RevocationStore = app.state.revocation_store
    if isinstance(revocation_store, DatabaseRevocationStore):
        # Only the revocation table is owned here; accounts belong to the host application
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all, tables=[RevokedToken.__table__])

    tasks: list[asyncio.Task] = []

    sweep_task = asyncio.create_task(
        revocation_sweep_loop(revocation_store, settings.revocation_sweep_interval_seconds),
        name="revocation-sweep",
    )
    sweep_task.add_done_callback(task_done_callback)
    tasks.append(sweep_task)

    cleanup_task = asyncio.create_task(
        admission_cleanup_loop(app.state.admission_controller),
        name="admission-cleanup",
    )
    cleanup_task.add_done_callback(task_done_callback)
    tasks.append(cleanup_task)

    yield

    # Shutdown
    logger.info("Shutting down...")
    for task in tasks:
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    await engine.dispose()


def create_app(
    account_store: AccountStore | None = None,
    revocation_store: RevocationStore | None = None,
    admission_controller: AdmissionController | None = None,
    route_limits: list[RouteLimit] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Collaborators default to the configured database stores and the process-wide
    admission controller; tests pass their own.
    """
    app = FastAPI(
        title=settings.app_name,
        description="Authentication and authorization gate for the accounting API",
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )

    if account_store is None:
        account_store = SqlAccountStore(async_session_maker)
    if revocation_store is None:
        revocation_store = build_revocation_store()
    if admission_controller is None:
        admission_controller = AdmissionController.get_instance()

    app.state.account_store = account_store
    app.state.revocation_store = revocation_store
    app.state.admission_controller = admission_controller
    app.state.session_resolver = SessionResolver(
        accounts=account_store,
        revocations=revocation_store,
        secret=settings.jwt_secret,
    )

    register_exception_handlers(app)

    # Starlette runs middleware in reverse order of registration.
    # Sanitization is innermost.
    app.add_middleware(SanitizeMiddleware)

    app.add_middleware(
        AdmissionMiddleware,
        controller=admission_controller,
        route_limits=route_limits,
        enabled=settings.rate_limit_enabled,
    )

    # Security headers also cover 429 responses from admission
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - MUST be outermost so CORS headers are present on ALL responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=[
            "Authorization",
            "Content-Type",
            "Accept",
            "X-Request-ID",
        ],
    )

    app.include_router(health_router)  # Health at root level
    app.include_router(api_router)  # API at /api

    return app


# Application instance
app = create_app()
