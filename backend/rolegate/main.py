from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from rolegate.api import authz, health
from rolegate.core.config import settings
from rolegate.core.logging import api_logger
from rolegate.db.database import create_tables
from rolegate.permissions.seeding import run_seeder
from rolegate.permissions.session import SessionRegistry
from rolegate.storage.documents import SqlDocumentStore
from rolegate.storage.session_storage import (
    create_redis_client,
    memory_storage_factory,
    redis_storage_factory,
)


def build_registry(app: FastAPI) -> SessionRegistry:
    """Default registry: SQL document store, Redis or in-memory session state."""
    store = SqlDocumentStore()
    if settings.SESSION_BACKEND == "redis":
        client = create_redis_client()
        app.state.redis = client
        return SessionRegistry(store, redis_storage_factory(client))
    app.state.redis = None
    return SessionRegistry(store, memory_storage_factory())


def create_app(registry: Optional[SessionRegistry] = None) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        if registry is None:
            await create_tables()
            app.state.registry = build_registry(app)
            if settings.SEED_ON_STARTUP:
                await run_seeder(app.state.registry.store)
        else:
            app.state.registry = registry
        api_logger.info("authorization service started", env=settings.APP_ENV)
        yield
        # Shutdown
        app.state.registry.close_all()

    app = FastAPI(
        title="rolegate API",
        description="Role-based authorization and role preview service",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(authz.router)
    app.include_router(health.router, prefix="", tags=["Health"])

    if registry is not None:
        # Available before lifespan runs (e.g. ASGITransport without startup)
        app.state.registry = registry
    return app


app = create_app()
