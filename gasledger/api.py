"""
FastAPI app entry point aggregating per-domain routers under gasledger/routes.
Keep as `uvicorn gasledger.api:app`.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__
from .db import Settings, get_settings, make_engine
from .engine import Engine
from .logs import ensure_log_schema
from .providers.legacy_store import open_legacy_store
from .services.config_svc import ensure_default_settings
from .services.migrate_svc import LegacyImporter

from .routes import base as base_routes
from .routes import days as days_routes
from .routes import logs as logs_routes
from .routes import maintenance as maintenance_routes
from .routes import settings as settings_routes

logger = logging.getLogger(__name__)


def create_app(settings: Settings | None = None, engine: Engine | None = None) -> FastAPI:
    settings = settings or get_settings()
    engine = engine or make_engine(settings)

    app = FastAPI(title="gasledger-api", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.engine = engine
    app.state.importer = LegacyImporter(engine, lambda: open_legacy_store(settings.legacy_path))

    @app.on_event("startup")
    async def on_startup():
        await engine.init(settings.seed_path)
        await ensure_log_schema(engine)
        await ensure_default_settings(engine)
        if settings.legacy_path is not None and not app.state.importer.is_done():
            res = await app.state.importer.run()
            logger.info("Legacy import at startup: %s", res.to_dict())

    @app.on_event("shutdown")
    async def on_shutdown():
        await engine.persist()
        engine.close()

    # Include routers (split by business domain)
    app.include_router(base_routes.router)
    app.include_router(days_routes.router)
    app.include_router(settings_routes.router)
    app.include_router(logs_routes.router)
    app.include_router(maintenance_routes.router)
    return app


app = create_app()
