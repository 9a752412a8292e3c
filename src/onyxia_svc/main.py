"""FastAPI entry point.

Start with:
    PYTHONPATH=src uvicorn onyxia_svc.main:app --host 0.0.0.0 --port 8080

Configuration is read from ``$ONYXIA_CONFIG`` (default ``config.yaml``).
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import _bootstrap as bs
from .catalog import routes as catalog_routes
from .catalog.registry import NotFoundError
from .config import Config

logger = logging.getLogger(__name__)


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": "Not Found", "detail": str(exc)},
    )


def create_app(config: Config | None = None) -> FastAPI:
    """Build the application; *config* overrides the YAML file (used by tests)."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting catalog service...")

        cfg = config
        if cfg is None:
            cfg, _config_path = bs.load_config()
            bs.configure_logging(cfg)

        provider = bs.build_resource_provider(cfg)
        registry = bs.build_catalog_registry(cfg, provider)
        await bs.load_catalogs(registry)

        catalog_routes.configure(registry=registry, regions=cfg.regions)
        app.state.registry = registry

        refresh_task = bs.start_refresh_task(cfg, registry)

        logger.info("Catalog service started")
        yield

        if refresh_task is not None:
            refresh_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await refresh_task
        provider.close()
        logger.info("Catalog service stopped")

    app = FastAPI(
        title="Onyxia Catalogs",
        description="Helm chart catalogs available for installation, per region.",
        version="0.1.0",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Catalogs", "description": "Public catalog browsing"},
            {"name": "Health", "description": "Liveness"},
        ],
    )
    app.add_exception_handler(NotFoundError, not_found_handler)

    app.include_router(catalog_routes.router, prefix="/public/catalogs")
    app.include_router(catalog_routes.router, prefix="/public/catalog", include_in_schema=False)

    @app.get("/healthcheck", tags=["Health"])
    def healthcheck(request: Request):
        registry = request.app.state.registry
        return {
            "status": "ok",
            "catalogs": {w.id: w.is_loaded for w in registry.get_catalogs()},
        }

    return app


app = create_app()
