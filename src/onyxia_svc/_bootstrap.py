"""Shared initialisation helpers used by the application lifespan.

Each function constructs exactly one component from the service stack.
"""
from __future__ import annotations

import asyncio
import logging
import os
from pathlib import Path

from .catalog.loader import CatalogLoader
from .catalog.registry import CatalogRegistry
from .catalog.resources import CompositeResourceProvider, create_default_provider
from .config import Config

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

def load_config(config_path: str | None = None) -> tuple[Config, str]:
    """Load config from file or fall back to defaults.

    Returns ``(config, resolved_config_path)`` where *resolved_config_path*
    is the string that was actually used.
    """
    config_path = config_path or os.environ.get("ONYXIA_CONFIG", "config.yaml")
    if Path(config_path).exists():
        config = Config.from_yaml(config_path)
        logger.info("Loaded config from %s", config_path)
    else:
        config = Config()
        logger.info("Using default config (no file at %s)", config_path)
    return config, config_path


def configure_logging(config: Config) -> None:
    """Configure root logging once, from the ``logging`` section."""
    logging.basicConfig(
        level=config.logging.level.upper(),
        format=config.logging.format,
    )


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

def build_resource_provider(config: Config) -> CompositeResourceProvider:
    """Build the classpath / HTTP / file provider chain."""
    provider = create_default_provider(
        http_timeout=config.http.timeout_seconds,
        classpath_root=config.resources.classpath_root,
    )
    logger.info(
        "Resource providers: %s",
        [type(p).__name__ for p in provider.providers],
    )
    return provider


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def build_catalog_registry(config: Config, provider: CompositeResourceProvider) -> CatalogRegistry:
    """Create an (unloaded) registry holding every configured catalog."""
    loader = CatalogLoader(provider, default_timeout=config.http.timeout_seconds)
    registry = CatalogRegistry(
        loader=loader,
        catalogs=[c.to_wrapper() for c in config.catalogs],
    )
    logger.info("Configured %d catalogs", len(config.catalogs))
    return registry


async def load_catalogs(registry: CatalogRegistry) -> dict[str, bool]:
    """Initial load of every catalog, run off the event loop."""
    results = await asyncio.to_thread(registry.load_all)
    loaded = sum(1 for ok in results.values() if ok)
    logger.info("Startup load: %d/%d catalogs loaded", loaded, len(results))
    return results


async def refresh_loop(registry: CatalogRegistry, interval_seconds: float) -> None:
    """Reload every catalog every *interval_seconds* until cancelled."""
    while True:
        await asyncio.sleep(interval_seconds)
        results = await asyncio.to_thread(registry.refresh)
        failed = [catalog_id for catalog_id, ok in results.items() if not ok]
        if failed:
            logger.warning("Catalog refresh failed for: %s", ", ".join(failed))
        else:
            logger.debug("Refreshed %d catalogs", len(results))


def start_refresh_task(config: Config, registry: CatalogRegistry) -> asyncio.Task | None:
    """Spawn the periodic refresh task if ``refresh_interval_seconds`` is set."""
    if config.refresh_interval_seconds <= 0:
        logger.info("Periodic catalog refresh disabled")
        return None
    logger.info("Refreshing catalogs every %ss", config.refresh_interval_seconds)
    return asyncio.create_task(refresh_loop(registry, config.refresh_interval_seconds))
