"""Catalog registry - the configured catalogs and lookups into their content."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from .loader import CatalogLoader, CatalogLoaderError
from .types import CatalogWrapper, Package


logger = logging.getLogger(__name__)


class NotFoundError(Exception):
    """A catalog, package, chart or chart version does not exist."""


class CatalogRegistry:
    """
    Holds every configured CatalogWrapper and answers read queries.

    Reads go through each wrapper's current snapshot and may run from any
    thread while a load is in progress. Loads are triggered explicitly with
    ``load_all`` / ``refresh``; the registry never retries a failed load.
    """

    def __init__(self, loader: CatalogLoader, catalogs: Iterable[CatalogWrapper] = ()):
        self.loader = loader
        self._catalogs: dict[str, CatalogWrapper] = {}
        for wrapper in catalogs:
            self.register(wrapper)

    def register(self, wrapper: CatalogWrapper) -> None:
        if wrapper.id in self._catalogs:
            raise ValueError(f"Duplicate catalog id: {wrapper.id}")
        self._catalogs[wrapper.id] = wrapper

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load_all(self) -> dict[str, bool]:
        """Load every catalog; returns ``{catalog_id: succeeded}``."""
        return self.refresh()

    def refresh(self, catalog_id: str | None = None) -> dict[str, bool]:
        """
        Reload one catalog, or all of them when ``catalog_id`` is None.

        A catalog whose index cannot be loaded keeps serving its previous
        content; the failure is logged and the remaining catalogs still load.
        """
        if catalog_id is None:
            wrappers = list(self._catalogs.values())
        else:
            wrappers = [self.get_catalog_by_id(catalog_id)]

        results: dict[str, bool] = {}
        for wrapper in wrappers:
            try:
                self.loader.update_catalog(wrapper)
                results[wrapper.id] = True
            except CatalogLoaderError as e:
                logger.error(
                    "Failed to load catalog %s from %s: %s",
                    e.catalog_id,
                    e.location,
                    e,
                    exc_info=e.__cause__,
                )
                results[wrapper.id] = False
        return results

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_catalogs(self) -> list[CatalogWrapper]:
        return list(self._catalogs.values())

    def get_catalog_by_id(self, catalog_id: str) -> CatalogWrapper:
        wrapper = self._catalogs.get(catalog_id)
        if wrapper is None:
            raise NotFoundError(f"Catalog not found: {catalog_id}")
        return wrapper

    def get_package(self, catalog_id: str, package_name: str) -> Package:
        pkg = self.get_catalog_by_id(catalog_id).snapshot.find_package(package_name)
        if pkg is None:
            raise NotFoundError(f"Package {package_name} not found in catalog {catalog_id}")
        return pkg

    def get_charts(self, catalog_id: str, chart_name: str) -> list[Package]:
        versions = self.get_catalog_by_id(catalog_id).snapshot.find_entry(chart_name)
        if versions is None:
            raise NotFoundError(f"Chart {chart_name} not found in catalog {catalog_id}")
        return list(versions)

    def get_chart_by_version(self, catalog_id: str, chart_name: str, version: str) -> Package:
        for chart in self.get_charts(catalog_id, chart_name):
            if chart.version == version:
                return chart
        raise NotFoundError(
            f"Chart {chart_name} version {version} not found in catalog {catalog_id}"
        )
