"""Catalog loader - resolves configured catalogs into chart snapshots."""

from __future__ import annotations

import dataclasses
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .index import (
    HELM_INDEX_FILE,
    UNIVERSE_INDEX_FILE,
    BundleError,
    IndexParseError,
    extract_chart_bundle,
    parse_helm_index,
    parse_universe_index,
)
from .resources import ResourceError, ResourceProvider, join_location
from .types import CatalogSnapshot, CatalogType, CatalogWrapper, Chart, Config, Package


logger = logging.getLogger(__name__)

IndexParser = Callable[[bytes], list[tuple[str, list[Package]]]]

# Index file name and parser for each catalog type
_INDEX_FORMATS: dict[CatalogType, tuple[str, IndexParser]] = {
    CatalogType.HELM: (HELM_INDEX_FILE, parse_helm_index),
    CatalogType.UNIVERSE: (UNIVERSE_INDEX_FILE, parse_universe_index),
}


class CatalogLoaderError(Exception):
    """The index of a catalog could not be fetched or parsed."""

    def __init__(self, message: str, catalog_id: str, location: str):
        super().__init__(message)
        self.catalog_id = catalog_id
        self.location = location


@dataclass(frozen=True, slots=True)
class RecordOutcome:
    """Result of resolving one chart version."""
    chart: Chart | None = None
    error: str | None = None
    exception: BaseException | None = None

    @property
    def success(self) -> bool:
        return self.chart is not None

    @classmethod
    def loaded(cls, chart: Chart) -> RecordOutcome:
        return cls(chart=chart)

    @classmethod
    def failed(cls, error: str, exception: BaseException | None = None) -> RecordOutcome:
        return cls(error=error, exception=exception)


class CatalogLoader:
    """
    Loads catalog content through a ResourceProvider.

    A load is a full rebuild: the index is fetched and parsed, excluded
    charts are dropped, every remaining chart version is completed from its
    bundle, and the result replaces the wrapper's snapshot in one step.

    A broken index aborts the load with CatalogLoaderError and leaves the
    wrapper untouched. A broken chart bundle only drops that chart version.
    """

    def __init__(self, resource_provider: ResourceProvider, default_timeout: float | None = None):
        self.resource_provider = resource_provider
        self.default_timeout = default_timeout

    def update_catalog(self, wrapper: CatalogWrapper) -> CatalogSnapshot:
        """Reload ``wrapper`` and return the snapshot that was committed."""
        with wrapper.load_lock:
            snapshot = self._build_snapshot(wrapper)
            wrapper.snapshot = snapshot
        logger.info(
            f"Loaded catalog {wrapper.id}: {len(snapshot.packages)} packages, "
            f"{sum(len(v) for v in snapshot.entries.values())} versions"
        )
        return snapshot

    def _timeout(self, wrapper: CatalogWrapper) -> float | None:
        return wrapper.timeout if wrapper.timeout is not None else self.default_timeout

    def _fetch(self, wrapper: CatalogWrapper, location: str) -> bytes:
        return self.resource_provider.fetch(
            location,
            timeout=self._timeout(wrapper),
            verify=not wrapper.skip_tls_verify,
        )

    def _build_snapshot(self, wrapper: CatalogWrapper) -> CatalogSnapshot:
        index_file, parse_index = _INDEX_FORMATS[wrapper.type]
        index_location = join_location(wrapper.location, index_file)

        try:
            groups = parse_index(self._fetch(wrapper, index_location))
        except (ResourceError, IndexParseError) as e:
            raise CatalogLoaderError(
                f"Exception occurred during loading catalog index: "
                f"{self.resource_provider.describe(index_location)}: {e}",
                catalog_id=wrapper.id,
                location=wrapper.location,
            ) from e

        entries: dict[str, list[Package]] = {}
        for chart_name, versions in groups:
            if wrapper.is_excluded(chart_name):
                logger.debug(f"Excluding chart {chart_name} from catalog {wrapper.id}")
                continue

            if wrapper.type == CatalogType.HELM:
                versions = self._resolve_versions(wrapper, chart_name, versions)
            if versions:
                entries[chart_name] = versions

        return CatalogSnapshot(
            entries=entries,
            packages=tuple(versions[0] for versions in entries.values()),
            last_update_time=int(time.time() * 1000),
        )

    def _resolve_versions(
        self, wrapper: CatalogWrapper, chart_name: str, versions: list[Package]
    ) -> list[Package]:
        resolved: list[Package] = []
        for record in versions:
            outcome = self.refresh_chart(wrapper, record)
            if outcome.success:
                resolved.append(outcome.chart)
                continue
            logger.error(
                "Catalog %s: dropping chart %s version %s: %s",
                wrapper.id,
                chart_name,
                record.version,
                outcome.error,
                exc_info=outcome.exception,
            )
        return resolved

    def refresh_chart(self, wrapper: CatalogWrapper, record: Package) -> RecordOutcome:
        """Complete one chart version from its bundle."""
        if not isinstance(record, Chart):
            return RecordOutcome.failed(f"Package {record.name} is not a chart")
        if not record.urls:
            return RecordOutcome.failed(f"Chart {record.name} {record.version} has no urls")

        bundle_location = join_location(wrapper.location, record.urls[0])
        resource = self.resource_provider.describe(bundle_location)
        try:
            bundle = extract_chart_bundle(self._fetch(wrapper, bundle_location))
        except (ResourceError, BundleError) as e:
            return RecordOutcome.failed(
                f"Exception occurred during loading resource: {resource}",
                exception=e,
            )

        return RecordOutcome.loaded(dataclasses.replace(
            record,
            config=bundle.config if bundle.config is not None else Config(),
            maintainers=bundle.maintainers or list(record.maintainers),
        ))
