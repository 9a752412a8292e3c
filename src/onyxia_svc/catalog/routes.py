"""Public catalog endpoints.

Mounted under ``/public/catalogs`` (and the legacy ``/public/catalog``).
Call ``configure()`` from the application lifespan before serving requests.
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Path, Request

from ..region import Region, is_catalog_enabled
from .augment import with_onyxia_properties
from .registry import CatalogRegistry

logger = logging.getLogger(__name__)

REGION_HEADER = "ONYXIA-REGION"

router = APIRouter(tags=["Catalogs"])

# Runtime dependencies, set by configure()
_registry: CatalogRegistry | None = None
_regions: list[Region] = []


def configure(registry: CatalogRegistry, regions: list[Region]) -> None:
    """Wire the router with the registry and configured regions."""
    global _registry, _regions
    _registry = registry
    _regions = list(regions)


def get_registry() -> CatalogRegistry:
    if _registry is None:
        raise HTTPException(status_code=503, detail="Catalog service not initialised")
    return _registry


def get_region(request: Request) -> Region | None:
    """
    Resolve the caller's region.

    The ``ONYXIA-REGION`` header selects a configured region by id; without
    it the first configured region applies. With no regions configured the
    caller has no region and every catalog is visible.
    """
    region_id = request.headers.get(REGION_HEADER)
    if region_id:
        for region in _regions:
            if region.id == region_id:
                return region
        logger.debug(f"Rejecting request for unknown region {region_id}")
        raise HTTPException(status_code=400, detail=f"Unknown region: {region_id}")
    return _regions[0] if _regions else None


RegistryDep = Annotated[CatalogRegistry, Depends(get_registry)]
CatalogId = Annotated[str, Path(description="Unique ID of the enabled catalog for this Onyxia API.")]


@router.get("", summary="List available catalogs and packages for installing.")
def get_catalogs(
    registry: RegistryDep,
    region: Annotated[Region | None, Depends(get_region)],
) -> dict[str, Any]:
    """List the catalogs enabled for the caller's region, without their packages."""
    return {
        "catalogs": [
            wrapper.metadata_dict()
            for wrapper in registry.get_catalogs()
            if is_catalog_enabled(region, wrapper)
        ],
    }


@router.get("/{catalogId}", summary="List available packages for installing given a catalog.")
def get_catalog_by_id(catalogId: CatalogId, registry: RegistryDep) -> dict[str, Any]:
    return registry.get_catalog_by_id(catalogId).to_dict()


@router.get(
    "/{catalogId}/charts/{chartName}/versions/{version}",
    summary="Get a helm chart from a specific catalog by version.",
)
def get_chart_by_version(
    catalogId: CatalogId,
    chartName: Annotated[str, Path(description="Unique name of the chart from the selected catalog.")],
    version: Annotated[str, Path(description="Version of the chart")],
    registry: RegistryDep,
) -> dict[str, Any]:
    chart = registry.get_chart_by_version(catalogId, chartName, version)
    return with_onyxia_properties(chart).to_dict()


@router.get(
    "/{catalogId}/charts/{chartName}",
    summary="Get all versions of a chart from a specific catalog.",
)
def get_charts(
    catalogId: CatalogId,
    chartName: Annotated[str, Path(description="Unique name of the chart from the selected catalog.")],
    registry: RegistryDep,
) -> list[dict[str, Any]]:
    return [
        with_onyxia_properties(chart).to_dict()
        for chart in registry.get_charts(catalogId, chartName)
    ]


@router.get(
    "/{catalogId}/{packageName}",
    summary="Get a service package information from a specific catalog.",
)
def get_package(
    catalogId: CatalogId,
    packageName: Annotated[str, Path(description="Unique name of the package from the selected catalog.")],
    registry: RegistryDep,
) -> dict[str, Any]:
    pkg = registry.get_package(catalogId, packageName)
    return with_onyxia_properties(pkg).to_dict()
