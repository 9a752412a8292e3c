"""Deployment regions and the catalog visibility rule that depends on them."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .catalog.types import CatalogType, CatalogWrapper


class ServiceType(str, Enum):
    """Orchestration backend of a region."""
    KUBERNETES = "KUBERNETES"
    MARATHON = "MARATHON"


@dataclass(frozen=True, slots=True)
class Services:
    type: ServiceType = ServiceType.KUBERNETES


@dataclass(frozen=True, slots=True)
class Region:
    """A deployment target, as configured for this service."""
    id: str
    name: str = ""
    description: str = ""
    services: Services = field(default_factory=Services)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Region:
        services = data.get("services") or {}
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            description=data.get("description", ""),
            services=Services(
                type=ServiceType(str(services.get("type", "KUBERNETES")).upper()),
            ),
        )


def is_catalog_enabled(region: Region | None, catalog: CatalogWrapper) -> bool:
    """
    Whether ``catalog`` may be listed for callers in ``region``.

    No region means no restriction. Helm catalogs need a Kubernetes region;
    every other catalog type is hidden.
    """
    if region is None:
        return True

    if catalog.type == CatalogType.HELM:
        return region.services.type == ServiceType.KUBERNETES

    return False
