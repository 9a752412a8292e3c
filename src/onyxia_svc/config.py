"""Service configuration dataclasses, loaded from YAML."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .catalog.types import CatalogStatus, CatalogType, CatalogWrapper
from .region import Region


class ConfigError(ValueError):
    """The configuration file is invalid."""


def _get(data: dict[str, Any], camel: str, snake: str, default: Any = None) -> Any:
    """Read a key given in either camelCase or snake_case."""
    if camel in data:
        return data[camel]
    return data.get(snake, default)


@dataclass
class CatalogConfig:
    """One catalog source, as declared in the configuration file."""
    id: str
    location: str
    type: CatalogType = CatalogType.HELM
    name: str = ""
    description: str = ""
    maintainer: str = ""
    status: CatalogStatus = CatalogStatus.PROD
    excluded_charts: list[str] = field(default_factory=list)
    highlighted_charts: list[str] = field(default_factory=list)
    timeout: float | None = None  # seconds per fetch
    skip_tls_verify: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CatalogConfig:
        for required in ("id", "location"):
            if not data.get(required):
                raise ConfigError(f"Catalog entry is missing '{required}': {data!r}")
        try:
            catalog_type = CatalogType.parse(str(data.get("type", "helm")))
        except ValueError as e:
            raise ConfigError(f"Unknown catalog type for {data['id']}: {data.get('type')}") from e
        try:
            status = CatalogStatus(str(data.get("status", "PROD")).upper())
        except ValueError as e:
            raise ConfigError(f"Unknown catalog status for {data['id']}: {data.get('status')}") from e

        timeout = data.get("timeout")
        return cls(
            id=str(data["id"]),
            location=str(data["location"]),
            type=catalog_type,
            name=data.get("name", ""),
            description=data.get("description", ""),
            maintainer=data.get("maintainer", ""),
            status=status,
            excluded_charts=list(_get(data, "excludedCharts", "excluded_charts", []) or []),
            highlighted_charts=list(_get(data, "highlightedCharts", "highlighted_charts", []) or []),
            timeout=float(timeout) if timeout is not None else None,
            skip_tls_verify=bool(_get(data, "skipTlsVerify", "skip_tls_verify", False)),
        )

    def to_wrapper(self) -> CatalogWrapper:
        return CatalogWrapper(
            id=self.id,
            type=self.type,
            location=self.location,
            name=self.name,
            description=self.description,
            maintainer=self.maintainer,
            status=self.status,
            excluded_charts=tuple(self.excluded_charts),
            highlighted_charts=tuple(self.highlighted_charts),
            timeout=self.timeout,
            skip_tls_verify=self.skip_tls_verify,
        )


@dataclass
class LoggingConfig:
    level: str = "INFO"
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@dataclass
class HttpConfig:
    timeout_seconds: float = 10.0  # Default per-fetch timeout for remote catalogs


@dataclass
class ResourcesConfig:
    classpath_root: str | None = None  # Directory backing classpath: locations


@dataclass
class Config:
    """Top-level service configuration."""
    catalogs: list[CatalogConfig] = field(default_factory=list)
    regions: list[Region] = field(default_factory=list)
    refresh_interval_seconds: float = 0  # 0 disables periodic refresh
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    http: HttpConfig = field(default_factory=HttpConfig)
    resources: ResourcesConfig = field(default_factory=ResourcesConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Create config from dictionary."""
        catalogs = [CatalogConfig.from_dict(c) for c in data.get("catalogs") or []]
        seen: set[str] = set()
        for catalog in catalogs:
            if catalog.id in seen:
                raise ConfigError(f"Duplicate catalog id: {catalog.id}")
            seen.add(catalog.id)

        try:
            regions = [Region.from_dict(r) for r in data.get("regions") or []]
        except (KeyError, ValueError) as e:
            raise ConfigError(f"Invalid region configuration: {e}") from e

        try:
            logging_config = LoggingConfig(**(data.get("logging") or {}))
            http_config = HttpConfig(**(data.get("http") or {}))
            resources_config = ResourcesConfig(**(data.get("resources") or {}))
        except TypeError as e:
            raise ConfigError(f"Unknown configuration key: {e}") from e

        return cls(
            catalogs=catalogs,
            regions=regions,
            refresh_interval_seconds=float(
                _get(data, "refreshIntervalSeconds", "refresh_interval_seconds", 0) or 0
            ),
            logging=logging_config,
            http=http_config,
            resources=resources_config,
        )

    @classmethod
    def from_yaml(cls, path: str | Path) -> Config:
        """Load config from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {path}: {e}") from e
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return cls.from_dict(data)
