"""Catalog types - catalog wrappers, packages, charts and config schemas."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


def name_key(name: str) -> str:
    """Normalized key used for every case-insensitive name comparison."""
    return name.casefold()


class CatalogType(str, Enum):
    """Supported catalog source types."""
    HELM = "helm"
    UNIVERSE = "universe"  # Legacy flat package list, no per-chart bundles

    @classmethod
    def parse(cls, value: str) -> CatalogType:
        return cls(value.strip().lower())


class CatalogStatus(str, Enum):
    PROD = "PROD"
    TEST = "TEST"


@dataclass(slots=True)
class XForm:
    """Form rendering hint attached to a property."""
    value: str | None = None  # Templated expression, e.g. "{{user.idep}}"
    hidden: bool = False

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"hidden": self.hidden}
        if self.value is not None:
            d["value"] = self.value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XForm:
        return cls(value=data.get("value"), hidden=bool(data.get("hidden", False)))


@dataclass(slots=True)
class XOnyxia:
    """Platform hint attached to a property."""
    overwrite_default_with: str | None = None
    hidden: bool = False

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"hidden": self.hidden}
        if self.overwrite_default_with is not None:
            d["overwriteDefaultWith"] = self.overwrite_default_with
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> XOnyxia:
        return cls(
            overwrite_default_with=data.get("overwriteDefaultWith"),
            hidden=bool(data.get("hidden", False)),
        )


class _Missing:
    """Marks a property without a default (``None`` is a valid default)."""

    def __repr__(self) -> str:
        return "<missing>"

    def __copy__(self) -> _Missing:
        return self

    def __deepcopy__(self, memo: dict) -> _Missing:
        return self


_MISSING = _Missing()

# Keys mapped onto Property fields; everything else lands in `extra`
_PROPERTY_KEYS = frozenset({
    "type", "description", "default", "title", "properties", "x-form", "x-onyxia",
})


def _properties_mapping(data: dict[str, Any]) -> dict[str, Any]:
    nested = data.get("properties")
    if nested is None:
        return {}
    if not isinstance(nested, dict):
        raise ValueError(f"'properties' must be an object, got {type(nested).__name__}")
    return nested


@dataclass(slots=True)
class Property:
    """
    A node of a JSON-schema configuration tree.

    Keys the service does not interpret (enum, items, pattern, render, ...)
    are preserved in ``extra`` and written back unchanged.
    """
    type: str | None = None
    description: str | None = None
    default: Any = _MISSING
    title: str | None = None
    properties: dict[str, Property] = field(default_factory=dict)
    x_form: XForm | None = None
    x_onyxia: XOnyxia | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def has_default(self) -> bool:
        return self.default is not _MISSING

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = dict(self.extra)
        if self.type is not None:
            d["type"] = self.type
        if self.description is not None:
            d["description"] = self.description
        if self.title is not None:
            d["title"] = self.title
        if self.has_default:
            d["default"] = self.default
        if self.properties:
            d["properties"] = {k: v.to_dict() for k, v in self.properties.items()}
        if self.x_form is not None:
            d["x-form"] = self.x_form.to_dict()
        if self.x_onyxia is not None:
            d["x-onyxia"] = self.x_onyxia.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Property:
        """
        Build a property node.

        Raises:
            ValueError: a nested ``properties`` value is not an object
        """
        nested = _properties_mapping(data)
        x_form = data.get("x-form")
        x_onyxia = data.get("x-onyxia")
        return cls(
            type=data.get("type"),
            description=data.get("description"),
            default=data.get("default", _MISSING),
            title=data.get("title"),
            properties={
                k: cls.from_dict(v) for k, v in nested.items() if isinstance(v, dict)
            },
            x_form=XForm.from_dict(x_form) if isinstance(x_form, dict) else None,
            x_onyxia=XOnyxia.from_dict(x_onyxia) if isinstance(x_onyxia, dict) else None,
            extra={k: v for k, v in data.items() if k not in _PROPERTY_KEYS},
        )


@dataclass(slots=True)
class Config:
    """Root of a package configuration schema (values.schema.json)."""
    type: str = "object"
    properties: dict[str, Property] = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = dict(self.extra)
        d["type"] = self.type
        d["properties"] = {k: v.to_dict() for k, v in self.properties.items()}
        if self.required:
            d["required"] = list(self.required)
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """
        Build a schema root.

        Raises:
            ValueError: ``properties`` is not an object or ``required`` is not a list
        """
        nested = _properties_mapping(data)
        required = data.get("required")
        if required is not None and not isinstance(required, list):
            raise ValueError(f"'required' must be a list, got {type(required).__name__}")
        return cls(
            type=data.get("type", "object"),
            properties={
                k: Property.from_dict(v) for k, v in nested.items() if isinstance(v, dict)
            },
            required=[str(r) for r in required or []],
            extra={
                k: v for k, v in data.items() if k not in ("type", "properties", "required")
            },
        )


@dataclass(frozen=True, slots=True)
class Maintainer:
    name: str
    email: str | None = None
    url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"name": self.name}
        if self.email:
            d["email"] = self.email
        if self.url:
            d["url"] = self.url
        return d


@dataclass(slots=True)
class Pkg:
    """Minimal package record, served by catalogs without chart detail."""
    name: str
    version: str = ""
    description: str = ""
    config: Config = field(default_factory=Config)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "config": self.config.to_dict(),
        }


@dataclass(slots=True)
class Chart:
    """
    One version of a Helm chart.

    Index metadata is copied from the repository index; ``config`` and
    ``maintainers`` are completed from the chart bundle during load.
    """
    name: str
    version: str = ""
    description: str = ""
    config: Config = field(default_factory=Config)
    maintainers: list[Maintainer] = field(default_factory=list)
    app_version: str | None = None
    api_version: str | None = None
    created: str | None = None
    digest: str | None = None
    home: str | None = None
    icon: str | None = None
    type: str | None = None
    keywords: list[str] = field(default_factory=list)
    sources: list[str] = field(default_factory=list)
    urls: list[str] = field(default_factory=list)
    dependencies: list[dict[str, Any]] = field(default_factory=list)
    annotations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "config": self.config.to_dict(),
            "maintainers": [m.to_dict() for m in self.maintainers],
            "keywords": list(self.keywords),
            "sources": list(self.sources),
            "urls": list(self.urls),
        }
        for key, value in (
            ("appVersion", self.app_version),
            ("apiVersion", self.api_version),
            ("created", self.created),
            ("digest", self.digest),
            ("home", self.home),
            ("icon", self.icon),
            ("type", self.type),
        ):
            if value is not None:
                d[key] = value
        if self.dependencies:
            d["dependencies"] = list(self.dependencies)
        if self.annotations:
            d["annotations"] = dict(self.annotations)
        return d


Package = Pkg | Chart


@dataclass(frozen=True, slots=True)
class CatalogSnapshot:
    """
    Resolved content of one catalog at a point in time.

    A load builds a new snapshot and swaps it in with a single assignment,
    so readers never observe entries and packages from different loads.
    """
    entries: dict[str, list[Package]] = field(default_factory=dict)
    packages: tuple[Package, ...] = ()
    last_update_time: int | None = None  # epoch milliseconds

    def find_entry(self, name: str) -> list[Package] | None:
        key = name_key(name)
        for entry_name, versions in self.entries.items():
            if name_key(entry_name) == key:
                return versions
        return None

    def find_package(self, name: str) -> Package | None:
        key = name_key(name)
        for pkg in self.packages:
            if name_key(pkg.name) == key:
                return pkg
        return None


@dataclass(slots=True)
class CatalogWrapper:
    """
    A configured catalog source and its most recently loaded content.

    The identity and configuration fields are fixed at startup; only the
    snapshot is replaced by loads.
    """
    id: str
    type: CatalogType
    location: str
    name: str = ""
    description: str = ""
    maintainer: str = ""
    status: CatalogStatus = CatalogStatus.PROD
    excluded_charts: tuple[str, ...] = ()  # as configured
    highlighted_charts: tuple[str, ...] = ()
    timeout: float | None = None  # seconds per fetch, falls back to http config
    skip_tls_verify: bool = False
    snapshot: CatalogSnapshot = field(default_factory=CatalogSnapshot)
    load_lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)
    excluded_keys: frozenset[str] = field(init=False, default=frozenset(), repr=False, compare=False)

    def __post_init__(self):
        if not self.name:
            self.name = self.id
        self.excluded_charts = tuple(self.excluded_charts)
        self.excluded_keys = frozenset(name_key(n) for n in self.excluded_charts)

    @property
    def entries(self) -> dict[str, list[Package]]:
        return self.snapshot.entries

    @property
    def packages(self) -> tuple[Package, ...]:
        return self.snapshot.packages

    @property
    def last_update_time(self) -> int | None:
        return self.snapshot.last_update_time

    @property
    def is_loaded(self) -> bool:
        return self.snapshot.last_update_time is not None

    def is_excluded(self, chart_name: str) -> bool:
        return name_key(chart_name) in self.excluded_keys

    def metadata_dict(self) -> dict[str, Any]:
        """Serialise the wrapper without package bodies."""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "maintainer": self.maintainer,
            "location": self.location,
            "status": self.status.value,
            "type": self.type.value,
            "excludedCharts": list(self.excluded_charts),
            "highlightedCharts": list(self.highlighted_charts),
            "lastUpdateTime": self.last_update_time,
            "timeout": self.timeout,
            "skipTlsVerify": self.skip_tls_verify,
        }

    def to_dict(self) -> dict[str, Any]:
        """Serialise the wrapper together with its resolved content."""
        snapshot = self.snapshot
        d = self.metadata_dict()
        d["lastUpdateTime"] = snapshot.last_update_time
        d["catalog"] = {
            "entries": {
                name: [pkg.to_dict() for pkg in versions]
                for name, versions in snapshot.entries.items()
            },
            "packages": [pkg.to_dict() for pkg in snapshot.packages],
        }
        return d
