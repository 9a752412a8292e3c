"""Catalog system - Helm chart catalogs, loading and lookups."""

from .types import (
    CatalogSnapshot,
    CatalogStatus,
    CatalogType,
    CatalogWrapper,
    Chart,
    Config,
    Maintainer,
    Package,
    Pkg,
    Property,
    XForm,
    XOnyxia,
    name_key,
)
from .resources import (
    ClasspathResourceProvider,
    CompositeResourceProvider,
    FileResourceProvider,
    HttpResourceProvider,
    ResourceError,
    ResourceNotFoundError,
    ResourceProvider,
    create_default_provider,
)
from .loader import CatalogLoader, CatalogLoaderError, RecordOutcome
from .registry import CatalogRegistry, NotFoundError
from .augment import add_onyxia_properties, with_onyxia_properties

__all__ = [
    # Types
    "CatalogSnapshot",
    "CatalogStatus",
    "CatalogType",
    "CatalogWrapper",
    "Chart",
    "Config",
    "Maintainer",
    "Package",
    "Pkg",
    "Property",
    "XForm",
    "XOnyxia",
    "name_key",
    # Resources
    "ClasspathResourceProvider",
    "CompositeResourceProvider",
    "FileResourceProvider",
    "HttpResourceProvider",
    "ResourceError",
    "ResourceNotFoundError",
    "ResourceProvider",
    "create_default_provider",
    # Loading
    "CatalogLoader",
    "CatalogLoaderError",
    "RecordOutcome",
    "CatalogRegistry",
    "NotFoundError",
    # Augmentation
    "add_onyxia_properties",
    "with_onyxia_properties",
]
