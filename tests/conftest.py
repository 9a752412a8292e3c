"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from onyxia_svc.catalog.loader import CatalogLoader
from onyxia_svc.catalog.resources import CompositeResourceProvider, create_default_provider
from onyxia_svc.catalog.types import CatalogType, CatalogWrapper

from .charts import REPO_DIR, write_helm_repo


@pytest.fixture
def helm_repo(tmp_path: Path) -> Path:
    """Reference Helm repository at ``<tmp_path>/catalog-loader-test``."""
    return write_helm_repo(tmp_path / REPO_DIR)


@pytest.fixture
def provider(tmp_path: Path) -> CompositeResourceProvider:
    """Default provider chain with ``classpath:`` rooted at ``tmp_path``."""
    return create_default_provider(http_timeout=5.0, classpath_root=tmp_path)


@pytest.fixture
def loader(provider: CompositeResourceProvider) -> CatalogLoader:
    return CatalogLoader(provider)


@pytest.fixture
def make_wrapper() -> Callable[..., CatalogWrapper]:
    """Factory for catalog wrappers, defaulting to the reference repository."""

    def _make(
        catalog_id: str = "test",
        location: str = f"classpath:/{REPO_DIR}",
        excluded: tuple[str, ...] = (),
        catalog_type: CatalogType = CatalogType.HELM,
    ) -> CatalogWrapper:
        return CatalogWrapper(
            id=catalog_id,
            type=catalog_type,
            location=location,
            excluded_charts=tuple(excluded),
        )

    return _make
