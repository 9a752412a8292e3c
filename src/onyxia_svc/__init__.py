"""Onyxia catalog service - Helm chart catalogs served per region."""

__version__ = "0.1.0"
