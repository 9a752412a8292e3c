"""Platform-managed configuration injected into every served package schema."""

from __future__ import annotations

import copy

from .types import Package, Property, XForm, XOnyxia

ONYXIA_PROPERTY = "onyxia"
USER_IDEP_TEMPLATE = "{{user.idep}}"


def build_onyxia_property(package_name: str) -> Property:
    """Build a fresh ``onyxia`` property block for ``package_name``."""
    return Property(
        type="object",
        description="Onyxia specific configuration",
        properties={
            "friendlyName": Property(
                type="string",
                description="Service custom name",
                default=package_name,
                title="Custom name",
            ),
            "userDefinedValues": Property(
                type="string",
                description="Values defined by the end user",
                default="",
                title="User defined values",
                x_onyxia=XOnyxia(hidden=True),
            ),
            "owner": Property(
                type="string",
                description="Owner of the chart",
                default="owner",
                title="Owner",
                x_form=XForm(value=USER_IDEP_TEMPLATE, hidden=True),
                x_onyxia=XOnyxia(overwrite_default_with=USER_IDEP_TEMPLATE, hidden=True),
            ),
            "share": Property(
                type="boolean",
                description="Enable share for this service",
                default=False,
                title="Share",
            ),
        },
    )


def add_onyxia_properties(pkg: Package) -> Package:
    """Set ``pkg.config.properties["onyxia"]`` in place, replacing any previous block."""
    pkg.config.properties[ONYXIA_PROPERTY] = build_onyxia_property(pkg.name)
    return pkg


def with_onyxia_properties(pkg: Package) -> Package:
    """
    Return an augmented copy of ``pkg``.

    Packages held by the registry are shared between requests, so read
    paths augment a deep copy and never the cached record itself.
    """
    return add_onyxia_properties(copy.deepcopy(pkg))
