"""Index parsing - repository index documents and chart bundles.

A Helm repository index looks like:
```yaml
apiVersion: v1
entries:
  jupyter:
    - name: jupyter
      version: 1.2.0
      description: Jupyter notebook
      urls: [jupyter-1.2.0.tgz]
      maintainers:
        - name: test
          email: test@example.com
```

Each ``urls`` entry points to a gzipped tarball whose top-level directory
holds ``Chart.yaml`` and, optionally, ``values.schema.json``.
"""

from __future__ import annotations

import io
import json
import logging
import tarfile
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any

import yaml

from .types import Chart, Config, Maintainer, Package, Pkg, name_key

logger = logging.getLogger(__name__)

HELM_INDEX_FILE = "index.yaml"
UNIVERSE_INDEX_FILE = "index.json"

VALUES_SCHEMA_FILE = "values.schema.json"
CHART_METADATA_FILE = "Chart.yaml"


class IndexParseError(Exception):
    """The index document is not a usable repository index."""


class BundleError(Exception):
    """A chart bundle could not be decoded."""


@dataclass(slots=True)
class ChartBundle:
    """Data extracted from one chart tarball."""
    config: Config | None = None
    maintainers: list[Maintainer] = field(default_factory=list)


def _as_str(value: Any) -> str | None:
    # YAML turns versions like 1.0 into floats and `created` into datetimes
    if value is None:
        return None
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def _list_of(value: Any, key: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"'{key}' must be a list, got {type(value).__name__}")
    return value


def _str_list(value: Any, key: str) -> list[str]:
    if isinstance(value, str):
        return [value] if value else []
    return [str(v) for v in _list_of(value, key) if v is not None]


def parse_maintainers(value: Any) -> list[Maintainer]:
    """Parse a Helm ``maintainers`` list, ignoring entries without a name."""
    if not isinstance(value, list):
        return []
    maintainers: list[Maintainer] = []
    for item in value:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        maintainers.append(Maintainer(
            name=str(item["name"]),
            email=_as_str(item.get("email")),
            url=_as_str(item.get("url")),
        ))
    return maintainers


def _chart_from_record(entry_name: str, record: dict[str, Any]) -> Chart:
    """Raises ValueError when a field has the wrong shape."""
    annotations = record.get("annotations")
    if annotations is None:
        annotations = {}
    if not isinstance(annotations, dict):
        raise ValueError(f"'annotations' must be a mapping, got {type(annotations).__name__}")
    return Chart(
        name=str(record.get("name") or entry_name),
        version=_as_str(record.get("version")) or "",
        description=_as_str(record.get("description")) or "",
        maintainers=parse_maintainers(record.get("maintainers")),
        app_version=_as_str(record.get("appVersion")),
        api_version=_as_str(record.get("apiVersion")),
        created=_as_str(record.get("created")),
        digest=_as_str(record.get("digest")),
        home=_as_str(record.get("home")),
        icon=_as_str(record.get("icon")),
        type=_as_str(record.get("type")),
        keywords=_str_list(record.get("keywords"), "keywords"),
        sources=_str_list(record.get("sources"), "sources"),
        urls=_str_list(record.get("urls"), "urls"),
        dependencies=[
            d for d in _list_of(record.get("dependencies"), "dependencies") if isinstance(d, dict)
        ],
        annotations={str(k): str(v) for k, v in annotations.items()},
    )


def group_by_name(items: list[tuple[str, Package]]) -> list[tuple[str, list[Package]]]:
    """
    Group ``(name, record)`` pairs by case-insensitive name.

    Groups keep the order in which their name first appears and the
    spelling of that first occurrence; records keep encounter order.
    """
    groups: dict[str, tuple[str, list[Package]]] = {}
    for name, record in items:
        key = name_key(name)
        if key not in groups:
            groups[key] = (name, [])
        groups[key][1].append(record)
    return list(groups.values())


def parse_helm_index(data: bytes) -> list[tuple[str, list[Package]]]:
    """
    Parse a Helm ``index.yaml`` into ordered ``(chart name, versions)`` groups.

    Raises:
        IndexParseError: the document is not YAML or has no ``entries`` mapping
    """
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as e:
        raise IndexParseError(f"Invalid index YAML: {e}") from e

    if not isinstance(document, dict):
        raise IndexParseError("Index document is not a mapping")
    entries = document.get("entries")
    if entries is None:
        entries = {}
    if not isinstance(entries, dict):
        raise IndexParseError("Index 'entries' is not a mapping")

    items: list[tuple[str, Package]] = []
    for entry_name, records in entries.items():
        entry_name = str(entry_name)
        if not isinstance(records, list):
            logger.warning(f"Skipping index entry '{entry_name}': versions are not a list")
            continue
        for record in records:
            if not isinstance(record, dict):
                logger.warning(f"Skipping malformed version record in entry '{entry_name}'")
                continue
            try:
                chart = _chart_from_record(entry_name, record)
            except ValueError as e:
                logger.warning(f"Skipping malformed version record in entry '{entry_name}': {e}")
                continue
            items.append((entry_name, chart))

    return group_by_name(items)


def parse_universe_index(data: bytes) -> list[tuple[str, list[Package]]]:
    """
    Parse a universe ``index.json`` (``{"packages": [...]}``) into groups.

    Universe packages carry their configuration schema inline.

    Raises:
        IndexParseError: the document is not JSON or has no ``packages`` list
    """
    try:
        document = json.loads(data)
    except (ValueError, UnicodeDecodeError) as e:
        raise IndexParseError(f"Invalid index JSON: {e}") from e

    if not isinstance(document, dict) or not isinstance(document.get("packages"), list):
        raise IndexParseError("Index document has no 'packages' list")

    items: list[tuple[str, Package]] = []
    for record in document["packages"]:
        if not isinstance(record, dict) or not record.get("name"):
            logger.warning("Skipping universe package without a name")
            continue
        config = record.get("config")
        try:
            pkg_config = Config.from_dict(config) if isinstance(config, dict) else Config()
        except ValueError as e:
            logger.warning(f"Skipping universe package '{record['name']}': {e}")
            continue
        pkg = Pkg(
            name=str(record["name"]),
            version=_as_str(record.get("version")) or "",
            description=_as_str(record.get("description")) or "",
            config=pkg_config,
        )
        items.append((pkg.name, pkg))

    return group_by_name(items)


def _top_level_file(member_name: str) -> str | None:
    """Return the file name if the member sits directly under the chart root."""
    parts = [p for p in member_name.split("/") if p and p != "."]
    if len(parts) == 2:
        return parts[1]
    return None


def extract_chart_bundle(data: bytes) -> ChartBundle:
    """
    Read ``values.schema.json`` and ``Chart.yaml`` from a chart tarball.

    Files of bundled subcharts (``<chart>/charts/<sub>/...``) are ignored.

    Raises:
        BundleError: the archive or one of the files in it cannot be decoded
    """
    bundle = ChartBundle()
    try:
        with tarfile.open(fileobj=io.BytesIO(data), mode="r:*") as archive:
            for member in archive:
                if not member.isfile():
                    continue
                file_name = _top_level_file(member.name)
                if file_name not in (VALUES_SCHEMA_FILE, CHART_METADATA_FILE):
                    continue
                handle = archive.extractfile(member)
                if handle is None:
                    continue
                content = handle.read()
                if file_name == VALUES_SCHEMA_FILE:
                    schema = json.loads(content)
                    if not isinstance(schema, dict):
                        raise BundleError(f"{member.name} is not a JSON object")
                    bundle.config = Config.from_dict(schema)
                else:
                    metadata = yaml.safe_load(content) or {}
                    if isinstance(metadata, dict):
                        bundle.maintainers = parse_maintainers(metadata.get("maintainers"))
    except (tarfile.TarError, EOFError, OSError) as e:
        raise BundleError(f"Invalid chart archive: {e}") from e
    except (ValueError, yaml.YAMLError) as e:
        raise BundleError(f"Invalid chart file: {e}") from e
    return bundle
