"""Tests for CatalogLoader."""

from __future__ import annotations

import json
import logging

import httpx
import pytest

from onyxia_svc.catalog.loader import CatalogLoader, CatalogLoaderError
from onyxia_svc.catalog.resources import HttpResourceProvider
from onyxia_svc.catalog.types import CatalogType, Chart, Maintainer, Pkg

from ..charts import KEEPME_SCHEMA, build_chart_tgz


class TestExclusion:
    def test_excluded_charts_are_dropped(self, helm_repo, loader, make_wrapper):
        wrapper = make_wrapper(excluded=("excludemetoo", "excludeme"))

        loader.update_catalog(wrapper)

        assert len(wrapper.entries["keepme"]) == 2
        assert any(p.name == "keepme" for p in wrapper.packages)
        assert "excludeme" not in wrapper.entries
        assert "excludemetoo" not in wrapper.entries
        assert not any(p.name.lower() == "excludeme" for p in wrapper.packages)

    def test_exclusion_ignores_case(self, helm_repo, loader, make_wrapper):
        wrapper = make_wrapper(excluded=("ExcludeMe", "EXCLUDEMETOO"))

        loader.update_catalog(wrapper)

        assert set(wrapper.entries) == {"keepme", "partial"}
        assert {p.name for p in wrapper.packages} == {"keepme", "partial"}

    def test_without_exclusions_every_chart_is_kept(self, helm_repo, loader, make_wrapper):
        wrapper = make_wrapper()

        loader.update_catalog(wrapper)

        assert list(wrapper.entries) == ["keepme", "excludeme", "excludemetoo", "partial"]


def test_packages_are_first_version_of_each_entry(helm_repo, loader, make_wrapper):
    wrapper = make_wrapper(excluded=("excludeme", "excludemetoo"))

    loader.update_catalog(wrapper)

    assert [(p.name, p.version) for p in wrapper.packages] == [
        ("keepme", "2.0.0"),
        ("partial", "2.0.0"),
    ]
    for pkg in wrapper.packages:
        assert pkg is wrapper.entries[pkg.name][0]


def test_maintainers_are_loaded(helm_repo, loader, make_wrapper):
    wrapper = make_wrapper(excluded=("excludemetoo", "excludeme"))

    loader.update_catalog(wrapper)

    maintainers = [p.maintainers for p in wrapper.packages if isinstance(p, Chart)]
    assert any(
        m and m[0] == Maintainer(name="test", email="test@example.com") for m in maintainers
    )


def test_bundle_schema_becomes_config(helm_repo, loader, make_wrapper):
    wrapper = make_wrapper()

    loader.update_catalog(wrapper)

    keepme = wrapper.entries["keepme"][0]
    assert keepme.config.properties["resources"].properties["cpu"].default == "100m"
    # Charts without values.schema.json get an empty schema
    assert wrapper.entries["partial"][0].config.properties == {}


def test_missing_bundle_is_logged_and_skipped(helm_repo, loader, make_wrapper, caplog):
    wrapper = make_wrapper()

    with caplog.at_level(logging.ERROR, logger="onyxia_svc.catalog.loader"):
        loader.update_catalog(wrapper)

    assert (
        "Exception occurred during loading resource: "
        "class path resource [catalog-loader-test/keepeme1.gz]"
    ) in caplog.text
    assert "Catalog test: dropping chart partial version 1.0.0" in caplog.text
    # Only the broken version is dropped
    assert [c.version for c in wrapper.entries["partial"]] == ["2.0.0"]
    assert len(wrapper.entries["keepme"]) == 2


def test_chart_with_every_version_broken_disappears(tmp_path, loader, make_wrapper):
    repo = tmp_path / "broken"
    repo.mkdir()
    (repo / "index.yaml").write_text(
        "entries:\n"
        "  ghost:\n"
        "    - {name: ghost, version: 1.0.0, urls: [ghost-1.0.0.tgz]}\n"
        "  nourl:\n"
        "    - {name: nourl, version: 1.0.0}\n"
        "  corrupt:\n"
        "    - {name: corrupt, version: 1.0.0, urls: [corrupt-1.0.0.tgz]}\n"
        "  fine:\n"
        "    - {name: fine, version: 1.0.0, urls: [fine-1.0.0.tgz]}\n"
    )
    (repo / "corrupt-1.0.0.tgz").write_bytes(b"not a tarball")
    (repo / "fine-1.0.0.tgz").write_bytes(build_chart_tgz("fine", "1.0.0"))

    wrapper = make_wrapper(location="classpath:/broken")
    loader.update_catalog(wrapper)

    assert list(wrapper.entries) == ["fine"]
    assert [p.name for p in wrapper.packages] == ["fine"]


@pytest.mark.parametrize(
    "schema",
    [
        {"properties": ["oops"]},
        {"type": "object", "required": True},
        {"properties": {"resources": {"type": "object", "properties": "cpu"}}},
    ],
)
def test_chart_with_malformed_schema_is_dropped(tmp_path, loader, make_wrapper, caplog, schema):
    repo = tmp_path / "schemas"
    repo.mkdir()
    (repo / "index.yaml").write_text(
        "entries:\n"
        "  bad:\n"
        "    - {name: bad, version: 2.0.0, urls: [bad-2.0.0.tgz]}\n"
        "    - {name: bad, version: 1.0.0, urls: [bad-1.0.0.tgz]}\n"
        "  fine:\n"
        "    - {name: fine, version: 1.0.0, urls: [fine-1.0.0.tgz]}\n"
    )
    (repo / "bad-2.0.0.tgz").write_bytes(build_chart_tgz("bad", "2.0.0", schema=schema))
    (repo / "bad-1.0.0.tgz").write_bytes(build_chart_tgz("bad", "1.0.0", schema=KEEPME_SCHEMA))
    (repo / "fine-1.0.0.tgz").write_bytes(build_chart_tgz("fine", "1.0.0", schema=KEEPME_SCHEMA))

    wrapper = make_wrapper(location="classpath:/schemas")
    with caplog.at_level(logging.ERROR, logger="onyxia_svc.catalog.loader"):
        loader.update_catalog(wrapper)

    assert [c.version for c in wrapper.entries["bad"]] == ["1.0.0"]
    assert [c.version for c in wrapper.entries["fine"]] == ["1.0.0"]
    assert "dropping chart bad version 2.0.0" in caplog.text
    assert "class path resource [schemas/bad-2.0.0.tgz]" in caplog.text


def test_index_record_with_malformed_field_is_skipped(tmp_path, loader, make_wrapper):
    repo = tmp_path / "records"
    repo.mkdir()
    (repo / "index.yaml").write_text(
        "entries:\n"
        "  bad:\n"
        "    - {name: bad, version: 1.0.0, urls: [bad-1.0.0.tgz], annotations: [x]}\n"
        "  fine:\n"
        "    - {name: fine, version: 1.0.0, urls: [fine-1.0.0.tgz]}\n"
    )
    (repo / "bad-1.0.0.tgz").write_bytes(build_chart_tgz("bad", "1.0.0"))
    (repo / "fine-1.0.0.tgz").write_bytes(build_chart_tgz("fine", "1.0.0"))

    wrapper = make_wrapper(location="classpath:/records")
    loader.update_catalog(wrapper)

    assert list(wrapper.entries) == ["fine"]


def test_last_update_time_is_set(helm_repo, loader, make_wrapper):
    wrapper = make_wrapper()
    assert wrapper.last_update_time is None
    assert not wrapper.is_loaded

    loader.update_catalog(wrapper)

    assert wrapper.last_update_time > 0
    assert wrapper.is_loaded


def test_file_location(helm_repo, loader, make_wrapper):
    wrapper = make_wrapper(location=str(helm_repo))

    loader.update_catalog(wrapper)

    assert len(wrapper.entries["keepme"]) == 2


class TestIndexFailure:
    def test_missing_index_raises(self, tmp_path, loader, make_wrapper):
        wrapper = make_wrapper(location="classpath:/does-not-exist")

        with pytest.raises(CatalogLoaderError) as excinfo:
            loader.update_catalog(wrapper)

        assert excinfo.value.catalog_id == "test"
        assert excinfo.value.location == "classpath:/does-not-exist"
        assert "does-not-exist/index.yaml" in str(excinfo.value)

    def test_failed_reload_keeps_previous_content(self, helm_repo, loader, make_wrapper):
        wrapper = make_wrapper()
        loader.update_catalog(wrapper)
        snapshot = wrapper.snapshot

        (helm_repo / "index.yaml").write_text("entries: [not, a, mapping]\n")
        with pytest.raises(CatalogLoaderError):
            loader.update_catalog(wrapper)

        assert wrapper.snapshot is snapshot
        assert len(wrapper.entries["keepme"]) == 2

    def test_reload_is_a_full_rebuild(self, helm_repo, loader, make_wrapper):
        wrapper = make_wrapper()
        loader.update_catalog(wrapper)

        (helm_repo / "index.yaml").write_text(
            "entries:\n  keepme:\n    - {name: keepme, version: 1.0.0, urls: [keepme-1.0.0.tgz]}\n"
        )
        loader.update_catalog(wrapper)

        assert list(wrapper.entries) == ["keepme"]
        assert [c.version for c in wrapper.entries["keepme"]] == ["1.0.0"]


def test_universe_catalog(tmp_path, loader, make_wrapper):
    repo = tmp_path / "universe"
    repo.mkdir()
    (repo / "index.json").write_text(json.dumps({
        "packages": [
            {"name": "spark", "version": "3.0"},
            {"name": "hidden", "version": "1.0"},
        ],
    }))
    wrapper = make_wrapper(
        location="classpath:/universe", excluded=("hidden",), catalog_type=CatalogType.UNIVERSE
    )

    loader.update_catalog(wrapper)

    assert list(wrapper.entries) == ["spark"]
    assert isinstance(wrapper.packages[0], Pkg)


class TestHttpCatalog:
    INDEX = (
        "entries:\n"
        "  remote:\n"
        "    - name: remote\n"
        "      version: 2.0.0\n"
        "      urls: [https://cdn.example.org/remote-2.0.0.tgz]\n"
        "    - name: remote\n"
        "      version: 1.0.0\n"
        "      urls: [https://cdn.example.org/remote-1.0.0.tgz]\n"
    )

    def _loader(self, slow: tuple[str, ...] = ()) -> tuple[CatalogLoader, list[str]]:
        """Serve the index and both bundles; paths in ``slow`` time out."""
        bundles = {
            "/remote-2.0.0.tgz": build_chart_tgz("remote", "2.0.0"),
            "/remote-1.0.0.tgz": build_chart_tgz("remote", "1.0.0"),
        }
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if request.url.path in slow:
                raise httpx.ReadTimeout("too slow", request=request)
            if request.url.path == "/charts/index.yaml":
                return httpx.Response(200, text=self.INDEX)
            if request.url.host == "cdn.example.org" and request.url.path in bundles:
                return httpx.Response(200, content=bundles[request.url.path])
            return httpx.Response(404)

        provider = HttpResourceProvider(transport=httpx.MockTransport(handler))
        return CatalogLoader(provider, default_timeout=0.5), requested

    def test_absolute_bundle_urls(self, make_wrapper):
        loader, requested = self._loader()
        wrapper = make_wrapper(location="https://repo.example.org/charts/")

        loader.update_catalog(wrapper)

        assert requested == [
            "https://repo.example.org/charts/index.yaml",
            "https://cdn.example.org/remote-2.0.0.tgz",
            "https://cdn.example.org/remote-1.0.0.tgz",
        ]
        assert [c.version for c in wrapper.entries["remote"]] == ["2.0.0", "1.0.0"]

    def test_bundle_timeout_drops_only_that_version(self, make_wrapper, caplog):
        loader, _ = self._loader(slow=("/remote-2.0.0.tgz",))
        wrapper = make_wrapper(location="https://repo.example.org/charts/")

        with caplog.at_level(logging.ERROR, logger="onyxia_svc.catalog.loader"):
            loader.update_catalog(wrapper)

        assert [c.version for c in wrapper.entries["remote"]] == ["1.0.0"]
        assert wrapper.packages[0].version == "1.0.0"
        assert "URL [https://cdn.example.org/remote-2.0.0.tgz]" in caplog.text

    def test_index_timeout_fails_the_load(self, make_wrapper):
        loader, _ = self._loader(slow=("/charts/index.yaml",))
        wrapper = make_wrapper(location="https://repo.example.org/charts/")

        with pytest.raises(CatalogLoaderError, match="Timed out after 0.5s"):
            loader.update_catalog(wrapper)

        assert not wrapper.is_loaded
