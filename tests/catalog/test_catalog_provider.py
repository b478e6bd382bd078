"""Tests for the YAML-backed recipe provider."""

from __future__ import annotations

from pathlib import Path

import pytest

from depweave.catalog import CatalogProvider
from depweave.core.dependency import Candidate, Origin, Semver, VersionConstraint
from depweave.core.identity import Profile
from depweave.exceptions import ProviderUnavailable, RecipeError

CONDITIONAL = {
    "packages": {
        "curl": [
            {
                "version": "8.5.0",
                "revision": "r1",
                "prebuilt": True,
                "dependencies": [
                    {"name": "zlib", "version": ">=1.2"},
                    {"name": "openssl", "version": "~>3.0", "when": {"ssl": "openssl"}},
                    {"name": "schannel", "when": {"os": "windows"}},
                ],
            }
        ]
    }
}


class TestLoading:
    def test_fixture_catalog(self, package_dir: Path) -> None:
        provider = CatalogProvider.load(package_dir / "catalog.yaml")
        assert provider.package_names == ["fmt", "libpng", "zlib"]
        assert provider.source.endswith("catalog.yaml")

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(RecipeError):
            CatalogProvider.load(tmp_path / "catalog.yaml")

    def test_bad_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "catalog.yaml"
        path.write_text("packages: {zlib: [\n")
        with pytest.raises(RecipeError):
            CatalogProvider.load(path)

    def test_empty_catalog(self) -> None:
        assert CatalogProvider().package_names == []

    @pytest.mark.parametrize(
        "data",
        [
            ["zlib"],
            {"packages": ["zlib"]},
            {"packages": {"zlib": {"version": "1.0.0"}}},
            {"packages": {"zlib": [{"revision": "r1"}]}},
            {"packages": {"zlib": [{"version": "one"}]}},
            {"packages": {"zlib": [{"version": "1.0.0", "origin": "ftp"}]}},
            {"unavailable": "registry"},
            {"unavailable": ["cloud"]},
        ],
    )
    def test_malformed_catalogs(self, data) -> None:
        with pytest.raises(RecipeError):
            CatalogProvider(data)


class TestCandidates:
    def test_filters_by_origin(self, package_dir: Path) -> None:
        provider = CatalogProvider.load(package_dir / "catalog.yaml")
        assert provider.candidates("zlib", [Origin.SYSTEM]) == [Candidate(Semver(1, 2, 13), "", Origin.SYSTEM)]
        registry = provider.candidates("zlib", [Origin.REGISTRY])
        assert [str(c.version) for c in registry] == ["1.3.0", "1.3.1"]
        assert provider.candidates("zlib", [Origin.LOCAL_CACHE]) == []

    def test_unknown_package(self) -> None:
        assert CatalogProvider().candidates("nope", list(Origin)) == []

    def test_unavailable_origin_raises(self) -> None:
        provider = CatalogProvider({"unavailable": ["registry"]})
        with pytest.raises(ProviderUnavailable) as exc_info:
            provider.candidates("zlib", [Origin.REGISTRY])
        assert exc_info.value.origin is Origin.REGISTRY
        assert provider.candidates("zlib", [Origin.SYSTEM]) == []

    def test_lookups_are_counted(self) -> None:
        provider = CatalogProvider()
        provider.candidates("a", [Origin.SYSTEM])
        provider.candidates("b", [Origin.SYSTEM])
        assert provider.lookups == 2


class TestDependencies:
    def test_conditions_are_evaluated(self) -> None:
        provider = CatalogProvider(CONDITIONAL)
        linux = Profile("linux", "x86_64")
        windows = Profile("windows", "x86_64")
        version = Semver(8, 5, 0)

        plain = provider.dependencies_of("curl", version, "r1", linux, {})
        assert plain == [("zlib", VersionConstraint(">=1.2"))]

        with_ssl = provider.dependencies_of("curl", version, "r1", linux, {"ssl": "openssl"})
        assert [n for n, _ in with_ssl] == ["zlib", "openssl"]

        on_windows = provider.dependencies_of("curl", version, "r1", windows, {})
        assert [n for n, _ in on_windows] == ["zlib", "schannel"]

    def test_unknown_revision(self) -> None:
        provider = CatalogProvider(CONDITIONAL)
        with pytest.raises(RecipeError):
            provider.dependencies_of("curl", Semver(8, 5, 0), "r9", None, {})

    def test_has_prebuilt(self) -> None:
        provider = CatalogProvider(CONDITIONAL)
        built = Candidate(Semver(8, 5, 0), "r1", Origin.REGISTRY)
        assert provider.has_prebuilt("curl", built, None, {}) is True
        unknown = Candidate(Semver(8, 6, 0), "r1", Origin.REGISTRY)
        assert provider.has_prebuilt("curl", unknown, None, {}) is False

    def test_has_prebuilt_matches_origin(self) -> None:
        provider = CatalogProvider(
            {
                "packages": {
                    "zlib": [
                        {"version": "1.3.1", "origin": "system"},
                        {"version": "1.3.1", "origin": "localCache", "prebuilt": True},
                    ]
                }
            }
        )
        cached = Candidate(Semver(1, 3, 1), "", Origin.LOCAL_CACHE)
        system = Candidate(Semver(1, 3, 1), "", Origin.SYSTEM)
        assert provider.has_prebuilt("zlib", cached, None, {}) is True
        assert provider.has_prebuilt("zlib", system, None, {}) is False
