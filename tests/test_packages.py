"""Tests for esdev.modules.packages — bare specifier resolution."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from esdev.errors import SpecifierUnresolved
from esdev.modules.packages import (
    PackageResolver,
    affects_resolution,
    relative_url,
    split_specifier,
)


def _package(root: Path, name: str, descriptor: dict | None = None, files: dict | None = None) -> Path:
    package_dir = root / "node_modules" / name
    package_dir.mkdir(parents=True)
    (package_dir / "package.json").write_text(json.dumps(descriptor or {}))
    for rel, content in (files or {}).items():
        path = package_dir / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return package_dir


@pytest.fixture
def proj(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "src" / "app.js").write_text('import "foo";')
    return root


class TestHelpers:
    @pytest.mark.parametrize(
        ("specifier", "expected"),
        [
            ("lit", ("lit", "")),
            ("lit/decorators.js", ("lit", "decorators.js")),
            ("@scope/pkg", ("@scope/pkg", "")),
            ("@scope/pkg/a/b.js", ("@scope/pkg", "a/b.js")),
        ],
    )
    def test_split_specifier(self, specifier: str, expected: tuple[str, str]) -> None:
        assert split_specifier(specifier) == expected

    def test_relative_url_parent(self, tmp_path: Path) -> None:
        url = relative_url(tmp_path / "src", tmp_path / "node_modules" / "foo" / "index.js")
        assert url == "../node_modules/foo/index.js"

    def test_relative_url_same_dir_gets_dot_slash(self, tmp_path: Path) -> None:
        url = relative_url(tmp_path, tmp_path / "node_modules" / "foo" / "index.js")
        assert url == "./node_modules/foo/index.js"

    @pytest.mark.parametrize(
        ("path", "kind", "expected"),
        [
            ("/src/app.js", "modified", False),
            ("/src/app.js", "created", True),
            ("/src/app.js", "deleted", True),
            ("/node_modules/foo/package.json", "modified", True),
            ("/node_modules/foo/index.js", "modified", True),
            ("/package.json", "modified", True),
        ],
    )
    def test_affects_resolution(self, path: str, kind: str, expected: bool) -> None:
        assert affects_resolution(path, kind) is expected


class TestEntrySelection:
    def test_main_field(self, proj: Path) -> None:
        _package(proj, "foo", {"main": "index.js"}, {"index.js": "export {};"})
        result = PackageResolver(proj).resolve("foo", proj / "src")
        assert result.url == "../node_modules/foo/index.js"
        assert result.entry == proj / "node_modules" / "foo" / "index.js"

    def test_module_preferred_over_main(self, proj: Path) -> None:
        _package(
            proj,
            "foo",
            {"main": "dist/foo.cjs", "module": "dist/foo.js"},
            {"dist/foo.js": "export {};", "dist/foo.cjs": ""},
        )
        result = PackageResolver(proj).resolve("foo", proj / "src")
        assert result.url == "../node_modules/foo/dist/foo.js"

    def test_configured_field_order(self, proj: Path) -> None:
        _package(
            proj,
            "foo",
            {"main": "a.js", "module": "b.js"},
            {"a.js": "", "b.js": ""},
        )
        resolver = PackageResolver(proj, main_fields=("main",))
        assert resolver.resolve("foo", proj / "src").url.endswith("/a.js")

    def test_index_js_default(self, proj: Path) -> None:
        _package(proj, "foo", {}, {"index.js": ""})
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/index.js"

    def test_extensionless_main(self, proj: Path) -> None:
        _package(proj, "foo", {"main": "lib/foo"}, {"lib/foo.js": ""})
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/lib/foo.js"

    def test_directory_main(self, proj: Path) -> None:
        _package(proj, "foo", {"main": "lib"}, {"lib/index.js": ""})
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/lib/index.js"

    def test_subpath(self, proj: Path) -> None:
        _package(proj, "lit", {"main": "index.js"}, {"index.js": "", "decorators.js": ""})
        result = PackageResolver(proj).resolve("lit/decorators.js", proj / "src")
        assert result.url == "../node_modules/lit/decorators.js"

    def test_scoped_package(self, proj: Path) -> None:
        _package(proj, "@scope/ui", {"module": "ui.js"}, {"ui.js": ""})
        result = PackageResolver(proj).resolve("@scope/ui", proj / "src")
        assert result.url == "../node_modules/@scope/ui/ui.js"

    def test_missing_entry_file(self, proj: Path) -> None:
        _package(proj, "foo", {"main": "gone.js"})
        with pytest.raises(SpecifierUnresolved, match="no existing entry"):
            PackageResolver(proj).resolve("foo", proj / "src")

    def test_malformed_descriptor_falls_back_to_index(self, proj: Path) -> None:
        package_dir = _package(proj, "foo", files={"index.js": ""})
        (package_dir / "package.json").write_text("{not json")
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/index.js"

    def test_main_escaping_package_is_rejected(self, proj: Path) -> None:
        _package(proj, "foo", {"main": "../../src/app.js"})
        with pytest.raises(SpecifierUnresolved):
            PackageResolver(proj).resolve("foo", proj / "src")


class TestBrowserField:
    def test_object_map_redirects_main(self, proj: Path) -> None:
        _package(
            proj,
            "foo",
            {"main": "./node.js", "browser": {"./node.js": "./browser.js"}},
            {"node.js": "", "browser.js": ""},
        )
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/browser.js"

    def test_false_is_unresolved(self, proj: Path) -> None:
        _package(
            proj,
            "foo",
            {"main": "./node.js", "browser": {"./node.js": False}},
            {"node.js": ""},
        )
        with pytest.raises(SpecifierUnresolved):
            PackageResolver(proj).resolve("foo", proj)

    def test_string_browser_field_is_ignored(self, proj: Path) -> None:
        _package(
            proj,
            "foo",
            {"main": "index.js", "browser": "browser.js"},
            {"index.js": "", "browser.js": ""},
        )
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/index.js"

    def test_single_level_only(self, proj: Path) -> None:
        _package(
            proj,
            "foo",
            {"main": "a.js", "browser": {"./a.js": "./b.js", "./b.js": "./c.js"}},
            {"a.js": "", "b.js": "", "c.js": ""},
        )
        assert PackageResolver(proj).resolve("foo", proj).url == "./node_modules/foo/b.js"


class TestLookupWalk:
    def test_nearest_package_wins(self, proj: Path) -> None:
        _package(proj, "foo", {"main": "outer.js"}, {"outer.js": ""})
        _package(proj / "src", "foo", {"main": "inner.js"}, {"inner.js": ""})
        assert PackageResolver(proj).resolve("foo", proj / "src").url == "./node_modules/foo/inner.js"

    def test_walks_up_from_nested_directory(self, proj: Path) -> None:
        _package(proj, "foo", {}, {"index.js": ""})
        deep = proj / "src" / "a" / "b"
        deep.mkdir(parents=True)
        result = PackageResolver(proj).resolve("foo", deep)
        assert result.url == "../../../node_modules/foo/index.js"

    def test_packages_above_root_are_invisible(self, proj: Path) -> None:
        _package(proj.parent, "foo", {}, {"index.js": ""})
        with pytest.raises(SpecifierUnresolved, match="no node_modules/foo"):
            PackageResolver(proj).resolve("foo", proj / "src")

    def test_dependency_of_package_resolves_from_its_directory(self, proj: Path) -> None:
        _package(proj, "dep", {}, {"index.js": ""})
        lit = _package(proj, "lit", {}, {"index.js": 'import "dep";'})
        assert PackageResolver(proj).resolve("dep", lit).url == "../dep/index.js"

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlink_cycle_terminates(self, proj: Path) -> None:
        _package(proj, "foo", {}, {"index.js": ""})
        loop = proj / "src" / "loop"
        os.symlink(proj / "src", loop)
        result = PackageResolver(proj).resolve("foo", loop / "loop" / "loop")
        assert result.entry == proj / "node_modules" / "foo" / "index.js"


class TestCache:
    def test_results_are_cached(self, proj: Path) -> None:
        _package(proj, "foo", {}, {"index.js": ""})
        resolver = PackageResolver(proj)
        first = resolver.resolve("foo", proj / "src")
        assert len(resolver) == 1
        assert resolver.resolve("foo", proj / "src") is first

    def test_failures_are_cached(self, proj: Path) -> None:
        resolver = PackageResolver(proj)
        with pytest.raises(SpecifierUnresolved):
            resolver.resolve("foo", proj / "src")
        _package(proj, "foo", {}, {"index.js": ""})
        with pytest.raises(SpecifierUnresolved):
            resolver.resolve("foo", proj / "src")

    def test_invalidate(self, proj: Path) -> None:
        resolver = PackageResolver(proj)
        with pytest.raises(SpecifierUnresolved):
            resolver.resolve("foo", proj / "src")
        _package(proj, "foo", {}, {"index.js": ""})
        resolver.invalidate()
        assert len(resolver) == 0
        assert resolver.resolve("foo", proj / "src").url == "../node_modules/foo/index.js"

    def test_invalidate_during_lookup_discards_result(self, proj: Path) -> None:
        resolver = PackageResolver(proj)
        resolve_uncached = PackageResolver._resolve_uncached

        def racing(self: PackageResolver, specifier: str, importer_dir: Path):
            # package.json changes while this lookup is still running
            self.invalidate()
            return resolve_uncached(self, specifier, importer_dir)

        with patch.object(PackageResolver, "_resolve_uncached", racing):
            with pytest.raises(SpecifierUnresolved):
                resolver.resolve("foo", proj / "src")
        assert len(resolver) == 0

        _package(proj, "foo", {}, {"index.js": ""})
        assert resolver.resolve("foo", proj / "src").url == "../node_modules/foo/index.js"


class TestUncached:
    def test_nothing_is_stored(self, proj: Path) -> None:
        _package(proj, "foo", {}, {"index.js": ""})
        resolver = PackageResolver(proj, cache=False)
        resolver.resolve("foo", proj / "src")
        assert len(resolver) == 0

    def test_sees_package_installed_later(self, proj: Path) -> None:
        resolver = PackageResolver(proj, cache=False)
        with pytest.raises(SpecifierUnresolved):
            resolver.resolve("foo", proj / "src")
        _package(proj, "foo", {}, {"index.js": ""})
        assert resolver.resolve("foo", proj / "src").url == "../node_modules/foo/index.js"

    def test_sees_changed_main_field(self, proj: Path) -> None:
        package_dir = _package(proj, "foo", {"main": "a.js"}, {"a.js": "", "b.js": ""})
        resolver = PackageResolver(proj, cache=False)
        assert resolver.resolve("foo", proj).url == "./node_modules/foo/a.js"
        (package_dir / "package.json").write_text(json.dumps({"main": "b.js"}))
        assert resolver.resolve("foo", proj).url == "./node_modules/foo/b.js"
