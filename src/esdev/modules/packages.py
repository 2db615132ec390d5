"""Bare specifier resolution against installed packages.

Walks from the importing file's directory up to the serving root looking
for ``node_modules/<name>/package.json``, the way Node looks up packages.
Only directories inside the root are searched: anything above it could not
be served anyway.

Entry selection reads the first present field of ``main_fields`` (default
``module`` then ``main``), falls back to ``index.js``, and follows an object
``browser`` map for at most one redirection.

Results are cached per ``(directory, specifier)``.  The cache is shared by
worker threads, so it is guarded by a lock; the file watcher clears it
whenever a descriptor or package directory changes.
"""

import json
import logging
import os
import posixpath
import threading
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from esdev.errors import SpecifierUnresolved
from esdev.files.resolver import is_within

logger = logging.getLogger("esdev.modules")

PACKAGES_DIR = "node_modules"
DESCRIPTOR = "package.json"

_MISSING = object()

# Candidate suffixes tried after the path as written
_EXTENSIONS = (".js", ".mjs")


@dataclass(frozen=True, slots=True)
class PackageResolution:
    """Where a bare specifier points, from one importing directory."""

    specifier: str
    entry: Path
    url: str


def split_specifier(specifier: str) -> tuple[str, str]:
    """Split ``@scope/pkg/sub/path.js`` into ``("@scope/pkg", "sub/path.js")``."""
    parts = specifier.split("/")
    if specifier.startswith("@") and len(parts) >= 2:
        return "/".join(parts[:2]), "/".join(parts[2:])
    return parts[0], "/".join(parts[1:])


def relative_url(from_dir: Path, target: Path) -> str:
    """A browser-relative URL from *from_dir* to *target* (always ``./``/``../``)."""
    rel = os.path.relpath(target, from_dir).replace(os.sep, "/")
    if not rel.startswith("../"):
        rel = "./" + rel
    return rel


def affects_resolution(url_path: str, kind: str) -> bool:
    """Whether a change at *url_path* can alter a cached resolution.

    Created and deleted files can add or remove entry candidates anywhere;
    modifications only matter for descriptors and installed packages.
    """
    if kind != "modified":
        return True
    segments = url_path.split("/")
    return segments[-1] == DESCRIPTOR or PACKAGES_DIR in segments


def _find_file(candidate: Path) -> Path | None:
    """Try *candidate*, then with known extensions, then as a directory index."""
    if candidate.is_file():
        return candidate
    for ext in _EXTENSIONS:
        with_ext = candidate.with_name(candidate.name + ext)
        if with_ext.is_file():
            return with_ext
    index = candidate / "index.js"
    if index.is_file():
        return index
    return None


def _load_descriptor(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.debug("Unreadable package descriptor %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


class PackageResolver:
    """Resolves bare specifiers to files under the serving root.

    Results are cached until ``invalidate()``.  Pass ``cache=False`` when
    nothing will call it (no file watcher), so every lookup sees the
    current ``node_modules``.

    Usage::

        resolver = PackageResolver(Path("/proj"))
        result = resolver.resolve("lit", Path("/proj/src"))
        result.url  # "../node_modules/lit/index.js"
    """

    __slots__ = ("_cache", "_caching", "_generation", "_lock", "_main_fields", "_root")

    def __init__(
        self,
        root: Path,
        *,
        main_fields: tuple[str, ...] = ("module", "main"),
        cache: bool = True,
    ) -> None:
        self._root = Path(os.path.normpath(root))
        self._main_fields = main_fields
        self._caching = cache
        self._generation = 0
        self._cache: dict[tuple[str, str], PackageResolution | SpecifierUnresolved] = {}
        self._lock = threading.Lock()

    @property
    def root(self) -> Path:
        return self._root

    def resolve(self, specifier: str, importer_dir: Path) -> PackageResolution:
        """Resolve *specifier* as imported from a file in *importer_dir*.

        Raises:
            SpecifierUnresolved: No package up the directory chain provides it.
        """
        key = (os.path.normpath(importer_dir), specifier)
        if not self._caching:
            return self._resolve_uncached(specifier, Path(key[0]))

        with self._lock:
            cached = self._cache.get(key, _MISSING)
            generation = self._generation
        if isinstance(cached, SpecifierUnresolved):
            raise SpecifierUnresolved(cached.specifier, cached.importer, cached.reason)
        if isinstance(cached, PackageResolution):
            return cached

        try:
            result = self._resolve_uncached(specifier, Path(key[0]))
        except SpecifierUnresolved as exc:
            self._store(key, exc, generation)
            raise

        self._store(key, result, generation)
        return result

    def _store(
        self,
        key: tuple[str, str],
        value: PackageResolution | SpecifierUnresolved,
        generation: int,
    ) -> None:
        # An invalidate() since the lookup started means value may be stale
        with self._lock:
            if generation == self._generation:
                self._cache[key] = value

    def invalidate(self) -> None:
        """Forget every cached resolution, including lookups still in flight."""
        with self._lock:
            self._generation += 1
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _package_dirs(self, name: str, start: Path) -> Iterator[Path]:
        """Yield candidate package directories, nearest first.

        Real paths already visited are skipped so a symlink loop in the
        directory chain cannot make the walk revisit a directory.
        """
        visited: set[str] = set()
        current = start
        while is_within(self._root, current):
            real = os.path.realpath(current)
            if real not in visited:
                visited.add(real)
                if current.name != PACKAGES_DIR:
                    yield current / PACKAGES_DIR / name
            if current == self._root:
                break
            current = current.parent

    def _resolve_uncached(self, specifier: str, importer_dir: Path) -> PackageResolution:
        name, subpath = split_specifier(specifier)
        if not name or name in (".", ".."):
            raise SpecifierUnresolved(specifier, str(importer_dir), "invalid package name")

        for package_dir in self._package_dirs(name, importer_dir):
            descriptor_path = package_dir / DESCRIPTOR
            if not descriptor_path.is_file():
                continue
            descriptor = _load_descriptor(descriptor_path)
            entry = self._entry_for(package_dir, descriptor, subpath)
            if entry is None:
                raise SpecifierUnresolved(
                    specifier,
                    str(importer_dir),
                    f"package {name!r} at {package_dir} declares no existing entry file",
                )
            if not is_within(self._root, entry):
                raise SpecifierUnresolved(specifier, str(importer_dir), "entry is outside the root")
            return PackageResolution(
                specifier=specifier,
                entry=entry,
                url=relative_url(importer_dir, entry),
            )

        raise SpecifierUnresolved(specifier, str(importer_dir), f"no {PACKAGES_DIR}/{name} found")

    def _entry_for(self, package_dir: Path, descriptor: dict[str, Any], subpath: str) -> Path | None:
        if subpath:
            target = subpath
        else:
            target = next(
                (
                    descriptor[field]
                    for field in self._main_fields
                    if isinstance(descriptor.get(field), str) and descriptor[field]
                ),
                "index.js",
            )

        target = self._redirect(descriptor, target)
        if target is None:
            return None

        candidate = Path(os.path.normpath(package_dir / target))
        if not is_within(package_dir, candidate):
            return None
        return _find_file(candidate)

    @staticmethod
    def _redirect(descriptor: dict[str, Any], target: str) -> str | None:
        """Apply one level of an object ``browser`` field.

        ``false`` means the module is deliberately unavailable in browsers.
        """
        browser = descriptor.get("browser")
        if not isinstance(browser, dict):
            return target
        bare = posixpath.normpath(target)
        for key in (target, bare, "./" + bare):
            if key in browser:
                mapped = browser[key]
                if mapped is False:
                    return None
                if isinstance(mapped, str):
                    return mapped
        return target
