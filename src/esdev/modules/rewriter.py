"""Bare import rewriting for served JavaScript modules.

Browsers cannot load ``import {html} from "lit"``; the rewriter replaces
each bare specifier with a relative URL to the package's entry file.  Only
the specifier substrings change, so every other byte keeps its offset and
line numbers in stack traces still match the file on disk.
"""

import re
from dataclasses import dataclass
from pathlib import Path

from esdev.errors import SpecifierUnresolved
from esdev.modules.lexer import ImportSpecifier, scan_imports
from esdev.modules.packages import PackageResolver

# RFC 3986 scheme: "http:", "data:", "node:", ...
_URL_SCHEME = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*:")

# Extensions served as JavaScript modules
MODULE_EXTENSIONS = frozenset({".js", ".mjs"})


def is_bare_specifier(specifier: str) -> bool:
    """True for package-name imports (``lit``, ``@scope/pkg/x.js``).

    Relative (``./``, ``../``), absolute (``/``) and URL specifiers are
    left for the browser to resolve.
    """
    if not specifier:
        return False
    if specifier.startswith((".", "/")):
        return False
    return _URL_SCHEME.match(specifier) is None


@dataclass(frozen=True, slots=True)
class RewriteResult:
    """Rewritten source plus any specifiers that could not be resolved."""

    code: str
    rewritten: tuple[tuple[str, str], ...] = ()
    diagnostics: tuple[SpecifierUnresolved, ...] = ()

    @property
    def changed(self) -> bool:
        return bool(self.rewritten)


def rewrite_module(source: str, file_path: Path, resolver: PackageResolver) -> RewriteResult:
    """Replace bare specifiers in *source* with URLs relative to *file_path*.

    Unresolvable specifiers are left untouched and returned as diagnostics;
    they never raise.  Already-relative sources come back unchanged.
    """
    record = scan_imports(source)
    importer_dir = file_path.parent

    replacements: list[tuple[ImportSpecifier, str]] = []
    diagnostics: list[SpecifierUnresolved] = []
    for spec in record:
        if not is_bare_specifier(spec.value):
            continue
        try:
            resolution = resolver.resolve(spec.value, importer_dir)
        except SpecifierUnresolved as exc:
            diagnostics.append(
                SpecifierUnresolved(exc.specifier, str(file_path), exc.reason)
            )
            continue
        replacements.append((spec, resolution.url))

    if not replacements:
        return RewriteResult(code=source, diagnostics=tuple(diagnostics))

    # Splice from the end so earlier offsets stay valid.
    code = source
    for spec, url in sorted(replacements, key=lambda item: item[0].start, reverse=True):
        code = code[: spec.start] + url + code[spec.end :]

    return RewriteResult(
        code=code,
        rewritten=tuple((spec.value, url) for spec, url in replacements),
        diagnostics=tuple(diagnostics),
    )
