"""Module rewriting: import lexer, package resolution, specifier rewriting."""

from esdev.modules.lexer import ImportSpecifier, ModuleRecord, scan_imports
from esdev.modules.packages import PackageResolution, PackageResolver
from esdev.modules.rewriter import RewriteResult, is_bare_specifier, rewrite_module

__all__ = [
    "ImportSpecifier",
    "ModuleRecord",
    "PackageResolution",
    "PackageResolver",
    "RewriteResult",
    "is_bare_specifier",
    "rewrite_module",
    "scan_imports",
]
