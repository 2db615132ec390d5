"""File serving primitives: path resolution, cache validators, SPA fallback."""

from esdev.files.cache import Validator, compute_validator, is_not_modified
from esdev.files.fallback import is_navigation, resolve_with_fallback
from esdev.files.resolver import ResolvedPath, resolve_path

__all__ = [
    "ResolvedPath",
    "Validator",
    "compute_validator",
    "is_navigation",
    "is_not_modified",
    "resolve_path",
    "resolve_with_fallback",
]
