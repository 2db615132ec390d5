"""Static file resolution — maps a URL path to a file under the root.

Normalization is purely lexical (``.`` and ``..`` are collapsed without
following symlinks), so the traversal check happens before the filesystem
is touched at all.  Symlinked package directories inside the root stay
servable.
"""

import os
import posixpath
from dataclasses import dataclass
from pathlib import Path

from esdev.errors import NotFound, PathEscapesRoot


@dataclass(frozen=True, slots=True)
class ResolvedPath:
    """A request path paired with the file it maps to.

    Only produced by ``resolve_path``, which guarantees ``file_path`` is a
    descendant of the root.  ``fallback`` marks an SPA fallback substitution.
    """

    request_path: str
    file_path: Path
    fallback: bool = False

    @property
    def extension(self) -> str:
        return self.file_path.suffix.lower()


def is_within(root: Path, candidate: Path) -> bool:
    """True if *candidate* normalizes to *root* or a path below it."""
    root_norm = os.path.normpath(root)
    cand_norm = os.path.normpath(candidate)
    return cand_norm == root_norm or cand_norm.startswith(root_norm.rstrip(os.sep) + os.sep)


def normalize(root: Path, request_path: str) -> Path:
    """Join *request_path* to *root* and collapse dot segments.

    Raises:
        PathEscapesRoot: If the normalized path leaves the root.
        NotFound: If the path contains characters no file can have.
    """
    relative = request_path.replace("\\", "/").lstrip("/")
    if "\x00" in relative:
        raise NotFound("Invalid path")

    candidate = Path(os.path.normpath(os.path.join(root, relative)))
    if not is_within(root, candidate):
        raise PathEscapesRoot(f"{request_path} resolves outside the root directory")
    return candidate


def resolve_path(root: Path, request_path: str, *, index: str = "index.html") -> ResolvedPath:
    """Resolve *request_path* to an existing regular file under *root*.

    Directories map to their *index* file.

    Raises:
        PathEscapesRoot: Traversal above the root (no file is read).
        NotFound: No regular file exists for the path.
    """
    file_path = normalize(root, request_path)

    if file_path.is_dir():
        file_path = file_path / index

    if not file_path.is_file():
        raise NotFound(f"No file for {request_path}")

    return ResolvedPath(request_path=request_path, file_path=file_path)


def url_path_for(root: Path, file_path: Path) -> str:
    """Inverse of ``normalize``: the URL path serving *file_path*."""
    relative = os.path.relpath(os.path.normpath(file_path), os.path.normpath(root))
    return "/" + posixpath.join(*relative.split(os.sep)) if relative != "." else "/"
