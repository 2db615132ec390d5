"""Static file serving middleware.

Serves files from the root directory with conditional-request support,
bare-import rewriting for JavaScript modules, and an optional SPA
fallback document.  Paths with no file fall through to the next handler,
which owns the reload-channel endpoints.
"""

import logging
import mimetypes
import os
from functools import partial
from pathlib import Path

import anyio
import anyio.to_thread

from esdev.errors import NotFound
from esdev.files.cache import Validator, compute_validator, is_not_modified
from esdev.files.fallback import resolve_with_fallback
from esdev.files.resolver import ResolvedPath
from esdev.http.request import Request
from esdev.http.response import Response
from esdev.middleware.protocol import AnyResponse, Next
from esdev.modules.packages import PackageResolver
from esdev.modules.rewriter import MODULE_EXTENSIONS, rewrite_module

logger = logging.getLogger("esdev.modules")

# Pinned so the answer does not depend on the host's mime.types
_CONTENT_TYPES = {
    ".css": "text/css",
    ".html": "text/html",
    ".js": "text/javascript",
    ".json": "application/json",
    ".map": "application/json",
    ".mjs": "text/javascript",
    ".svg": "image/svg+xml",
    ".txt": "text/plain",
    ".wasm": "application/wasm",
    ".webmanifest": "application/manifest+json",
}


def content_type_for(path: Path) -> str:
    """Content type for *path* by extension, with a charset for text."""
    content_type = _CONTENT_TYPES.get(path.suffix.lower())
    if content_type is None:
        content_type, _ = mimetypes.guess_type(path.name)
    if content_type is None:
        return "application/octet-stream"
    if content_type.startswith("text/") or content_type in ("application/json", "image/svg+xml"):
        return f"{content_type}; charset=utf-8"
    return content_type


class StaticFiles:
    """Middleware that serves files from the root directory.

    Security: the request path is normalized lexically and must stay inside
    the root; escaping requests get 403 before any file is touched.

    Usage::

        server.add_middleware(StaticFiles(
            directory="./site",
            app_index="index.html",
            resolver=PackageResolver(Path("./site").absolute()),
        ))
    """

    __slots__ = ("_app_index", "_cache_control", "_directory", "_index", "_reserved", "_resolver")

    def __init__(
        self,
        directory: str | Path,
        *,
        index: str = "index.html",
        app_index: str | None = None,
        cache_control: str = "no-cache",
        resolver: PackageResolver | None = None,
        reserved: tuple[str, ...] = (),
    ) -> None:
        self._directory = Path(os.path.abspath(directory))
        self._index = index
        self._app_index = app_index
        self._cache_control = cache_control
        self._resolver = resolver
        self._reserved = frozenset(reserved)

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        """Serve a file or fall through."""
        if request.method not in ("GET", "HEAD") or request.path in self._reserved:
            return await next(request)

        try:
            resolved = await anyio.to_thread.run_sync(
                partial(
                    resolve_with_fallback,
                    self._directory,
                    request,
                    self._app_index,
                    index=self._index,
                )
            )
        except NotFound:
            # Let the dispatcher try; it raises NotFound itself if nothing matches
            return await next(request)

        if self._needs_trailing_slash(request, resolved):
            return Response(body="", status=301).with_header("Location", request.path + "/")

        return await self._serve(request, resolved)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _needs_trailing_slash(self, request: Request, resolved: ResolvedPath) -> bool:
        """Directory index reached without a trailing slash.

        Relative URLs inside the index would resolve against the parent
        directory, so the client is redirected to the slash form.
        """
        if resolved.fallback or request.path.endswith("/"):
            return False
        return resolved.file_path.name == self._index and not request.path.endswith(self._index)

    async def _serve(self, request: Request, resolved: ResolvedPath) -> Response:
        file = anyio.Path(resolved.file_path)
        validator = compute_validator(await file.stat())

        if self._resolver is not None and resolved.extension in MODULE_EXTENSIONS:
            # The served bytes depend on package resolution, so validate after rewriting
            body, validator = await self._rewrite(file, resolved, validator, self._resolver)
            if is_not_modified(request.headers, validator):
                return self._not_modified(validator)
        else:
            if is_not_modified(request.headers, validator):
                return self._not_modified(validator)
            body = await file.read_bytes()

        response = Response(
            body=body,
            content_type=content_type_for(resolved.file_path),
        ).with_header("Cache-Control", self._cache_control)
        return validator.apply(response)

    async def _rewrite(
        self,
        file: anyio.Path,
        resolved: ResolvedPath,
        validator: Validator,
        resolver: PackageResolver,
    ) -> tuple[bytes, Validator]:
        """Rewrite bare imports; diagnostics are logged, never raised."""
        # surrogateescape keeps undecodable bytes intact through the round trip
        source = (await file.read_bytes()).decode("utf-8", errors="surrogateescape")
        result = await anyio.to_thread.run_sync(
            rewrite_module, source, resolved.file_path, resolver
        )
        for diagnostic in result.diagnostics:
            logger.warning("%s (served %s unchanged)", diagnostic, resolved.request_path)

        if not result.changed:
            return source.encode("utf-8", errors="surrogateescape"), validator
        body = result.code.encode("utf-8", errors="surrogateescape")
        return body, validator.with_content(body)

    def _not_modified(self, validator: Validator) -> Response:
        response = Response(body="", status=304).with_header("Cache-Control", self._cache_control)
        return validator.apply(response)
