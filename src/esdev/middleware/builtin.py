"""Built-in middleware: CORS.

A dev server is often loaded from another origin (a backend on another
port, a browser test runner), so ``--cors`` turns on permissive CORS
headers for every served file.
"""

from dataclasses import dataclass

from esdev.http.request import Request
from esdev.http.response import Response
from esdev.middleware.protocol import AnyResponse, Next


@dataclass(frozen=True, slots=True)
class CORSConfig:
    """CORS middleware configuration.

    Defaults allow any origin to read files, which is what ``--cors`` means::

        CORSConfig(allow_origins=("http://localhost:3000",))
    """

    allow_origins: tuple[str, ...] = ("*",)
    allow_methods: tuple[str, ...] = ("GET", "HEAD", "OPTIONS")
    allow_headers: tuple[str, ...] = ("If-None-Match", "If-Modified-Since")
    expose_headers: tuple[str, ...] = ("ETag", "Last-Modified")
    max_age: int = 600  # 10 minutes


class CORSMiddleware:
    """CORS middleware for a read-only file server.

    Handles:
    - Preflight ``OPTIONS`` requests (returns 204 with CORS headers)
    - Simple requests (adds CORS headers to the response)
    - Wildcard origins (``"*"``)
    """

    __slots__ = ("config",)

    def __init__(self, config: CORSConfig | None = None) -> None:
        self.config = config or CORSConfig()

    def _is_allowed_origin(self, origin: str) -> bool:
        """Check if the origin is in the allow list."""
        if "*" in self.config.allow_origins:
            return True
        return origin in self.config.allow_origins

    def _add_cors_headers(self, response: AnyResponse, origin: str) -> AnyResponse:
        """Add CORS headers to a response."""
        cfg = self.config

        if "*" in cfg.allow_origins:
            response = response.with_header("Access-Control-Allow-Origin", "*")
        else:
            response = response.with_header("Access-Control-Allow-Origin", origin)
            response = response.with_header("Vary", "Origin")

        if cfg.expose_headers:
            response = response.with_header(
                "Access-Control-Expose-Headers",
                ", ".join(cfg.expose_headers),
            )

        return response

    def _preflight_response(self, origin: str) -> AnyResponse:
        """Build a preflight response with all CORS headers."""
        cfg = self.config
        response = self._add_cors_headers(Response(body="", status=204), origin)
        response = response.with_header("Access-Control-Allow-Methods", ", ".join(cfg.allow_methods))
        if cfg.allow_headers:
            response = response.with_header(
                "Access-Control-Allow-Headers",
                ", ".join(cfg.allow_headers),
            )
        return response.with_header("Access-Control-Max-Age", str(cfg.max_age))

    async def __call__(self, request: Request, next: Next) -> AnyResponse:
        """Process the request with CORS handling."""
        origin = request.headers.get("origin")

        # No Origin header — not a CORS request
        if origin is None or not self._is_allowed_origin(origin):
            return await next(request)

        if request.method == "OPTIONS" and "access-control-request-method" in request.headers:
            return self._preflight_response(origin)

        response = await next(request)
        return self._add_cors_headers(response, origin)
