"""Middleware — Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next) -> AnyResponse

Built-in middleware:
    CORSMiddleware -- Cross-Origin Resource Sharing for ``--cors``
    HTMLInject -- Inject the reload client into HTML responses
    StaticFiles -- Serve, validate, and rewrite files from the root
"""

from esdev.middleware.builtin import CORSConfig, CORSMiddleware
from esdev.middleware.inject import HTMLInject
from esdev.middleware.protocol import AnyResponse, Middleware, Next
from esdev.middleware.static import StaticFiles

__all__ = [
    "AnyResponse",
    "CORSConfig",
    "CORSMiddleware",
    "HTMLInject",
    "Middleware",
    "Next",
    "StaticFiles",
]
