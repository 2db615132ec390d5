"""esdev — a development server for browser ES modules.

Serves a directory over HTTP with conditional caching, rewrites bare
imports (``import "lit"``) to installed packages, reloads connected
browsers when files change, and serves a fallback document for
client-side routed navigations.

Basic usage::

    from esdev import DevServer, ServerConfig

    server = DevServer(ServerConfig(root_dir="./site", node_resolve=True, watch=True))
    server.run()

Or from the command line::

    esdev serve --root-dir ./site --node-resolve --watch
"""

__version__ = "0.1.0"
__all__ = [
    "AnyResponse",
    "ChangeBus",
    "ChangeEvent",
    "ConfigurationError",
    "DevServer",
    "DevServerError",
    "HTTPError",
    "Middleware",
    "Next",
    "NotFound",
    "PackageResolver",
    "PathEscapesRoot",
    "Request",
    "Response",
    "ServerConfig",
    "SpecifierUnresolved",
    "rewrite_module",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import esdev`` fast (no watchdog, no anyio) while providing a
    clean top-level API.
    """
    if name == "DevServer":
        from esdev.app import DevServer

        return DevServer

    if name == "ServerConfig":
        from esdev.config import ServerConfig

        return ServerConfig

    if name == "Request":
        from esdev.http.request import Request

        return Request

    if name == "Response":
        from esdev.http.response import Response

        return Response

    if name in ("PackageResolver", "rewrite_module"):
        from esdev import modules as _modules

        return getattr(_modules, name)

    if name in ("ChangeBus", "ChangeEvent"):
        from esdev.realtime import bus as _bus
        from esdev.realtime import events as _events

        return getattr(_bus if name == "ChangeBus" else _events, name)

    if name in ("AnyResponse", "Middleware", "Next"):
        from esdev.middleware import protocol as _mw

        return getattr(_mw, name)

    if name in (
        "ConfigurationError",
        "DevServerError",
        "HTTPError",
        "NotFound",
        "PathEscapesRoot",
        "SpecifierUnresolved",
    ):
        from esdev import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)
