"""Development server application.

Mutable during setup (extra middleware).  Frozen at runtime when
``server.run()`` or ``__call__()`` is first invoked; the frozen state is
the middleware chain, which is read concurrently by every request.
"""

import asyncio
import logging
import threading

from esdev._internal.asgi import Receive, Scope, Send
from esdev.config import ServerConfig
from esdev.errors import NotFound
from esdev.http.request import Request
from esdev.http.response import Response, SSEResponse
from esdev.middleware.protocol import AnyResponse, Middleware
from esdev.modules.packages import PackageResolver, affects_resolution
from esdev.realtime.bus import ChangeBus
from esdev.realtime.events import ChangeEvent, EventStream
from esdev.realtime.watcher import FileWatcher
from esdev.server.handler import handle_request
from esdev.server.reload_client import reload_client_js

logger = logging.getLogger("esdev.server")


class DevServer:
    """The development server ASGI application.

    Request pipeline, outermost first: user middleware, CORS (``cors``),
    reload-client injection (``watch``), static files.  Requests no file
    answers reach the reload-channel endpoints, then 404.

    Usage::

        server = DevServer(ServerConfig(root_dir="./site", watch=True))
        server.run()

    Thread safety:
        Setup is single-threaded.  The freeze transition uses a Lock +
        double-check so exactly one thread builds the middleware chain.
    """

    __slots__ = (
        "_bus",
        "_freeze_lock",
        "_frozen",
        "_middleware",
        "_middleware_list",
        "_resolver",
        "_watcher",
        "config",
    )

    def __init__(self, config: ServerConfig | None = None) -> None:
        self.config: ServerConfig = (config or ServerConfig()).validate()
        self._middleware_list: list[Middleware] = []
        self._middleware: tuple[Middleware, ...] = ()
        self._frozen = False
        self._freeze_lock = threading.Lock()

        self._bus = ChangeBus(self.config.subscriber_queue_size)
        self._resolver: PackageResolver | None = None
        if self.config.node_resolve:
            # Only the watcher invalidates, so without it nothing may be cached
            self._resolver = PackageResolver(
                self.config.root,
                main_fields=self.config.main_fields,
                cache=self.config.watch,
            )
        self._watcher: FileWatcher | None = None

    # -- Setup --

    def add_middleware(self, middleware: Middleware) -> None:
        """Add middleware that runs before the built-in chain."""
        self._check_not_frozen()
        self._middleware_list.append(middleware)

    @property
    def bus(self) -> ChangeBus:
        """The change bus feeding the reload channel."""
        return self._bus

    @property
    def resolver(self) -> PackageResolver | None:
        """The package resolver, when bare-import rewriting is enabled."""
        return self._resolver

    @property
    def watcher(self) -> FileWatcher | None:
        """The running file watcher, if any."""
        return self._watcher

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Start serving.  Blocks until the server stops."""
        self._ensure_frozen()

        from esdev.server.dev import run_dev_server

        run_dev_server(
            self,
            host or self.config.host,
            port if port is not None else self.config.port,
            log_level=self.config.log_level,
        )

    # -- Lifecycle --

    async def startup(self) -> None:
        """Start the file watcher (watch mode only).  Idempotent."""
        self._ensure_frozen()
        if not self.config.watch or self._watcher is not None:
            return
        watcher = FileWatcher(self.config.root, asyncio.get_running_loop())
        watcher.add_listener(self._on_change)
        watcher.start()
        self._watcher = watcher

    async def shutdown(self) -> None:
        """Stop the watcher and end every reload-channel stream."""
        watcher, self._watcher = self._watcher, None
        if watcher is not None:
            watcher.stop()
        self._bus.close()

    def _on_change(self, change: ChangeEvent) -> None:
        # Invalidate first so the reload that follows sees fresh resolutions
        if self._resolver is not None and affects_resolution(change.path, change.kind):
            self._resolver.invalidate()
        delivered = self._bus.publish(change)
        logger.info("%s %s (%d client(s) notified)", change.kind, change.path, delivered)

    # -- ASGI interface --

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI 3.0 entry point."""
        if scope["type"] == "lifespan":
            await self._handle_lifespan(scope, receive, send)
            return

        self._ensure_frozen()

        await handle_request(
            scope,
            receive,
            send,
            middleware=self._middleware,
            dispatch=self._dispatch,
            sse_retry_ms=self.config.sse_retry_ms,
        )

    async def _handle_lifespan(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Run the ASGI lifespan protocol."""
        while True:
            message = await receive()
            msg_type = message["type"]

            if msg_type == "lifespan.startup":
                try:
                    await self.startup()
                except Exception as exc:
                    logger.exception("Startup failed")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})

            elif msg_type == "lifespan.shutdown":
                await self.shutdown()
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _dispatch(self, request: Request) -> AnyResponse:
        """Innermost handler: the reload-channel endpoints."""
        cfg = self.config
        if cfg.watch and request.method in ("GET", "HEAD"):
            if request.path == cfg.event_path:
                return SSEResponse(
                    EventStream(
                        self._bus.subscribe(),
                        heartbeat_interval=cfg.heartbeat_interval,
                    )
                )
            if request.path == cfg.client_path:
                return Response(
                    body=reload_client_js(cfg.event_path),
                    content_type="text/javascript; charset=utf-8",
                ).with_header("Cache-Control", "no-cache")
        raise NotFound()

    # -- Internal --

    def _ensure_frozen(self) -> None:
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Build the middleware chain.

        MUST only be called while holding _freeze_lock.
        """
        from esdev.middleware.static import StaticFiles

        cfg = self.config
        middleware_list = list(self._middleware_list)

        if cfg.cors:
            from esdev.middleware.builtin import CORSMiddleware

            middleware_list.append(CORSMiddleware())

        if cfg.watch:
            from esdev.middleware.inject import HTMLInject
            from esdev.server.reload_client import reload_client_tag

            middleware_list.append(HTMLInject(reload_client_tag(cfg.client_path)))

        middleware_list.append(
            StaticFiles(
                cfg.root,
                index=cfg.index,
                app_index=cfg.app_index,
                cache_control=cfg.cache_control,
                resolver=self._resolver,
                reserved=(cfg.event_path, cfg.client_path) if cfg.watch else (),
            )
        )

        self._middleware = tuple(middleware_list)
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = "Cannot modify the server after it has started serving requests."
            raise RuntimeError(msg)
