"""Server configuration.

ServerConfig is a frozen dataclass — immutable after creation, IDE-autocompletable,
no string-key dict lookups.  Created once at startup and shared read-only by
every request.
"""

import os
from dataclasses import dataclass, replace
from pathlib import Path

from esdev.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """Server configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = ServerConfig(root_dir="./site", app_index="index.html", watch=True)
    """

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "info"

    # Files
    root_dir: str | Path = "."
    app_index: str | None = None  # SPA fallback document, relative to root_dir
    index: str = "index.html"  # Directory index file
    cache_control: str = "no-cache"  # Browsers revalidate every request

    # Module rewriting
    node_resolve: bool = False
    main_fields: tuple[str, ...] = ("module", "main")

    # Watch mode & reload channel
    watch: bool = False
    event_path: str = "/__esdev/events"
    client_path: str = "/__esdev/reload.js"
    heartbeat_interval: float = 15.0
    sse_retry_ms: int | None = None  # EventSource reconnection delay advertised to clients
    subscriber_queue_size: int = 256

    # CORS
    cors: bool = False

    @property
    def root(self) -> Path:
        """The root directory as an absolute, normalized path."""
        return Path(os.path.abspath(self.root_dir))

    def validate(self) -> "ServerConfig":
        """Check the configuration and return a copy with an absolute root.

        Raises:
            ConfigurationError: If the root directory does not exist, the
                fallback document points outside it, or the port is invalid.
        """
        root = self.root
        if not root.is_dir():
            msg = f"Root directory {str(root)!r} does not exist or is not a directory"
            raise ConfigurationError(msg)

        if not 0 <= self.port <= 65535:
            msg = f"Port must be between 0 and 65535, got {self.port}"
            raise ConfigurationError(msg)

        if self.app_index is not None:
            from esdev.files.resolver import is_within

            candidate = root / self.app_index.lstrip("/")
            if not is_within(root, candidate):
                msg = f"App index {self.app_index!r} points outside the root directory"
                raise ConfigurationError(msg)

        for path in (self.event_path, self.client_path):
            if not path.startswith("/"):
                msg = f"Internal endpoint {path!r} must start with '/'"
                raise ConfigurationError(msg)

        if self.subscriber_queue_size < 1:
            msg = "subscriber_queue_size must be at least 1"
            raise ConfigurationError(msg)

        return replace(self, root_dir=root)
