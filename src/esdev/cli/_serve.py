"""``esdev serve`` — build the configuration and start the server."""

import argparse
import logging
import sys

from esdev.config import ServerConfig
from esdev.errors import ConfigurationError


def build_config(args: argparse.Namespace) -> ServerConfig:
    """Translate parsed flags into a validated ``ServerConfig``.

    Raises:
        ConfigurationError: The flags describe an unusable configuration.
    """
    defaults = ServerConfig()
    config = ServerConfig(
        host=args.host or defaults.host,
        port=args.port if args.port is not None else defaults.port,
        log_level=args.log_level,
        root_dir=args.root_dir,
        app_index=args.app_index,
        node_resolve=args.node_resolve,
        watch=args.watch,
        cors=args.cors,
    )
    return config.validate()


def serve(args: argparse.Namespace) -> None:
    """Start the development server.

    Configuration problems are reported on stderr and exit with status 1
    before anything binds.
    """
    try:
        config = build_config(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )

    from esdev.app import DevServer
    from esdev.server.dev import run_dev_server

    server = DevServer(config)
    features = [
        name
        for name, enabled in (
            ("node-resolve", config.node_resolve),
            ("watch", config.watch),
            ("cors", config.cors),
        )
        if enabled
    ]
    logging.getLogger("esdev.server").info(
        "Serving %s on http://%s:%d%s",
        config.root,
        config.host,
        config.port,
        f" ({', '.join(features)})" if features else "",
    )
    run_dev_server(server, config.host, config.port, log_level=config.log_level)
