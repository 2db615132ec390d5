"""Development server.

Starts a uvicorn ASGI server with the live DevServer object.  Reloading
is the browser's job (the reload channel), so the server process itself
never restarts.
"""


def run_dev_server(
    app: object,
    host: str,
    port: int,
    *,
    log_level: str = "info",
) -> None:
    """Start uvicorn with the given ASGI app.

    Args:
        app: ASGI callable (DevServer instance).
        host: Bind host address.
        port: Bind port number.
        log_level: uvicorn log level name.
    """
    import uvicorn

    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level=log_level,
        lifespan="on",
        # The reload channel is a long-lived stream; do not wait on it
        timeout_graceful_shutdown=1,
    )
    server = uvicorn.Server(config)
    server.run()
