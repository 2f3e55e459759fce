"""Command line entry point: jellofin-server --config <file>"""

import argparse
import asyncio
import logging
import sys

import uvicorn

from .config import ConfigError, load_config, settings
from .main import create_app
from .services.log_service import log_service


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="jellofin-server", description="Jellyfin compatible media server")
    parser.add_argument(
        "--config",
        default=settings.CONFIG_FILE,
        help=f"configuration file (default {settings.CONFIG_FILE})",
    )
    return parser.parse_args(argv)


async def serve(config) -> None:
    app = create_app(config)
    uv_config = uvicorn.Config(
        app,
        host=config.listen.address or "0.0.0.0",
        port=config.listen.port,
        log_level=settings.LOG_LEVEL.lower(),
        access_log=False,
        lifespan="on",
    )
    uv_config.load()

    tls = app.state.tls
    if tls is not None:
        tls.load()
        # uvicorn wraps sockets with this context, reloads swap the chain in place
        uv_config.ssl = tls.context

    scheme = "https" if tls is not None else "http"
    log_service.info(f"Listening on {scheme}://{uv_config.host}:{uv_config.port}")
    server = uvicorn.Server(uv_config)
    await server.serve()
    if not server.started:
        raise RuntimeError(f"could not listen on {uv_config.host}:{uv_config.port}")


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        config = load_config(args.config)
    except ConfigError as e:
        log_service.error(str(e))
        return 1

    log_service.configure(config.logfile, logging.getLevelName(settings.LOG_LEVEL.upper()))
    try:
        asyncio.run(serve(config))
    except KeyboardInterrupt:
        pass
    except Exception as e:
        log_service.error(f"Fatal: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
