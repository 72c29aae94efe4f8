"""Service entrypoint.

Commands:
    zentia serve     Initialise the database and run the HTTP API.
    zentia init-db   Create tables and seed the default crisis keywords.
"""

import argparse
import asyncio

import structlog
import uvicorn

from zentia.config.logging import configure_logging
from zentia.config.settings import settings
from zentia.services import prepare_store

log = structlog.get_logger(__name__)


def main() -> None:
    parser = argparse.ArgumentParser(prog="zentia")
    parser.add_argument("command", choices=["serve", "init-db"], nargs="?", default="serve")
    parser.add_argument("--host", default=settings.api_host)
    parser.add_argument("--port", type=int, default=settings.api_port)
    args = parser.parse_args()

    configure_logging()

    if args.command == "init-db":
        asyncio.run(prepare_store(settings))
        log.info("database_ready", path=settings.db_path)
        return

    from zentia.api.app import create_app

    log.info("starting_api", host=args.host, port=args.port)
    uvicorn.run(create_app(), host=args.host, port=args.port, log_config=None)


if __name__ == "__main__":
    main()
