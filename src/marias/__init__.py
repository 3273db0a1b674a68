"""Marias Decorações: business-management API with real-time chat.

Library API::

    from marias import MariasServer

    server = MariasServer(database_url="sqlite+aiosqlite:///./marias.db", port=5000)
    server.run()
"""

from __future__ import annotations

import asyncio
import logging

from marias.config import Config

__all__ = ["Config", "MariasServer", "configure_logging"]

__version__ = "0.1.0"


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class MariasServer:
    """High-level API for running the server from Python.

    Args:
        host: Interface to bind.
        port: TCP port.
        database_url: SQLAlchemy async URL. Defaults to DATABASE_URL or
            ``~/.marias/marias.db``.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database_url: str | None = None,
    ):
        self.config = Config.from_args(host=host, port=port, database_url=database_url)

    def run(self) -> None:
        """Start the server (blocking)."""
        from marias.api.app import serve

        configure_logging()
        errors = self.config.validate()
        if errors:
            raise ValueError("; ".join(errors))
        asyncio.run(serve(self.config))
