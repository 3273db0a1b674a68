"""FastAPI application factory and server startup."""

from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from marias.api.registry import ConnectionRegistry
from marias.chat import ChatService, ChatStore, DatabaseChatStore
from marias.config import Config

logger = logging.getLogger(__name__)

# Built SPA lives at <project>/client/dist
_CLIENT_DIST = Path(__file__).parent.parent.parent.parent / "client" / "dist"


def create_api(
    config: Config | None = None,
    registry: ConnectionRegistry | None = None,
    store: ChatStore | None = None,
) -> FastAPI:
    """Create the API app. The chat registry and store are injectable for tests."""
    config = config or Config()
    app = FastAPI(
        title="Marias Decorações",
        docs_url="/api/docs",
        openapi_url="/api/openapi.json",
    )

    registry = registry if registry is not None else ConnectionRegistry()
    app.state.config = config
    app.state.registry = registry
    app.state.chat = ChatService(registry, store or DatabaseChatStore())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=["*"],
    )

    from marias.api.routes import (
        auth,
        channels,
        dashboard,
        feedback,
        health,
        inventory,
        modules,
        notifications,
        roles,
        shopping,
        system_config,
        tasks,
        users,
        ws,
    )

    # Each router declares its own auth/permission dependencies
    for module in (
        auth,
        users,
        roles,
        inventory,
        shopping,
        tasks,
        feedback,
        channels,
        notifications,
        dashboard,
        system_config,
        modules,
        health,
    ):
        app.include_router(module.router, prefix="/api")
    # WebSocket binds users through its own handshake
    app.include_router(ws.router)
    app.include_router(ws.router, prefix="/api")

    if _CLIENT_DIST.is_dir():
        app.mount(
            "/",
            StaticFiles(directory=str(_CLIENT_DIST), html=True),
            name="client",
        )
        logger.info("Serving client from %s", _CLIENT_DIST)

    return app


async def serve(config: Config) -> None:
    """Initialise the database, seed defaults and run uvicorn until stopped."""
    import uvicorn

    from marias.db import close_db, init_db
    from marias.seed import seed_defaults

    if config.is_memory_db:
        logger.warning("Using an in-memory database; data is lost on restart")
    await init_db(config.database_url)
    try:
        if config.seed_defaults:
            await seed_defaults()
        app = create_api(config)
        server = uvicorn.Server(
            uvicorn.Config(
                app,
                host=config.host,
                port=config.port,
                log_level="info",
                access_log=False,
            )
        )
        logger.info("Listening on http://%s:%d", config.host, config.port)
        await server.serve()
    finally:
        await close_db()
