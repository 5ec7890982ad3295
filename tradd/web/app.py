"""FastAPI application for tradd."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from ..orchestrator import Config
from ..sources import LocalTorrentReader, TorrentReader
from ..torrent import TorrentClient
from .api import router as api_router

logger = logging.getLogger(__name__)

DEFAULT_PORT = 8000


def create_app(
    config: Config | None = None,
    client: TorrentClient | None = None,
    reader: TorrentReader | None = None,
) -> FastAPI:
    """Create the API application.

    Args:
        config: Application config, loaded from the environment if omitted
        client: Daemon client, created from config if omitted
        reader: Torrent reader for uploads

    Returns:
        Configured FastAPI app
    """
    config = config or Config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Forwarding torrents to {config.rpc_url}")
        yield
        await app.state.client.aclose()

    app = FastAPI(title="tradd", lifespan=lifespan)
    app.state.config = config
    app.state.api_key = config.api_key
    app.state.client = client or config.create_client()
    app.state.reader = reader or LocalTorrentReader()
    app.state.history = config.create_history()
    app.include_router(api_router)

    return app


def run_server(config: Config | None = None, host: str = "127.0.0.1", port: int = DEFAULT_PORT):
    """Run the web server."""
    import uvicorn
    uvicorn.run(create_app(config), host=host, port=port)
