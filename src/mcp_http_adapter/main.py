"""
MCP HTTP Adapter - Application FastAPI Factory.
Expose un serveur MCP stdio derrière un endpoint HTTP unique (POST /mcp).
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import __version__
from .api.router import api_router
from .config.settings import AdapterConfig
from .proxy.executor import create_executor

logger = logging.getLogger(__name__)


def create_app(config: AdapterConfig) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    Args:
        config: Configuration immuable, partagée en lecture seule via app.state

    Returns:
        Instance configurée de FastAPI
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        _startup(app)
        yield
        _shutdown(app)

    app = FastAPI(
        title="MCP HTTP Adapter",
        description="Adaptateur HTTP pour serveurs MCP stdio",
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.config = config
    app.state.executor = create_executor(config)

    app.include_router(api_router)

    return app


def _startup(app: FastAPI):
    """Initialisation au démarrage."""
    config: AdapterConfig = app.state.config
    logger.info("Démarrage de l'adaptateur", extra=config.describe())


def _shutdown(app: FastAPI):
    """Arrêt de l'application."""
    logger.info("Adaptateur arrêté")
