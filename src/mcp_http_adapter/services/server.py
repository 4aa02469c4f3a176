"""
Serveur HTTP (uvicorn) et cycle de vie de l'adaptateur.

États: starting -> serving -> shutting-down -> stopped.

Arrêt: uvicorn capture SIGINT/SIGTERM, cesse d'accepter des connexions puis
attend au plus `timeouts.shutdown` secondes les requêtes en cours. Au-delà,
les tâches restantes sont annulées; l'exécuteur termine et récolte quand
même ses processus.
"""
import asyncio
import logging
from enum import Enum
from typing import Optional

import uvicorn
from fastapi import FastAPI

from ..config.settings import AdapterConfig
from ..main import create_app

logger = logging.getLogger(__name__)

# Intervalle de scrutation de l'état uvicorn (secondes)
STATE_POLL_INTERVAL = 0.05


class ServerState(str, Enum):
    STARTING = "starting"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting-down"
    STOPPED = "stopped"


class AdapterServer:
    """Lie l'application FastAPI à host:port et gère son arrêt ordonné."""

    def __init__(self, config: AdapterConfig, app: Optional[FastAPI] = None):
        self.config = config
        self.app = app if app is not None else create_app(config)
        self.state = ServerState.STOPPED
        self._server: Optional[uvicorn.Server] = None

    def build_uvicorn_config(self) -> uvicorn.Config:
        """Configuration uvicorn dérivée de la configuration de l'adaptateur."""
        return uvicorn.Config(
            self.app,
            host=self.config.host,
            port=self.config.port,
            lifespan="on",
            log_config=None,
            access_log=False,
            timeout_graceful_shutdown=self.config.timeouts.shutdown,
        )

    async def serve(self) -> None:
        """Démarre le serveur et bloque jusqu'à son arrêt complet."""
        self._server = uvicorn.Server(self.build_uvicorn_config())
        self._set_state(ServerState.STARTING)

        tracker = asyncio.create_task(self._track_state(self._server))
        try:
            await self._server.serve()
        finally:
            tracker.cancel()
            await asyncio.gather(tracker, return_exceptions=True)
            self._set_state(ServerState.STOPPED)

    def request_shutdown(self) -> None:
        """Demande un arrêt ordonné (équivalent à SIGTERM)."""
        if self._server is None:
            return
        self._server.should_exit = True

    @property
    def bound_port(self) -> Optional[int]:
        """Port effectivement écouté (utile avec port=0)."""
        if self._server is None:
            return None
        for listener in getattr(self._server, "servers", []):
            for sock in listener.sockets or ():
                return sock.getsockname()[1]
        return None

    async def _track_state(self, server: uvicorn.Server) -> None:
        while not server.started and not server.should_exit:
            await asyncio.sleep(STATE_POLL_INTERVAL)
        if server.started:
            self._set_state(ServerState.SERVING)
            logger.info("Serveur démarré", extra={"addr": self.config.bind_address})

        while not server.should_exit:
            await asyncio.sleep(STATE_POLL_INTERVAL)
        self._set_state(ServerState.SHUTTING_DOWN)
        logger.info(
            "Arrêt du serveur...",
            extra={"grace_period_s": self.config.timeouts.shutdown},
        )

    def _set_state(self, state: ServerState) -> None:
        if state is self.state:
            return
        logger.debug("Transition d'état", extra={"from_state": self.state.value, "to_state": state.value})
        self.state = state


def create_server(config: AdapterConfig) -> AdapterServer:
    """Factory pour le serveur de l'adaptateur."""
    return AdapterServer(config)
