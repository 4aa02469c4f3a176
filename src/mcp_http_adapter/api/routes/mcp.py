"""Routes API: endpoint MCP.

Un appel HTTP = un processus stdio: le corps de la requête est envoyé tel quel
sur stdin (suivi de '\\n'), la première ligne de stdout devient la réponse.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from ...config.settings import AdapterConfig
from ...core.constants import BODY_READ_ERROR_MESSAGE, EXECUTION_ERROR_MESSAGE, MCP_ROUTE
from ...core.exceptions import ExecutionError
from ...core.models import ExecutionRequest
from ...features.headers import build_execution_inputs
from ...proxy.executor import ProcessExecutor

logger = logging.getLogger(__name__)

router = APIRouter()


async def _watch_disconnect(request: Request, disconnected: asyncio.Event) -> None:
    """Positionne `disconnected` quand le client HTTP ferme la connexion."""
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            disconnected.set()
            return


@router.post(MCP_ROUTE)
async def handle_mcp(request: Request):
    """Exécute le serveur MCP stdio configuré pour une requête JSON-RPC."""

    config: AdapterConfig = request.app.state.config
    executor: ProcessExecutor = request.app.state.executor

    # 1. En-têtes -> env/args (nouvelles copies, la config partagée reste intacte)
    env, args = build_execution_inputs(
        request.headers,
        default_env=config.default_env,
        base_args=config.args,
        env_mapping=config.header_env_mapping,
        arg_mapping=config.header_arg_mapping,
        dynamic_headers=config.dynamic_headers,
        args_template=config.args_template,
    )

    # 2. Corps complet en mémoire
    try:
        body = await asyncio.wait_for(request.body(), timeout=config.timeouts.read)
    except (ClientDisconnect, asyncio.TimeoutError) as e:
        logger.warning("Lecture du corps impossible", extra={"error": repr(e)})
        return PlainTextResponse(BODY_READ_ERROR_MESSAGE, status_code=400)

    # 3. Exécution bornée par le timeout et par la connexion client
    disconnected = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, disconnected))
    try:
        result = await executor.execute(
            ExecutionRequest(command=config.command, args=args, env=env, input=body),
            timeout=config.timeouts.process,
            cancel_event=disconnected,
        )
    except ExecutionError as e:
        # Le détail (stderr compris) reste dans les logs, jamais dans la réponse
        logger.error(
            "Échec d'exécution du processus",
            extra={
                "error": e.message,
                "code": e.code,
                "details": e.details,
                "stderr": e.stderr_text,
            },
        )
        return PlainTextResponse(EXECUTION_ERROR_MESSAGE, status_code=500)
    finally:
        watcher.cancel()
        await asyncio.gather(watcher, return_exceptions=True)

    # 4. Réponse
    return Response(content=result.output, status_code=200, media_type="application/json")
