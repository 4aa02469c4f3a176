"""mcp_http_adapter.proxy.executor

Exécution d'un serveur MCP stdio, un processus par requête HTTP.

Couche Proxy:
- Contient l'I/O processus (asyncio.create_subprocess_exec)
- Ne lit ni ne reconstruit le JSON-RPC: l'entrée est opaque, la sortie est la
  première ligne écrite sur stdout

Contrat de concurrence (par appel à `execute`):
- stderr est drainé par une tâche dédiée démarrée AVANT l'écriture sur stdin,
  sinon un enfant bavard sur stderr bloque sur un pipe plein (deadlock)
- le buffer stderr appartient à la tâche de drain jusqu'à son join; le join a
  lieu une seule fois, après la fin du processus
- sur timeout/annulation, le groupe de processus reçoit SIGTERM puis SIGKILL,
  et le processus est toujours récolté avant de rendre la main
- un descendant en arrière-plan qui garde stdout/stderr ouverts ne retarde pas
  la réponse: la fin du processus ne dépend pas de la fermeture des pipes
"""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal
import time

from ..core.constants import (
    DEFAULT_STREAM_LIMIT,
    KILL_GRACE_PERIOD,
    MAX_STDERR_BYTES,
    STREAM_JOIN_TIMEOUT,
)
from ..core.exceptions import (
    ExecutionCancelledError,
    ExecutionIOError,
    ExecutionSetupError,
    ProcessExitError,
    ProcessStartError,
)
from ..core.models import ExecutionRequest, ExecutionResult

logger = logging.getLogger(__name__)

# Épuisement des descripteurs: les pipes n'ont pas pu être créés
_SETUP_ERRNOS = frozenset({errno.EMFILE, errno.ENFILE})

_READ_CHUNK = 64 * 1024

# Intervalle de scrutation de la fin du processus (secondes)
_EXIT_POLL_INTERVAL = 0.01


def _strip_line(line: bytes) -> bytes:
    if line.endswith(b"\n"):
        line = line[:-1]
    if line.endswith(b"\r"):
        line = line[:-1]
    return line


async def _discard_stream(stream: asyncio.StreamReader) -> None:
    while await stream.read(_READ_CHUNK):
        pass


async def _wait_exit(proc: asyncio.subprocess.Process) -> int:
    """Attend la fin du processus lui-même.

    `proc.wait()` attend en plus la fermeture de tous les pipes: un descendant
    en arrière-plan qui hérite de stdout/stderr le bloquerait indéfiniment.
    `returncode` est renseigné dès que le processus est récolté.
    """
    while proc.returncode is None:
        await asyncio.sleep(_EXIT_POLL_INTERVAL)
    return proc.returncode


def _close_read_pipes(proc: asyncio.subprocess.Process) -> None:
    """Ferme nos extrémités de stdout/stderr; les lecteurs reçoivent EOF.

    Libère les descripteurs même si un descendant garde l'autre extrémité.
    asyncio n'expose ces pipes que via le transport du processus.
    """
    transport = proc._transport
    for fd in (1, 2):
        pipe = transport.get_pipe_transport(fd)
        if pipe is not None:
            pipe.close()


class _StderrDrain:
    """Drain stderr dans un buffer borné (seule la fin est conservée).

    Le buffer n'est lu qu'après `join()`, qui attend la fin de la tâche.
    """

    def __init__(self, stream: asyncio.StreamReader, max_bytes: int):
        self._buffer = bytearray()
        self._max_bytes = max(0, max_bytes)
        self._joined = False
        self._task = asyncio.create_task(self._run(stream))

    async def _run(self, stream: asyncio.StreamReader) -> None:
        while True:
            chunk = await stream.read(_READ_CHUNK)
            if not chunk:
                return
            self._buffer.extend(chunk)
            overflow = len(self._buffer) - self._max_bytes
            if overflow > 0:
                del self._buffer[:overflow]

    async def join(self, timeout: float) -> bytes:
        """Attend la fin du drain (une seule fois) et retourne le contenu capturé."""
        if self._joined:
            raise RuntimeError("Drain stderr déjà joint")
        self._joined = True

        try:
            await asyncio.wait_for(self._task, timeout=timeout)
        except asyncio.TimeoutError:
            # Un petit-enfant garde probablement le pipe ouvert; wait_for a annulé la tâche
            logger.debug("Drain stderr interrompu après timeout", extra={"timeout_s": timeout})
        except OSError as e:
            logger.debug(f"Lecture stderr en échec: {e}")

        return bytes(self._buffer)


class ProcessExecutor:
    """
    Exécute une commande stdio pour un unique échange requête/réponse.

    Sans état entre les appels: une même instance est partagée par toutes
    les requêtes concurrentes.
    """

    def __init__(
        self,
        stream_limit: int = DEFAULT_STREAM_LIMIT,
        max_stderr_bytes: int = MAX_STDERR_BYTES,
        kill_grace: float = KILL_GRACE_PERIOD,
        join_timeout: float = STREAM_JOIN_TIMEOUT,
    ):
        self.stream_limit = stream_limit
        self.max_stderr_bytes = max_stderr_bytes
        self.kill_grace = kill_grace
        self.join_timeout = join_timeout

    @classmethod
    def from_config(cls, config) -> "ProcessExecutor":
        return cls(
            stream_limit=config.stream_limit,
            max_stderr_bytes=config.max_stderr_bytes,
        )

    async def execute(
        self,
        request: ExecutionRequest,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> ExecutionResult:
        """Lance le processus, envoie `request.input` + '\\n', retourne la première ligne de stdout.

        Args:
            request: commande, arguments, surcharges d'environnement et payload
            timeout: deadline globale en secondes (None = pas de limite)
            cancel_event: annulation externe (ex: client HTTP déconnecté)

        Raises:
            ExecutionSetupError: pipes impossibles à créer
            ProcessStartError: l'OS n'a pas pu lancer la commande
            ExecutionIOError: écriture stdin / lecture stdout en échec
            ProcessExitError: statut de sortie non nul (stderr joint)
            ExecutionCancelledError: deadline dépassée ou annulation
        """

        started = time.monotonic()

        if cancel_event is not None and cancel_event.is_set():
            raise ExecutionCancelledError(
                message="Exécution annulée avant démarrage",
                reason="cancelled",
            )

        proc = await self._spawn(request)
        logger.debug(
            "Processus démarré",
            extra={"pid": proc.pid, "command": request.command, "argv": list(request.args)},
        )

        # Ordre obligatoire: drain stderr avant toute écriture sur stdin
        stderr_drain = _StderrDrain(proc.stderr, self.max_stderr_bytes)
        exchange_task = asyncio.create_task(self._exchange(proc, request.input))

        remaining = None
        if timeout is not None:
            remaining = max(0.0, timeout - (time.monotonic() - started))

        try:
            interrupted = await self._race(exchange_task, remaining, cancel_event)
        except asyncio.CancelledError:
            # Annulation de la tâche appelante: nettoyage complet puis propagation
            await self._abort(proc, exchange_task)
            await self._finish(proc, stderr_drain)
            raise

        if interrupted is not None:
            await self._abort(proc, exchange_task)
            stderr = await self._finish(proc, stderr_drain)
            logger.warning(
                "Processus interrompu",
                extra={"pid": proc.pid, "reason": interrupted, "timeout_s": timeout},
            )
            raise ExecutionCancelledError(
                message=(
                    f"Deadline de {timeout}s dépassée" if interrupted == "timeout"
                    else "Exécution annulée par l'appelant"
                ),
                reason=interrupted,
                pid=proc.pid,
                stderr=stderr,
            )

        exc = exchange_task.exception()
        if exc is not None:
            # État du processus inconnu après une erreur de flux: on termine et récolte
            await self._abort(proc, exchange_task)
            stderr = await self._finish(proc, stderr_drain)
            if isinstance(exc, ExecutionIOError):
                exc.stderr = stderr
            raise exc

        output = exchange_task.result()
        stderr = await self._finish(proc, stderr_drain)
        returncode = proc.returncode
        duration_ms = (time.monotonic() - started) * 1000

        if returncode != 0:
            raise ProcessExitError(
                message=f"Le processus s'est terminé avec le code {returncode}",
                returncode=returncode,
                pid=proc.pid,
                stderr=stderr,
            )

        logger.debug(
            "Processus terminé",
            extra={"pid": proc.pid, "returncode": returncode, "duration_ms": round(duration_ms, 1)},
        )
        return ExecutionResult(
            output=output,
            returncode=returncode,
            pid=proc.pid,
            stderr=stderr,
            duration_ms=duration_ms,
        )

    async def _spawn(self, request: ExecutionRequest) -> asyncio.subprocess.Process:
        env = dict(os.environ)
        env.update(request.env)

        try:
            return await asyncio.create_subprocess_exec(
                request.command,
                *request.args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                limit=self.stream_limit,
                env=env,
                # Groupe de processus dédié: la terminaison atteint aussi les petits-enfants
                start_new_session=True,
            )
        except OSError as e:
            if e.errno in _SETUP_ERRNOS:
                raise ExecutionSetupError(
                    message=f"Impossible de créer les pipes stdio: {e}",
                    command=request.command,
                ) from e
            raise ProcessStartError(
                message=f"Impossible de démarrer {request.command}: {e}",
                command=request.command,
            ) from e
        except ValueError as e:
            # Ex: octet nul dans un argument
            raise ProcessStartError(
                message=f"Impossible de démarrer {request.command}: {e}",
                command=request.command,
            ) from e

    async def _exchange(self, proc: asyncio.subprocess.Process, payload: bytes) -> bytes:
        """Écrit le payload, lit une ligne, attend la fin du processus."""

        try:
            proc.stdin.write(payload + b"\n")
            await proc.stdin.drain()
            proc.stdin.close()
            await proc.stdin.wait_closed()
        except OSError as e:
            # BrokenPipeError/ConnectionResetError: l'enfant a fermé stdin
            raise ExecutionIOError(
                message=f"Écriture sur stdin impossible: {e}",
                stream="stdin",
                pid=proc.pid,
            ) from e

        try:
            line = await proc.stdout.readline()
        except (ValueError, OSError) as e:
            # ValueError: ligne plus longue que la limite du StreamReader
            raise ExecutionIOError(
                message=f"Lecture sur stdout impossible: {e}",
                stream="stdout",
                pid=proc.pid,
            ) from e

        # Le reste de stdout est jeté pour que l'enfant ne bloque pas sur un pipe plein
        discard_task = asyncio.create_task(_discard_stream(proc.stdout))
        try:
            await _wait_exit(proc)
            try:
                await asyncio.wait_for(discard_task, timeout=self.join_timeout)
            except asyncio.TimeoutError:
                # Un descendant garde stdout ouvert: EOF forcé, stderr compris
                logger.debug("Drain stdout interrompu après timeout", extra={"pid": proc.pid})
                _close_read_pipes(proc)
            except OSError as e:
                logger.debug(f"Lecture stdout restante en échec: {e}")
        finally:
            if not discard_task.done():
                discard_task.cancel()
                await asyncio.gather(discard_task, return_exceptions=True)

        return _strip_line(line)

    @staticmethod
    async def _race(
        task: asyncio.Task,
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> str | None:
        """Attend `task`, la deadline ou l'annulation.

        Returns:
            None si `task` est terminée, sinon "timeout" ou "cancelled".
        """

        waiters: set[asyncio.Future] = {task}
        cancel_waiter = None
        if cancel_event is not None:
            cancel_waiter = asyncio.create_task(cancel_event.wait())
            waiters.add(cancel_waiter)

        try:
            done, _pending = await asyncio.wait(
                waiters,
                timeout=timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            if cancel_waiter is not None and not cancel_waiter.done():
                cancel_waiter.cancel()
                await asyncio.gather(cancel_waiter, return_exceptions=True)

        if task in done:
            return None
        if cancel_waiter is not None and cancel_waiter in done:
            return "cancelled"
        return "timeout"

    async def _abort(self, proc: asyncio.subprocess.Process, exchange_task: asyncio.Task) -> None:
        """Termine le groupe de processus, puis récolte le processus."""

        self._signal_group(proc, force=False)

        if not exchange_task.done():
            exchange_task.cancel()
        await asyncio.gather(exchange_task, return_exceptions=True)

        try:
            await asyncio.wait_for(_wait_exit(proc), timeout=self.kill_grace)
        except asyncio.TimeoutError:
            logger.debug("SIGTERM ignoré, envoi de SIGKILL", extra={"pid": proc.pid})
            self._signal_group(proc, force=True)
            try:
                await asyncio.wait_for(_wait_exit(proc), timeout=self.kill_grace)
            except asyncio.TimeoutError:
                logger.warning("Processus non récolté après SIGKILL", extra={"pid": proc.pid})

    async def _finish(self, proc: asyncio.subprocess.Process, stderr_drain: _StderrDrain) -> bytes:
        """Joint le drain stderr puis libère les pipes de lecture."""
        stderr = await stderr_drain.join(self.join_timeout)
        _close_read_pipes(proc)
        return stderr

    @staticmethod
    def _signal_group(proc: asyncio.subprocess.Process, *, force: bool) -> None:
        try:
            if os.name == "posix":
                os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
            elif force:
                proc.kill()
            else:
                proc.terminate()
        except ProcessLookupError:
            pass


def create_executor(config=None) -> ProcessExecutor:
    """Factory: exécuteur configuré depuis `AdapterConfig` (ou valeurs par défaut)."""
    if config is None:
        return ProcessExecutor()
    return ProcessExecutor.from_config(config)
