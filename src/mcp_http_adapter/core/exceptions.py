"""
Exceptions personnalisées pour MCP HTTP Adapter.
"""


class AdapterError(Exception):
    """Exception de base pour toutes les erreurs de l'adaptateur."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(AdapterError):
    """Erreur de configuration (commande manquante, mapping invalide)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class ExecutionError(AdapterError):
    """
    Erreur lors de l'exécution d'un sous-processus stdio.

    `stderr` contient le texte d'erreur capturé (peut être vide). Il sert
    uniquement au diagnostic côté logs, jamais à la réponse HTTP.
    """

    def __init__(
        self,
        message: str,
        code: str = "execution_error",
        stderr: bytes = b"",
        details: dict = None
    ):
        super().__init__(message=message, code=code, details=details)
        self.stderr = stderr or b""

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")


class ExecutionSetupError(ExecutionError):
    """Acquisition des pipes impossible: le processus n'a jamais démarré."""

    def __init__(self, message: str, command: str = None):
        super().__init__(
            message=message,
            code="setup_error",
            details={"command": command} if command else {}
        )


class ProcessStartError(ExecutionError):
    """L'OS n'a pas pu créer le processus (commande introuvable, permissions)."""

    def __init__(self, message: str, command: str = None):
        super().__init__(
            message=message,
            code="start_error",
            details={"command": command} if command else {}
        )


class ExecutionIOError(ExecutionError):
    """Lecture/écriture sur un flux du processus en échec (broken pipe, etc.)."""

    def __init__(self, message: str, stream: str = None, pid: int = None, stderr: bytes = b""):
        super().__init__(
            message=message,
            code="io_error",
            stderr=stderr,
            details={"stream": stream, "pid": pid}
        )
        self.stream = stream


class ProcessExitError(ExecutionError):
    """Le processus s'est terminé avec un statut d'échec."""

    def __init__(self, message: str, returncode: int, pid: int = None, stderr: bytes = b""):
        super().__init__(
            message=message,
            code="process_error",
            stderr=stderr,
            details={"returncode": returncode, "pid": pid}
        )
        self.returncode = returncode


class ExecutionCancelledError(ExecutionError):
    """
    Deadline dépassée ou annulation par l'appelant.

    `reason` vaut "timeout" ou "cancelled". Le processus a été terminé et
    récolté avant que cette erreur ne soit levée.
    """

    def __init__(self, message: str, reason: str, pid: int = None, stderr: bytes = b""):
        super().__init__(
            message=message,
            code="cancelled",
            stderr=stderr,
            details={"reason": reason, "pid": pid}
        )
        self.reason = reason
