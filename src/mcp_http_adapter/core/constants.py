"""
Constantes globales pour MCP HTTP Adapter.
"""

# ============================================================================
# SERVEUR HTTP
# ============================================================================
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 8080
HOST_ENV_VAR = "HOST"
MCP_ROUTE = "/mcp"

# ============================================================================
# TIMEOUTS (secondes)
# ============================================================================
READ_TIMEOUT = 30.0
PROCESS_TIMEOUT = 30.0
SHUTDOWN_TIMEOUT = 5.0
# Pas de timeout d'écriture propre: l'envoi des réponses est géré par uvicorn

# Délai entre SIGTERM et SIGKILL lors d'une annulation
KILL_GRACE_PERIOD = 1.0

# Attente max du drain stderr/stdout après la fin du processus.
# Un petit-enfant qui garde le pipe ouvert ne doit pas bloquer la requête.
STREAM_JOIN_TIMEOUT = 1.0

# ============================================================================
# FLUX STDIO
# ============================================================================
STREAM_LIMIT_ENV_VAR = "MCP_HTTP_STDIO_STREAM_LIMIT"
DEFAULT_STREAM_LIMIT = 8 * 1024 * 1024  # 8 MiB
MIN_STREAM_LIMIT = 64 * 1024
MAX_STREAM_LIMIT = 64 * 1024 * 1024  # 64 MiB

# Seule la fin de stderr est conservée pour le diagnostic
MAX_STDERR_BYTES = 64 * 1024

# ============================================================================
# EN-TÊTES DYNAMIQUES
# ============================================================================
ENV_HEADER_PREFIX = "x-mcp-env-"
ARG_HEADER_PREFIX = "x-mcp-arg-"
ARGS_HEADER = "x-mcp-args"

# ============================================================================
# RÉPONSES HTTP
# ============================================================================
BODY_READ_ERROR_MESSAGE = "Failed to read body"
EXECUTION_ERROR_MESSAGE = "Process execution failed"

LOG_LEVELS = ("debug", "info", "warn", "error")
LOG_FORMATS = ("json", "text")
