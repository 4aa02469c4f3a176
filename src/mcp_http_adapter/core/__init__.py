"""
Noyau: modèles, exceptions, constantes et logging.
"""

from .exceptions import (
    AdapterError,
    ConfigurationError,
    ExecutionError,
    ExecutionSetupError,
    ProcessStartError,
    ExecutionIOError,
    ProcessExitError,
    ExecutionCancelledError,
)
from .models import ExecutionRequest, ExecutionResult

__all__ = [
    "AdapterError",
    "ConfigurationError",
    "ExecutionError",
    "ExecutionSetupError",
    "ProcessStartError",
    "ExecutionIOError",
    "ProcessExitError",
    "ExecutionCancelledError",
    "ExecutionRequest",
    "ExecutionResult",
]
