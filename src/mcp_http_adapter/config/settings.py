"""
Dataclasses pour la configuration.

La configuration est construite une seule fois au démarrage puis partagée en
lecture seule entre toutes les requêtes (aucun verrou nécessaire).
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, Mapping, Tuple

from ..core.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_STREAM_LIMIT,
    MAX_STDERR_BYTES,
    PROCESS_TIMEOUT,
    READ_TIMEOUT,
    SHUTDOWN_TIMEOUT,
)


@dataclass(frozen=True)
class Timeouts:
    """Timeouts en secondes."""
    read: float = READ_TIMEOUT
    process: float = PROCESS_TIMEOUT
    shutdown: float = SHUTDOWN_TIMEOUT

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Timeouts":
        """Crée une instance depuis un dictionnaire."""
        return cls(
            read=float(data.get("read", READ_TIMEOUT)),
            process=float(data.get("process", PROCESS_TIMEOUT)),
            shutdown=float(data.get("shutdown", SHUTDOWN_TIMEOUT)),
        )


def _frozen_mapping(value: Mapping[str, str]) -> Mapping[str, str]:
    # dict conserve l'ordre de déclaration, utilisé pour l'ordre des arguments
    return MappingProxyType(dict(value))


@dataclass(frozen=True)
class AdapterConfig:
    """Configuration globale de l'adaptateur."""
    command: str
    args: Tuple[str, ...] = ()
    default_env: Mapping[str, str] = field(default_factory=dict)
    header_env_mapping: Mapping[str, str] = field(default_factory=dict)
    header_arg_mapping: Mapping[str, str] = field(default_factory=dict)
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeouts: Timeouts = field(default_factory=Timeouts)
    log_level: str = "info"
    log_format: str = "json"
    dynamic_headers: bool = False
    args_template: Tuple[str, ...] = ()
    stream_limit: int = DEFAULT_STREAM_LIMIT
    max_stderr_bytes: int = MAX_STDERR_BYTES

    def __post_init__(self):
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "args_template", tuple(self.args_template))
        object.__setattr__(self, "default_env", _frozen_mapping(self.default_env))
        object.__setattr__(self, "header_env_mapping", _frozen_mapping(self.header_env_mapping))
        object.__setattr__(self, "header_arg_mapping", _frozen_mapping(self.header_arg_mapping))

    @property
    def bind_address(self) -> str:
        return f"{self.host}:{self.port}"

    def describe(self) -> Dict[str, Any]:
        """Résumé loggable (sans les valeurs d'environnement)."""
        return {
            "command": self.command,
            "command_args": list(self.args),
            "default_env_keys": sorted(self.default_env),
            "header_env_mapping": dict(self.header_env_mapping),
            "header_arg_mapping": dict(self.header_arg_mapping),
            "addr": self.bind_address,
            "dynamic_headers": self.dynamic_headers,
        }
