"""
Modèles de données d'une exécution stdio.

Toutes ces structures sont propres à une requête HTTP: construites à chaque
appel, jamais partagées entre requêtes concurrentes.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class ExecutionRequest:
    """Une invocation de commande avec son payload stdin."""

    command: str
    args: tuple[str, ...] = ()
    env: Mapping[str, str] = field(default_factory=dict)
    input: bytes = b""

    def __post_init__(self) -> None:
        if not self.command:
            raise ValueError("ExecutionRequest requiert une commande non vide")
        # Copies figées: jamais d'alias vers les listes/dicts de l'appelant
        object.__setattr__(self, "args", tuple(self.args))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))
        object.__setattr__(self, "input", bytes(self.input))

    @property
    def argv(self) -> list[str]:
        return [self.command, *self.args]


@dataclass(frozen=True)
class ExecutionResult:
    """Résultat d'une exécution réussie."""

    output: bytes
    returncode: int = 0
    pid: int | None = None
    stderr: bytes = b""
    duration_ms: float = 0.0

    @property
    def text(self) -> str:
        return self.output.decode("utf-8", errors="replace")
