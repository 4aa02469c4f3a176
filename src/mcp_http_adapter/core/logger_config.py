"""mcp_http_adapter.core.logger_config

Configuration du logging (stdlib `logging`).

Deux formats:
- json: une ligne JSON par enregistrement (time/level/logger/msg + champs `extra`)
- text: format lisible pour le développement local
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

from .constants import LOG_FORMATS, LOG_LEVELS

# Attributs standards d'un LogRecord, exclus des champs structurés
_RESERVED_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime", "taskName"}

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


def _now_utc_iso(created: float) -> str:
    # ISO 8601 UTC, précision ms, suffixe 'Z'.
    return (
        datetime.fromtimestamp(created, tz=timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


class JsonLogFormatter(logging.Formatter):
    """Formatte chaque enregistrement en un objet JSON sur une ligne."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "time": _now_utc_iso(record.created),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


def parse_log_level(level: str) -> int:
    """Convertit debug/info/warn/error en niveau `logging` (info par défaut)."""
    return _LEVELS.get((level or "").strip().lower(), logging.INFO)


def configure_logging(level: str = "info", log_format: str = "json", stream=None) -> logging.Handler:
    """
    Configure le root logger une seule fois au démarrage.

    Les loggers uvicorn sont redirigés vers le même handler pour garder une
    sortie homogène.

    Returns:
        Le handler installé
    """
    if log_format not in LOG_FORMATS:
        log_format = "json"

    handler = logging.StreamHandler(stream or sys.stdout)
    if log_format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-7s %(name)s: %(message)s")
        )

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(parse_log_level(level))

    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uv_logger = logging.getLogger(name)
        uv_logger.handlers.clear()
        uv_logger.propagate = True

    return handler


__all__ = ["JsonLogFormatter", "configure_logging", "parse_log_level", "LOG_LEVELS"]
