"""
Configuration de MCP HTTP Adapter.
"""

from .loader import (
    build_config,
    load_config_file,
    parse_stdio_command,
    parse_env_vars,
    parse_mapping,
    resolve_host,
)
from .settings import AdapterConfig, Timeouts

__all__ = [
    "build_config",
    "load_config_file",
    "parse_stdio_command",
    "parse_env_vars",
    "parse_mapping",
    "resolve_host",
    "AdapterConfig",
    "Timeouts",
]
