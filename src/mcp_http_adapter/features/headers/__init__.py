"""
Mapping en-têtes HTTP -> environnement / arguments du processus.
"""

from .mapper import (
    map_headers,
    parse_env_headers,
    parse_args_headers,
    apply_args_template,
    merge_env,
    merge_args,
    build_execution_inputs,
)

__all__ = [
    "map_headers",
    "parse_env_headers",
    "parse_args_headers",
    "apply_args_template",
    "merge_env",
    "merge_args",
    "build_execution_inputs",
]
