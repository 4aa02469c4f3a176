"""mcp_http_adapter.features.headers.mapper

Traduction des en-têtes HTTP en variables d'environnement et arguments CLI.

Module **sans I/O**: fonctions pures, aucun effet de bord, jamais d'exception
pour une requête donnée. Les tables de mapping sont validées au démarrage
(couche config), pas ici.

Deux mécanismes:
- mapping statique (toujours actif): --header-env / --header-arg
- en-têtes dynamiques (opt-in): X-MCP-Env-*, X-MCP-Arg-*, X-MCP-Args
"""

from __future__ import annotations

import json
import re
from typing import Iterable, Mapping

from ...core.constants import ARG_HEADER_PREFIX, ARGS_HEADER, ENV_HEADER_PREFIX

_TEMPLATE_FIELD = re.compile(r"\{\{\s*\.([A-Za-z0-9_\-]+)\s*\}\}")


def _template_key(name: str) -> str:
    # X-MCP-Arg-Team-Id, {{.TEAM_ID}} et {{.team-id}} désignent le même champ
    return name.lower().replace("-", "_")


def _normalize_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Index insensible à la casse; la première valeur d'un en-tête répété gagne."""
    items: Iterable[tuple[str, str]] = headers.items()
    normalized: dict[str, str] = {}
    for name, value in items:
        normalized.setdefault(name.lower(), value)
    return normalized


def map_headers(
    headers: Mapping[str, str],
    env_mapping: Mapping[str, str],
    arg_mapping: Mapping[str, str],
) -> tuple[dict[str, str], list[str]]:
    """Applique les tables de mapping statiques.

    - `env_mapping`: nom d'en-tête -> nom de variable (ex: X-Slack-Token -> SLACK_TOKEN)
    - `arg_mapping`: nom d'en-tête -> nom d'argument sans tirets (ex: X-Team-Id -> team-id)

    Les en-têtes absents ou vides sont ignorés. Les arguments sont produits
    dans l'ordre de déclaration de `arg_mapping`, sous forme de paires
    adjacentes `--<nom> <valeur>`.
    """

    lookup = _normalize_headers(headers)

    env_overrides: dict[str, str] = {}
    for header_name, env_name in env_mapping.items():
        value = lookup.get(header_name.lower(), "")
        if value:
            env_overrides[env_name] = value

    args: list[str] = []
    for header_name, arg_name in arg_mapping.items():
        value = lookup.get(header_name.lower(), "")
        if value:
            args.extend(("--" + arg_name, value))

    return env_overrides, args


def parse_env_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Extrait les variables des en-têtes X-MCP-Env-*.

    X-MCP-Env-API-KEY: abc -> {"API_KEY": "abc"}
    """

    env: dict[str, str] = {}
    for name, value in _normalize_headers(headers).items():
        if not name.startswith(ENV_HEADER_PREFIX):
            continue
        env_key = name[len(ENV_HEADER_PREFIX):].replace("-", "_").upper()
        if env_key and value:
            env[env_key] = value
    return env


def apply_args_template(templates: Iterable[str], data: Mapping[str, str]) -> list[str]:
    """Substitue les champs `{{.nom}}` de chaque template.

    Les noms de champ ignorent la casse, `-` et `_` sont équivalents.
    Un template dont un champ n'a pas de valeur est conservé tel quel.
    """

    lookup = {_template_key(key): value for key, value in data.items()}

    result: list[str] = []
    for template in templates:
        missing = False

        def _replace(match: re.Match[str]) -> str:
            nonlocal missing
            key = _template_key(match.group(1))
            if key not in lookup:
                missing = True
                return match.group(0)
            return lookup[key]

        rendered = _TEMPLATE_FIELD.sub(_replace, template)
        result.append(template if missing else rendered)
    return result


def parse_args_headers(headers: Mapping[str, str], args_template: Iterable[str]) -> list[str]:
    """Extrait des arguments depuis X-MCP-Args ou X-MCP-Arg-*.

    1. X-MCP-Args contenant un tableau JSON de chaînes: utilisé tel quel.
    2. Sinon, les en-têtes X-MCP-Arg-<nom> alimentent `args_template`.
    """

    lookup = _normalize_headers(headers)

    raw_args = lookup.get(ARGS_HEADER, "")
    if raw_args:
        try:
            parsed = json.loads(raw_args)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, list) and all(isinstance(item, str) for item in parsed):
            return list(parsed)

    named_args: dict[str, str] = {}
    for name, value in lookup.items():
        if name.startswith(ARG_HEADER_PREFIX) and value:
            named_args[_template_key(name[len(ARG_HEADER_PREFIX):])] = value

    templates = list(args_template)
    if templates and named_args:
        return apply_args_template(templates, named_args)

    return []


def merge_env(*layers: Mapping[str, str]) -> dict[str, str]:
    """Fusionne des couches d'environnement; la dernière couche gagne.

    Retourne toujours un nouveau dict: les couches ne sont jamais modifiées.
    """

    merged: dict[str, str] = {}
    for layer in layers:
        merged.update(layer)
    return merged


def merge_args(*parts: Iterable[str]) -> list[str]:
    """Concatène les listes d'arguments dans l'ordre donné (nouvelle liste)."""

    merged: list[str] = []
    for part in parts:
        merged.extend(part)
    return merged


def build_execution_inputs(
    headers: Mapping[str, str],
    *,
    default_env: Mapping[str, str],
    base_args: Iterable[str],
    env_mapping: Mapping[str, str],
    arg_mapping: Mapping[str, str],
    dynamic_headers: bool = False,
    args_template: Iterable[str] = (),
) -> tuple[dict[str, str], list[str]]:
    """Environnement et arguments d'une requête.

    Priorités:
    - env: défauts < en-têtes dynamiques < mapping statique
    - args: arguments de base, puis dynamiques, puis mapping statique
    """

    mapped_env, mapped_args = map_headers(headers, env_mapping, arg_mapping)

    dynamic_env: dict[str, str] = {}
    dynamic_args: list[str] = []
    if dynamic_headers:
        dynamic_env = parse_env_headers(headers)
        dynamic_args = parse_args_headers(headers, args_template)

    env = merge_env(default_env, dynamic_env, mapped_env)
    args = merge_args(base_args, dynamic_args, mapped_args)
    return env, args
