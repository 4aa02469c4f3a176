"""mcp_http_adapter.config.loader

Construction de la configuration à partir des flags CLI et d'un fichier TOML
optionnel.

Note d'architecture:
- Toutes les validations (commande, paires KEY=VALUE, mappings) ont lieu ici,
  au démarrage. Une erreur lève `ConfigurationError` avant que le serveur
  n'accepte la moindre requête.
- Le résultat est un `AdapterConfig` immuable; aucun cache global.
"""
import os
import re
import shlex
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..core.constants import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_STREAM_LIMIT,
    HOST_ENV_VAR,
    LOG_FORMATS,
    LOG_LEVELS,
    MAX_STREAM_LIMIT,
    MIN_STREAM_LIMIT,
    STREAM_LIMIT_ENV_VAR,
)
from ..core.exceptions import ConfigurationError
from .settings import AdapterConfig, Timeouts


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Args:
        obj: Valeur à traiter (str, dict, list)

    Returns:
        Valeur avec variables d'environnement expansées
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))
        return re.sub(r'\$\{([^}]+)\}', replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def load_config_file(config_path: str) -> Dict[str, Any]:
    """
    Charge un fichier de configuration TOML.

    Args:
        config_path: Chemin vers le fichier

    Returns:
        Dictionnaire de configuration (variables ${VAR} expansées)

    Raises:
        ConfigurationError: Si le fichier n'existe pas ou est invalide
    """
    import tomllib

    path = Path(config_path).expanduser()
    if not path.exists():
        raise ConfigurationError(
            message=f"Fichier de configuration non trouvé: {config_path}",
            config_key="config_path"
        )

    try:
        with open(path, "rb") as f:
            raw_config = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(
            message=f"Fichier de configuration invalide: {e}",
            config_key="config_path"
        ) from e

    return _expand_env_vars(raw_config)


def parse_stdio_command(stdio_cmd: str) -> List[str]:
    """
    Découpe une commande de style shell ("npx -y 'mon serveur'") en argv.

    Raises:
        ConfigurationError: Guillemets non fermés ou commande vide
    """
    try:
        parts = shlex.split(stdio_cmd or "")
    except ValueError as e:
        raise ConfigurationError(
            message=f"Commande stdio invalide: {e}",
            config_key="stdio"
        ) from e

    if not parts:
        raise ConfigurationError(
            message="Aucune commande spécifiée (--stdio requis)",
            config_key="stdio"
        )
    return parts


def _split_pair(raw: str, *, config_key: str, kind: str, allow_empty_value: bool = False) -> tuple:
    key, sep, value = raw.partition("=")
    key = key.strip()
    if not sep or not key or (not value and not allow_empty_value):
        raise ConfigurationError(
            message=f"{kind} invalide (attendu KEY=VALUE): {raw}",
            config_key=config_key
        )
    # Le délimiteur est interdit dans la valeur pour garder KEY=VALUE non ambigu
    if "=" in value:
        raise ConfigurationError(
            message=f"{kind}: la valeur ne peut pas contenir '=': {raw}",
            config_key=config_key
        )
    return key, value


def parse_env_vars(env_vars: Iterable[str]) -> Dict[str, str]:
    """Parse des paires KEY=VALUE (--env). La dernière occurrence gagne.

    Une valeur vide est admise (`DEBUG=` définit DEBUG à "").
    """
    env_map: Dict[str, str] = {}
    for raw in env_vars:
        key, value = _split_pair(
            raw, config_key="env", kind="Variable d'environnement", allow_empty_value=True
        )
        env_map[key] = value
    return env_map


def parse_mapping(mappings: Iterable[str], config_key: str = "mapping") -> Dict[str, str]:
    """
    Parse des paires HEADER=TARGET (--header-env / --header-arg).

    L'ordre de déclaration est conservé; il fixe l'ordre des arguments
    dérivés des en-têtes.
    """
    result: Dict[str, str] = {}
    for raw in mappings:
        header, target = _split_pair(raw, config_key=config_key, kind="Mapping")
        result[header] = target
    return result


def _pairs_from_table(table: Optional[Mapping[str, Any]], config_key: str) -> List[str]:
    if table is None:
        return []
    if not isinstance(table, dict):
        raise ConfigurationError(
            message=f"Section [{config_key}] invalide (table attendue)",
            config_key=config_key
        )
    return [f"{k}={v}" for k, v in table.items()]


def resolve_host(cli_host: Optional[str] = None) -> str:
    """Host de bind: --host, sinon variable HOST, sinon 0.0.0.0."""
    if cli_host:
        return cli_host
    return os.environ.get(HOST_ENV_VAR) or DEFAULT_HOST


def get_stream_limit_bytes() -> int:
    """
    Taille max (en bytes) d'une ligne lue sur stdout du processus.

    asyncio applique une limite interne (64 KiB par défaut) au-delà de
    laquelle readline() échoue; certaines réponses JSON-RPC tiennent sur une
    seule très longue ligne. Configurable via MCP_HTTP_STDIO_STREAM_LIMIT.
    """
    raw = os.getenv(STREAM_LIMIT_ENV_VAR)
    if raw is None:
        return DEFAULT_STREAM_LIMIT
    try:
        configured = int(raw.strip())
    except ValueError:
        return DEFAULT_STREAM_LIMIT
    if configured <= 0:
        return DEFAULT_STREAM_LIMIT
    return min(MAX_STREAM_LIMIT, max(MIN_STREAM_LIMIT, configured))


def build_config(
    stdio: Optional[str] = None,
    env_vars: Iterable[str] = (),
    header_env_mappings: Iterable[str] = (),
    header_arg_mappings: Iterable[str] = (),
    port: Optional[int] = None,
    host: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    timeouts: Optional[Dict[str, float]] = None,
    dynamic_headers: Optional[bool] = None,
    args_template: Iterable[str] = (),
    file_config: Optional[Dict[str, Any]] = None,
) -> AdapterConfig:
    """
    Construit la configuration immuable de l'adaptateur.

    Les valeurs CLI priment sur celles du fichier; pour les listes répétables
    (--env, --header-env, --header-arg), les entrées CLI s'ajoutent après
    celles du fichier et écrasent les clés identiques.

    Raises:
        ConfigurationError: Commande manquante ou syntaxe de mapping invalide
    """
    file_config = file_config or {}

    command_parts = parse_stdio_command(stdio or file_config.get("stdio", ""))

    env_map = parse_env_vars(
        _pairs_from_table(file_config.get("env"), "env") + list(env_vars)
    )
    header_env_map = parse_mapping(
        _pairs_from_table(file_config.get("header_env"), "header_env") + list(header_env_mappings),
        config_key="header_env",
    )
    header_arg_map = parse_mapping(
        _pairs_from_table(file_config.get("header_arg"), "header_arg") + list(header_arg_mappings),
        config_key="header_arg",
    )

    resolved_port = port if port is not None else int(file_config.get("port", DEFAULT_PORT))
    if not 0 <= resolved_port <= 65535:
        raise ConfigurationError(
            message=f"Port invalide: {resolved_port}",
            config_key="port"
        )

    resolved_level = (log_level or file_config.get("log_level", "info")).lower()
    if resolved_level not in LOG_LEVELS:
        raise ConfigurationError(
            message=f"Niveau de log invalide: {resolved_level} (attendu: {', '.join(LOG_LEVELS)})",
            config_key="log_level"
        )

    resolved_format = (log_format or file_config.get("log_format", "json")).lower()
    if resolved_format not in LOG_FORMATS:
        raise ConfigurationError(
            message=f"Format de log invalide: {resolved_format}",
            config_key="log_format"
        )

    timeout_values: Dict[str, Any] = dict(file_config.get("timeouts", {}))
    timeout_values.update({k: v for k, v in (timeouts or {}).items() if v is not None})
    try:
        resolved_timeouts = Timeouts.from_dict(timeout_values)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(
            message=f"Timeouts invalides: {e}",
            config_key="timeouts"
        ) from e
    for name in ("read", "process", "shutdown"):
        if getattr(resolved_timeouts, name) <= 0:
            raise ConfigurationError(
                message=f"Timeout '{name}' doit être strictement positif",
                config_key="timeouts"
            )

    template = list(args_template) or list(file_config.get("args_template", []))

    return AdapterConfig(
        command=command_parts[0],
        args=tuple(command_parts[1:]),
        default_env=env_map,
        header_env_mapping=header_env_map,
        header_arg_mapping=header_arg_map,
        host=resolve_host(host or file_config.get("host")),
        port=resolved_port,
        timeouts=resolved_timeouts,
        log_level=resolved_level,
        log_format=resolved_format,
        dynamic_headers=bool(
            dynamic_headers if dynamic_headers is not None
            else file_config.get("dynamic_headers", False)
        ),
        args_template=tuple(str(t) for t in template),
        stream_limit=get_stream_limit_bytes(),
    )
