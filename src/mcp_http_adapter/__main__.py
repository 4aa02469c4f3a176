"""
Point d'entrée pour `python -m mcp_http_adapter` et `mcp-http-adapter`.
"""
import argparse
import asyncio
import sys

from .config.loader import build_config, load_config_file
from .core.constants import LOG_FORMATS, LOG_LEVELS
from .core.exceptions import ConfigurationError
from .core.logger_config import configure_logging
from .services.server import create_server

USAGE_EXAMPLES = """
Exemples:
  # Démarrage rapide
  mcp-http-adapter --stdio "npx -y @modelcontextprotocol/server-filesystem /data"

  # Avec variables d'environnement
  mcp-http-adapter --stdio "npx -y server-github" --env "GITHUB_TOKEN=ghp_xxx"

  # Avec mappings d'en-têtes (en-tête -> env / argument)
  mcp-http-adapter --stdio "npx -y server-slack" \\
    --header-env "X-Slack-Token=SLACK_TOKEN" \\
    --header-arg "X-Team-Id=team-id"

  # Host de bind personnalisé (variable HOST)
  HOST=127.0.0.1 mcp-http-adapter --stdio "npx -y server-filesystem /data"
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mcp-http-adapter",
        description="Expose un serveur MCP stdio via HTTP (POST /mcp)",
        epilog=USAGE_EXAMPLES,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--stdio", help="Commande stdio (ex: 'npx -y server-filesystem /data')")
    parser.add_argument("--env", action="append", default=[], metavar="KEY=VALUE",
                        help="Variable d'environnement par défaut (répétable)")
    parser.add_argument("--header-env", action="append", default=[], metavar="HEADER=ENV_VAR",
                        help="Mapping en-tête -> variable d'environnement (répétable)")
    parser.add_argument("--header-arg", action="append", default=[], metavar="HEADER=arg-name",
                        help="Mapping en-tête -> argument --arg-name (répétable)")
    parser.add_argument("--port", type=int, default=None, help="Port d'écoute (défaut: 8080)")
    parser.add_argument("--host", default=None, help="Host de bind (défaut: $HOST ou 0.0.0.0)")
    parser.add_argument("--log-level", choices=LOG_LEVELS, default=None, help="Niveau de log (défaut: info)")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None, help="Format des logs (défaut: json)")
    parser.add_argument("--config", default=None, help="Fichier de configuration TOML")
    parser.add_argument("--dynamic-headers", action="store_true", default=None,
                        help="Active les en-têtes X-MCP-Env-*, X-MCP-Arg-* et X-MCP-Args")
    parser.add_argument("--args-template", action="append", default=[], metavar="TEMPLATE",
                        help="Template d'argument pour X-MCP-Arg-* (ex: '{{.path}}', répétable)")
    parser.add_argument("--process-timeout", type=float, default=None, help="Timeout d'exécution (s)")
    parser.add_argument("--read-timeout", type=float, default=None, help="Timeout de lecture du corps (s)")
    parser.add_argument("--shutdown-timeout", type=float, default=None, help="Délai de grâce à l'arrêt (s)")
    return parser


def main(argv=None) -> int:
    """Fonction principale."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        file_config = load_config_file(args.config) if args.config else {}

        if not args.stdio and not file_config.get("stdio"):
            print("Erreur: le flag --stdio est requis", file=sys.stderr)
            print(USAGE_EXAMPLES, file=sys.stderr)
            return 1

        config = build_config(
            stdio=args.stdio,
            env_vars=args.env,
            header_env_mappings=args.header_env,
            header_arg_mappings=args.header_arg,
            port=args.port,
            host=args.host,
            log_level=args.log_level,
            log_format=args.log_format,
            timeouts={
                "process": args.process_timeout,
                "read": args.read_timeout,
                "shutdown": args.shutdown_timeout,
            },
            dynamic_headers=args.dynamic_headers,
            args_template=args.args_template,
            file_config=file_config,
        )
    except ConfigurationError as e:
        print(f"❌ Erreur de configuration: {e}", file=sys.stderr)
        return 1

    configure_logging(config.log_level, config.log_format)

    print(f"🚀 Démarrage de MCP HTTP Adapter sur {config.bind_address} ({config.command})", file=sys.stderr)

    server = create_server(config)
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        pass

    return 0


if __name__ == "__main__":
    sys.exit(main())
