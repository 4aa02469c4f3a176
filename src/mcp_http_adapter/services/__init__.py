"""
Services: serveur HTTP et cycle de vie.
"""

from .server import AdapterServer, ServerState, create_server

__all__ = [
    "AdapterServer",
    "ServerState",
    "create_server",
]
