"""
Routes API par domaine.
"""

from . import mcp

__all__ = [
    "mcp",
]
