"""
MCP HTTP Adapter - expose un serveur MCP stdio via HTTP.
"""

__version__ = "1.0.0"
