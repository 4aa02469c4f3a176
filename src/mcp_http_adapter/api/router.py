"""
Router principal de l'API.
"""
from fastapi import APIRouter

from .routes import mcp

# Router principal
api_router = APIRouter()

# Endpoint unique: POST /mcp
api_router.include_router(mcp.router, prefix="", tags=["mcp"])
