"""
Configuration des tests pytest.
"""
import os
import sys
from pathlib import Path

import pytest

# Ajoute src au path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from mcp_http_adapter.config.settings import AdapterConfig, Timeouts  # noqa: E402

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def pytest_configure(config):
    """Déclare les marqueurs du projet."""
    config.addinivalue_line("markers", "unit: test unitaire (sans réseau)")
    config.addinivalue_line("markers", "integration: test avec un vrai serveur uvicorn")


@pytest.fixture
def fake_server_path() -> str:
    """Chemin du faux serveur MCP stdio."""
    return str(FIXTURES_DIR / "fake_mcp_server_stdio.py")


@pytest.fixture
def make_config(fake_server_path):
    """Factory de configuration pointant vers le faux serveur MCP."""

    def _make(**overrides) -> AdapterConfig:
        values = {
            "command": sys.executable,
            "args": (fake_server_path,),
            "host": "127.0.0.1",
            "port": 0,
            "timeouts": Timeouts(read=5.0, process=10.0, shutdown=2.0),
            "log_level": "debug",
        }
        values.update(overrides)
        return AdapterConfig(**values)

    return _make
