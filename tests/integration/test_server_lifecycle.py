"""
Tests d'intégration: vrai serveur uvicorn sur un port éphémère.
"""
import asyncio

import httpx
import pytest

from mcp_http_adapter.services import AdapterServer, ServerState

pytestmark = pytest.mark.integration


async def _wait_for_state(server: AdapterServer, state: ServerState, timeout: float = 10.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while server.state is not state:
        if loop.time() > deadline:
            raise AssertionError(f"état {state.value} non atteint (actuel: {server.state.value})")
        await asyncio.sleep(0.05)


@pytest.mark.asyncio
async def test_serve_request_and_shutdown(make_config):
    server = AdapterServer(make_config(header_env_mapping={"X-Slack-Token": "SLACK_TOKEN"}))
    assert server.state is ServerState.STOPPED

    serve_task = asyncio.create_task(server.serve())
    try:
        await _wait_for_state(server, ServerState.SERVING)
        port = server.bound_port
        assert port

        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{port}", timeout=30) as client:
            resp = await client.post(
                "/mcp",
                json={"jsonrpc": "2.0", "id": 1, "method": "debug/echo"},
                headers={"X-Slack-Token": "xoxb-live"},
            )
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"
        assert resp.json()["result"]["env"]["SLACK_TOKEN"] == "xoxb-live"
    finally:
        server.request_shutdown()
        await asyncio.wait_for(serve_task, timeout=10)

    assert server.state is ServerState.STOPPED


@pytest.mark.asyncio
async def test_request_shutdown_before_serve_is_noop(make_config):
    server = AdapterServer(make_config())
    server.request_shutdown()
    assert server.state is ServerState.STOPPED
    assert server.bound_port is None


def test_uvicorn_config_uses_adapter_settings(make_config):
    server = AdapterServer(make_config(port=9123))
    uv_config = server.build_uvicorn_config()
    assert uv_config.host == "127.0.0.1"
    assert uv_config.port == 9123
    assert uv_config.timeout_graceful_shutdown == 2.0
    assert uv_config.access_log is False
