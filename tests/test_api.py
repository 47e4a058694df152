"""Tests for API routes."""
import pytest
from unittest.mock import patch

from fastapi import FastAPI
from fastapi.testclient import TestClient

from deep_research.api.host import FastAPIHost
from deep_research.config import Settings
from deep_research.plugin import register


@pytest.fixture
def host():
    settings = Settings(_env_file=None, exa_api_key="", firecrawl_api_key="", perplexity_api_key="")
    with patch("deep_research.config.Settings", return_value=settings):
        host = FastAPIHost({"exaApiKey": "test"})
        register(host)
        yield host


@pytest.fixture
def client(host):
    app = FastAPI()
    app.include_router(host.router())
    return TestClient(app)


def test_health():
    from deep_research.main import app

    response = TestClient(app).get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "deep-research"


def test_list_tools(client):
    response = client.get("/api/tools")
    assert response.status_code == 200
    tools = response.json()["tools"]
    assert len(tools) == 8
    names = [t["name"] for t in tools]
    assert "deep_search" in names
    assert "scrape_and_extract" in names
    assert all(t["parameters"]["type"] == "object" for t in tools)


def test_call_tool_rejects_missing_required_params(client):
    response = client.post("/api/tools/site_search", json={"query": "q"})
    assert response.status_code == 422
    assert "domains" in response.json()["detail"]


def test_call_unknown_tool(client):
    response = client.post("/api/tools/nope", json={})
    assert response.status_code == 404


def test_call_tool_returns_text_content(client, host):
    async def fake_handler(params):
        return f"report for {params['query']}"

    host.tools["deep_search"].handler = fake_handler

    response = client.post("/api/tools/deep_search", json={"query": "rust"})
    assert response.status_code == 200
    assert response.json() == {"content": [{"type": "text", "text": "report for rust"}]}


def test_research_command(client):
    response = client.get("/api/commands/research", params={"args": "AI regulation"})
    assert response.status_code == 200
    assert response.json()["text"].startswith('Starting deep research on: "AI regulation"')

    response = client.get("/api/commands/research")
    assert response.json()["text"].startswith("Usage: /research <topic>")


def test_status_command_ignores_args(client):
    response = client.get("/api/commands/research-status", params={"args": "ignored"})
    assert response.status_code == 200
    assert "Exa.ai:     configured (config)" in response.json()["text"]


def test_status_rpc(client):
    response = client.post("/api/rpc/deep-research.status", json={})
    assert response.status_code == 200
    data = response.json()
    assert data["ok"] is True
    assert data["result"]["tools"] == 8
    assert data["result"]["services"] == {"exa": True, "firecrawl": False, "perplexity": False}


def test_unknown_rpc(client):
    response = client.post("/api/rpc/nope", json={})
    assert response.json() == {"ok": False, "result": None, "error": "Unknown method: nope"}
