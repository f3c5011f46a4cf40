"""
MCP HTTP server tests for CloudCost

Exercises the observability endpoints and the JSON-RPC methods served on
/mcp: initialize, tools/list, tools/call and the protocol error codes.
"""

import threading

import pytest
from fastapi.testclient import TestClient

import cloudcost.main
from cloudcost.main import app
from cloudcost.rpc import PROTOCOL_VERSION


@pytest.fixture
def client():
    """Create a test client for the FastAPI app."""
    return TestClient(app)


def rpc(client, method, params=None, id_=1):
    body = {"jsonrpc": "2.0", "id": id_, "method": method}
    if params is not None:
        body["params"] = params
    response = client.post("/mcp", json=body)
    assert response.status_code == 200
    return response.json()


def test_healthz_endpoint(client):
    """Test that /healthz endpoint returns 200 OK."""
    response = client.get("/healthz")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert "timestamp" in data


def test_readyz_endpoint(client):
    """Test that /readyz reports the loaded catalog."""
    response = client.get("/readyz")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["checks"]["catalog"] == "ok"
    assert data["checks"]["models"] > 0


def test_readyz_endpoint_catalog_failure(client, monkeypatch):
    """Test that /readyz returns 503 when the catalog can't be read."""
    def broken():
        raise OSError("pricing directory missing")

    monkeypatch.setattr("cloudcost.main.get_catalog", broken)
    response = client.get("/readyz")
    assert response.status_code == 503
    assert "not ready" in response.json()["detail"]


def test_root_endpoint(client):
    """Test that / describes the server."""
    data = client.get("/").json()
    assert data["name"] == "cloudcost-mcp"
    assert data["endpoint"] == "/mcp"
    assert data["tools"] == 21


def test_initialize(client):
    """Initialize returns protocol version, capabilities and server info."""
    result = rpc(client, "initialize", {"protocolVersion": PROTOCOL_VERSION})["result"]
    assert result["protocolVersion"] == PROTOCOL_VERSION
    assert result["capabilities"]["tools"]["listChanged"] is False
    assert result["serverInfo"]["name"] == "cloudcost-mcp"


def test_tools_list(client):
    """All tools are listed with their schemas."""
    result = rpc(client, "tools/list")["result"]
    names = [t["name"] for t in result["tools"]]
    assert len(names) == 21
    assert "finance.break_even" in names
    assert result["nextCursor"] is None


def test_tools_call_success(client):
    """A successful call returns text and structured content."""
    reply = rpc(client, "tools/call", {"name": "ai.estimate_openai_cost",
                                       "arguments": {"model": "gpt-4o", "input_tokens": 1000, "output_tokens": 500}})
    result = reply["result"]
    assert result["isError"] is False
    assert result["structuredContent"]["total_cost"] == 0.0075
    assert result["content"][0]["type"] == "text"


def test_tools_call_invalid_arguments(client):
    """Schema violations are JSON-RPC invalid params naming the field."""
    reply = rpc(client, "tools/call", {"name": "ai.estimate_openai_cost", "arguments": {"input_tokens": -1}})
    assert reply["error"]["code"] == -32602
    assert reply["error"]["data"]["field"] == "input_tokens"


def test_tools_call_unknown_tool(client):
    """Unknown tools are invalid params."""
    reply = rpc(client, "tools/call", {"name": "ai.nope", "arguments": {}})
    assert reply["error"]["code"] == -32602
    assert "ai.nope" in reply["error"]["message"]


def test_tools_call_unknown_model(client):
    """Catalog misses are tool errors listing the valid names."""
    reply = rpc(client, "tools/call", {"name": "ai.estimate_openai_cost", "arguments": {"model": "gpt-9"}})
    result = reply["result"]
    assert result["isError"] is True
    assert result["structuredContent"]["error"] == "unknown_model"
    assert "gpt-4o" in result["structuredContent"]["valid"]


def test_ping(client):
    """Ping answers with an empty result."""
    assert rpc(client, "ping")["result"] == {}


def test_unknown_method(client):
    """Unknown methods return -32601."""
    reply = rpc(client, "resources/list")
    assert reply["error"]["code"] == -32601


def test_parse_error(client):
    """Malformed JSON returns -32700."""
    response = client.post("/mcp", content="{not json", headers={"Content-Type": "application/json"})
    assert response.status_code == 200
    assert response.json()["error"]["code"] == -32700


def test_invalid_request(client):
    """Requests without jsonrpc 2.0 are rejected."""
    response = client.post("/mcp", json={"id": 3, "method": "ping"})
    assert response.json()["error"]["code"] == -32600


def test_notification_accepted(client):
    """Notifications get no JSON-RPC reply."""
    response = client.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
    assert response.status_code == 202


def test_metrics_endpoint(client):
    """Tool calls show up in the Prometheus metrics."""
    rpc(client, "tools/call", {"name": "finance.break_even", "arguments": {}})
    response = client.get("/metrics")
    assert response.status_code == 200
    assert "text/plain" in response.headers["content-type"]
    assert 'cloudcost_tool_calls_total{tool="finance.break_even",status="ok"}' in response.text


def test_slow_tool_call_does_not_block_server(monkeypatch):
    """A tool call stuck on outbound HTTP leaves health checks answering."""
    entered, released = threading.Event(), threading.Event()
    seen = {}
    dispatch = cloudcost.main.handle_request

    def stalled(body, ctx):
        entered.set()
        seen["released"] = released.wait(timeout=5)
        return dispatch(body, ctx)

    monkeypatch.setattr("cloudcost.main.handle_request", stalled)
    replies = []
    body = {"jsonrpc": "2.0", "id": 1, "method": "tools/call",
            "params": {"name": "finance.break_even", "arguments": {}}}

    with TestClient(app) as client:
        worker = threading.Thread(target=lambda: replies.append(client.post("/mcp", json=body)))
        worker.start()
        assert entered.wait(timeout=5)
        assert client.get("/healthz").status_code == 200
        released.set()
        worker.join(timeout=10)

    assert seen["released"] is True
    assert replies[0].json()["result"]["structuredContent"]["break_even_point"] == 10.0
