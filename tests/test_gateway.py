"""Tests for the MCP HTTP/SSE gateway (mcp_server/gateway.py).

Uses httpx.AsyncClient with ASGITransport, so no real server is started.
Long-lived event streams are exercised through ``event_stream`` directly.
"""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
import pytest_asyncio

from mcdcoupon.config import ConfigStore, Settings
from mcdcoupon.main import build_core, create_mcp_app
from mcdcoupon.mcp_server.gateway import StreamHub, _open_stream, event_stream, sse_frame

from .conftest import FakeVendor


@pytest_asyncio.fixture
async def mcp_app(settings: Settings, store: ConfigStore, vendor: FakeVendor):
    core = build_core(settings, store, transport=vendor.transport())
    app = create_mcp_app(core)
    yield app
    await core.client.aclose()


@pytest_asyncio.fixture
async def http(mcp_app):
    transport = httpx.ASGITransport(app=mcp_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


LIST_TOOLS = {"jsonrpc": "2.0", "id": 1, "method": "tools/list"}


# ====================================================================
# POST endpoints
# ====================================================================

class TestPost:

    @pytest.mark.parametrize("path", ["/", "/mcp"])
    async def test_tools_list(self, http: httpx.AsyncClient, path: str):
        resp = await http.post(path, json=LIST_TOOLS)
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] == 1
        assert len(body["result"]["tools"]) == 4

    async def test_notification_is_accepted_without_body(self, http: httpx.AsyncClient):
        resp = await http.post("/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"})
        assert resp.status_code == 202
        assert resp.content == b""

    async def test_malformed_json(self, http: httpx.AsyncClient):
        resp = await http.post("/mcp", content=b"{oops", headers={"content-type": "application/json"})
        assert resp.status_code == 200
        body = resp.json()
        assert body["id"] is None
        assert body["error"]["code"] == -32700

    async def test_batch(self, http: httpx.AsyncClient):
        resp = await http.post("/mcp", json=[LIST_TOOLS, {**LIST_TOOLS, "id": 2, "method": "nope"}])
        body = resp.json()
        assert [r["id"] for r in body] == [1, 2]

    async def test_event_stream_only_client(self, http: httpx.AsyncClient):
        resp = await http.post("/mcp", json=LIST_TOOLS, headers={"accept": "text/event-stream"})
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        data_lines = [line[6:] for line in resp.text.splitlines() if line.startswith("data: ")]
        assert json.loads("".join(data_lines))["id"] == 1

    async def test_tool_call_end_to_end(self, http: httpx.AsyncClient, vendor: FakeVendor):
        resp = await http.post(
            "/mcp",
            json={"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "auto-bind-coupons"}},
        )
        result = resp.json()["result"]
        assert result["isError"] is False
        assert result["structuredContent"]["succeeded"] == 3
        assert len(vendor.tool_calls("auto-bind-coupons")) == 1


class TestHealth:

    async def test_health(self, http: httpx.AsyncClient):
        resp = await http.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
        assert resp.json()["streams"] == 0

    async def test_root_without_event_stream_accept(self, http: httpx.AsyncClient):
        resp = await http.get("/")
        assert resp.json()["service"] == "mcd-coupon"


# ====================================================================
# Event-stream sessions
# ====================================================================

class TestMessages:

    async def test_unknown_session(self, http: httpx.AsyncClient):
        resp = await http.post("/messages", params={"session_id": "missing"}, json=LIST_TOOLS)
        assert resp.status_code == 404

    async def test_reply_goes_to_stream(self, http: httpx.AsyncClient, mcp_app):
        hub: StreamHub = mcp_app.state.stream_hub
        session_id = hub.open()
        resp = await http.post("/messages", params={"session_id": session_id}, json=LIST_TOOLS)
        assert resp.status_code == 202
        queued = hub.get(session_id).get_nowait()
        assert queued["id"] == 1
        assert "tools" in queued["result"]

    async def test_notification_queues_nothing(self, http: httpx.AsyncClient, mcp_app):
        hub: StreamHub = mcp_app.state.stream_hub
        session_id = hub.open()
        resp = await http.post(
            "/messages",
            params={"session_id": session_id},
            json={"jsonrpc": "2.0", "method": "tools/list"},
        )
        assert resp.status_code == 202
        assert hub.get(session_id).empty()


class TestEventStream:

    async def test_frames_until_disconnect(self):
        hub = StreamHub()
        request = MagicMock()
        request.is_disconnected = AsyncMock(side_effect=[False, False, True])
        stream = event_stream(request, hub, heartbeat_s=0.01)

        endpoint = await stream.__anext__()
        session_id = endpoint.split("session_id=")[1].strip()
        assert endpoint == f"event: endpoint\ndata: /messages?session_id={session_id}\n\n"
        hub.publish(session_id, {"jsonrpc": "2.0", "id": 1, "result": {}})
        frames = [frame async for frame in stream]

        assert frames[0].startswith("event: message\n")
        assert '"id": 1' in frames[0]
        assert frames[1] == ": ping\n\n"
        assert len(frames) == 2
        assert hub.get(session_id) is None

    async def test_no_session_until_streaming_starts(self):
        hub = StreamHub()
        request = MagicMock()
        request.is_disconnected = AsyncMock(return_value=False)
        stream = event_stream(request, hub, heartbeat_s=0.01)
        assert len(hub) == 0
        await stream.aclose()
        assert len(hub) == 0

    async def test_session_dropped_when_client_leaves_after_first_frame(self):
        hub = StreamHub()
        request = MagicMock()
        request.is_disconnected = AsyncMock(return_value=False)
        stream = event_stream(request, hub, heartbeat_s=0.01)
        await stream.__anext__()
        assert len(hub) == 1
        await stream.aclose()
        assert len(hub) == 0

    async def test_open_stream_response_registers_nothing(self, mcp_app):
        hub: StreamHub = mcp_app.state.stream_hub
        request = MagicMock()
        request.app = mcp_app
        response = _open_stream(request, hub)
        assert response.media_type == "text/event-stream"
        assert len(hub) == 0
        await response.body_iterator.aclose()
        assert len(hub) == 0

class TestStreamHub:

    def test_publish_to_closed_session(self):
        hub = StreamHub()
        session_id = hub.open()
        hub.close(session_id)
        assert hub.publish(session_id, {"x": 1}) is False
        assert len(hub) == 0

    def test_sse_frame_multiline(self):
        assert sse_frame("message", "a\nb") == "event: message\ndata: a\ndata: b\n\n"
