"""Shared test fixtures for mcd-coupon."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Optional

import httpx
import pytest
import pytest_asyncio

from mcdcoupon.config import ConfigStore, Settings
from mcdcoupon.models import ServerConfigRecord
from mcdcoupon.upstream.http_client import CouponClient

TEST_TOKEN = "Bearer test-token-1234567890"

AVAILABLE_MARKDOWN = """# 可领取优惠券
共 3 张

## 麦辣鸡腿堡买一送一
- **优惠**: ¥19.9
- **有效期**: 2025-01-01 00:00 至 2025-01-31 23:59
- **标签**: 汉堡
<img src="https://img.example/burger.png" alt="burger" />

## 薯条中份
- **优惠券ID**: C-002
- **有效期**: 2025年2月1日-2025年2月28日

## 咖啡
- **优惠**: 5元
"""

# What the vendor still lists when it could not bind the fries coupon.
FRIES_LEFT_MARKDOWN = """# 可领取优惠券

## 薯条中份
- **优惠券ID**: C-002
- **有效期**: 2025年2月1日-2025年2月28日
"""

MINE_MARKDOWN = """# 我的优惠券

## 麦乐鸡5块
- **优惠**: ¥9.9
- **有效期**: 2025-03-01 至 2025-03-15
- **领取时间**: 2025-02-27 10:11:12
"""


def tool_result(text: str, *, is_error: bool = False, structured: Optional[dict[str, Any]] = None) -> dict[str, Any]:
    result: dict[str, Any] = {"content": [{"type": "text", "text": text}], "isError": is_error}
    if structured is not None:
        result["structuredContent"] = structured
    return result


ToolHandler = Callable[[dict[str, Any]], Any]


class FakeVendor:
    """In-memory stand-in for the vendor's JSON-RPC tool endpoint.

    ``tools`` maps a tool name to a handler receiving the call arguments and
    returning either a tool result dict or an :class:`httpx.Response`.
    Handlers may also raise httpx exceptions to simulate transport failures.

    ``auto-bind-coupons`` is a batch tool like the real one: it takes no
    arguments and replaces the available listing with ``left_after_claim``.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.available = AVAILABLE_MARKDOWN
        self.left_after_claim = "# 可领取优惠券\n共 0 张\n"
        self.claim_message = "领取成功"
        self.tools: dict[str, ToolHandler] = {
            "available-coupons": lambda args: tool_result(self.available),
            "my-coupons": lambda args: tool_result(MINE_MARKDOWN),
            "now-time-info": lambda args: tool_result("当前时间: 2025-03-01 12:34:56 (UTC+8)"),
            "auto-bind-coupons": self._bind_all,
        }

    def _bind_all(self, args: dict[str, Any]) -> dict[str, Any]:
        self.available = self.left_after_claim
        return tool_result(self.claim_message)

    def tool_calls(self, name: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["body"].get("params", {}).get("name") == name]

    def handle(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.calls.append({"headers": dict(request.headers), "body": body})
        if body["method"] == "system.listMethods":
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": []})
        params = body.get("params", {})
        handler = self.tools.get(params.get("name"))
        if handler is None:
            return httpx.Response(
                200,
                json={"jsonrpc": "2.0", "id": body["id"], "error": {"code": -32601, "message": "Tool not found"}},
            )
        outcome = handler(params.get("arguments") or {})
        if isinstance(outcome, httpx.Response):
            return outcome
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": outcome})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upstream_url="https://vendor.test/mcp",
        upstream_timeout_s=5.0,
        config_path=str(tmp_path / "config.json"),
        open_browser=False,
        sse_heartbeat_s=0.05,
    )


@pytest.fixture
def store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(
        tmp_path / "config.json",
        ServerConfigRecord(token=TEST_TOKEN),
        fallback_path=tmp_path / "cwd-config.json",
    )


@pytest.fixture
def empty_store(tmp_path: Path) -> ConfigStore:
    return ConfigStore(tmp_path / "config.json", fallback_path=tmp_path / "cwd-config.json")


@pytest.fixture
def vendor() -> FakeVendor:
    return FakeVendor()


@pytest_asyncio.fixture
async def client(settings: Settings, store: ConfigStore, vendor: FakeVendor):
    coupon_client = CouponClient(settings, store, transport=vendor.transport())
    yield coupon_client
    await coupon_client.aclose()
