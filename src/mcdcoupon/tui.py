"""Line-oriented terminal front-end."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from mcdcoupon.activity import ActivityLog
from mcdcoupon.config import ConfigStore, normalize_token
from mcdcoupon.errors import ConfigError, CouponError
from mcdcoupon.mcp_server.tool_registry import ToolRegistry
from mcdcoupon.upstream.http_client import CouponClient

logger = logging.getLogger(__name__)

MENU_ACTIONS: dict[str, tuple[str, str]] = {
    "1": ("available-coupons", "Available coupons"),
    "2": ("auto-bind-coupons", "Claim all coupons"),
    "3": ("my-coupons", "My coupons"),
    "4": ("now-time-info", "Server time"),
}

ReadLine = Callable[[str], str]
Write = Callable[[str], None]


async def prompt_for_token(
    client: CouponClient,
    store: ConfigStore,
    activity: ActivityLog,
    read_line: ReadLine = input,
    write: Write = print,
) -> bool:
    """Ask for a token until one validates; ``False`` if the operator gives up."""
    while True:
        try:
            raw = await asyncio.to_thread(read_line, "Token (blank to quit): ")
        except EOFError:
            return False
        token = normalize_token(raw)
        if not token:
            return False
        try:
            valid = await client.validate_token(token)
        except CouponError as exc:
            activity.add(f"Validation failed: {exc}")
            write(f"Validation failed: {exc}")
            continue
        if not valid:
            activity.add("Invalid token, please try again")
            write("Invalid token, please try again")
            continue
        try:
            store.set_token(token)
        except ConfigError as exc:
            write(f"Token accepted but not saved: {exc}")
            return True
        activity.add("Token verified")
        write(f"Token saved to {store.path}")
        return True


class TerminalApp:
    """Menu loop over the tool registry."""

    def __init__(
        self,
        client: CouponClient,
        store: ConfigStore,
        registry: ToolRegistry,
        activity: ActivityLog,
        *,
        read_line: ReadLine = input,
        write: Write = print,
    ) -> None:
        self._client = client
        self._store = store
        self._registry = registry
        self._activity = activity
        self._read_line = read_line
        self._write = write

    def _menu(self) -> str:
        lines = ["", "=== mcd-coupon ==="]
        lines.extend(f"  [{key}] {label}" for key, (_, label) in MENU_ACTIONS.items())
        lines.extend(["  [r] Reset token", "  [q] Quit"])
        return "\n".join(lines)

    async def _ensure_token(self) -> bool:
        if self._store.has_valid_token():
            self._activity.add("Loaded saved token")
            return True
        self._write("No token configured.")
        return await prompt_for_token(self._client, self._store, self._activity, self._read_line, self._write)

    async def run_action(self, tool_name: str, label: str) -> None:
        self._activity.add(f"{label}...")
        try:
            output = await self._registry.invoke(tool_name, {})
        except CouponError as exc:
            self._activity.add(f"{label} failed: {exc}")
            self._write(f"{label} failed: {exc}")
            return
        self._activity.add(f"{label} done")
        self._write(output.text)

    async def run(self) -> int:
        if not await self._ensure_token():
            self._write("No token; exiting.")
            return 1
        while True:
            self._write(self._menu())
            try:
                choice = (await asyncio.to_thread(self._read_line, "> ")).strip().lower()
            except EOFError:
                return 0
            if choice in ("q", "quit", "exit"):
                return 0
            if choice == "r":
                try:
                    self._store.reset_token()
                except ConfigError as exc:
                    self._write(f"Reset failed: {exc}")
                    continue
                self._activity.add("Token reset")
                if not await prompt_for_token(
                    self._client, self._store, self._activity, self._read_line, self._write
                ):
                    return 0
                continue
            action = MENU_ACTIONS.get(choice)
            if action is None:
                self._write(f"Unknown option: {choice}")
                continue
            await self.run_action(*action)
            self._write("\n".join(["", "--- log ---", *self._activity.tail(5)]))
