"""Application wiring: the shared core, the FastAPI apps, and the serve loop."""

from __future__ import annotations

import asyncio
import logging
import sys
import webbrowser
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import AsyncGenerator, Callable, Optional

import httpx
import uvicorn
from fastapi import FastAPI

from mcdcoupon import __version__
from mcdcoupon.activity import ActivityLog
from mcdcoupon.api.routes import router as web_router
from mcdcoupon.config import ConfigStore, Settings
from mcdcoupon.errors import ConfigError
from mcdcoupon.mcp_server.dispatcher import JsonRpcDispatcher
from mcdcoupon.mcp_server.gateway import StreamHub
from mcdcoupon.mcp_server.gateway import router as mcp_router
from mcdcoupon.mcp_server.ports import advertised_url, negotiate_port
from mcdcoupon.mcp_server.tool_registry import ToolRegistry
from mcdcoupon.tui import TerminalApp, prompt_for_token
from mcdcoupon.upstream.http_client import CouponClient

logger = logging.getLogger("mcdcoupon")


@dataclass
class Core:
    """Everything the front-ends share: one store, one client, one registry."""

    settings: Settings
    store: ConfigStore
    client: CouponClient
    registry: ToolRegistry
    activity: ActivityLog


def build_core(
    settings: Settings,
    store: Optional[ConfigStore] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Core:
    if store is None:
        store = ConfigStore.load(Path(settings.config_path) if settings.config_path else None)
    client = CouponClient(settings, store, transport=transport)
    activity = ActivityLog()
    activity.add("Application started")
    return Core(
        settings=settings,
        store=store,
        client=client,
        registry=ToolRegistry(client),
        activity=activity,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Close the vendor HTTP client when the listener shuts down."""
    logger.info("mcd-coupon v%s starting up", __version__)
    yield
    logger.info("Shutting down…")
    await app.state.client.aclose()


def _attach_core(app: FastAPI, core: Core) -> None:
    app.state.settings = core.settings
    app.state.store = core.store
    app.state.client = core.client
    app.state.registry = core.registry
    app.state.activity = core.activity


def create_web_app(core: Core) -> FastAPI:
    """Browser front-end."""
    app = FastAPI(title="mcd-coupon", version=__version__, lifespan=lifespan)
    _attach_core(app, core)
    app.include_router(web_router)
    return app


def create_mcp_app(core: Core) -> FastAPI:
    """JSON-RPC tool server."""
    app = FastAPI(
        title="mcd-coupon MCP server",
        description="Coupon tools exposed over JSON-RPC 2.0 (HTTP and Server-Sent Events).",
        version=__version__,
        lifespan=lifespan,
    )
    _attach_core(app, core)
    app.state.dispatcher = JsonRpcDispatcher(core.registry)
    app.state.stream_hub = StreamHub()
    app.include_router(mcp_router)
    return app


async def serve(
    app: FastAPI,
    settings: Settings,
    host: str,
    start_port: int,
    on_bound: Optional[Callable[[int], None]] = None,
) -> None:
    """Bind the first free port from *start_port* and serve *app* on it."""
    sock, port = negotiate_port(start_port, settings.port_scan_end, host=host)
    if on_bound is not None:
        on_bound(port)
    server = uvicorn.Server(uvicorn.Config(app, log_level=settings.log_level.lower()))
    await server.serve(sockets=[sock])


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ====================================================================
# Modes
# ====================================================================

def run_html(core: Core) -> int:
    settings = core.settings
    if core.store.has_valid_token():
        core.activity.add("Loaded saved token")

    def on_bound(port: int) -> None:
        url = advertised_url(settings.html_host, port)
        logger.info("Web UI available at %s", url)
        print(f"Web UI available at {url}")
        if settings.open_browser:
            webbrowser.open(url)

    app = create_web_app(core)
    asyncio.run(serve(app, settings, settings.html_host, settings.html_port, on_bound))
    return 0


def run_tui(core: Core) -> int:
    app = TerminalApp(core.client, core.store, core.registry, core.activity)

    async def _run() -> int:
        try:
            return await app.run()
        finally:
            await core.client.aclose()

    return asyncio.run(_run())


def run_mcp_server(core: Core) -> int:
    settings = core.settings
    store = core.store

    def on_bound(port: int) -> None:
        url = advertised_url(settings.mcp_host, port, "/mcp")
        try:
            store.record_bound_port(port, url)
        except ConfigError as exc:
            logger.warning("Could not record bound port: %s", exc)
        logger.info("MCP server listening on %s", url)

    async def _run() -> int:
        if not store.has_valid_token():
            if not sys.stdin.isatty():
                print("Error: no token configured.")
                print(f"Set one in {store.path} or run another mode first.")
                await core.client.aclose()
                return 1
            if not await prompt_for_token(core.client, store, core.activity):
                await core.client.aclose()
                return 1
        start_port = store.get().mcp_server_port or settings.mcp_port
        await serve(create_mcp_app(core), settings, settings.mcp_host, start_port, on_bound)
        return 0

    return asyncio.run(_run())
