"""HTTP and Server-Sent Events front for the JSON-RPC dispatcher.

Every transport hands the raw body to the same :class:`JsonRpcDispatcher`,
so plain POSTs and event-stream sessions behave identically.
"""

from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Annotated, Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response, StreamingResponse

from mcdcoupon import __version__
from mcdcoupon.mcp_server.dispatcher import SERVER_NAME, JsonRpcDispatcher

logger = logging.getLogger(__name__)

router = APIRouter()

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def sse_frame(event: str, data: Any) -> str:
    """Encode one event-stream frame."""
    text = data if isinstance(data, str) else json.dumps(data, ensure_ascii=False)
    lines = "".join(f"data: {line}\n" for line in text.splitlines() or [""])
    return f"event: {event}\n{lines}\n"


class StreamHub:
    """Open event streams, keyed by session id, each with its own outbox."""

    def __init__(self) -> None:
        self._streams: dict[str, asyncio.Queue[Any]] = {}

    def open(self) -> str:
        session_id = uuid.uuid4().hex
        self._streams[session_id] = asyncio.Queue()
        logger.info("Event stream %s opened", session_id)
        return session_id

    def close(self, session_id: str) -> None:
        if self._streams.pop(session_id, None) is not None:
            logger.info("Event stream %s closed", session_id)

    def get(self, session_id: str) -> Optional[asyncio.Queue[Any]]:
        return self._streams.get(session_id)

    def publish(self, session_id: str, payload: Any) -> bool:
        queue = self._streams.get(session_id)
        if queue is None:
            return False
        queue.put_nowait(payload)
        return True

    def __len__(self) -> int:
        return len(self._streams)


async def event_stream(
    request: Request,
    hub: StreamHub,
    heartbeat_s: float,
) -> AsyncIterator[str]:
    """Yield the frames of one push session until the client goes away.

    The session is registered only once the response starts streaming, and
    is dropped from the hub however the stream ends.
    """
    session_id = hub.open()
    queue = hub.get(session_id)
    try:
        yield sse_frame("endpoint", f"/messages?session_id={session_id}")
        while not await request.is_disconnected():
            try:
                message = await asyncio.wait_for(queue.get(), timeout=heartbeat_s)
            except asyncio.TimeoutError:
                yield ": ping\n\n"
                continue
            yield sse_frame("message", message)
    finally:
        hub.close(session_id)


def _get_dispatcher(request: Request) -> JsonRpcDispatcher:
    return request.app.state.dispatcher  # type: ignore[return-value]


def _get_hub(request: Request) -> StreamHub:
    return request.app.state.stream_hub  # type: ignore[return-value]


DispatcherDepends = Annotated[JsonRpcDispatcher, Depends(_get_dispatcher)]
HubDepends = Annotated[StreamHub, Depends(_get_hub)]


def _accepts(request: Request, media_type: str) -> bool:
    return media_type in request.headers.get("accept", "")


def _wants_stream_only(request: Request) -> bool:
    return _accepts(request, "text/event-stream") and not _accepts(request, "application/json")


def _open_stream(request: Request, hub: StreamHub) -> StreamingResponse:
    heartbeat_s = request.app.state.settings.sse_heartbeat_s
    return StreamingResponse(
        event_stream(request, hub, heartbeat_s),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def _health(request: Request) -> dict[str, Any]:
    return {
        "status": "ok",
        "service": SERVER_NAME,
        "version": __version__,
        "streams": len(_get_hub(request)),
    }


@router.post("/", tags=["mcp"])
@router.post("/mcp", tags=["mcp"])
async def rpc_endpoint(request: Request, dispatcher: DispatcherDepends) -> Response:
    reply = await dispatcher.handle_raw(await request.body())
    if reply is None:
        return Response(status_code=202)
    if _wants_stream_only(request):
        return StreamingResponse(
            iter([sse_frame("message", reply)]),
            media_type="text/event-stream",
            headers=SSE_HEADERS,
        )
    return JSONResponse(reply)


@router.get("/", tags=["mcp"])
async def root(request: Request, hub: HubDepends) -> Response:
    if _accepts(request, "text/event-stream"):
        return _open_stream(request, hub)
    return JSONResponse(_health(request))


@router.get("/sse", tags=["mcp"])
async def open_event_stream(request: Request, hub: HubDepends) -> StreamingResponse:
    return _open_stream(request, hub)


@router.post("/messages", tags=["mcp"])
async def stream_message(
    request: Request,
    session_id: str,
    dispatcher: DispatcherDepends,
    hub: HubDepends,
) -> Response:
    if hub.get(session_id) is None:
        return JSONResponse({"detail": f"unknown session: {session_id}"}, status_code=404)
    reply = await dispatcher.handle_raw(await request.body())
    if reply is not None:
        hub.publish(session_id, reply)
    return Response(status_code=202)


@router.get("/health", tags=["health"])
async def health(request: Request) -> dict[str, Any]:
    return _health(request)
