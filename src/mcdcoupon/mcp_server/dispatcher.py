"""JSON-RPC 2.0 dispatcher for the MCP tool surface.

The dispatcher keeps no state between messages.  Each inbound body is parsed,
validated, routed through a fixed method table, and answered with exactly one
of ``result``/``error``; notifications (no ``id``) produce no reply.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from mcdcoupon import __version__
from mcdcoupon.errors import (
    CouponError,
    InternalError,
    InvalidParamsError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    RpcError,
)
from mcdcoupon.mcp_server.tool_registry import ToolRegistry, ToolSpec, export_mcp_tool_definition, get_input_schema

logger = logging.getLogger(__name__)

SERVER_NAME = "mcd-coupon"
DEFAULT_PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")
TOOL_ALIAS_PREFIX = "tools/call:"

Response = dict[str, Any]
Reply = Union[Response, list[Response], None]

_NOTIFICATION = object()


def _result(request_id: Any, result: Any) -> Response:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


def _error(request_id: Any, error: RpcError) -> Response:
    return {"jsonrpc": "2.0", "id": request_id, "error": error.to_dict()}


def _tool_result(text: str, data: Optional[dict[str, Any]] = None, *, is_error: bool = False) -> dict[str, Any]:
    result: dict[str, Any] = {
        "content": [{"type": "text", "text": text}],
        "isError": is_error,
    }
    if data is not None:
        result["structuredContent"] = data
    return result


def _params_object(params: Any, method: str) -> dict[str, Any]:
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise InvalidParamsError(f"{method} expects params to be an object")
    return params


def _require_name(params: dict[str, Any], method: str) -> str:
    name = params.get("name")
    if not isinstance(name, str) or not name:
        raise InvalidParamsError(f"{method} requires non-empty params.name", {"method": method})
    return name


def _valid_id(value: Any) -> bool:
    return value is None or (isinstance(value, (str, int, float)) and not isinstance(value, bool))


_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}, "required": []}
_NAME_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {"name": {"type": "string", "description": "Method or tool name."}},
    "required": ["name"],
}

BUILTIN_METHODS: dict[str, dict[str, Any]] = {
    "initialize": {
        "description": "Negotiate the protocol version and report server capabilities.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "protocolVersion": {"type": "string"},
                "capabilities": {"type": "object"},
                "clientInfo": {"type": "object"},
            },
            "required": [],
        },
        "returns": {
            "type": "object",
            "properties": {
                "protocolVersion": {"type": "string"},
                "capabilities": {"type": "object"},
                "serverInfo": {"type": "object"},
            },
        },
        "tags": ["system", "initialization"],
    },
    "tools/list": {
        "description": "List every available coupon tool.",
        "inputSchema": _EMPTY_SCHEMA,
        "returns": {
            "type": "object",
            "properties": {"tools": {"type": "array", "items": {"type": "object"}}},
        },
        "tags": ["tools", "introspection"],
    },
    "tools/call": {
        "description": "Invoke a coupon tool by name.",
        "inputSchema": {
            "type": "object",
            "properties": {
                "name": {"type": "string"},
                "arguments": {"type": "object"},
            },
            "required": ["name"],
        },
        "returns": {
            "type": "object",
            "properties": {
                "content": {"type": "array"},
                "structuredContent": {"type": "object"},
                "isError": {"type": "boolean"},
            },
        },
        "tags": ["system", "tools"],
    },
    "system.listMethods": {
        "description": "List every JSON-RPC method, with tools as tools/call:<name>.",
        "inputSchema": _EMPTY_SCHEMA,
        "returns": {"type": "array", "items": {"type": "string"}},
        "tags": ["system", "introspection"],
    },
    "system.describeMethod": {
        "description": "Describe one method or tool.",
        "inputSchema": _NAME_SCHEMA,
        "returns": {"type": "object"},
        "tags": ["system", "introspection"],
    },
}

_TOOL_RETURNS: dict[str, Any] = BUILTIN_METHODS["tools/call"]["returns"]


class JsonRpcDispatcher:
    """Route JSON-RPC envelopes to the built-in methods and the tool registry."""

    def __init__(self, registry: ToolRegistry) -> None:
        self._registry = registry
        self._methods: dict[str, Callable[[Any], Awaitable[Any]]] = {
            "initialize": self._initialize,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "system.listMethods": self._list_methods,
            "system.describeMethod": self._describe_method,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_raw(self, body: Union[str, bytes]) -> Reply:
        """Parse one HTTP body and dispatch it (single request or batch)."""
        try:
            if isinstance(body, bytes):
                body = body.decode("utf-8")
            payload = json.loads(body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            return _error(None, ParseError("Parse error", {"detail": str(exc)}))
        return await self.handle_payload(payload)

    async def handle_payload(self, payload: Any) -> Reply:
        if isinstance(payload, list):
            if not payload:
                return _error(None, InvalidRequestError("Invalid Request: empty batch"))
            replies = [await self.handle_message(item) for item in payload]
            responses = [reply for reply in replies if reply is not None]
            return responses or None
        return await self.handle_message(payload)

    async def handle_message(self, message: Any) -> Optional[Response]:
        """Dispatch one envelope; ``None`` means nothing should be sent back."""
        if not isinstance(message, dict):
            return _error(None, InvalidRequestError("Invalid Request: expected an object"))

        raw_id = message.get("id", _NOTIFICATION)
        request_id = None if raw_id is _NOTIFICATION else raw_id
        if not _valid_id(request_id):
            return _error(None, InvalidRequestError("Invalid Request: id must be a string, number or null"))
        is_notification = request_id is None

        try:
            method, params = self._validate(message)
            handler = self._methods.get(method)
            if handler is None:
                raise MethodNotFoundError(f"Method not found: {method}", {"method": method})
            result = await handler(params)
        except InvalidRequestError as exc:
            return _error(request_id, exc)
        except RpcError as exc:
            if is_notification:
                logger.debug("Dropping error for notification: %s", exc.message)
                return None
            return _error(request_id, exc)
        except Exception as exc:
            logger.exception("Unhandled error dispatching JSON-RPC message")
            if is_notification:
                return None
            return _error(request_id, InternalError("Internal error", {"detail": str(exc)}))

        if is_notification:
            return None
        return _result(request_id, result)

    @staticmethod
    def _validate(message: dict[str, Any]) -> tuple[str, Any]:
        if message.get("jsonrpc") != "2.0":
            raise InvalidRequestError("Invalid Request: jsonrpc must be \"2.0\"")
        method = message.get("method")
        if not isinstance(method, str) or not method:
            raise InvalidRequestError("Invalid Request: method is required")
        params = message.get("params")
        if params is not None and not isinstance(params, (dict, list)):
            raise InvalidRequestError("Invalid Request: params must be an object or array")
        return method, params

    # ------------------------------------------------------------------
    # Methods
    # ------------------------------------------------------------------

    async def _initialize(self, params: Any) -> dict[str, Any]:
        requested = params.get("protocolVersion") if isinstance(params, dict) else None
        version = requested if requested in SUPPORTED_PROTOCOL_VERSIONS else DEFAULT_PROTOCOL_VERSION
        return {
            "protocolVersion": version,
            "capabilities": {"tools": {"listChanged": False}},
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    async def _tools_list(self, params: Any) -> dict[str, Any]:
        return {"tools": [export_mcp_tool_definition(spec) for spec in self._registry.list()]}

    async def _tools_call(self, params: Any) -> dict[str, Any]:
        params = _params_object(params, "tools/call")
        name = _require_name(params, "tools/call")
        try:
            self._registry.describe(name)
        except MethodNotFoundError as exc:
            raise MethodNotFoundError(f"Tool not found: {name}", {"method": "tools/call", "name": name}) from exc

        try:
            output = await self._registry.invoke(name, params.get("arguments"))
        except CouponError as exc:
            logger.warning("Tool %s failed: %s", name, exc)
            return _tool_result(f"{name} failed: {exc}", {"error": type(exc).__name__, "detail": str(exc)}, is_error=True)
        return _tool_result(output.text, output.data)

    async def _list_methods(self, params: Any) -> list[str]:
        return [*self._methods, *(f"{TOOL_ALIAS_PREFIX}{name}" for name in self._registry.names())]

    async def _describe_method(self, params: Any) -> dict[str, Any]:
        params = _params_object(params, "system.describeMethod")
        name = _require_name(params, "system.describeMethod")

        builtin = BUILTIN_METHODS.get(name)
        if builtin is not None:
            return {"name": name, **builtin}

        tool_name = name[len(TOOL_ALIAS_PREFIX):] if name.startswith(TOOL_ALIAS_PREFIX) else name
        try:
            spec = self._registry.describe(tool_name)
        except MethodNotFoundError as exc:
            raise MethodNotFoundError(
                f"Method not found: {name}",
                {"method": "system.describeMethod", "name": name},
            ) from exc
        return self._describe_tool(spec)

    @staticmethod
    def _describe_tool(spec: ToolSpec) -> dict[str, Any]:
        return {
            "name": spec.name,
            "description": spec.description,
            "inputSchema": get_input_schema(spec),
            "returns": _TOOL_RETURNS,
            "tags": list(spec.tags),
            "sideEffectful": spec.side_effectful,
        }
