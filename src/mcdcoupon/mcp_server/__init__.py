"""JSON-RPC (MCP) surface: tool registry, dispatcher, port negotiation, HTTP/SSE gateway."""

from mcdcoupon.mcp_server.dispatcher import JsonRpcDispatcher
from mcdcoupon.mcp_server.tool_registry import TOOL_SPECS, ToolRegistry, ToolSpec

__all__ = ["JsonRpcDispatcher", "TOOL_SPECS", "ToolRegistry", "ToolSpec"]
