"""Static catalog of the coupon tools exposed over JSON-RPC."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ConfigDict, ValidationError

from mcdcoupon.errors import InvalidParamsError, MethodNotFoundError
from mcdcoupon.mcp_server.rendering import render_claim_report, render_coupons, render_server_time
from mcdcoupon.models import ClaimReport, Coupon, ServerTime
from mcdcoupon.upstream.http_client import CouponClient


class ToolParameters(BaseModel):
    """Base parameters schema for coupon tools."""

    model_config = ConfigDict(extra="forbid")


class NoParameters(ToolParameters):
    """This tool takes no arguments."""


@dataclass(frozen=True)
class ToolOutput:
    """Rendered result of one tool run."""

    text: str
    data: dict[str, Any]


@dataclass(frozen=True)
class ToolSpec:
    """Canonical definition for one agent-facing tool."""

    name: str
    description: str
    tags: tuple[str, ...]
    side_effectful: bool
    run: Callable[[CouponClient], Awaitable[Any]]
    render: Callable[[Any], ToolOutput]
    params_model: type[ToolParameters] = NoParameters


# ====================================================================
# Handlers and renderers
# ====================================================================

def _coupon_list_output(heading: str) -> Callable[[list[Coupon]], ToolOutput]:
    def render(coupons: list[Coupon]) -> ToolOutput:
        return ToolOutput(
            text=render_coupons(coupons, heading),
            data={"coupons": [c.model_dump(mode="json") for c in coupons]},
        )

    return render


def _claim_output(report: ClaimReport) -> ToolOutput:
    return ToolOutput(
        text=render_claim_report(report),
        data={
            "succeeded": len(report.succeeded),
            "failed": len(report.failed),
            "outcomes": [o.model_dump(mode="json") for o in report.outcomes],
        },
    )


def _time_output(server_time: ServerTime) -> ToolOutput:
    return ToolOutput(text=render_server_time(server_time), data=server_time.model_dump(mode="json"))


TOOL_SPECS: tuple[ToolSpec, ...] = (
    ToolSpec(
        name="available-coupons",
        description="List every coupon currently available to claim for this account.",
        tags=("coupons", "available"),
        side_effectful=False,
        run=lambda client: client.list_available(),
        render=_coupon_list_output("Available coupons"),
    ),
    ToolSpec(
        name="auto-bind-coupons",
        description=(
            "Claim all currently available coupons in one go. Each coupon is attempted once; "
            "the result lists the outcome per coupon."
        ),
        tags=("coupons", "claim"),
        side_effectful=True,
        run=lambda client: client.claim_all(),
        render=_claim_output,
    ),
    ToolSpec(
        name="my-coupons",
        description="List the coupons already claimed by this account.",
        tags=("coupons", "my"),
        side_effectful=False,
        run=lambda client: client.list_mine(),
        render=_coupon_list_output("My coupons"),
    ),
    ToolSpec(
        name="now-time-info",
        description="Report the current time as seen by the coupon platform.",
        tags=("time",),
        side_effectful=False,
        run=lambda client: client.server_time(),
        render=_time_output,
    ),
)


# ====================================================================
# Schemas
# ====================================================================

def get_input_schema(spec: ToolSpec) -> dict[str, Any]:
    """Build the tool input JSON schema for MCP definitions."""
    model_schema = spec.params_model.model_json_schema()
    schema: dict[str, Any] = {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "additionalProperties": False,
        "properties": dict(model_schema.get("properties", {})),
        "required": sorted(model_schema.get("required", [])),
    }
    return schema


def export_mcp_tool_definition(spec: ToolSpec) -> dict[str, Any]:
    """Convert a ToolSpec into MCP tools/list shape."""
    return {
        "name": spec.name,
        "description": spec.description,
        "inputSchema": get_input_schema(spec),
    }


def validate_arguments(spec: ToolSpec, arguments: Any) -> dict[str, Any]:
    """Check raw tool arguments against the tool's parameter model."""
    args = {} if arguments is None else arguments
    if not isinstance(args, dict):
        raise InvalidParamsError(
            "arguments must be a JSON object",
            {"tool": spec.name, "received": type(args).__name__},
        )
    try:
        return spec.params_model.model_validate(args).model_dump()
    except ValidationError as exc:
        raise InvalidParamsError(
            f"invalid arguments for tool '{spec.name}'",
            {"tool": spec.name, "errors": exc.errors(include_url=False, include_context=False)},
        ) from exc


# ====================================================================
# Registry
# ====================================================================

class ToolRegistry:
    """Binds :data:`TOOL_SPECS` to the process's single coupon client."""

    def __init__(self, client: CouponClient, specs: tuple[ToolSpec, ...] = TOOL_SPECS) -> None:
        self._client = client
        self._specs: dict[str, ToolSpec] = {}
        for spec in specs:
            if spec.name in self._specs:
                raise ValueError(f"Tool '{spec.name}' is already registered")
            self._specs[spec.name] = spec

    def list(self) -> list[ToolSpec]:
        return list(self._specs.values())

    def names(self) -> list[str]:
        return list(self._specs)

    def describe(self, name: str) -> ToolSpec:
        spec = self._specs.get(name)
        if spec is None:
            raise MethodNotFoundError(f"Tool not found: {name}", {"name": name})
        return spec

    async def invoke(self, name: str, arguments: Any = None) -> ToolOutput:
        """Validate *arguments*, run the tool, and render its result.

        Raises :class:`InvalidParamsError` without touching the client when
        the arguments do not match the schema.  Core failures
        (:class:`~mcdcoupon.errors.CouponError`) propagate to the caller.
        """
        spec = self.describe(name)
        validate_arguments(spec, arguments)
        raw = await spec.run(self._client)
        return spec.render(raw)
