"""Exception taxonomy shared by the coupon core and the JSON-RPC gateway."""

from __future__ import annotations

from typing import Any


# ====================================================================
# Core (tool execution) failures
# ====================================================================

class CouponError(Exception):
    """Base class for failures raised by the Upstream Coupon Client."""


class AuthError(CouponError):
    """The token is missing, expired, or rejected by the vendor."""


class NetworkError(CouponError):
    """Transport-level failure talking to the vendor, including timeouts."""


class UpstreamError(CouponError):
    """The vendor answered, but not with a success."""

    def __init__(self, status: int, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"upstream error {status}: {body}")


class VendorToolError(UpstreamError):
    """The vendor tool ran and flagged its own result as an error."""

    def __init__(self, body: str) -> None:
        super().__init__(200, body)

    def __str__(self) -> str:
        return self.body


class ConfigError(Exception):
    """The config record could not be persisted."""


class NoPortAvailable(Exception):
    """Every port in the scan range is taken."""

    def __init__(self, start: int, end: int) -> None:
        self.start = start
        self.end = end
        super().__init__(f"no free port in range {start}-{end}")


# ====================================================================
# JSON-RPC envelope failures
# ====================================================================

class RpcError(Exception):
    """Failure reported through a JSON-RPC ``error`` object."""

    code = -32603

    def __init__(self, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.data = data

    def to_dict(self) -> dict[str, Any]:
        err: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            err["data"] = self.data
        return err


class ParseError(RpcError):
    code = -32700


class InvalidRequestError(RpcError):
    code = -32600


class MethodNotFoundError(RpcError):
    code = -32601


class InvalidParamsError(RpcError):
    code = -32602


class InternalError(RpcError):
    code = -32603
