"""Pydantic models for coupons, claim reports, the config record, and API payloads."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ====================================================================
# Coupons
# ====================================================================

class Coupon(BaseModel):
    """One vendor-issued coupon, as returned by the vendor (never persisted)."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    valid_from: Optional[date] = None
    valid_until: Optional[date] = None
    category: str = ""
    claimed: bool = False
    discount: str = ""
    validity_text: str = ""
    received_at: str = ""
    image_url: str = ""


class ClaimStatus(str, Enum):
    """Per-coupon result of a claim attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


class ClaimOutcome(BaseModel):
    """Result of claiming a single coupon."""

    model_config = ConfigDict(frozen=True)

    coupon_id: str
    title: str = ""
    status: ClaimStatus
    reason: Optional[str] = None


class ClaimReport(BaseModel):
    """Outcomes of one claim-all run, in the order coupons were listed."""

    outcomes: list[ClaimOutcome] = Field(default_factory=list)

    @property
    def succeeded(self) -> list[ClaimOutcome]:
        return [o for o in self.outcomes if o.status == ClaimStatus.SUCCESS]

    @property
    def failed(self) -> list[ClaimOutcome]:
        return [o for o in self.outcomes if o.status == ClaimStatus.FAILURE]


class ServerTime(BaseModel):
    """Vendor-reported clock, for diagnostics only."""

    text: str
    timestamp: Optional[datetime] = None


# ====================================================================
# Config record
# ====================================================================

class ServerConfigRecord(BaseModel):
    """On-disk record shared by all front-ends.

    Instances are immutable; the config store swaps whole snapshots.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    token: str = ""
    mcp_server_port: Optional[int] = Field(default=None, ge=1, le=65535)
    mcp_server_url: Optional[str] = None

    @field_validator("token", mode="before")
    @classmethod
    def _none_token_is_empty(cls, value: Any) -> Any:
        return "" if value is None else value


# ====================================================================
# Web API payloads
# ====================================================================

class TokenPayload(BaseModel):
    token: str


class ApiResponse(BaseModel):
    """Reply shape of every ``/api/*`` route."""

    success: bool
    message: str
    coupons: Optional[list[Coupon]] = None
    outcomes: Optional[list[ClaimOutcome]] = None
    logs: Optional[list[str]] = None
