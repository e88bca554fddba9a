"""Authenticated client for the vendor's coupon tool endpoint."""

from __future__ import annotations

import itertools
import json
import logging
from typing import Any, Optional

import httpx

from mcdcoupon.config import ConfigStore, Settings, mask_token, normalize_token
from mcdcoupon.errors import AuthError, NetworkError, UpstreamError, VendorToolError
from mcdcoupon.models import ClaimOutcome, ClaimReport, ClaimStatus, Coupon, ServerTime
from mcdcoupon.upstream.markdown import parse_coupons_markdown, parse_structured_coupons, parse_timestamp

logger = logging.getLogger(__name__)

_AUTH_STATUSES = frozenset({401, 403})
_AUTH_RPC_CODES = frozenset({-32001, 401, 403})
_AUTH_MARKERS = ("token", "unauthorized", "unauthorised", "未授权", "登录")


def _looks_like_auth_failure(text: str) -> bool:
    lowered = (text or "").lower()
    return any(marker in lowered for marker in _AUTH_MARKERS)


def _decode_body(response: httpx.Response) -> dict[str, Any]:
    """Decode a JSON-RPC reply sent as plain JSON or as an event stream."""
    content_type = response.headers.get("content-type", "")
    text = response.text
    if "text/event-stream" in content_type:
        frames = [line[5:].strip() for line in text.splitlines() if line.startswith("data:")]
        frames = [frame for frame in frames if frame]
        if not frames:
            raise UpstreamError(response.status_code, text)
        text = frames[-1]
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise UpstreamError(response.status_code, text) from exc
    if not isinstance(payload, dict):
        raise UpstreamError(response.status_code, text)
    return payload


def _content_text(result: dict[str, Any]) -> str:
    blocks = result.get("content") or []
    texts = [
        block.get("text", "")
        for block in blocks
        if isinstance(block, dict) and block.get("type", "text") == "text" and block.get("text")
    ]
    return "\n".join(texts)


class CouponClient:
    """One instance per process; every front-end shares it.

    The token is read from the :class:`ConfigStore` snapshot on each call,
    and given its bearer prefix there, so a reconfiguration (including a
    hand-edited config file) takes effect on the next request without
    rebuilding the client.  No call is retried here.
    """

    def __init__(
        self,
        settings: Settings,
        store: ConfigStore,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._store = store
        self._http = httpx.AsyncClient(
            timeout=httpx.Timeout(settings.upstream_timeout_s),
            transport=transport,
        )
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Wire
    # ------------------------------------------------------------------

    async def _post(self, token: str, method: str, params: dict[str, Any]) -> httpx.Response:
        request = {
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
            "id": next(self._ids),
        }
        try:
            return await self._http.post(
                self._settings.upstream_url,
                json=request,
                headers={
                    "Authorization": token,
                    "Accept": "application/json, text/event-stream",
                },
            )
        except httpx.TimeoutException as exc:
            raise NetworkError(f"vendor request timed out after {self._settings.upstream_timeout_s}s") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"vendor request failed: {exc}") from exc

    async def call_tool(self, name: str, arguments: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Invoke one vendor tool and return its (non-error) result object."""
        token = normalize_token(self._store.get().token)
        if not token:
            raise AuthError("no token configured")

        params: dict[str, Any] = {"name": name, "arguments": arguments or {}}
        response = await self._post(token, "tools/call", params)

        if response.status_code in _AUTH_STATUSES:
            logger.warning("Vendor rejected token %s (HTTP %d)", mask_token(token), response.status_code)
            raise AuthError(f"token rejected by vendor (HTTP {response.status_code})")
        if not response.is_success:
            raise UpstreamError(response.status_code, response.text)

        payload = _decode_body(response)
        error = payload.get("error")
        if isinstance(error, dict):
            message = str(error.get("message", ""))
            if error.get("code") in _AUTH_RPC_CODES or _looks_like_auth_failure(message):
                raise AuthError(message or "token rejected by vendor")
            raise UpstreamError(response.status_code, f"{error.get('code')}: {message}")

        result = payload.get("result")
        if not isinstance(result, dict):
            raise UpstreamError(response.status_code, "vendor response missing result")
        if result.get("isError"):
            text = _content_text(result)
            if _looks_like_auth_failure(text):
                raise AuthError(text)
            raise VendorToolError(text or "vendor tool failed")
        return result

    async def validate_token(self, candidate: str) -> bool:
        """Try *candidate* against the vendor; ``False`` only on HTTP 401."""
        token = normalize_token(candidate)
        if not token:
            return False
        response = await self._post(token, "system.listMethods", {})
        return response.status_code != 401

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def _list(self, tool: str, *, claimed: bool) -> list[Coupon]:
        result = await self.call_tool(tool)
        structured = result.get("structuredContent")
        if isinstance(structured, dict) and isinstance(structured.get("coupons"), list):
            return parse_structured_coupons(structured["coupons"], claimed=claimed)
        return parse_coupons_markdown(_content_text(result), claimed=claimed)

    async def list_available(self) -> list[Coupon]:
        return await self._list(self._settings.vendor_available_tool, claimed=False)

    async def list_mine(self) -> list[Coupon]:
        return await self._list(self._settings.vendor_my_coupons_tool, claimed=True)

    async def claim_all(self) -> ClaimReport:
        """Claim every available coupon with one batch call to the vendor.

        The vendor's claim tool takes no arguments and binds everything it
        can.  Per-coupon outcomes come from comparing the listing taken
        before the call with the one taken after it: a coupon that is still
        listed was not bound, and carries the vendor's reply as its reason.
        A vendor rejection of the whole batch fails every coupon; auth and
        network failures abort the run.
        """
        coupons = await self.list_available()
        if not coupons:
            return ClaimReport()

        try:
            result = await self.call_tool(self._settings.vendor_claim_tool)
        except UpstreamError as exc:
            logger.info("Batch claim rejected: %s", exc)
            return ClaimReport(
                outcomes=[
                    ClaimOutcome(coupon_id=c.id, title=c.title, status=ClaimStatus.FAILURE, reason=str(exc))
                    for c in coupons
                ]
            )
        summary = _content_text(result)

        try:
            remaining = {c.id for c in await self.list_available()}
        except UpstreamError as exc:
            logger.warning("Could not re-list coupons after claiming: %s", exc)
            remaining = set()

        outcomes: list[ClaimOutcome] = []
        for coupon in coupons:
            if coupon.id in remaining:
                outcomes.append(
                    ClaimOutcome(
                        coupon_id=coupon.id,
                        title=coupon.title,
                        status=ClaimStatus.FAILURE,
                        reason=summary or "still available after claiming",
                    )
                )
            else:
                outcomes.append(ClaimOutcome(coupon_id=coupon.id, title=coupon.title, status=ClaimStatus.SUCCESS))
        report = ClaimReport(outcomes=outcomes)
        logger.info("Claimed %d of %d coupons", len(report.succeeded), len(outcomes))
        return report

    async def server_time(self) -> ServerTime:
        result = await self.call_tool(self._settings.vendor_time_tool)
        text = _content_text(result)
        return ServerTime(text=text, timestamp=parse_timestamp(text))
