"""Parsers for the vendor's Markdown and structured tool output."""

from __future__ import annotations

import hashlib
import re
from datetime import date, datetime
from typing import Any, Optional

from mcdcoupon.models import Coupon

_DATE_RE = re.compile(r"(\d{4})\s*[-/.年]\s*(\d{1,2})\s*[-/.月]\s*(\d{1,2})")
_TIMESTAMP_RE = re.compile(r"(\d{4}-\d{2}-\d{2})[ T](\d{2}:\d{2}:\d{2})")
_IMG_SRC_RE = re.compile(r'src="([^"]+)"')

# Field label -> Coupon attribute.
_FIELD_LABELS: dict[str, str] = {
    "优惠": "discount",
    "有效期": "validity_text",
    "领取时间": "received_at",
    "标签": "category",
    "ID": "id",
    "券ID": "id",
    "优惠券ID": "id",
}
_FIELD_RE = re.compile(r"^-\s*\*\*(?P<label>[^*]+)\*\*\s*[:：]\s*(?P<value>.*)$")


def parse_dates(text: str) -> list[date]:
    """Return every valid calendar date found in *text*, in order."""
    found: list[date] = []
    for year, month, day in _DATE_RE.findall(text or ""):
        try:
            found.append(date(int(year), int(month), int(day)))
        except ValueError:
            continue
    return found


def parse_timestamp(text: str) -> Optional[datetime]:
    match = _TIMESTAMP_RE.search(text or "")
    if match is None:
        return None
    try:
        return datetime.fromisoformat(f"{match.group(1)} {match.group(2)}")
    except ValueError:
        return None


def derive_coupon_id(title: str, validity: str) -> str:
    digest = hashlib.sha1(f"{title}|{validity}".encode("utf-8")).hexdigest()
    return f"coupon-{digest[:12]}"


def _build_coupon(fields: dict[str, str], claimed: bool) -> Coupon:
    validity = fields.get("validity_text", "")
    dates = parse_dates(validity)
    coupon_id = fields.get("id") or derive_coupon_id(fields["title"], validity)
    return Coupon(
        id=coupon_id,
        title=fields["title"],
        valid_from=dates[0] if dates else None,
        valid_until=dates[1] if len(dates) > 1 else None,
        category=fields.get("category", ""),
        claimed=claimed,
        discount=fields.get("discount", ""),
        validity_text=validity,
        received_at=fields.get("received_at", ""),
        image_url=fields.get("image_url", ""),
    )


def parse_coupons_markdown(text: str, *, claimed: bool = False) -> list[Coupon]:
    """Parse the vendor's Markdown coupon listing.

    Each coupon starts at a ``## <title>`` header; the ``- **label**: value``
    lines and an optional ``<img src="...">`` line that follow describe it.
    Document headers (``# ...``) and count lines (``共 ...``) are skipped.
    """
    coupons: list[Coupon] = []
    current: Optional[dict[str, str]] = None

    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("# ") or line.startswith("共 "):
            continue
        if line.startswith("## "):
            if current is not None:
                coupons.append(_build_coupon(current, claimed))
            current = {"title": line[3:].strip()}
            continue
        if current is None:
            continue
        if line.startswith("<img"):
            match = _IMG_SRC_RE.search(line)
            if match:
                current["image_url"] = match.group(1)
            continue
        match = _FIELD_RE.match(line)
        if match:
            attr = _FIELD_LABELS.get(match.group("label").strip())
            if attr:
                current[attr] = match.group("value").strip()

    if current is not None:
        coupons.append(_build_coupon(current, claimed))
    return coupons


def _first_str(item: dict[str, Any], *keys: str) -> str:
    for key in keys:
        value = item.get(key)
        if value is not None and value != "":
            return str(value)
    return ""


def parse_structured_coupons(items: list[Any], *, claimed: bool = False) -> list[Coupon]:
    """Build coupons from a vendor ``structuredContent.coupons`` array."""
    coupons: list[Coupon] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        title = _first_str(item, "title", "name", "couponName")
        if not title:
            continue
        validity = _first_str(item, "validity", "expiry", "validityText")
        start = _first_str(item, "startDate", "start_date", "validFrom")
        end = _first_str(item, "endDate", "end_date", "validUntil")
        dates = parse_dates(validity)
        start_dates = parse_dates(start) or dates[:1]
        end_dates = parse_dates(end) or dates[1:2]
        coupons.append(
            Coupon(
                id=_first_str(item, "couponId", "coupon_id", "id") or derive_coupon_id(title, validity),
                title=title,
                valid_from=start_dates[0] if start_dates else None,
                valid_until=end_dates[0] if end_dates else None,
                category=_first_str(item, "tags", "category", "tag"),
                claimed=claimed,
                discount=_first_str(item, "price", "discount"),
                validity_text=validity,
                received_at=_first_str(item, "receiveTime", "receivedAt", "received_at"),
                image_url=_first_str(item, "imageUrl", "image_url", "image"),
            )
        )
    return coupons
