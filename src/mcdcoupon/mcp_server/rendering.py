"""Human-readable Markdown summaries of coupon operations."""

from __future__ import annotations

from mcdcoupon.models import ClaimReport, Coupon, ServerTime


def _window(coupon: Coupon) -> str:
    if coupon.valid_from and coupon.valid_until:
        return f"{coupon.valid_from.isoformat()} ~ {coupon.valid_until.isoformat()}"
    if coupon.validity_text:
        return coupon.validity_text
    if coupon.valid_until:
        return f"until {coupon.valid_until.isoformat()}"
    return "unknown"


def render_coupons(coupons: list[Coupon], heading: str) -> str:
    lines = [f"# {heading}", "", f"Total: {len(coupons)}"]
    if not coupons:
        lines.extend(["", "No coupons found."])
        return "\n".join(lines)
    for coupon in coupons:
        lines.extend(["", f"## {coupon.title}", f"- **ID**: {coupon.id}"])
        if coupon.discount:
            lines.append(f"- **Discount**: {coupon.discount}")
        lines.append(f"- **Valid**: {_window(coupon)}")
        if coupon.category:
            lines.append(f"- **Tags**: {coupon.category}")
        if coupon.received_at:
            lines.append(f"- **Received**: {coupon.received_at}")
    return "\n".join(lines)


def render_claim_report(report: ClaimReport) -> str:
    total = len(report.outcomes)
    if total == 0:
        return "# Claim results\n\nNo coupons were available to claim."
    lines = [
        "# Claim results",
        "",
        f"Claimed {len(report.succeeded)} of {total} coupons ({len(report.failed)} failed).",
        "",
    ]
    for outcome in report.outcomes:
        label = outcome.title or outcome.coupon_id
        if outcome.reason:
            lines.append(f"- [{outcome.status.value}] {label}: {outcome.reason}")
        else:
            lines.append(f"- [{outcome.status.value}] {label}")
    return "\n".join(lines)


def render_server_time(server_time: ServerTime) -> str:
    lines = ["# Server time", ""]
    if server_time.timestamp is not None:
        lines.append(f"- **Timestamp**: {server_time.timestamp.isoformat(sep=' ')}")
    if server_time.text:
        lines.extend(["", server_time.text])
    return "\n".join(lines)
