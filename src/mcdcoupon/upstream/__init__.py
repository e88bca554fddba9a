"""Client for the vendor's coupon platform."""

from mcdcoupon.upstream.http_client import CouponClient

__all__ = ["CouponClient"]
