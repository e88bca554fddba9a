"""mcd-coupon: fetch and claim loyalty-platform coupons from a browser, a terminal, or an MCP client."""

__version__ = "0.1.0"
