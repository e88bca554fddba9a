"""Tests for the vendor output parsers (upstream/markdown.py)."""

from __future__ import annotations

from datetime import date, datetime

from mcdcoupon.upstream.markdown import (
    derive_coupon_id,
    parse_coupons_markdown,
    parse_dates,
    parse_structured_coupons,
    parse_timestamp,
)

from .conftest import AVAILABLE_MARKDOWN, MINE_MARKDOWN


class TestParseDates:

    def test_iso_dates(self):
        assert parse_dates("2025-01-01 00:00 至 2025-01-31 23:59") == [date(2025, 1, 1), date(2025, 1, 31)]

    def test_chinese_dates(self):
        assert parse_dates("2025年2月1日-2025年2月28日") == [date(2025, 2, 1), date(2025, 2, 28)]

    def test_invalid_calendar_date_skipped(self):
        assert parse_dates("2025-02-30 至 2025-03-01") == [date(2025, 3, 1)]

    def test_empty(self):
        assert parse_dates("") == []


class TestParseTimestamp:

    def test_found(self):
        assert parse_timestamp("当前时间: 2025-03-01 12:34:56") == datetime(2025, 3, 1, 12, 34, 56)

    def test_missing(self):
        assert parse_timestamp("no clock here") is None


class TestParseCouponsMarkdown:

    def test_parses_every_section(self):
        coupons = parse_coupons_markdown(AVAILABLE_MARKDOWN)
        assert [c.title for c in coupons] == ["麦辣鸡腿堡买一送一", "薯条中份", "咖啡"]

    def test_fields_of_first_coupon(self):
        burger = parse_coupons_markdown(AVAILABLE_MARKDOWN)[0]
        assert burger.discount == "¥19.9"
        assert burger.valid_from == date(2025, 1, 1)
        assert burger.valid_until == date(2025, 1, 31)
        assert burger.category == "汉堡"
        assert burger.image_url == "https://img.example/burger.png"
        assert burger.claimed is False

    def test_explicit_id_wins(self):
        fries = parse_coupons_markdown(AVAILABLE_MARKDOWN)[1]
        assert fries.id == "C-002"

    def test_derived_id_is_stable(self):
        first = parse_coupons_markdown(AVAILABLE_MARKDOWN)
        second = parse_coupons_markdown(AVAILABLE_MARKDOWN)
        assert first[0].id == second[0].id
        assert first[0].id.startswith("coupon-")
        assert first[0].id != first[2].id

    def test_missing_dates(self):
        coffee = parse_coupons_markdown(AVAILABLE_MARKDOWN)[2]
        assert coffee.valid_from is None
        assert coffee.valid_until is None
        assert coffee.discount == "5元"

    def test_claimed_flag_and_received_time(self):
        (nuggets,) = parse_coupons_markdown(MINE_MARKDOWN, claimed=True)
        assert nuggets.claimed is True
        assert nuggets.received_at == "2025-02-27 10:11:12"

    def test_no_sections(self):
        assert parse_coupons_markdown("# 可领取优惠券\n共 0 张\n") == []
        assert parse_coupons_markdown("") == []


class TestParseStructuredCoupons:

    def test_vendor_keys(self):
        items = [
            {
                "couponId": "X1",
                "title": "Sundae",
                "startDate": "2025-04-01",
                "endDate": "2025-04-30",
                "price": "¥3",
                "tags": "dessert",
                "imageUrl": "https://img.example/s.png",
            },
        ]
        (coupon,) = parse_structured_coupons(items)
        assert coupon.id == "X1"
        assert coupon.valid_from == date(2025, 4, 1)
        assert coupon.valid_until == date(2025, 4, 30)
        assert coupon.discount == "¥3"
        assert coupon.category == "dessert"

    def test_skips_items_without_title(self):
        items = [{"couponId": "X1"}, "junk", {"name": "Pie", "validity": "2025-05-01 至 2025-05-02"}]
        (coupon,) = parse_structured_coupons(items, claimed=True)
        assert coupon.title == "Pie"
        assert coupon.id == derive_coupon_id("Pie", "2025-05-01 至 2025-05-02")
        assert coupon.valid_until == date(2025, 5, 2)
        assert coupon.claimed is True
