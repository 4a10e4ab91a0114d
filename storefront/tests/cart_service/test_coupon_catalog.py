import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.cart_service.app.catalog import InMemoryCouponCatalog, coupon_from_document
from storefront.cart_service.app.coupons import check_eligibility, evaluate
from storefront.cart_service.app.schemas import Coupon, LineItem

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class _FirestoreTimestamp:
    def __init__(self, value: datetime) -> None:
        self._value = value

    def to_datetime(self) -> datetime:
        return self._value


def test_document_with_canonical_fields() -> None:
    coupon = coupon_from_document(
        {
            "id": "c-1",
            "code": "SAVE20",
            "title": "Save 20%",
            "discountType": "percentage",
            "discountValue": 20,
            "minOrderAmount": 150,
            "minOrderCount": 2,
            "maxDiscountAmount": 100,
            "validFrom": "2026-01-01T00:00:00Z",
            "validTill": "2026-12-31T23:59:59Z",
            "usageLimit": {"perUserLimit": 1},
            "maxUses": 500,
            "usedCount": 0,
            "isActive": True,
        }
    )

    assert coupon is not None
    assert coupon.id == "c-1"
    assert coupon.discount_type == "percentage"
    assert coupon.discount_value == Decimal("20")
    assert coupon.min_order_amount == Decimal("150")
    assert coupon.min_order_count == 2
    assert coupon.max_discount_amount == Decimal("100")
    assert coupon.valid_from == datetime(2026, 1, 1, tzinfo=timezone.utc)
    assert coupon.valid_till == datetime(2026, 12, 31, 23, 59, 59, tzinfo=timezone.utc)
    assert coupon.usage_limit.per_user_limit == 1
    assert coupon.max_uses == 500
    assert coupon.is_active is True


def test_document_with_legacy_aliases() -> None:
    coupon = coupon_from_document(
        {
            "couponId": "legacy",
            "code": "FLAT50",
            "name": "Flat fifty",
            "type": "FIXED",
            "value": "50",
            "validUntil": "2026-02-01T00:00:00+00:00",
            "maxUsage": 10,
            "maxUsagePerUser": 2,
            "maxDiscountAmount": 0,
        }
    )

    assert coupon is not None
    assert coupon.id == "legacy"
    assert coupon.title == "Flat fifty"
    assert coupon.discount_type == "fixed"
    assert coupon.discount_value == Decimal("50")
    assert coupon.valid_till == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert coupon.max_uses == 10
    assert coupon.usage_limit.per_user_limit == 2
    assert coupon.max_discount_amount is None


def test_nested_usage_counters() -> None:
    coupon = coupon_from_document(
        {"code": "NESTED", "discountValue": 10, "usageLimit": {"totalUsage": 100, "usedCount": 7, "perUserLimit": 3}}
    )

    assert coupon is not None
    assert coupon.max_uses == 100
    assert coupon.used_count == 7
    assert coupon.usage_limit.per_user_limit == 3
    assert coupon.title == "NESTED"


def _cart_line() -> LineItem:
    return LineItem(product_id="A", name="Paneer Roll", unit_price=Decimal("100"))


def test_zero_max_uses_blocks_the_coupon() -> None:
    coupon = coupon_from_document({"code": "X", "type": "fixed", "value": 10, "maxUses": 0})

    assert coupon is not None
    assert coupon.max_uses == 0
    assert check_eligibility(coupon, Decimal("100"), [_cart_line()], NOW) == "max_uses"
    assert evaluate(coupon, Decimal("100"), [_cart_line()], NOW) == Decimal("0")


def test_zero_max_uses_wins_over_nested_total() -> None:
    coupon = coupon_from_document({"code": "X", "maxUses": 0, "usageLimit": {"totalUsage": 50}})

    assert coupon is not None
    assert coupon.max_uses == 0


def test_zero_per_user_limit_blocks_the_coupon() -> None:
    coupon = coupon_from_document(
        {"code": "X", "type": "fixed", "value": 10, "usageLimit": {"perUserLimit": 0}, "maxUsagePerUser": 3}
    )

    assert coupon is not None
    assert coupon.usage_limit.per_user_limit == 0
    assert check_eligibility(coupon, Decimal("100"), [_cart_line()], NOW) == "per_user_limit"
    assert evaluate(coupon, Decimal("100"), [_cart_line()], NOW) == Decimal("0")


def test_explicit_zero_used_count_is_kept() -> None:
    coupon = coupon_from_document({"code": "X", "usedCount": 0, "usageLimit": {"usedCount": 5}})

    assert coupon is not None
    assert coupon.used_count == 0


def test_malformed_values_are_coerced_leniently() -> None:
    coupon = coupon_from_document(
        {
            "code": "  MESSY ",
            "discountType": "bogus",
            "discountValue": "abc",
            "minOrderAmount": -5,
            "minOrderCount": "x",
            "validFrom": "not a date",
            "isActive": "false",
            "usedCount": None,
        }
    )

    assert coupon is not None
    assert coupon.code == "MESSY"
    assert coupon.discount_type == "percentage"
    assert coupon.discount_value == Decimal("0")
    assert coupon.min_order_amount == Decimal("0")
    assert coupon.min_order_count == 0
    assert coupon.valid_from is None
    assert coupon.is_active is False
    assert coupon.used_count == 0


def test_timestamp_objects_and_epochs() -> None:
    coupon = coupon_from_document(
        {
            "code": "TS",
            "validFrom": 0,
            "validTill": _FirestoreTimestamp(datetime(2026, 6, 1, tzinfo=timezone.utc)),
        }
    )

    assert coupon is not None
    assert coupon.valid_from == datetime(1970, 1, 1, tzinfo=timezone.utc)
    assert coupon.valid_till == datetime(2026, 6, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize("raw", [{}, {"code": ""}, {"code": "   "}, {"code": None}])
def test_document_without_code_is_skipped(raw) -> None:
    assert coupon_from_document(raw) is None


def test_unvalidatable_document_is_logged_and_skipped(caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="storefront.cart_service.app.catalog"):
        assert coupon_from_document({"code": "X" * 100}) is None
    assert "malformed coupon" in caplog.text


@pytest.mark.asyncio
async def test_catalog_lookup_is_case_sensitive_and_trims() -> None:
    catalog = InMemoryCouponCatalog.from_documents(
        [{"code": "SAVE20", "discountValue": 20}, {"code": ""}, {"code": "FLAT50", "type": "fixed", "value": 50}]
    )

    found = await catalog.get_by_code(" SAVE20 ")
    assert found is not None and found.code == "SAVE20"
    assert await catalog.get_by_code("save20") is None
    assert await catalog.get_by_code("FLAT50") is not None


@pytest.mark.asyncio
async def test_list_active_filters_status_and_window() -> None:
    catalog = InMemoryCouponCatalog(
        [
            Coupon(code="LIVE", valid_from=NOW - timedelta(days=1), valid_till=NOW + timedelta(days=1)),
            Coupon(code="OFF", is_active=False),
            Coupon(code="SOON", valid_from=NOW + timedelta(hours=1)),
            Coupon(code="GONE", valid_till=NOW - timedelta(hours=1)),
        ]
    )
    catalog.add(Coupon(code="OPEN"))

    active = await catalog.list_active(NOW)

    assert sorted(coupon.code for coupon in active) == ["LIVE", "OPEN"]
