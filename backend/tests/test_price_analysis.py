"""Tests for price-drop detection and price analytics."""

from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest

from grocerywatch.core.exceptions import NotFoundError
from grocerywatch.models import Category
from grocerywatch.models.base import utcnow
from grocerywatch.services.price_analysis import (
    PriceAnalyzer,
    discount_percentage,
    percentage_of,
)


class TestPercentage:
    def test_rounds_ratio_half_up_before_scaling(self):
        assert percentage_of(Decimal("3"), Decimal("10")) == Decimal("30.0000")
        assert percentage_of(Decimal("1"), Decimal("8")) == Decimal("12.5000")
        assert percentage_of(Decimal("1"), Decimal("3")) == Decimal("33.3300")

    def test_discount_percentage_unknown_prices(self):
        class Record:
            regular_price = None
            sale_price = Decimal("1.00")

        assert discount_percentage(Record()) == Decimal("0")


class TestDetectDrops:
    async def test_detects_thirty_percent_drop(self, test_db, tnt_store, product_factory, price_factory):
        product = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        previous = await price_factory(
            test_db, product, tnt_store, "10.00", captured_at=utcnow() - timedelta(hours=5)
        )
        await price_factory(test_db, product, tnt_store, "7.00")

        drops = await PriceAnalyzer(test_db).detect_drops(tnt_store.id, [previous])

        assert len(drops) == 1
        drop = drops[0]
        assert drop.product_id == product.id
        assert drop.store_code == "TNT"
        assert drop.previous_price == Decimal("10.00")
        assert drop.current_price == Decimal("7.00")
        assert drop.drop_amount == Decimal("3.00")
        assert drop.drop_percentage == Decimal("30.0000")

    async def test_baseline_is_lowest_previous_price(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        product = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        older = utcnow() - timedelta(hours=6)
        previous = [
            await price_factory(test_db, product, tnt_store, "10.00", captured_at=older),
            await price_factory(test_db, product, tnt_store, "8.00", captured_at=older + timedelta(hours=1)),
        ]
        await price_factory(test_db, product, tnt_store, "7.00")

        drops = await PriceAnalyzer(test_db).detect_drops(tnt_store.id, previous)

        assert [d.previous_price for d in drops] == [Decimal("8.00")]
        assert drops[0].drop_percentage == Decimal("12.5000")

    @pytest.mark.parametrize("current", ["10.00", "12.00"])
    async def test_no_drop_when_price_not_lower(
        self, test_db, tnt_store, product_factory, price_factory, current
    ):
        product = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        previous = await price_factory(
            test_db, product, tnt_store, "10.00", captured_at=utcnow() - timedelta(hours=5)
        )
        await price_factory(test_db, product, tnt_store, current)

        assert await PriceAnalyzer(test_db).detect_drops(tnt_store.id, [previous]) == []

    async def test_zero_baseline_is_ignored(self, test_db, tnt_store, product_factory, price_factory):
        product = await product_factory(test_db, "Free Sample", {"TNT": "1"})
        previous = await price_factory(
            test_db, product, tnt_store, "0.00", captured_at=utcnow() - timedelta(hours=5)
        )
        await price_factory(test_db, product, tnt_store, "0.00")

        assert await PriceAnalyzer(test_db).detect_drops(tnt_store.id, [previous]) == []

    async def test_sale_price_is_effective_price(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        product = await product_factory(test_db, "Greek Yogurt", {"TNT": "1"})
        previous = await price_factory(
            test_db, product, tnt_store, "5.00", captured_at=utcnow() - timedelta(hours=5)
        )
        await price_factory(test_db, product, tnt_store, "5.00", sale="4.00")

        drops = await PriceAnalyzer(test_db).detect_drops(tnt_store.id, [previous])

        assert drops[0].current_price == Decimal("4.00")
        assert drops[0].drop_percentage == Decimal("20.0000")

    async def test_records_outside_current_window_are_ignored(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        product = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        previous = await price_factory(
            test_db, product, tnt_store, "10.00", captured_at=utcnow() - timedelta(hours=5)
        )
        await price_factory(test_db, product, tnt_store, "7.00", captured_at=utcnow() - timedelta(hours=3))

        assert await PriceAnalyzer(test_db).detect_drops(tnt_store.id, [previous]) == []

    async def test_empty_baseline(self, test_db, tnt_store):
        assert await PriceAnalyzer(test_db).detect_drops(tnt_store.id, []) == []

    async def test_sorted_by_percentage_and_carries_category(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        dairy = Category(name="Dairy & Eggs", code="2881", store_id=tnt_store.id)
        test_db.add(dairy)
        await test_db.flush()

        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"}, category_id=dairy.id)
        bread = await product_factory(test_db, "Sourdough", {"TNT": "2"})
        before = utcnow() - timedelta(hours=5)
        previous = [
            await price_factory(test_db, milk, tnt_store, "10.00", captured_at=before),
            await price_factory(test_db, bread, tnt_store, "4.00", captured_at=before),
        ]
        await price_factory(test_db, milk, tnt_store, "9.00")
        await price_factory(test_db, bread, tnt_store, "2.00")

        drops = await PriceAnalyzer(test_db).detect_drops(tnt_store.id, previous)

        assert [d.product_name for d in drops] == ["Sourdough", "Whole Milk 4L"]
        assert drops[1].category_id == dairy.id
        assert drops[1].category_code == "2881"
        assert drops[0].category_code is None


class TestRecentPriceDrops:
    async def test_threshold_and_window(
        self, test_db, tnt_store, pricesmart_store, product_factory, price_factory
    ):
        yesterday = utcnow() - timedelta(hours=36)
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1", "PRICESMART": "9"})
        eggs = await product_factory(test_db, "Large Eggs", {"TNT": "2"})

        await price_factory(test_db, milk, tnt_store, "10.00", captured_at=yesterday)
        await price_factory(test_db, milk, tnt_store, "7.00")
        await price_factory(test_db, eggs, tnt_store, "5.00", captured_at=yesterday)
        await price_factory(test_db, eggs, tnt_store, "4.75")
        await price_factory(test_db, milk, pricesmart_store, "8.00", captured_at=yesterday)
        await price_factory(test_db, milk, pricesmart_store, "6.00")

        drops = await PriceAnalyzer(test_db).get_recent_price_drops(min_drop_percentage=20)

        assert [(d.store_code, d.drop_percentage) for d in drops] == [
            ("TNT", Decimal("30.0000")),
            ("PRICESMART", Decimal("25.0000")),
        ]

    async def test_limit(self, test_db, tnt_store, product_factory, price_factory):
        yesterday = utcnow() - timedelta(hours=36)
        for i in range(3):
            product = await product_factory(test_db, f"Item {i}", {"TNT": str(i)})
            await price_factory(test_db, product, tnt_store, "10.00", captured_at=yesterday)
            await price_factory(test_db, product, tnt_store, str(9 - i))

        drops = await PriceAnalyzer(test_db).get_recent_price_drops(limit=2)

        assert [d.product_name for d in drops] == ["Item 2", "Item 1"]

    async def test_inactive_store_is_skipped(
        self, test_db, store_factory, product_factory, price_factory
    ):
        closed = store_factory("CLOSED", is_active=False)
        test_db.add(closed)
        await test_db.flush()
        product = await product_factory(test_db, "Whole Milk 4L", {"CLOSED": "1"})
        await price_factory(
            test_db, product, closed, "10.00", captured_at=utcnow() - timedelta(hours=36)
        )
        await price_factory(test_db, product, closed, "5.00")

        assert await PriceAnalyzer(test_db).get_recent_price_drops() == []


class TestComparisonAndHistory:
    async def test_compare_finds_lowest_store(
        self, test_db, tnt_store, pricesmart_store, product_factory, price_factory
    ):
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1", "PRICESMART": "9"})
        await price_factory(test_db, milk, tnt_store, "6.49", sale="5.99")
        await price_factory(test_db, milk, pricesmart_store, "6.29")

        comparison = await PriceAnalyzer(test_db).compare_product_prices(milk.id)

        assert set(comparison.store_prices) == {"TNT", "PRICESMART"}
        assert comparison.lowest_price_store == "TNT"
        assert comparison.lowest_price == Decimal("5.99")
        assert comparison.store_prices["TNT"].on_sale is True

    async def test_compare_unknown_product(self, test_db):
        with pytest.raises(NotFoundError):
            await PriceAnalyzer(test_db).compare_product_prices(uuid4())

    async def test_history_collapses_unchanged_prices(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        start = utcnow() - timedelta(days=5)
        for day, price in enumerate(["5.00", "5.00", "4.00", "4.00", "5.00"]):
            await price_factory(test_db, milk, tnt_store, price, captured_at=start + timedelta(days=day))

        history = await PriceAnalyzer(test_db).get_product_price_history(milk.id, tnt_store.id)

        assert [p.price for p in history.price_points] == [
            Decimal("5.00"),
            Decimal("4.00"),
            Decimal("5.00"),
        ]

    async def test_history_respects_days(self, test_db, tnt_store, product_factory, price_factory):
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        await price_factory(test_db, milk, tnt_store, "5.00", captured_at=utcnow() - timedelta(days=40))
        await price_factory(test_db, milk, tnt_store, "4.00", captured_at=utcnow() - timedelta(days=2))

        history = await PriceAnalyzer(test_db).get_product_price_history(milk.id, tnt_store.id)

        assert [p.price for p in history.price_points] == [Decimal("4.00")]

    async def test_history_unknown_store(self, test_db, product_factory):
        milk = await product_factory(test_db, "Whole Milk 4L")
        with pytest.raises(NotFoundError):
            await PriceAnalyzer(test_db).get_product_price_history(milk.id, uuid4())


class TestDiscounts:
    async def test_discounted_items_grouped_by_store(
        self, test_db, tnt_store, pricesmart_store, product_factory, price_factory
    ):
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1", "PRICESMART": "9"})
        eggs = await product_factory(test_db, "Large Eggs", {"TNT": "2"})
        await price_factory(test_db, milk, tnt_store, "10.00", sale="8.00")
        await price_factory(test_db, eggs, tnt_store, "5.00", sale="2.50")
        await price_factory(test_db, milk, pricesmart_store, "10.00", sale="9.50")

        grouped = await PriceAnalyzer(test_db).get_discounted_items_by_store(min_discount_percentage=10)

        assert list(grouped) == ["TNT"]
        assert [item.product.name for item in grouped["TNT"]] == ["Large Eggs", "Whole Milk 4L"]
        assert grouped["TNT"][0].discount_percentage == Decimal("50.0000")
        assert grouped["TNT"][0].discount_amount == Decimal("2.50")

    async def test_only_latest_observation_counts(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        await price_factory(
            test_db, milk, tnt_store, "10.00", sale="5.00", captured_at=utcnow() - timedelta(days=2)
        )
        await price_factory(test_db, milk, tnt_store, "10.00", sale="9.00")

        items = await PriceAnalyzer(test_db).get_discounted_items()

        assert len(items) == 1
        assert items[0].sale_price == Decimal("9.00")

    async def test_current_sales_for_store(
        self, test_db, tnt_store, product_factory, price_factory
    ):
        milk = await product_factory(test_db, "Whole Milk 4L", {"TNT": "1"})
        eggs = await product_factory(test_db, "Large Eggs", {"TNT": "2"})
        bread = await product_factory(test_db, "Sourdough", {"TNT": "3"})
        await price_factory(test_db, milk, tnt_store, "10.00", sale="9.00")
        await price_factory(test_db, eggs, tnt_store, "5.00", sale="2.50")
        await price_factory(test_db, bread, tnt_store, "4.00")

        sales = await PriceAnalyzer(test_db).get_current_sales_for_store("TNT")

        assert [r.product_id for r in sales] == [eggs.id, milk.id]

    async def test_current_sales_unknown_store(self, test_db):
        with pytest.raises(NotFoundError):
            await PriceAnalyzer(test_db).get_current_sales_for_store("NOPE")
