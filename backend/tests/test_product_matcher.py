"""Tests for product identity resolution."""

from sqlalchemy import func, select

from grocerywatch.models import Category, Product
from grocerywatch.services.product_matcher import ProductMatcher


async def count_products(db) -> int:
    return (await db.execute(select(func.count()).select_from(Product))).scalar_one()


class TestResolve:
    async def test_creates_product_on_first_sighting(self, test_db, tnt_store, make_scraped):
        scraped = make_scraped("sku-1", "Organic Bananas", brand="Dole", size="1", unit="lb")

        product = await ProductMatcher(test_db).resolve(scraped, tnt_store)
        await test_db.commit()

        assert product.name == "Organic Bananas"
        assert product.normalized_name == "organic bananas"
        assert product.brand == "Dole"
        assert product.store_product_ids == {"TNT": "sku-1"}
        assert await count_products(test_db) == 1

    async def test_repeated_resolve_is_idempotent(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)
        scraped = make_scraped("sku-1", "Organic Bananas")

        first = await matcher.resolve(scraped, tnt_store)
        second = await matcher.resolve(scraped, tnt_store)
        third = await matcher.resolve(make_scraped("sku-1", "Bananas, Organic (renamed)"), tnt_store)

        assert first.id == second.id == third.id
        assert await count_products(test_db) == 1

    async def test_fuzzy_match_links_second_store(
        self, test_db, tnt_store, pricesmart_store, make_scraped
    ):
        matcher = ProductMatcher(test_db)

        tnt_product = await matcher.resolve(make_scraped("111", "Organic Bananas"), tnt_store)
        ps_product = await matcher.resolve(make_scraped("ps-9", "ORGANIC  bananas!"), pricesmart_store)

        assert ps_product.id == tnt_product.id
        assert ps_product.store_product_ids == {"TNT": "111", "PRICESMART": "ps-9"}
        assert await count_products(test_db) == 1

    async def test_fuzzy_match_never_overwrites_existing_mapping(
        self, test_db, tnt_store, make_scraped
    ):
        matcher = ProductMatcher(test_db)

        original = await matcher.resolve(make_scraped("111", "Organic Bananas"), tnt_store)
        other = await matcher.resolve(make_scraped("222", "Organic Bananas"), tnt_store)

        assert other.id == original.id
        assert original.store_product_ids == {"TNT": "111"}

    async def test_fuzzy_match_prefers_same_size_and_unit(
        self, test_db, tnt_store, pricesmart_store, make_scraped, product_factory
    ):
        await product_factory(test_db, "Greek Yogurt", {"TNT": "1"}, size="500", unit="g")
        large = await product_factory(test_db, "Greek Yogurt", {"TNT": "2"}, size="750", unit="g")

        product = await ProductMatcher(test_db).resolve(
            make_scraped("ps-1", "Greek Yogurt", size="750", unit="g"), pricesmart_store
        )

        assert product.id == large.id

    async def test_different_size_creates_separate_product(
        self, test_db, tnt_store, pricesmart_store, make_scraped
    ):
        matcher = ProductMatcher(test_db)

        small = await matcher.resolve(make_scraped("a1", "Whole Milk", size="1", unit="l"), tnt_store)
        large = await matcher.resolve(make_scraped("b9", "Whole Milk", size="4", unit="l"), pricesmart_store)

        assert large.id != small.id
        assert (small.size, small.unit) == ("1", "l")
        assert small.store_product_ids == {"TNT": "a1"}
        assert large.store_product_ids == {"PRICESMART": "b9"}
        assert await count_products(test_db) == 2

    async def test_sized_listing_adopts_sizeless_product(
        self, test_db, tnt_store, pricesmart_store, make_scraped
    ):
        matcher = ProductMatcher(test_db)

        plain = await matcher.resolve(make_scraped("a1", "Whole Milk"), tnt_store)
        sized = await matcher.resolve(make_scraped("b9", "Whole Milk", size="4", unit="l"), pricesmart_store)

        assert sized.id == plain.id
        assert (sized.size, sized.unit) == ("4", "l")
        assert await count_products(test_db) == 1

    async def test_names_without_ascii_content_do_not_merge(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)

        first = await matcher.resolve(make_scraped("a", "白菜"), tnt_store)
        second = await matcher.resolve(make_scraped("b", "豆腐"), tnt_store)

        assert first.id != second.id


class TestMerge:
    async def test_merge_never_clears_populated_fields(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)
        await matcher.resolve(
            make_scraped(
                "sku-1",
                "Organic Bananas",
                brand="Dole",
                image_url="https://img.example.com/a.png",
                size="1",
                unit="lb",
                category="2877:Fruits",
            ),
            tnt_store,
        )

        product = await matcher.resolve(make_scraped("sku-1", "Organic Bananas"), tnt_store)

        assert product.brand == "Dole"
        assert product.image_url == "https://img.example.com/a.png"
        assert product.size == "1"
        assert product.unit == "lb"
        assert product.category_id is not None

    async def test_fills_blank_fields_only(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)
        await matcher.resolve(make_scraped("sku-1", "Organic Bananas", brand="Dole"), tnt_store)

        product = await matcher.resolve(
            make_scraped(
                "sku-1",
                "Organic Bananas",
                brand="Chiquita",
                image_url="https://img.example.com/b.png",
            ),
            tnt_store,
        )

        assert product.brand == "Dole"
        assert product.image_url == "https://img.example.com/b.png"

    async def test_size_and_unit_latest_wins(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)
        await matcher.resolve(make_scraped("sku-1", "Greek Yogurt", size="500", unit="g"), tnt_store)

        product = await matcher.resolve(
            make_scraped("sku-1", "Greek Yogurt", size="0.75", unit="kg"), tnt_store
        )

        assert (product.size, product.unit) == ("0.75", "kg")

    async def test_unchanged_listing_is_not_saved(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)
        scraped = make_scraped("sku-1", "Organic Bananas", brand="Dole")
        product = await matcher.resolve(scraped, tnt_store)
        await test_db.commit()

        changed = await matcher._merge(product, scraped, tnt_store)

        assert changed is False
        assert not test_db.dirty


class TestCategoryResolution:
    async def test_code_name_hint(self, test_db, tnt_store, make_scraped):
        product = await ProductMatcher(test_db).resolve(
            make_scraped("sku-1", "Whole Milk 4L", category="2881:Dairy & Eggs"), tnt_store
        )

        category = await test_db.get(Category, product.category_id)
        assert (category.code, category.name) == ("2881", "Dairy & Eggs")
        assert category.store_id == tnt_store.id

    async def test_free_text_hint_is_slugified(self, test_db, tnt_store, make_scraped):
        product = await ProductMatcher(test_db).resolve(
            make_scraped("sku-1", "Whole Milk 4L", category="Dairy & Eggs"), tnt_store
        )

        category = await test_db.get(Category, product.category_id)
        assert (category.code, category.name) == ("dairy-eggs", "dairy-eggs")

    async def test_existing_category_is_reused(self, test_db, tnt_store, make_scraped):
        matcher = ProductMatcher(test_db)

        milk = await matcher.resolve(make_scraped("1", "Milk", category="2881:Dairy & Eggs"), tnt_store)
        eggs = await matcher.resolve(make_scraped("2", "Eggs", category="2881:Dairy & Eggs"), tnt_store)

        assert milk.category_id == eggs.category_id
        count = (await test_db.execute(select(func.count()).select_from(Category))).scalar_one()
        assert count == 1

    async def test_numeric_category_name_is_repaired(self, test_db, tnt_store, make_scraped):
        test_db.add(Category(name="2881", code="2881", store_id=tnt_store.id))
        await test_db.flush()

        product = await ProductMatcher(test_db).resolve(
            make_scraped("sku-1", "Whole Milk 4L", category="2881:Dairy & Eggs"), tnt_store
        )

        category = await test_db.get(Category, product.category_id)
        assert category.name == "Dairy & Eggs"

    async def test_descriptive_name_is_not_replaced_by_number(self, test_db, tnt_store):
        test_db.add(Category(name="Dairy & Eggs", code="2881", store_id=tnt_store.id))
        await test_db.flush()

        category_id = await ProductMatcher(test_db).resolve_category("2881:2881", tnt_store)

        category = await test_db.get(Category, category_id)
        assert category.name == "Dairy & Eggs"

    async def test_blank_hint(self, test_db, tnt_store):
        matcher = ProductMatcher(test_db)
        assert await matcher.resolve_category(None, tnt_store) is None
        assert await matcher.resolve_category("   ", tnt_store) is None

    async def test_categories_are_store_scoped(
        self, test_db, tnt_store, pricesmart_store
    ):
        matcher = ProductMatcher(test_db)

        tnt_category = await matcher.resolve_category("100:Bakery", tnt_store)
        ps_category = await matcher.resolve_category("100:Bakery", pricesmart_store)

        assert tnt_category != ps_category
