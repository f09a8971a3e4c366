"""Pytest configuration and shared fixtures."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from grocerywatch.db.session import create_engine, create_session_factory, init_models
from grocerywatch.models import Base, PriceRecord, Product, Store
from grocerywatch.models.base import utcnow
from grocerywatch.scrapers.base import ScrapedProduct
from grocerywatch.services.text import normalize_name


# ============================================================================
# DATABASE FIXTURES
# ============================================================================

@pytest_asyncio.fixture
async def memory_session_factory():
    """Session factory over an in-memory SQLite database."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def test_db(memory_session_factory) -> AsyncSession:
    """A single session on the in-memory database."""
    async with memory_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    """Session factory over a file-backed SQLite database.

    Background scrape tasks open several sessions at once, each needing its
    own connection, which the shared in-memory connection cannot provide.
    """
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'grocerywatch.db'}")
    await init_models(engine)

    yield create_session_factory(engine)

    await engine.dispose()


# ============================================================================
# DATA FIXTURES
# ============================================================================

def build_store(code: str = "TNT", is_active: bool = True, **kwargs) -> Store:
    return Store(
        code=code,
        name=kwargs.pop("name", f"{code} Store"),
        base_url=kwargs.pop("base_url", f"https://{code.lower()}.example.com"),
        is_active=is_active,
        scraper_config=kwargs.pop("scraper_config", {}),
        **kwargs,
    )


@pytest_asyncio.fixture
async def tnt_store(test_db: AsyncSession) -> Store:
    store = build_store("TNT")
    test_db.add(store)
    await test_db.commit()
    return store


@pytest_asyncio.fixture
async def pricesmart_store(test_db: AsyncSession) -> Store:
    store = build_store("PRICESMART")
    test_db.add(store)
    await test_db.commit()
    return store


@pytest.fixture
def make_scraped():
    """Factory for ScrapedProduct with sensible defaults."""

    def _make(
        store_product_id: str = "sku-1",
        name: str = "Organic Bananas",
        regular_price: Optional[str] = "1.99",
        sale_price: Optional[str] = None,
        **kwargs,
    ) -> ScrapedProduct:
        regular = Decimal(regular_price) if regular_price is not None else None
        sale = Decimal(sale_price) if sale_price is not None else None
        return ScrapedProduct(
            store_product_id=store_product_id,
            name=name,
            source_url=kwargs.pop("source_url", f"https://example.com/p/{store_product_id}"),
            regular_price=regular,
            sale_price=sale if sale is not None else regular,
            on_sale=sale is not None and regular is not None and sale < regular,
            **kwargs,
        )

    return _make


async def add_product(db: AsyncSession, name: str, store_ids: Optional[dict] = None, **kwargs) -> Product:
    product = Product(
        name=name,
        normalized_name=normalize_name(name),
        store_product_ids=store_ids or {},
        **kwargs,
    )
    db.add(product)
    await db.flush()
    return product


async def add_price(
    db: AsyncSession,
    product: Product,
    store: Store,
    regular: str,
    sale: Optional[str] = None,
    captured_at: Optional[datetime] = None,
) -> PriceRecord:
    record = PriceRecord(
        product_id=product.id,
        store_id=store.id,
        regular_price=Decimal(regular),
        sale_price=Decimal(sale) if sale is not None else None,
        on_sale=sale is not None,
        captured_at=captured_at or utcnow(),
    )
    db.add(record)
    await db.flush()
    return record


@pytest.fixture
def product_factory():
    """``await product_factory(db, name, store_ids, **fields)``"""
    return add_product


@pytest.fixture
def price_factory():
    """``await price_factory(db, product, store, regular, sale=None, captured_at=None)``"""
    return add_price


@pytest.fixture
def store_factory():
    """``store_factory(code, is_active=True, **fields)`` builds an unsaved Store."""
    return build_store
