"""Product identity resolution.

Reconciles scraped listings from independently run store catalogs into one
canonical Product per real-world item.
"""

import re
from typing import List, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from grocerywatch.models.category import Category
from grocerywatch.models.product import Product
from grocerywatch.models.store import Store
from grocerywatch.repositories import CategoryRepository, ProductRepository
from grocerywatch.scrapers.base import ScrapedProduct
from grocerywatch.services.text import normalize_name, slugify

logger = structlog.get_logger(__name__)

_NUMERIC = re.compile(r"\d+")


class ProductMatcher:
    """Resolves a ScrapedProduct to a canonical Product, merging or creating.

    Resolution order:
    1. Exact: a product already mapping ``store.code`` to the listing's
       store-local id.
    2. Fuzzy: a product with the same normalized name. When the listing
       carries a size and unit, only a candidate with the same size and
       unit, or else one with no size recorded, is accepted. A listing
       without a size takes the oldest candidate.
    3. Create: a new product, with its category resolved from the hint.

    Merging never clears a populated field, so repeated resolution of the
    same listing is idempotent. The caller owns the transaction; this
    class only flushes.
    """

    def __init__(self, db: AsyncSession):
        """Initialize product matcher.

        Args:
            db: Async database session
        """
        self.db = db
        self.products = ProductRepository(db)
        self.categories = CategoryRepository(db)
        self.logger = logger.bind(service="product_matcher")

    async def resolve(self, scraped: ScrapedProduct, store: Store) -> Product:
        """Find or create the canonical product for a scraped listing.

        Args:
            scraped: Listing as parsed by the store's strategy
            store: Store the listing came from

        Returns:
            The matched (and possibly updated) or newly created Product
        """
        product = await self.products.find_by_store_product_id(store.code, scraped.store_product_id)
        if product is not None:
            await self._merge(product, scraped, store)
            return product

        normalized = normalize_name(scraped.name)
        if normalized:
            candidates = await self.products.find_by_normalized_name(normalized)
            product = self._pick_candidate(candidates, scraped) if candidates else None
            if product is not None:
                self.logger.debug(
                    "fuzzy_match",
                    store_code=store.code,
                    store_product_id=scraped.store_product_id,
                    product_id=str(product.id),
                )
                await self._merge(product, scraped, store)
                return product

        return await self._create(scraped, store, normalized or "")

    def _pick_candidate(self, candidates: List[Product], scraped: ScrapedProduct) -> Optional[Product]:
        if not (scraped.size and scraped.unit):
            return candidates[0]

        for candidate in candidates:
            if candidate.size == scraped.size and candidate.unit == scraped.unit:
                return candidate
        for candidate in candidates:
            if not candidate.size:
                return candidate
        # Same name, different size: a distinct item
        return None

    async def _create(self, scraped: ScrapedProduct, store: Store, normalized: str) -> Product:
        category_id = await self.resolve_category(scraped.category, store)

        product = Product(
            name=scraped.name.strip(),
            normalized_name=normalized,
            brand=scraped.brand,
            size=scraped.size,
            unit=scraped.unit,
            image_url=scraped.image_url,
            category_id=category_id,
            store_product_ids={store.code: scraped.store_product_id},
        )
        await self.products.save(product)

        self.logger.info(
            "product_created",
            product_id=str(product.id),
            store_code=store.code,
            store_product_id=scraped.store_product_id,
            name=product.name[:50],
        )
        return product

    async def _merge(self, product: Product, scraped: ScrapedProduct, store: Store) -> bool:
        """Fold supplementary listing fields into ``product``.

        Returns:
            True if anything changed (and the product was saved)
        """
        changed = False

        if not product.image_url and scraped.image_url:
            product.image_url = scraped.image_url
            changed = True

        if not product.brand and scraped.brand:
            product.brand = scraped.brand
            changed = True

        # Packaging data changes often, so the latest listing wins
        if scraped.size and scraped.size != product.size:
            product.size = scraped.size
            changed = True
        if scraped.unit and scraped.unit != product.unit:
            product.unit = scraped.unit
            changed = True

        if product.add_store_product_id(store.code, scraped.store_product_id):
            changed = True

        if product.category_id is None and scraped.category and scraped.category.strip():
            category_id = await self.resolve_category(scraped.category, store)
            if category_id is not None:
                product.category_id = category_id
                changed = True

        if changed:
            await self.products.save(product)
            self.logger.debug("product_merged", product_id=str(product.id), store_code=store.code)

        return changed

    async def resolve_category(self, hint: Optional[str], store: Store) -> Optional[UUID]:
        """Find or create the store-scoped category named by a scraper hint.

        A hint of the form "code:name" is used as-is. Anything else is
        slugified and the slug serves as both code and name.

        Returns:
            Category id, or None when the hint is blank
        """
        if not hint or not hint.strip():
            return None

        if ":" in hint:
            code, name = (part.strip() for part in hint.split(":", 1))
        else:
            code = slugify(hint)
            name = code
        if not code:
            return None
        name = name or code

        category = await self.categories.find_by_store_and_code(store.id, code)
        if category is not None:
            # Earlier scrapes may have stored the store's numeric id as the name
            if _NUMERIC.fullmatch(category.name) and not _NUMERIC.fullmatch(name):
                self.logger.info("category_name_repaired", code=code, old=category.name, new=name)
                category.name = name
                await self.categories.save(category)
            return category.id

        category = await self.categories.save(Category(name=name, code=code, store_id=store.id))
        self.logger.info("category_created", store_code=store.code, code=code, name=name)
        return category.id
