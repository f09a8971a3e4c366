"""PriceSmart Foods strategy.

Parses server-rendered category listing pages with BeautifulSoup.

Structure: div[data-testid='product-card'] (fallback: article.product-card)
  - [data-testid='product-title'] (name), [data-testid='product-brand']
  - [data-testid='regular-price'] / [data-testid='sale-price']
  - [data-testid='product-package-size'] (e.g. "500 g")
  - a[href*='/product/'] detail link ending in the store product id
"""

import re
from typing import List, Optional, Tuple
from urllib.parse import urljoin

import structlog
from bs4 import BeautifulSoup

from grocerywatch.models.store import Store
from grocerywatch.scrapers.base import MAX_PAGES, ScrapedProduct, scrape_category_entries
from grocerywatch.scrapers.utils.fetcher import PageFetcher
from grocerywatch.scrapers.utils.normalizer import PriceNormalizer, extract_size_and_unit

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://www.pricesmartfoods.ca"

DEFAULT_CATEGORY_PATHS = [
    "/products/fruits-vegetables-id-30682",
    "/products/dairy-eggs-id-30843",
    "/products/meat-seafood-id-30791",
    "/products/bakery-id-30889",
    "/products/pantry-id-30906",
]

_CARD_SELECTOR = ", ".join([
    "div[data-testid='product-card']",
    "article.product-card",
    "li.product-grid__item",
])

# "/products/dairy-eggs-id-30843" -> ("30843", "dairy eggs")
_CATEGORY_PATH_PATTERN = re.compile(r"/([a-z0-9-]+?)-id-(\d+)/?$", re.IGNORECASE)
_PRODUCT_ID_PATTERN = re.compile(r"/(\d+)(?:[/?#]|$)")


class PriceSmartStrategy:
    """PriceSmart Foods HTML listing scraper."""

    store_code = "PRICESMART"

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher
        self.logger = logger.bind(store_code=self.store_code)

    async def scrape_all(self, store: Store) -> List[ScrapedProduct]:
        base_url = (store.base_url or DEFAULT_BASE_URL).rstrip("/")
        urls = [urljoin(base_url + "/", path.lstrip("/")) for path in self._category_paths(store)]

        async def scrape_url(url: str) -> List[ScrapedProduct]:
            return await self.scrape_category(url, base_url)

        return await scrape_category_entries(self.store_code, urls, scrape_url)

    def _category_paths(self, store: Store) -> List[str]:
        configured = (store.scraper_config or {}).get("categoryUrls")
        if isinstance(configured, list) and configured:
            return [str(path) for path in configured]
        return list(DEFAULT_CATEGORY_PATHS)

    async def scrape_category(self, url: str, base_url: str = DEFAULT_BASE_URL) -> List[ScrapedProduct]:
        """Walk a category's listing pages until a page yields nothing new."""
        category_hint = category_hint_from_url(url)
        products: List[ScrapedProduct] = []
        seen_ids: set = set()

        for page in range(1, MAX_PAGES + 1):
            try:
                html = await self.fetcher.get_text(url, params={"page": page})
            except Exception as e:
                self.logger.warning("category_page_failed", url=url, page=page, error=str(e))
                break

            page_products = self.parse_listing(html, base_url, category_hint)

            new_products = [p for p in page_products if p.store_product_id not in seen_ids]
            if not new_products:
                self.logger.info("category_exhausted", url=url, page=page)
                break

            for product in new_products:
                seen_ids.add(product.store_product_id)
                products.append(product)

            self.logger.info("category_page_fetched", url=url, page=page, items=len(new_products))
        else:
            self.logger.warning("page_cap_reached", url=url, max_pages=MAX_PAGES)

        return products

    def parse_listing(
        self, html: str, base_url: str = DEFAULT_BASE_URL, category_hint: Optional[str] = None
    ) -> List[ScrapedProduct]:
        """Parse every product card on one listing page."""
        soup = BeautifulSoup(html, "html.parser")
        products = []

        for card in soup.select(_CARD_SELECTOR):
            try:
                product = self._parse_card(card, base_url, category_hint)
                if product:
                    products.append(product)
            except Exception as e:
                self.logger.warning("card_parse_failed", error=str(e))

        return products

    def _parse_card(self, card, base_url: str, category_hint: Optional[str]) -> Optional[ScrapedProduct]:
        link = card.select_one("a[href*='/product/']") or card.select_one("a[href]")
        href = link.get("href") if link else None
        source_url = urljoin(base_url + "/", href.lstrip("/")) if href else base_url

        product_id = card.get("data-product-id")
        if not product_id and href:
            match = _PRODUCT_ID_PATTERN.search(href)
            product_id = match.group(1) if match else None

        name = _text(card, "[data-testid='product-title'], .product-card__title, h3")
        if not product_id or not name:
            return None

        regular_price = PriceNormalizer.clean_price_string(
            _text(card, "[data-testid='regular-price'], .product-card__price--regular, .price")
        )
        sale_price = PriceNormalizer.clean_price_string(
            _text(card, "[data-testid='sale-price'], .product-card__price--sale")
        )
        unit_price = PriceNormalizer.clean_price_string(
            _text(card, "[data-testid='product-unit-price'], .product-card__unit-price")
        )

        if regular_price is None and sale_price is not None:
            regular_price, sale_price = sale_price, None

        on_sale = sale_price is not None and regular_price is not None and sale_price < regular_price

        size_text = _text(card, "[data-testid='product-package-size'], .product-card__size")
        size, unit = extract_size_and_unit(size_text)
        if size is None:
            size, unit = extract_size_and_unit(name)

        image_url = None
        img = card.select_one("img")
        if img:
            image_url = img.get("src") or img.get("data-src")
            if image_url and image_url.startswith("//"):
                image_url = f"https:{image_url}"
            elif image_url and not image_url.startswith("http"):
                image_url = None

        return ScrapedProduct(
            store_product_id=str(product_id),
            name=name,
            source_url=source_url,
            brand=_text(card, "[data-testid='product-brand'], .product-card__brand"),
            size=size,
            unit=unit,
            category=category_hint,
            image_url=image_url,
            regular_price=regular_price,
            sale_price=sale_price if on_sale else regular_price,
            unit_price=unit_price,
            on_sale=on_sale,
            promo_description=_text(card, "[data-testid='product-promo'], .product-card__badge"),
            in_stock=card.select_one("[data-testid='out-of-stock'], .product-card--oos") is None,
        )


def category_hint_from_url(url: str) -> Optional[str]:
    """Build a "code:name" hint from a category URL's ``-id-NNNNN`` suffix."""
    match = _CATEGORY_PATH_PATTERN.search(url.split("?", 1)[0])
    if not match:
        return None
    slug, category_id = match.groups()
    name = slug.rsplit("/", 1)[-1].replace("-", " ").strip().title()
    return f"{category_id}:{name}"


def _text(node, selector: str) -> Optional[str]:
    elem = node.select_one(selector)
    if elem is None:
        return None
    text = elem.get_text(" ", strip=True)
    return text or None
