"""T&T Supermarket strategy.

Reads listings from the storefront's GraphQL endpoint, one category at a
time, paging until ``page_info.total_pages`` (capped at MAX_PAGES).
"""

from typing import Any, Dict, List, Optional

import structlog

from grocerywatch.models.store import Store
from grocerywatch.scrapers.base import MAX_PAGES, ScrapedProduct, scrape_category_entries
from grocerywatch.scrapers.utils.fetcher import PageFetcher
from grocerywatch.scrapers.utils.normalizer import PriceNormalizer, extract_size_and_unit

logger = structlog.get_logger(__name__)

GRAPHQL_URL = "https://www.tntsupermarket.com/graphql"
PAGE_SIZE = 35

# Default category id -> display name
CATEGORY_NAMES: Dict[str, str] = {
    "2876": "Bakery",
    "2877": "Fruits",
    "2878": "Vegetables",
    "2879": "Meat",
    "2880": "Seafood",
    "2881": "Dairy & Eggs",
}

PRODUCTS_QUERY = """
query GetCategories($id:Int!$pageSize:Int!$currentPage:Int!$filters:ProductAttributeFilterInput!$sort:ProductAttributeSortInput){
  category(id:$id){ id name }
  products(pageSize:$pageSize currentPage:$currentPage filter:$filters sort:$sort){
    items{
      id sku name
      price{ regularPrice{ amount{ currency value } } }
      price_range{ minimum_price{ final_price{ currency value } } }
      was_price
      weight_uom
      small_image{ url }
      stock_status
      url_key
      url_suffix
    }
    page_info{ total_pages current_page }
    total_count
  }
}
"""


class TntStrategy:
    """T&T Supermarket GraphQL scraper."""

    store_code = "TNT"

    def __init__(self, fetcher: PageFetcher):
        self.fetcher = fetcher
        self.logger = logger.bind(store_code=self.store_code)

    async def scrape_all(self, store: Store) -> List[ScrapedProduct]:
        category_ids = self._category_ids(store)
        return await scrape_category_entries(self.store_code, category_ids, self.scrape_category)

    def _category_ids(self, store: Store) -> List[str]:
        configured = (store.scraper_config or {}).get("categoryIds")
        if isinstance(configured, list) and configured:
            return [str(c) for c in configured]
        return list(CATEGORY_NAMES)

    async def scrape_category(self, category_id: str) -> List[ScrapedProduct]:
        """Fetch every page of one category."""
        products: List[ScrapedProduct] = []
        current_page = 1
        total_pages = 1

        while current_page <= min(total_pages, MAX_PAGES):
            try:
                data = await self.fetcher.post_json(
                    GRAPHQL_URL, self._build_request(category_id, current_page)
                )
            except Exception as e:
                # Keep the pages already parsed
                self.logger.warning(
                    "category_page_failed", category_id=category_id, page=current_page, error=str(e)
                )
                break

            products_node = ((data or {}).get("data") or {}).get("products")
            if not products_node:
                self.logger.warning("no_products_in_response", category_id=category_id, page=current_page)
                break

            page_info = products_node.get("page_info") or {}
            try:
                total_pages = int(page_info.get("total_pages") or 1)
            except (TypeError, ValueError):
                total_pages = 1

            items = products_node.get("items") or []
            for item in items:
                try:
                    product = self._parse_item(item, category_id)
                    if product:
                        products.append(product)
                except Exception as e:
                    self.logger.warning("item_parse_failed", category_id=category_id, error=str(e))

            self.logger.info(
                "category_page_fetched",
                category_id=category_id,
                page=current_page,
                total_pages=total_pages,
                items=len(items),
            )
            current_page += 1

        if total_pages > MAX_PAGES:
            self.logger.warning("page_cap_reached", category_id=category_id, total_pages=total_pages)

        return products

    def _build_request(self, category_id: str, page: int) -> Dict[str, Any]:
        return {
            "operationName": "GetCategories",
            "query": PRODUCTS_QUERY,
            "variables": {
                "id": int(category_id),
                "pageSize": PAGE_SIZE,
                "currentPage": page,
                "filters": {"category_id": {"eq": category_id}},
                "sort": {"position": "DESC"},
            },
        }

    def _parse_item(self, item: Dict[str, Any], category_id: str) -> Optional[ScrapedProduct]:
        product_id = item.get("sku") or item.get("id")
        name = (item.get("name") or "").strip()
        if not product_id or not name:
            return None

        regular_price = PriceNormalizer.to_decimal(
            _dig(item, "price", "regularPrice", "amount", "value")
        )
        final_price = PriceNormalizer.to_decimal(
            _dig(item, "price_range", "minimum_price", "final_price", "value")
        )

        # was_price, when set, is the pre-promotion shelf price
        was_price = PriceNormalizer.to_decimal(item.get("was_price"))
        if was_price is not None and was_price > 0:
            regular_price = was_price

        if regular_price is None and final_price is not None:
            regular_price, final_price = final_price, None

        on_sale = (
            final_price is not None
            and regular_price is not None
            and final_price < regular_price
        )

        size, unit = extract_size_and_unit(name)
        unit = item.get("weight_uom") or unit

        url_key = item.get("url_key") or ""
        source_url = f"https://www.tntsupermarket.com/{url_key}{item.get('url_suffix') or ''}"
        category_name = CATEGORY_NAMES.get(category_id, category_id)

        return ScrapedProduct(
            store_product_id=str(product_id),
            name=name,
            source_url=source_url,
            size=size,
            unit=unit,
            category=f"{category_id}:{category_name}",
            image_url=_dig(item, "small_image", "url"),
            regular_price=regular_price,
            sale_price=final_price if on_sale else regular_price,
            on_sale=on_sale,
            in_stock=item.get("stock_status") != "OUT_OF_STOCK",
        )


def _dig(node: Any, *path: str) -> Any:
    """Follow nested dict keys, returning None at the first missing level."""
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node
