"""Canonical product shared across stores."""

import uuid
from typing import Optional

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, validates

from grocerywatch.core.exceptions import StoreMappingConflict
from grocerywatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Canonical product reconciled from one or more store listings.

    ``store_product_ids`` maps store code -> the store's own product id.
    It holds at most one entry per store and is add-only: once a store code
    is mapped, its value never changes and the entry is never removed.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(500), nullable=False)
    normalized_name: Mapped[str] = mapped_column(
        String(500), nullable=False, index=True, comment="Fuzzy matching key"
    )
    brand: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    size: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    category_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    store_product_ids: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Store code -> store-local product id",
    )

    __table_args__ = (
        Index("idx_products_name_size_unit", "normalized_name", "size", "unit"),
    )

    @validates("store_product_ids")
    def _validate_store_product_ids(self, key, value):
        current = self.store_product_ids or {}
        value = dict(value or {})
        for store_code, existing in current.items():
            if value.get(store_code) != existing:
                raise StoreMappingConflict(store_code, existing, value.get(store_code))
        return value

    def add_store_product_id(self, store_code: str, store_product_id: str) -> bool:
        """Map a store's local id to this product if the store is not mapped yet.

        Returns:
            True if a new mapping was added, False if the store was already mapped
        """
        current = self.store_product_ids or {}
        if store_code in current:
            return False
        self.store_product_ids = {**current, store_code: store_product_id}
        return True

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name[:50]}', stores={list((self.store_product_ids or {}).keys())})>"
