"""Append-only price observations."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, ForeignKey, Index, Numeric, String, Text, event
from sqlalchemy.orm import Mapped, mapped_column, object_session

from grocerywatch.core.exceptions import ImmutableRecordError
from grocerywatch.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class PriceRecord(UUIDPrimaryKeyMixin, Base):
    """One price observation for a product at a store.

    Written once per scrape per product/store pair and never updated or
    deleted afterwards; the mapper events below enforce this on flush.
    """

    __tablename__ = "price_records"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    store_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    regular_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    sale_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)
    unit_price: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 4), nullable=True)
    on_sale: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    promo_description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    captured_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        comment="When this price was scraped",
    )
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    source_url: Mapped[Optional[str]] = mapped_column(String(2000), nullable=True)

    __table_args__ = (
        Index("idx_price_records_store_captured", "store_id", "captured_at"),
        Index("idx_price_records_product_store_captured", "product_id", "store_id", "captured_at"),
    )

    @property
    def effective_price(self) -> Optional[Decimal]:
        """Sale price when on sale and present, else regular price."""
        if self.on_sale and self.sale_price is not None:
            return self.sale_price
        return self.regular_price

    def __repr__(self) -> str:
        return (
            f"<PriceRecord(id={self.id}, product_id={self.product_id}, store_id={self.store_id}, "
            f"price={self.effective_price}, captured_at={self.captured_at})>"
        )


@event.listens_for(PriceRecord, "before_update")
def _reject_price_record_update(mapper, connection, target: PriceRecord) -> None:
    session = object_session(target)
    if session is None or session.is_modified(target, include_collections=False):
        raise ImmutableRecordError(f"PriceRecord {target.id} is append-only and cannot be updated")


@event.listens_for(PriceRecord, "before_delete")
def _reject_price_record_delete(mapper, connection, target: PriceRecord) -> None:
    raise ImmutableRecordError(f"PriceRecord {target.id} is append-only and cannot be deleted")
