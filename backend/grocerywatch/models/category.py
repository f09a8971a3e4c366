"""Category model for product classification."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grocerywatch.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow


class Category(UUIDPrimaryKeyMixin, Base):
    """Product category, optionally scoped to one store.

    Store-scoped categories are created on the fly from scraper category
    hints; ``code`` is either the store's own category id or a slug of the
    hint text.
    """

    __tablename__ = "categories"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    code: Mapped[str] = mapped_column(String(200), nullable=False, index=True)

    parent_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    store_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        comment="Owning store for store-scoped categories",
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint("store_id", "code", name="uq_category_store_code"),
    )

    parent: Mapped[Optional["Category"]] = relationship(
        "Category",
        remote_side="Category.id",
    )

    def __repr__(self) -> str:
        return f"<Category(id={self.id}, code='{self.code}', name='{self.name}')>"
