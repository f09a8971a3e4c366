"""Price-drop notification subscriptions."""

from typing import Optional

from sqlalchemy import JSON, BigInteger, Boolean, CheckConstraint, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from grocerywatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class Subscription(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A chat that receives price-drop alerts.

    Empty ``store_filters`` / ``category_filters`` mean "all stores" and
    "all categories".
    """

    __tablename__ = "subscriptions"

    chat_id: Mapped[int] = mapped_column(BigInteger, unique=True, index=True, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    min_drop_percentage: Mapped[int] = mapped_column(
        Integer, nullable=False, default=10, comment="Notify on drops of at least this percent"
    )
    store_filters: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    category_filters: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    first_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "min_drop_percentage >= 0 AND min_drop_percentage <= 100",
            name="ck_subscription_min_drop_range",
        ),
    )

    def __repr__(self) -> str:
        return f"<Subscription(chat_id={self.chat_id}, active={self.is_active}, min_drop={self.min_drop_percentage})>"
