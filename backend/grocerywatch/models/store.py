"""Store model representing a grocery retailer website."""

from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grocerywatch.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from grocerywatch.models.scrape_job import ScrapeJob


class Store(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Grocery retailer.

    Created at bootstrap and rarely mutated. ``code`` selects the scraper
    strategy; ``scraper_config`` carries strategy-specific overrides such as
    category entry points.
    """

    __tablename__ = "stores"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[str] = mapped_column(
        String(50), unique=True, index=True, nullable=False, comment="Strategy key, e.g. 'TNT'"
    )
    base_url: Mapped[str] = mapped_column(String(500), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    scraper_config: Mapped[dict] = mapped_column(
        JSON,
        nullable=False,
        default=dict,
        comment="Strategy config: categoryIds, categoryUrls, storeId, ...",
    )

    scrape_jobs: Mapped[list["ScrapeJob"]] = relationship(
        back_populates="store", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Store(id={self.id}, code='{self.code}', name='{self.name}')>"
