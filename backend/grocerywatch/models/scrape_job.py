"""Scrape job tracking and monitoring."""

import enum
import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, Enum, ForeignKey, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from grocerywatch.core.exceptions import InvalidStateError
from grocerywatch.models.base import Base, UTCDateTime, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from grocerywatch.models.store import Store


class JobStatus(str, enum.Enum):
    """Lifecycle of a scrape job: PENDING -> RUNNING -> COMPLETED | FAILED."""

    PENDING = "PENDING"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


_ALLOWED_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: set(),
}


class ScrapeJob(UUIDPrimaryKeyMixin, Base):
    """One execution attempt of a store's scraping pipeline.

    Created PENDING at trigger time, moved to RUNNING by the background task
    and finished as COMPLETED or FAILED. Terminal jobs are never reopened;
    a failed store needs a fresh trigger.
    """

    __tablename__ = "scrape_jobs"

    store_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("stores.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    store_code: Mapped[str] = mapped_column(String(50), nullable=False)

    status: Mapped[JobStatus] = mapped_column(
        Enum(JobStatus, name="scrape_job_status", native_enum=False, length=20),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, server_default=func.now()
    )
    started_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True, comment="When the job moved to RUNNING"
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True, comment="When the job reached a terminal state"
    )

    total_products: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_messages: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    store: Mapped["Store"] = relationship(back_populates="scrape_jobs")

    def transition_to(self, status: JobStatus) -> None:
        """Move the job to ``status``, enforcing the lifecycle."""
        current = self.status or JobStatus.PENDING
        if status not in _ALLOWED_TRANSITIONS[current]:
            raise InvalidStateError(
                f"ScrapeJob {self.id} cannot move from {current.value} to {status.value}"
            )
        self.status = status
        now = utcnow()
        if status is JobStatus.RUNNING:
            self.started_at = now
        elif status.is_terminal:
            self.completed_at = now

    def add_error(self, message: str) -> None:
        self.error_messages = [*(self.error_messages or []), message]

    def __repr__(self) -> str:
        return f"<ScrapeJob(id={self.id}, store_code='{self.store_code}', status='{self.status}')>"
