"""Scrape job status projection."""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from grocerywatch.models.scrape_job import JobStatus


class ScrapeJobStatus(BaseModel):
    """Read-only view of a ScrapeJob, safe to hand out after the session closes."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    store_code: str
    status: JobStatus
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    total_products: int = 0
    success_count: int = 0
    error_count: int = 0
    error_messages: List[str] = Field(default_factory=list)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
