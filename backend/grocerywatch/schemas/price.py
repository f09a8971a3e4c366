"""Price drop projection."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class PriceDropResponse(BaseModel):
    """Serializable view of a detected price drop."""

    model_config = ConfigDict(from_attributes=True)

    product_id: UUID
    product_name: str
    store_code: str
    previous_price: Decimal
    current_price: Decimal
    drop_amount: Decimal
    drop_percentage: Decimal
    detected_at: datetime
    category_code: Optional[str] = None
    source_url: Optional[str] = None
