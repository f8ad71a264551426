"""
Pydantic schemas for event responses.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, computed_field

from chessbook.models.enums import ConcessionType, EventStatus


class CategoryResponse(BaseModel):
    category_code: str
    category_name: str
    age_limit: Optional[int]

    model_config = {"from_attributes": True}


class EventResponse(BaseModel):
    id: int
    name: str
    description: Optional[str]
    location: str
    start_date: date
    entry_fee: Decimal
    max_capacity: Optional[int]
    current_bookings: int
    is_online: bool
    govt_concession_type: ConcessionType
    govt_concession_value: Decimal
    event_status: EventStatus
    categories: list[CategoryResponse] = []
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @computed_field
    @property
    def available_slots(self) -> Optional[int]:
        if self.max_capacity is None:
            return None
        return max(self.max_capacity - self.current_bookings, 0)


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False
