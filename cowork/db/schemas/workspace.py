from datetime import date, time
from decimal import Decimal
from pydantic import BaseModel, Field


class WorkspaceBase(BaseModel):
    name: str
    category: str
    capacity: int = 1
    hourly_rate: Decimal
    min_duration_hours: Decimal = Decimal("1")
    max_duration_hours: Decimal = Decimal("8")
    accepts_credits: bool = False
    opens_at: time | None = None
    closes_at: time | None = None
    is_active: bool = True


class Workspace(WorkspaceBase):
    id: int

    class Config:
        from_attributes = True


class FreeSlot(BaseModel):
    start_time: time
    end_time: time
    duration_hours: Decimal


class Availability(BaseModel):
    workspace_id: int
    day: date
    slots: list[FreeSlot]


class QuoteRequest(BaseModel):
    duration_hours: Decimal = Field(gt=0)
    on: date | None = None
    use_credits: bool = True
