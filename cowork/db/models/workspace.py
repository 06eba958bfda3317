from datetime import time
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    Integer,
    Numeric,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class WorkspaceCategory(str, PyEnum):
    desk = "desk"
    meeting_room = "meeting-room"


class Workspace(Base):
    __tablename__ = "workspaces"
    __table_args__ = (
        CheckConstraint("hourly_rate >= 0", name="ck_workspace_rate_non_negative"),
        CheckConstraint("min_duration_hours > 0", name="ck_workspace_min_duration_positive"),
        CheckConstraint(
            "max_duration_hours >= min_duration_hours", name="ck_workspace_duration_range"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    category: Mapped[WorkspaceCategory] = mapped_column(Enum(WorkspaceCategory))
    capacity: Mapped[int] = mapped_column(Integer, default=1)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    min_duration_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("1"))
    max_duration_hours: Mapped[Decimal] = mapped_column(Numeric(6, 2), default=Decimal("8"))
    accepts_credits: Mapped[bool] = mapped_column(Boolean, default=False)
    opens_at: Mapped[time | None] = mapped_column(Time)
    closes_at: Mapped[time | None] = mapped_column(Time)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    bookings = relationship("Booking", back_populates="workspace")

    @property
    def granularity_minutes(self) -> int:
        return int(Decimal(self.min_duration_hours) * 60)
