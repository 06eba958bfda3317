from datetime import date, datetime
from decimal import Decimal
from enum import Enum as PyEnum
from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ..session import Base


class CreditType(str, PyEnum):
    meeting_room = "meeting-room"
    printing = "printing"
    guest_pass = "guest-pass"


class CreditBalanceStatus(str, PyEnum):
    active = "active"
    expired = "expired"
    rolled_over = "rolled-over"


class CreditTransactionType(str, PyEnum):
    allocation = "allocation"
    usage = "usage"
    refund = "refund"
    expiration = "expiration"


class CreditBalance(Base):
    """Cached projection of one user's allowance for one type and billing cycle."""

    __tablename__ = "credit_balances"
    __table_args__ = (
        UniqueConstraint("user_id", "credit_type", "cycle_start", name="uq_credit_balance_cycle"),
        CheckConstraint("remaining_amount >= 0", name="ck_credit_balance_remaining"),
        CheckConstraint("cycle_end >= cycle_start", name="ck_credit_balance_cycle_order"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    credit_type: Mapped[CreditType] = mapped_column(Enum(CreditType))
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    used_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    remaining_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    expired_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    cycle_start: Mapped[date] = mapped_column(Date)
    cycle_end: Mapped[date] = mapped_column(Date)
    status: Mapped[CreditBalanceStatus] = mapped_column(
        Enum(CreditBalanceStatus), default=CreditBalanceStatus.active
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    user = relationship("User")
    transactions = relationship(
        "CreditTransaction", back_populates="balance", order_by="CreditTransaction.id"
    )


class CreditTransaction(Base):
    __tablename__ = "credit_transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True)
    balance_id: Mapped[int] = mapped_column(
        ForeignKey("credit_balances.id", ondelete="CASCADE"), index=True
    )
    booking_id: Mapped[int | None] = mapped_column(
        ForeignKey("bookings.id", ondelete="SET NULL"), index=True
    )
    reverses_id: Mapped[int | None] = mapped_column(ForeignKey("credit_transactions.id"))
    transaction_type: Mapped[CreditTransactionType] = mapped_column(Enum(CreditTransactionType))
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    balance_after: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    description: Mapped[str] = mapped_column(String(255), default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    balance = relationship("CreditBalance", back_populates="transactions")
