from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, String, Text

from .base import Base
from .column_types import ID_TYPE, MONEY

if TYPE_CHECKING:
    from .user import User


WITHDRAWAL_PENDING = "PENDING"
WITHDRAWAL_COMPLETED = "COMPLETED"
WITHDRAWAL_REJECTED = "REJECTED"


class WithdrawalRequest(Base):
    """Request to pay out part of a user's cash balance.

    The amount leaves ``User.cash_balance`` when the request is created and is
    refunded if an admin rejects it.
    """

    __tablename__ = "withdrawal_requests"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payment_details: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # JSON encoded payout details
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=WITHDRAWAL_PENDING)
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    processed_by_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    processed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    user: Mapped["User"] = relationship(
        back_populates="withdrawal_requests", foreign_keys=[user_id]
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','COMPLETED','REJECTED')", name="status_enum"
        ),
        CheckConstraint("amount > 0", name="amount_positive"),
        Index("ix_withdrawal_user_status", "user_id", "status"),
    )

    def __repr__(self) -> str:
        return (
            f"<WithdrawalRequest(id={self.id}, user_id={self.user_id}, amount={self.amount}, "
            f"status='{self.status}')>"
        )
