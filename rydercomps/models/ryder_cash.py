from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
)

from .base import Base
from .column_types import ID_TYPE, MONEY

if TYPE_CHECKING:
    from .user import User


class RyderCashTransaction(Base):
    """Append-only movement on a user's Ryder Cash (site credit) balance.

    ``amount`` is signed: credits are positive, debits negative. ``balance``
    is the user's balance immediately after the movement, kept for audit.
    """

    __tablename__ = "ryder_cash_transactions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    balance: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_by_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="ryder_cash_transactions")

    __table_args__ = (
        CheckConstraint(
            "type IN ('instant_win','purchase','credit','debit','admin_adjustment')",
            name="type_enum",
        ),
        CheckConstraint("amount <> 0", name="amount_non_zero"),
        CheckConstraint("balance >= 0", name="balance_non_negative"),
        Index("ix_ryder_cash_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<RyderCashTransaction(id={self.id}, user_id={self.user_id}, type='{self.type}', "
            f"amount={self.amount}, balance={self.balance})>"
        )
