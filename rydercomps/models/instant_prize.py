"""Database models for pre-assigned instant-win prizes."""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base
from .column_types import ID_TYPE, MONEY
from .utils import to_money

if TYPE_CHECKING:
    from .competition import Competition
    from .entry import Entry
    from .user import User


class PrizeType(str, enum.Enum):
    """How an instant prize is paid out."""

    CASH = "CASH"
    """Credited to the winner's withdrawable cash balance."""

    SITE_CREDIT = "SITE_CREDIT"
    """Credited to the winner's Ryder Cash site-credit balance."""


class InstantPrize(Base):
    """Competition-scoped prize with a fixed number of winning slots."""

    __tablename__ = "instant_prizes"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    competition_id: Mapped[int] = mapped_column(
        ID_TYPE,
        ForeignKey("competitions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    prize_type: Mapped[PrizeType] = mapped_column(
        Enum(PrizeType, native_enum=False, length=20, validate_strings=True),
        nullable=False,
    )

    value: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    """Monetary value credited per win."""

    total_wins: Mapped[int] = mapped_column(Integer, nullable=False)
    """Number of ticket numbers assigned to this prize."""

    remaining_wins: Mapped[int] = mapped_column(Integer, nullable=False)
    """Unclaimed slots. Only ever decremented, never below zero."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    competition: Mapped["Competition"] = relationship(back_populates="instant_prizes")
    tickets: Mapped[list["InstantWinTicket"]] = relationship(
        back_populates="prize",
        order_by="InstantWinTicket.ticket_number",
    )

    __table_args__ = (
        CheckConstraint("total_wins > 0", name="total_wins_positive"),
        CheckConstraint(
            "remaining_wins >= 0 AND remaining_wins <= total_wins",
            name="remaining_wins_range",
        ),
        CheckConstraint("value > 0", name="value_positive"),
    )

    def __init__(
        self,
        *,
        name: str,
        prize_type: PrizeType,
        value: "Decimal | int | str",
        total_wins: int,
        competition: Optional["Competition"] = None,
        competition_id: Optional[int] = None,
    ) -> None:
        if total_wins <= 0:
            raise ValueError("total_wins must be positive")
        self.name = name
        self.prize_type = PrizeType(prize_type)
        self.value = to_money(value)
        if self.value <= 0:
            raise ValueError("value must be positive")
        self.total_wins = total_wins
        self.remaining_wins = total_wins
        if competition is not None:
            self.competition = competition
        if competition_id is not None:
            self.competition_id = competition_id

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<InstantPrize(id={self.id}, name='{self.name}', type={self.prize_type.value}, "
            f"value={self.value}, remaining={self.remaining_wins}/{self.total_wins})>"
        )

    @property
    def claimed(self) -> int:
        return self.total_wins - self.remaining_wins

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "prize_type": self.prize_type.value,
            "value": str(self.value),
            "total_wins": self.total_wins,
            "remaining_wins": self.remaining_wins,
            "claimed": self.claimed,
        }


class InstantWinTicket(Base):
    """Ticket number pre-assigned to an :class:`InstantPrize`.

    Created at competition setup with no winner. The purchase that sells the
    number claims it exactly once; a claimed ticket is never reassigned.
    """

    __tablename__ = "instant_win_tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)
    prize_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("instant_prizes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    winner_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    winner_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    entry_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("entries.id", ondelete="SET NULL"), nullable=True
    )
    claimed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    competition: Mapped["Competition"] = relationship(back_populates="instant_win_tickets")
    prize: Mapped["InstantPrize"] = relationship(back_populates="tickets")
    winner: Mapped[Optional["User"]] = relationship()
    entry: Mapped[Optional["Entry"]] = relationship(back_populates="instant_win_tickets")

    __table_args__ = (
        UniqueConstraint("competition_id", "ticket_number", name="uq_instant_win_ticket_number"),
        CheckConstraint("ticket_number >= 1", name="ticket_number_positive"),
        Index("ix_instant_win_tickets_competition_prize", "competition_id", "prize_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<InstantWinTicket(competition_id={self.competition_id}, "
            f"ticket_number={self.ticket_number}, prize_id={self.prize_id}, "
            f"winner_id={self.winner_id})>"
        )

    @property
    def is_claimed(self) -> bool:
        return self.winner_id is not None

    def to_json(self) -> dict[str, Any]:
        prize = self.prize
        return {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "prize_id": self.prize_id,
            "prize_name": prize.name if prize is not None else None,
            "prize_type": prize.prize_type.value if prize is not None else None,
            "prize_value": str(prize.value) if prize is not None else None,
            "is_claimed": self.is_claimed,
            "winner_name": self.winner_name,
            "claimed_at": dt_iso(self.claimed_at),
        }


__all__ = ["PrizeType", "InstantPrize", "InstantWinTicket"]
