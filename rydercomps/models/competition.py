"""Database model for a time-boxed paid-entry competition."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import as_utc, dt_iso
from .base import Base
from .column_types import ID_TYPE, MONEY
from .utils import to_money

if TYPE_CHECKING:
    from .draw import DrawRecord
    from .entry import Entry
    from .instant_prize import InstantPrize, InstantWinTicket
    from .user import User


STATUS_OPEN = "open"
STATUS_CLOSED = "closed"
STATUS_DRAWN = "drawn"


class Competition(Base):
    """A competition selling numbered tickets ``1..max_tickets``.

    Moves through ``open -> closed -> drawn``. ``open`` means tickets can be
    bought right now; ``closed`` covers both "not started yet" and "finished or
    deactivated"; ``drawn`` is terminal and is reached once ``winner_id`` is
    set by the fair draw.
    """

    __tablename__ = "competitions"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Primary key."""

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    """Headline shown to customers."""

    slug: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    """URL-safe unique identifier derived from the title."""

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    ticket_price: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    """Price of a single ticket."""

    max_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    """Hard ceiling on the number of tickets that can ever be allocated."""

    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """Sales open at this instant (inclusive)."""

    end_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    """Sales close at this instant (exclusive)."""

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    """Admin kill switch. Inactive competitions reject purchases."""

    prize_value: Mapped[Optional[Decimal]] = mapped_column(MONEY, nullable=True)
    """Optional advertised value of the grand prize."""

    has_instant_wins: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    """Set once instant prizes have been assigned to ticket numbers."""

    tickets_allocated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    """Highest ticket number handed out so far. Only moved by the ticket ledger."""

    winner_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    """Grand-prize winner. Once set the competition is terminal for drawing."""

    winning_ticket_number: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    draw_timestamp: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    draw_reference: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    """Public identifier of the draw, mirrored from :class:`DrawRecord`."""

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    entries: Mapped[list["Entry"]] = relationship(
        back_populates="competition", cascade="all, delete-orphan"
    )
    instant_prizes: Mapped[list["InstantPrize"]] = relationship(
        back_populates="competition", cascade="all, delete-orphan"
    )
    instant_win_tickets: Mapped[list["InstantWinTicket"]] = relationship(
        back_populates="competition", cascade="all, delete-orphan"
    )
    winner: Mapped[Optional["User"]] = relationship(foreign_keys=[winner_id])
    draw_record: Mapped[Optional["DrawRecord"]] = relationship(
        back_populates="competition", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (
        CheckConstraint("max_tickets > 0", name="max_tickets_positive"),
        CheckConstraint("ticket_price >= 0", name="ticket_price_non_negative"),
        CheckConstraint(
            "tickets_allocated >= 0 AND tickets_allocated <= max_tickets",
            name="tickets_allocated_range",
        ),
        CheckConstraint("end_date > start_date", name="window_order"),
    )

    def __init__(
        self,
        *,
        title: str,
        slug: str,
        ticket_price: "Decimal | int | str",
        max_tickets: int,
        start_date: datetime,
        end_date: datetime,
        description: Optional[str] = None,
        is_active: bool = True,
        prize_value: "Decimal | int | str | None" = None,
    ) -> None:
        if max_tickets <= 0:
            raise ValueError("max_tickets must be positive")
        if as_utc(end_date) <= as_utc(start_date):
            raise ValueError("end_date must be after start_date")
        self.title = title
        self.slug = slug
        self.description = description
        self.ticket_price = to_money(ticket_price)
        self.max_tickets = max_tickets
        self.start_date = start_date
        self.end_date = end_date
        self.is_active = is_active
        self.prize_value = to_money(prize_value) if prize_value is not None else None
        self.has_instant_wins = False
        self.tickets_allocated = 0

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<Competition(id={self.id}, slug='{self.slug}', max_tickets={self.max_tickets}, "
            f"tickets_allocated={self.tickets_allocated}, winner_id={self.winner_id})>"
        )

    @classmethod
    def get_by_slug(cls, session: Session, slug: str) -> Optional["Competition"]:
        """Return the competition with ``slug`` if it exists."""

        return session.scalar(select(cls).where(cls.slug == slug))

    @property
    def remaining_tickets(self) -> int:
        """Ticket numbers not yet handed out by the ledger."""
        return max(self.max_tickets - (self.tickets_allocated or 0), 0)

    @property
    def is_drawn(self) -> bool:
        return self.winner_id is not None

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Whether tickets can be sold at ``now`` (defaults to the current time)."""

        if not self.is_active or self.is_drawn:
            return False
        ref = as_utc(now) if now is not None else datetime.now(timezone.utc)
        return as_utc(self.start_date) <= ref < as_utc(self.end_date)

    def status(self, now: Optional[datetime] = None) -> str:
        """Return ``"open"``, ``"closed"`` or ``"drawn"``."""

        if self.is_drawn:
            return STATUS_DRAWN
        if self.is_open(now):
            return STATUS_OPEN
        return STATUS_CLOSED

    def to_json(self, now: Optional[datetime] = None) -> dict[str, Any]:
        """Snapshot of the competition suitable for JSON encoding."""

        return {
            "id": self.id,
            "title": self.title,
            "slug": self.slug,
            "description": self.description,
            "ticket_price": str(self.ticket_price),
            "max_tickets": self.max_tickets,
            "tickets_allocated": self.tickets_allocated,
            "remaining_tickets": self.remaining_tickets,
            "start_date": dt_iso(self.start_date),
            "end_date": dt_iso(self.end_date),
            "is_active": self.is_active,
            "status": self.status(now),
            "prize_value": str(self.prize_value) if self.prize_value is not None else None,
            "has_instant_wins": self.has_instant_wins,
            "winner_id": self.winner_id,
            "winning_ticket_number": self.winning_ticket_number,
            "draw_timestamp": dt_iso(self.draw_timestamp),
            "draw_reference": self.draw_reference,
        }


__all__ = ["Competition", "STATUS_OPEN", "STATUS_CLOSED", "STATUS_DRAWN"]
