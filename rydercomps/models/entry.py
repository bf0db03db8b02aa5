from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from ..db.utils import dt_iso
from .base import Base
from .column_types import ID_TYPE, MONEY
from .utils import to_money

if TYPE_CHECKING:
    from .competition import Competition
    from .instant_prize import InstantWinTicket
    from .user import User


PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_REFUNDED = "refunded"

PAYMENT_METHOD_CARD = "card"
PAYMENT_METHOD_RYDER_CASH = "ryder_cash"


class Entry(Base):
    """One purchase of one or more ticket numbers in a competition.

    Entries are created by the purchase workflow together with their
    :class:`EntryTicket` rows and are immutable afterwards apart from the
    payment status (``pending -> completed -> refunded``).
    """

    def __init__(
        self,
        user_id: int,
        competition_id: int,
        quantity: int,
        total_cost: "Decimal | int | str",
        payment_method: str = PAYMENT_METHOD_CARD,
        payment_status: str = PAYMENT_PENDING,
        payment_reference: Optional[str] = None,
        created_at: Optional[datetime] = None,
    ):
        """Create a new entry.

        Parameters
        ----------
        user_id : int
            Purchasing user's ID.
        competition_id : int
            Competition the tickets belong to.
        quantity : int
            Number of tickets bought. Must equal the number of ticket rows.
        total_cost : Decimal
            ``quantity * ticket_price`` at purchase time.
        payment_method : str, optional
            ``"card"`` (external payment collaborator) or ``"ryder_cash"``.
        payment_status : str, optional
            Initial payment status, ``"pending"`` by default.
        payment_reference : str, optional
            Reference returned by the payment collaborator.
        created_at : datetime, optional
            Explicit creation timestamp.
        """

        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        self.user_id = user_id
        self.competition_id = competition_id
        self.quantity = quantity
        self.total_cost = to_money(total_cost)
        self.payment_method = payment_method
        self.payment_status = payment_status
        self.payment_reference = payment_reference
        self.has_instant_win = False
        if created_at is not None:
            self.created_at = created_at

    __tablename__ = "entries"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    competition_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cost: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PAYMENT_METHOD_CARD
    )
    payment_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PAYMENT_PENDING
    )
    payment_reference: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    has_instant_win: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
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

    user: Mapped["User"] = relationship(back_populates="entries")
    competition: Mapped["Competition"] = relationship(back_populates="entries")
    tickets: Mapped[list["EntryTicket"]] = relationship(
        back_populates="entry",
        cascade="all, delete-orphan",
        order_by="EntryTicket.number",
    )
    instant_win_tickets: Mapped[list["InstantWinTicket"]] = relationship(
        back_populates="entry"
    )

    __table_args__ = (
        CheckConstraint("quantity > 0", name="quantity_positive"),
        CheckConstraint(
            "payment_status IN ('pending','completed','refunded')",
            name="payment_status_enum",
        ),
        CheckConstraint(
            "payment_method IN ('card','ryder_cash')", name="payment_method_enum"
        ),
        Index("ix_entries_competition_status", "competition_id", "payment_status"),
    )

    def __repr__(self) -> str:
        return (
            f"<Entry(id={self.id}, user_id={self.user_id}, competition_id={self.competition_id}, "
            f"quantity={self.quantity}, payment_status='{self.payment_status}')>"
        )

    @property
    def ticket_numbers(self) -> list[int]:
        """Ticket numbers granted by this entry, ascending."""
        return sorted(t.number for t in self.tickets)

    def mark_completed(self, payment_reference: Optional[str] = None) -> None:
        """Record a confirmed payment for a pending entry."""

        if self.payment_status != PAYMENT_PENDING:
            raise ValueError(
                f"Cannot complete an entry whose payment is '{self.payment_status}'"
            )
        self.payment_status = PAYMENT_COMPLETED
        if payment_reference is not None:
            self.payment_reference = payment_reference

    def mark_refunded(self) -> None:
        """Void a completed entry. Its ticket numbers stay allocated."""

        if self.payment_status != PAYMENT_COMPLETED:
            raise ValueError(
                f"Only completed entries can be refunded (status '{self.payment_status}')"
            )
        self.payment_status = PAYMENT_REFUNDED

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "competition_id": self.competition_id,
            "ticket_numbers": self.ticket_numbers,
            "quantity": self.quantity,
            "total_cost": str(self.total_cost),
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "has_instant_win": self.has_instant_win,
            "created_at": dt_iso(self.created_at),
        }


class EntryTicket(Base):
    """A single ticket number owned through an :class:`Entry`.

    The ``(competition_id, number)`` unique constraint is the storage-level
    guarantee that no number is sold twice within a competition.
    """

    __tablename__ = "entry_tickets"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    competition_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    entry_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("entries.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    number: Mapped[int] = mapped_column(Integer, nullable=False)

    entry: Mapped["Entry"] = relationship(back_populates="tickets")
    competition: Mapped["Competition"] = relationship()

    __table_args__ = (
        UniqueConstraint("competition_id", "number", name="uq_entry_ticket_number"),
        CheckConstraint("number >= 1", name="number_positive"),
    )

    def __repr__(self) -> str:
        return (
            f"<EntryTicket(competition_id={self.competition_id}, number={self.number}, "
            f"entry_id={self.entry_id}, user_id={self.user_id})>"
        )
