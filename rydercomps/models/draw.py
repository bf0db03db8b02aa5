"""Database model for the audit record of a completed fair draw."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    select,
)
from sqlalchemy.orm import Mapped, Session, mapped_column, relationship

from ..db.utils import dt_iso
from .base import Base
from .column_types import ID_TYPE

if TYPE_CHECKING:
    from .admin import Admin
    from .competition import Competition
    from .user import User


class DrawRecord(Base):
    """Immutable record of the grand-prize draw for one competition."""

    __tablename__ = "draw_records"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    """Surrogate primary key."""

    draw_reference: Mapped[str] = mapped_column(String(64), nullable=False)
    """Public identifier of the draw (``draw-<base62>``)."""

    competition_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("competitions.id", ondelete="CASCADE"), nullable=False
    )
    """Competition that was drawn. At most one record per competition."""

    total_tickets: Mapped[int] = mapped_column(Integer, nullable=False)
    """Size of the ticket pool at draw time."""

    total_participants: Mapped[int] = mapped_column(Integer, nullable=False)
    """Distinct users holding at least one ticket in the pool."""

    random_index: Mapped[int] = mapped_column(Integer, nullable=False)
    """Zero-based position picked in the pool ordered by ticket number."""

    winning_ticket_number: Mapped[int] = mapped_column(Integer, nullable=False)

    winner_id: Mapped[int] = mapped_column(
        ID_TYPE, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    drawn_by_admin_id: Mapped[Optional[int]] = mapped_column(
        ID_TYPE, ForeignKey("admins.id", ondelete="SET NULL"), nullable=True
    )
    """Admin who triggered the draw."""

    drawn_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    competition: Mapped["Competition"] = relationship(back_populates="draw_record")
    winner: Mapped["User"] = relationship()
    drawn_by: Mapped[Optional["Admin"]] = relationship()

    __table_args__ = (
        UniqueConstraint("competition_id", name="uq_draw_record_competition"),
        UniqueConstraint("draw_reference", name="uq_draw_record_reference"),
        CheckConstraint(
            "random_index >= 0 AND random_index < total_tickets", name="random_index_range"
        ),
        CheckConstraint("total_participants >= 1", name="participants_positive"),
    )

    def __repr__(self) -> str:  # pragma: no cover - repr is trivial
        return (
            f"<DrawRecord(id={self.id}, competition_id={self.competition_id}, "
            f"winning_ticket_number={self.winning_ticket_number}, winner_id={self.winner_id})>"
        )

    @classmethod
    def get_for_competition(
        cls, session: Session, competition_id: int
    ) -> Optional["DrawRecord"]:
        """Return the draw record of ``competition_id`` if it has been drawn."""

        return session.scalar(select(cls).where(cls.competition_id == competition_id))

    def to_json(self) -> dict[str, Any]:
        return {
            "draw_reference": self.draw_reference,
            "competition_id": self.competition_id,
            "total_tickets": self.total_tickets,
            "total_participants": self.total_participants,
            "random_index": self.random_index,
            "winning_ticket_number": self.winning_ticket_number,
            "winner_id": self.winner_id,
            "drawn_at": dt_iso(self.drawn_at),
        }


__all__ = ["DrawRecord"]
