"""Read-only projections over the ledger and instant prizes."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy import distinct, func, select
from sqlalchemy.orm import Session, selectinload

from .models import Competition, Entry, EntryTicket, InstantPrize, InstantWinTicket
from .models.entry import PAYMENT_COMPLETED
from .models.utils import to_money

DEFAULT_PAGE_SIZE = 24


@dataclass(frozen=True)
class CompetitionStats:
    """Sales figures for a competition.

    ``remaining`` counts numbers the ledger can still hand out, so numbers of
    refunded entries are neither sold nor remaining.
    """

    competition_id: int
    max_tickets: int
    sold: int
    remaining: int
    progress_percentage: int
    revenue: Decimal
    participants: int
    ticket_price: Decimal
    is_open: bool

    def to_json(self) -> dict[str, Any]:
        return {
            "competition_id": self.competition_id,
            "max_tickets": self.max_tickets,
            "sold": self.sold,
            "remaining": self.remaining,
            "progress_percentage": self.progress_percentage,
            "revenue": str(self.revenue),
            "participants": self.participants,
            "ticket_price": str(self.ticket_price),
            "is_open": self.is_open,
        }


@dataclass(frozen=True)
class InstantPrizeSummary:
    id: int
    name: str
    prize_type: str
    value: Decimal
    total_wins: int
    remaining_wins: int
    claimed: int
    total_tickets: int = 0
    claimed_tickets: int = 0

    @property
    def available_tickets(self) -> int:
        return self.total_tickets - self.claimed_tickets

    def to_json(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "prize_type": self.prize_type,
            "value": str(self.value),
            "total_wins": self.total_wins,
            "remaining_wins": self.remaining_wins,
            "claimed": self.claimed,
            "total_tickets": self.total_tickets,
            "claimed_tickets": self.claimed_tickets,
            "available_tickets": self.available_tickets,
        }


@dataclass(frozen=True)
class InstantWinTicketPage:
    """One page of instant-win tickets plus per-prize counts."""

    has_instant_wins: bool
    tickets: list[InstantWinTicket]
    page: int
    limit: int
    total: int
    prizes: list[InstantPrizeSummary] = field(default_factory=list)

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    def to_json(self) -> dict[str, Any]:
        return {
            "has_instant_wins": self.has_instant_wins,
            "tickets": [t.to_json() for t in self.tickets],
            "pagination": {
                "page": self.page,
                "limit": self.limit,
                "total": self.total,
                "total_pages": self.total_pages,
            },
            "prizes": [p.to_json() for p in self.prizes],
        }


def progress_percentage(sold: int, max_tickets: int) -> int:
    """Percentage of ``max_tickets`` sold, rounded half up to a whole number."""
    if max_tickets <= 0:
        return 0
    ratio = Decimal(sold) * 100 / Decimal(max_tickets)
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def competition_stats(
    session: Session, competition: Competition, *, now: Optional[datetime] = None
) -> CompetitionStats:
    completed = (
        Entry.competition_id == competition.id,
        Entry.payment_status == PAYMENT_COMPLETED,
    )
    sold = session.scalar(
        select(func.count(EntryTicket.id))
        .join(Entry, Entry.id == EntryTicket.entry_id)
        .where(*completed)
    ) or 0
    revenue = session.scalar(select(func.sum(Entry.total_cost)).where(*completed))
    participants = session.scalar(
        select(func.count(distinct(Entry.user_id))).where(*completed)
    ) or 0
    allocated = session.scalar(
        select(Competition.tickets_allocated).where(Competition.id == competition.id)
    ) or 0

    return CompetitionStats(
        competition_id=competition.id,
        max_tickets=competition.max_tickets,
        sold=sold,
        remaining=max(competition.max_tickets - allocated, 0),
        progress_percentage=progress_percentage(sold, competition.max_tickets),
        revenue=to_money(revenue if revenue is not None else 0),
        participants=participants,
        ticket_price=competition.ticket_price,
        is_open=competition.is_open(now),
    )


def _prize_summaries(
    session: Session, competition: Competition, *, with_ticket_counts: bool
) -> list[InstantPrizeSummary]:
    prizes = session.scalars(
        select(InstantPrize)
        .where(InstantPrize.competition_id == competition.id)
        .order_by(InstantPrize.value.desc(), InstantPrize.id)
    ).all()

    totals: dict[int, int] = {}
    claimed: dict[int, int] = {}
    if with_ticket_counts:
        base = (
            select(InstantWinTicket.prize_id, func.count(InstantWinTicket.id))
            .where(InstantWinTicket.competition_id == competition.id)
            .group_by(InstantWinTicket.prize_id)
        )
        totals = dict(session.execute(base).all())
        claimed = dict(
            session.execute(base.where(InstantWinTicket.winner_id.is_not(None))).all()
        )

    return [
        InstantPrizeSummary(
            id=prize.id,
            name=prize.name,
            prize_type=prize.prize_type.value,
            value=prize.value,
            total_wins=prize.total_wins,
            remaining_wins=prize.remaining_wins,
            claimed=prize.claimed,
            total_tickets=totals.get(prize.id, 0),
            claimed_tickets=claimed.get(prize.id, 0),
        )
        for prize in prizes
    ]


def instant_prize_summary(
    session: Session, competition: Competition
) -> list[InstantPrizeSummary]:
    """Instant prizes of ``competition``, highest value first."""
    return _prize_summaries(session, competition, with_ticket_counts=False)


def instant_win_tickets(
    session: Session,
    competition: Competition,
    *,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
    prize_id: Optional[int] = None,
) -> InstantWinTicketPage:
    """Page through the instant-win tickets of ``competition`` by ticket number.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    competition : Competition
        Competition to list.
    page : int, default: 1
        1-based page number. Values below 1 are treated as 1.
    limit : int, default: 24
        Page size. Values below 1 fall back to the default.
    prize_id : Optional[int], default: None
        Only list tickets of this prize.

    Returns
    -------
    InstantWinTicketPage
        Tickets on the page, pagination metadata and per-prize counts.
    """
    page = max(page, 1)
    if limit < 1:
        limit = DEFAULT_PAGE_SIZE

    if not competition.has_instant_wins:
        return InstantWinTicketPage(
            has_instant_wins=False, tickets=[], page=1, limit=limit, total=0
        )

    filters = [InstantWinTicket.competition_id == competition.id]
    if prize_id is not None:
        filters.append(InstantWinTicket.prize_id == prize_id)

    total = session.scalar(select(func.count(InstantWinTicket.id)).where(*filters)) or 0
    tickets = session.scalars(
        select(InstantWinTicket)
        .options(selectinload(InstantWinTicket.prize))
        .where(*filters)
        .order_by(InstantWinTicket.ticket_number)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return InstantWinTicketPage(
        has_instant_wins=True,
        tickets=list(tickets),
        page=page,
        limit=limit,
        total=total,
        prizes=_prize_summaries(session, competition, with_ticket_counts=True),
    )


__all__ = [
    "CompetitionStats",
    "InstantPrizeSummary",
    "InstantWinTicketPage",
    "competition_stats",
    "instant_prize_summary",
    "instant_win_tickets",
    "progress_percentage",
]
