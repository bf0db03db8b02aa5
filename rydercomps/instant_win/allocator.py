"""Assignment of instant prizes to ticket numbers and their resolution at purchase."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from ..draw.random_source import default_random
from ..models import (
    Competition,
    Entry,
    InstantPrize,
    InstantWinTicket,
    PrizeType,
    User,
)
from .crediting import DEFAULT_CREDIT_REGISTRY, CreditContext, CreditRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InstantWin:
    """A ticket number that won an instant prize during a purchase.

    Attributes
    ----------
    ticket_number : int
        Winning ticket number.
    prize_id : int
        Primary key of the :class:`InstantPrize` that was claimed.
    prize_name : str
        Display name of the prize.
    prize_type : PrizeType
        How the prize was credited.
    value : Decimal
        Amount credited to the winner.
    """

    ticket_number: int
    prize_id: int
    prize_name: str
    prize_type: PrizeType
    value: Decimal

    def to_json(self) -> dict:
        return {
            "ticket_number": self.ticket_number,
            "prize_id": self.prize_id,
            "prize_name": self.prize_name,
            "prize_type": self.prize_type.value,
            "value": str(self.value),
        }


def assign_instant_prizes(
    session: Session,
    competition: Competition,
    prizes: Sequence[InstantPrize],
    *,
    rng: Optional[random.Random] = None,
) -> list[InstantWinTicket]:
    """Persist ``prizes`` and map each winning slot to a random ticket number.

    Numbers are drawn uniformly from ``1..max_tickets`` without replacement
    across all prizes, so no ticket number maps to two prizes. The caller must
    run this before the competition sells its first ticket.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    competition : Competition
        Persisted competition receiving the prizes.
    prizes : Sequence[InstantPrize]
        Unsaved prize definitions, e.g. from
        :func:`~rydercomps.instant_win.tiers.plan_tiered_prizes`.
    rng : Optional[random.Random], default: None
        Random source. Defaults to the operating system's CSPRNG.

    Returns
    -------
    list[InstantWinTicket]
        The created tickets ordered by ticket number.

    Raises
    ------
    ValueError
        If the competition is not persisted, already has instant prizes, no
        prizes are given, or the total number of winning slots exceeds
        ``max_tickets``.
    """
    if competition.id is None:
        raise ValueError("Competition must be persisted before assigning instant prizes")
    if not prizes:
        raise ValueError("At least one instant prize is required")

    existing = session.scalar(
        select(InstantPrize.id).where(InstantPrize.competition_id == competition.id).limit(1)
    )
    if competition.has_instant_wins or existing is not None:
        raise ValueError(
            f"Competition '{competition.slug}' already has instant prizes assigned"
        )

    total = sum(prize.total_wins for prize in prizes)
    if total > competition.max_tickets:
        raise ValueError(
            f"{total} winning slots exceed the {competition.max_tickets} available tickets"
        )

    rng = rng or default_random()
    numbers = rng.sample(range(1, competition.max_tickets + 1), total)

    for prize in prizes:
        prize.competition = competition
        session.add(prize)
    session.flush()

    tickets: list[InstantWinTicket] = []
    offset = 0
    for prize in prizes:
        for number in numbers[offset : offset + prize.total_wins]:
            tickets.append(
                InstantWinTicket(
                    competition_id=competition.id,
                    ticket_number=number,
                    prize_id=prize.id,
                )
            )
        offset += prize.total_wins
    session.add_all(tickets)
    competition.has_instant_wins = True
    session.flush()

    logger.info(
        "Assigned %d instant-win tickets across %d prizes to competition %s",
        total,
        len(prizes),
        competition.id,
    )
    return sorted(tickets, key=lambda t: t.ticket_number)


class InstantWinAllocator:
    """Claims pre-assigned instant-win tickets for freshly purchased numbers."""

    def __init__(
        self,
        session: Session,
        *,
        registry: Optional[CreditRegistry] = None,
    ) -> None:
        """Create an allocator bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        registry : Optional[CreditRegistry], default: None
            Crediting strategies per prize type. Typically omitted, in which
            case :data:`DEFAULT_CREDIT_REGISTRY` is used.
        """
        self._session = session
        self._registry = registry or DEFAULT_CREDIT_REGISTRY

    def resolve(
        self,
        competition: Competition,
        ticket_numbers: Iterable[int],
        user: User,
        *,
        entry: Optional[Entry] = None,
        now: Optional[datetime] = None,
    ) -> list[InstantWin]:
        """Claim every unclaimed instant-win ticket among ``ticket_numbers``.

        Each claim is a conditional update on ``winner_id IS NULL`` followed by
        a floor-checked decrement of ``remaining_wins`` and the prize credit.
        Numbers already claimed, or with no instant prize, yield nothing, so
        resolving the same numbers twice never pays out twice.

        Parameters
        ----------
        competition : Competition
            Competition the numbers belong to.
        ticket_numbers : Iterable[int]
            Numbers just granted to ``user``.
        user : User
            Owner of the numbers, credited with any prize.
        entry : Optional[Entry], default: None
            Entry that bought the numbers. Recorded on the claimed tickets and
            flagged with ``has_instant_win``.
        now : Optional[datetime], default: None
            Claim timestamp. Defaults to the current time.

        Returns
        -------
        list[InstantWin]
            Wins ordered by ticket number.
        """
        numbers = sorted(set(ticket_numbers))
        if not numbers or not competition.has_instant_wins:
            return []

        candidates = self._session.scalars(
            select(InstantWinTicket)
            .where(
                InstantWinTicket.competition_id == competition.id,
                InstantWinTicket.ticket_number.in_(numbers),
                InstantWinTicket.winner_id.is_(None),
            )
            .order_by(InstantWinTicket.ticket_number)
        ).all()

        claimed_at = now or datetime.now(timezone.utc)
        wins: list[InstantWin] = []
        for ticket in candidates:
            if not self._claim(ticket, user, entry, claimed_at):
                continue

            prize = ticket.prize
            self._registry.credit(
                CreditContext(
                    session=self._session,
                    user=user,
                    prize=prize,
                    competition=competition,
                    entry=entry,
                )
            )
            wins.append(
                InstantWin(
                    ticket_number=ticket.ticket_number,
                    prize_id=prize.id,
                    prize_name=prize.name,
                    prize_type=prize.prize_type,
                    value=prize.value,
                )
            )
            logger.info(
                "Instant win: ticket %d in competition %s claimed %s for user %s",
                ticket.ticket_number,
                competition.id,
                prize.name,
                user.id,
            )

        if wins and entry is not None:
            entry.has_instant_win = True
            self._session.flush()
        return wins

    def _claim(
        self,
        ticket: InstantWinTicket,
        user: User,
        entry: Optional[Entry],
        claimed_at: datetime,
    ) -> bool:
        result = self._session.execute(
            update(InstantWinTicket)
            .where(InstantWinTicket.id == ticket.id, InstantWinTicket.winner_id.is_(None))
            .values(
                winner_id=user.id,
                winner_name=user.display_name,
                entry_id=entry.id if entry is not None else None,
                claimed_at=claimed_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        decremented = self._session.execute(
            update(InstantPrize)
            .where(InstantPrize.id == ticket.prize_id, InstantPrize.remaining_wins > 0)
            .values(remaining_wins=InstantPrize.remaining_wins - 1)
            .execution_options(synchronize_session=False)
        )
        if decremented.rowcount != 1:
            raise RuntimeError(
                f"Instant prize {ticket.prize_id} has no remaining wins for ticket "
                f"{ticket.ticket_number}"
            )
        self._session.refresh(ticket)
        self._session.refresh(ticket.prize)
        return True


__all__ = ["InstantWin", "InstantWinAllocator", "assign_instant_prizes"]
