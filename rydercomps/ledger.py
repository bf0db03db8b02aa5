"""Ticket ledger: allocation and ownership of competition ticket numbers."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from .errors import CapacityExceeded, CompetitionClosed
from .models.competition import Competition
from .models.entry import PAYMENT_COMPLETED, PAYMENT_REFUNDED, Entry, EntryTicket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LedgerOccupancy:
    """Point-in-time view of a competition's ticket numbers.

    Attributes
    ----------
    max_tickets : int
        Hard ceiling configured on the competition.
    allocated : int
        Numbers handed out by :meth:`TicketLedger.reserve`, including refunded ones.
    sold : int
        Numbers owned through completed entries.
    refunded : int
        Numbers owned through refunded entries. They stay allocated.
    """

    max_tickets: int
    allocated: int
    sold: int
    refunded: int

    @property
    def remaining(self) -> int:
        return max(self.max_tickets - self.allocated, 0)


class TicketLedger:
    """Hands out ticket numbers and records which entry owns each one.

    Numbers are granted as the next contiguous block after the highest number
    already allocated. The block is claimed with a single conditional
    ``UPDATE`` on ``competitions.tickets_allocated``, so two concurrent
    reservations can never receive overlapping numbers nor push the total past
    ``max_tickets``. Numbers of refunded entries are not handed out again.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def reserve(
        self,
        competition: Competition,
        quantity: int,
        *,
        now: Optional[datetime] = None,
    ) -> list[int]:
        """Reserve ``quantity`` consecutive ticket numbers in ``competition``.

        Parameters
        ----------
        competition : Competition
            Persisted competition to allocate from.
        quantity : int
            Number of tickets requested, at least 1.
        now : Optional[datetime], default: None
            Reference time for the sale-window check. Defaults to the current time.

        Returns
        -------
        list[int]
            The reserved numbers in ascending order.

        Raises
        ------
        ValueError
            If ``quantity`` is below 1 or the competition is not persisted.
        CompetitionClosed
            If the competition is inactive, drawn, or ``now`` falls outside
            ``[start_date, end_date)``.
        CapacityExceeded
            If fewer than ``quantity`` numbers remain.
        """
        if quantity < 1:
            raise ValueError("quantity must be at least 1")
        if competition.id is None:
            raise ValueError("Competition must be persisted before reserving tickets")

        if not competition.is_open(now):
            raise CompetitionClosed(
                f"Competition '{competition.slug}' is not accepting entries"
            )

        stmt = (
            update(Competition)
            .where(
                Competition.id == competition.id,
                Competition.is_active.is_(True),
                Competition.winner_id.is_(None),
                Competition.tickets_allocated + quantity <= Competition.max_tickets,
            )
            .values(tickets_allocated=Competition.tickets_allocated + quantity)
            .execution_options(synchronize_session=False)
        )
        result = self._session.execute(stmt)
        self._session.refresh(
            competition, attribute_names=["tickets_allocated", "is_active", "winner_id"]
        )

        if result.rowcount != 1:
            if not competition.is_active or competition.is_drawn:
                raise CompetitionClosed(
                    f"Competition '{competition.slug}' is not accepting entries"
                )
            raise CapacityExceeded(quantity, competition.remaining_tickets)

        last = competition.tickets_allocated
        numbers = list(range(last - quantity + 1, last + 1))
        logger.debug(
            "Reserved tickets %d-%d in competition %s", numbers[0], numbers[-1], competition.id
        )
        return numbers

    def issue(self, entry: Entry, numbers: Iterable[int]) -> list[EntryTicket]:
        """Record ``numbers`` as owned by ``entry``.

        The ``(competition_id, number)`` unique constraint rejects any number
        that has already been issued in the same competition.
        """
        if entry.id is None:
            raise ValueError("Entry must be flushed before issuing tickets")
        tickets = [
            EntryTicket(
                competition_id=entry.competition_id,
                entry_id=entry.id,
                user_id=entry.user_id,
                number=number,
            )
            for number in numbers
        ]
        entry.tickets.extend(tickets)
        self._session.flush()
        return tickets

    def sold_numbers(self, competition: Competition) -> list[tuple[int, int]]:
        """Return ``(number, user_id)`` for every ticket of a completed entry.

        The list is ordered by ticket number and is the pool used by the fair draw.
        """
        stmt = (
            select(EntryTicket.number, EntryTicket.user_id)
            .join(Entry, Entry.id == EntryTicket.entry_id)
            .where(
                EntryTicket.competition_id == competition.id,
                Entry.payment_status == PAYMENT_COMPLETED,
            )
            .order_by(EntryTicket.number)
        )
        return [(number, user_id) for number, user_id in self._session.execute(stmt)]

    def occupancy(self, competition: Competition) -> LedgerOccupancy:
        stmt = (
            select(Entry.payment_status, func.count(EntryTicket.id))
            .join(EntryTicket, EntryTicket.entry_id == Entry.id)
            .where(Entry.competition_id == competition.id)
            .group_by(Entry.payment_status)
        )
        counts = dict(self._session.execute(stmt).all())
        allocated = self._session.scalar(
            select(Competition.tickets_allocated).where(Competition.id == competition.id)
        )
        return LedgerOccupancy(
            max_tickets=competition.max_tickets,
            allocated=allocated or 0,
            sold=counts.get(PAYMENT_COMPLETED, 0),
            refunded=counts.get(PAYMENT_REFUNDED, 0),
        )


__all__ = ["LedgerOccupancy", "TicketLedger"]
