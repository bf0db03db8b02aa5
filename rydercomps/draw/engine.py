"""Fair draw of a competition's grand-prize winner."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import AlreadyDrawn, NoParticipants, NotAuthorized
from ..ledger import TicketLedger
from ..models import Admin, Competition, DrawRecord
from ..models.utils import generate_draw_reference
from .random_source import default_random, pick_index

logger = logging.getLogger(__name__)


class FairDrawEngine:
    """Engine that selects and records the winning ticket of a competition."""

    def __init__(
        self,
        session: Session,
        *,
        rng: Optional[random.Random] = None,
    ) -> None:
        """Create a draw engine bound to a SQLAlchemy session.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session used for lookups and persistence.
        rng : Optional[random.Random], default: None
            Uniform random source. Defaults to the operating system's CSPRNG.
        """
        self._session = session
        self._ledger = TicketLedger(session)
        self._rng = rng or default_random()

    def draw(
        self,
        competition: Competition,
        admin: Admin,
        *,
        now: Optional[datetime] = None,
    ) -> DrawRecord:
        """Draw one winning ticket uniformly from the sold tickets and persist it.

        Every ticket of a completed entry is equally likely, so a user's
        chance of winning is proportional to the number of tickets they hold.

        Parameters
        ----------
        competition : Competition
            Persisted competition to draw.
        admin : Admin
            Persisted admin triggering the draw.
        now : Optional[datetime], default: None
            Draw timestamp. Defaults to the current time.

        Returns
        -------
        DrawRecord
            The audit record of the draw.

        Notes
        -----
        The draw runs in a SAVEPOINT:

        1. Lock the competition row and check that no winner is set.
        2. Build the pool of sold ticket numbers ordered by number.
        3. Pick one position uniformly at random.
        4. Set the winner on the competition with a conditional update on
           ``winner_id IS NULL`` and insert the :class:`DrawRecord`.

        Any failure rolls the SAVEPOINT back, leaving no partial draw behind.

        Raises
        ------
        NotAuthorized
            If ``admin`` is not a persisted, active :class:`Admin` with a
            managing role.
        AlreadyDrawn
            If the competition already has a winner.
        NoParticipants
            If no completed entry holds a ticket.
        """
        if not isinstance(admin, Admin) or not admin.can_manage_competitions:
            raise NotAuthorized("Only administrators can draw a winner")
        if competition.id is None:
            raise ValueError("Competition must be persisted before drawing")

        drawn_at = now or datetime.now(timezone.utc)
        try:
            with self._session.begin_nested():
                record = self._draw_locked(competition, admin, drawn_at)
        except (AlreadyDrawn, NoParticipants) as exc:
            logger.warning("Draw rejected for competition %s: %s", competition.id, exc)
            raise

        self._session.refresh(competition)
        logger.info(
            "Competition %s drawn by admin %s: ticket %d of %d, winner user %s (%s)",
            competition.id,
            admin.id,
            record.winning_ticket_number,
            record.total_tickets,
            record.winner_id,
            record.draw_reference,
        )
        return record

    def _draw_locked(
        self, competition: Competition, admin: Admin, drawn_at: datetime
    ) -> DrawRecord:
        winner_id = self._session.scalar(
            select(Competition.winner_id)
            .where(Competition.id == competition.id)
            .with_for_update()
        )
        if winner_id is not None:
            raise AlreadyDrawn(f"Competition '{competition.slug}' has already been drawn")

        pool = self._ledger.sold_numbers(competition)
        if not pool:
            raise NoParticipants(f"Competition '{competition.slug}' has no sold tickets")

        index = pick_index(self._rng, len(pool))
        number, user_id = pool[index]
        reference = generate_draw_reference(self._session)

        result = self._session.execute(
            update(Competition)
            .where(Competition.id == competition.id, Competition.winner_id.is_(None))
            .values(
                winner_id=user_id,
                winning_ticket_number=number,
                draw_timestamp=drawn_at,
                draw_reference=reference,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise AlreadyDrawn(f"Competition '{competition.slug}' has already been drawn")

        record = DrawRecord(
            draw_reference=reference,
            competition_id=competition.id,
            total_tickets=len(pool),
            total_participants=len({owner for _, owner in pool}),
            random_index=index,
            winning_ticket_number=number,
            winner_id=user_id,
            drawn_by_admin_id=admin.id,
            drawn_at=drawn_at,
        )
        self._session.add(record)
        try:
            self._session.flush()
        except IntegrityError as exc:
            raise AlreadyDrawn(
                f"Competition '{competition.slug}' already has a draw record"
            ) from exc
        return record


__all__ = ["FairDrawEngine"]
