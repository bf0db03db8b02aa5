"""Public operations of the competition core.

Every function receives a caller-owned :class:`~sqlalchemy.orm.Session` and
flushes its changes; committing is left to the caller.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from .balances import TX_CREDIT, TX_PURCHASE, credit_ryder_cash, debit_ryder_cash
from .draw.engine import FairDrawEngine
from .errors import PurchaseFailed
from .instant_win.allocator import InstantWin, InstantWinAllocator, assign_instant_prizes
from .ledger import TicketLedger
from .models import Admin, Competition, DrawRecord, Entry, InstantPrize, User
from .models.entry import PAYMENT_METHOD_CARD, PAYMENT_METHOD_RYDER_CASH
from .models.utils import generate_unique_slug, to_money

if TYPE_CHECKING:
    from .payments.api import PaymentClient, PaymentConfirmation

logger = logging.getLogger(__name__)


@dataclass
class PurchaseResult:
    """Outcome of a successful :func:`purchase_tickets` call.

    Attributes
    ----------
    entry : Entry
        The completed entry, with its ticket rows loaded.
    instant_wins : list[InstantWin]
        Instant prizes won by the purchased numbers, by ticket number.
    """

    entry: Entry
    instant_wins: list[InstantWin] = field(default_factory=list)

    @property
    def ticket_numbers(self) -> list[int]:
        return self.entry.ticket_numbers

    def to_json(self) -> dict:
        return {
            "entry": self.entry.to_json(),
            "instant_wins": [win.to_json() for win in self.instant_wins],
        }


def create_competition(
    session: Session,
    *,
    title: str,
    ticket_price: "Decimal | int | str",
    max_tickets: int,
    start_date: datetime,
    end_date: datetime,
    description: Optional[str] = None,
    prize_value: "Decimal | int | str | None" = None,
    is_active: bool = True,
    instant_prizes: Optional[Sequence[InstantPrize]] = None,
    rng: Optional[random.Random] = None,
) -> Competition:
    """Create a competition with a unique slug and optional instant prizes.

    Instant prizes passed here are mapped to ticket numbers before the
    competition is returned, so the assignment always precedes the first sale.
    """
    competition = Competition(
        title=title,
        slug=generate_unique_slug(session, title),
        ticket_price=ticket_price,
        max_tickets=max_tickets,
        start_date=start_date,
        end_date=end_date,
        description=description,
        is_active=is_active,
        prize_value=prize_value,
    )
    session.add(competition)
    session.flush()

    if instant_prizes:
        assign_instant_prizes(session, competition, instant_prizes, rng=rng)

    logger.info("Created competition %s (%s)", competition.id, competition.slug)
    return competition


def get_competition(
    session: Session, id_or_slug: Union[int, str]
) -> Optional[Competition]:
    """Look up a competition by slug, falling back to its numeric ID."""
    if isinstance(id_or_slug, str):
        competition = Competition.get_by_slug(session, id_or_slug)
        if competition is not None or not id_or_slug.isdigit():
            return competition
        id_or_slug = int(id_or_slug)
    return session.get(Competition, id_or_slug)


def purchase_tickets(
    session: Session,
    user: User,
    competition: Competition,
    quantity: int,
    payment_token: Optional[str] = None,
    *,
    payment_client: Optional["PaymentClient"] = None,
    payment_method: str = PAYMENT_METHOD_CARD,
    allocator: Optional[InstantWinAllocator] = None,
    now: Optional[datetime] = None,
) -> PurchaseResult:
    """Buy ``quantity`` tickets for ``user`` as a single all-or-nothing unit.

    The workflow runs inside a SAVEPOINT and performs, in order:

    1. Reserve the next ``quantity`` ticket numbers from the ledger.
    2. Create the pending :class:`Entry` and its ticket rows.
    3. Take payment: confirm ``payment_token`` with the payment collaborator
       (``"card"``) or debit the user's Ryder Cash (``"ryder_cash"``).
    4. Claim any instant prizes among the reserved numbers and credit them.
    5. Mark the entry completed.

    If any step fails the SAVEPOINT is rolled back, so no entry, ticket
    number, prize claim or balance change survives. A card payment that was
    already captured is refunded through the payment collaborator.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    user : User
        Persisted purchasing user.
    competition : Competition
        Persisted competition.
    quantity : int
        Number of tickets, at least 1.
    payment_token : Optional[str]
        Token issued by the payment collaborator. Required for ``"card"``.
    payment_client : Optional[PaymentClient]
        Pre-configured client. If not provided, a default one is created for
        card payments.
    payment_method : str, default: ``"card"``
        ``"card"`` or ``"ryder_cash"``.
    allocator : Optional[InstantWinAllocator]
        Custom instant-win allocator, e.g. with a different credit registry.
    now : Optional[datetime]
        Reference time for the sale window and claim timestamps.

    Returns
    -------
    PurchaseResult
        The completed entry and any instant wins.

    Raises
    ------
    ValueError
        If the user or competition is not persisted, ``quantity`` is below 1,
        or ``payment_method`` is unknown.
    PurchaseFailed
        If the purchase was rolled back. ``cause`` holds the underlying error,
        e.g. :class:`~rydercomps.errors.CapacityExceeded`.
    """
    if user.id is None:
        raise ValueError("User must be persisted before purchasing tickets")
    if competition.id is None:
        raise ValueError("Competition must be persisted before purchasing tickets")
    if quantity < 1:
        raise ValueError("quantity must be at least 1")
    if payment_method not in (PAYMENT_METHOD_CARD, PAYMENT_METHOD_RYDER_CASH):
        raise ValueError(f"Unknown payment method '{payment_method}'")

    ledger = TicketLedger(session)
    allocator = allocator or InstantWinAllocator(session)
    total_cost = to_money(competition.ticket_price * quantity)
    captured: Optional["PaymentConfirmation"] = None

    try:
        with session.begin_nested():
            numbers = ledger.reserve(competition, quantity, now=now)

            entry = Entry(
                user_id=user.id,
                competition_id=competition.id,
                quantity=quantity,
                total_cost=total_cost,
                payment_method=payment_method,
            )
            session.add(entry)
            session.flush()
            ledger.issue(entry, numbers)

            if total_cost == 0:
                reference = None
            elif payment_method == PAYMENT_METHOD_RYDER_CASH:
                reference = _pay_with_ryder_cash(session, user, competition, entry)
            else:
                payment_client = payment_client or _default_payment_client()
                captured = payment_client.confirm_payment(
                    payment_token, total_cost, reference=f"entry-{entry.id}"
                )
                reference = captured.reference

            wins = allocator.resolve(competition, numbers, user, entry=entry, now=now)
            entry.mark_completed(reference)
            session.flush()
    except Exception as exc:
        session.expire(competition, ["tickets_allocated"])
        session.expire(user, ["cash_balance", "ryder_cash"])
        logger.warning(
            "Purchase of %d tickets in competition %s by user %s failed: %s",
            quantity,
            competition.id,
            user.id,
            exc,
        )
        if captured is not None:
            _refund_captured(payment_client, captured)
        raise PurchaseFailed(exc) from exc

    logger.info(
        "User %s bought tickets %d-%d in competition %s (%d instant wins)",
        user.id,
        numbers[0],
        numbers[-1],
        competition.id,
        len(wins),
    )
    return PurchaseResult(entry=entry, instant_wins=wins)


def _default_payment_client() -> "PaymentClient":
    from .payments.api import PaymentClient

    return PaymentClient()


def _pay_with_ryder_cash(
    session: Session, user: User, competition: Competition, entry: Entry
) -> str:
    tx = debit_ryder_cash(
        session,
        user,
        entry.total_cost,
        tx_type=TX_PURCHASE,
        description=f"Entry: {entry.quantity} tickets for {competition.title}",
        reference=str(entry.id),
    )
    return f"rydercash-{tx.id}"


def _refund_captured(
    payment_client: "PaymentClient", confirmation: "PaymentConfirmation"
) -> None:
    """Return a card payment captured by a purchase that was rolled back.

    A failed refund is logged for manual follow-up; the purchase error is
    what the caller sees.
    """
    try:
        payment_client.refund_payment(confirmation.reference, confirmation.amount)
    except Exception:
        logger.exception(
            "Refund of captured payment %s (%s) failed; manual refund required",
            confirmation.reference,
            confirmation.amount,
        )
    else:
        logger.info(
            "Refunded captured payment %s after failed purchase", confirmation.reference
        )


def refund_entry(
    session: Session,
    entry: Entry,
    *,
    payment_client: Optional["PaymentClient"] = None,
) -> Entry:
    """Void a completed entry and return its cost to the buyer.

    Card payments are refunded through the payment collaborator and Ryder Cash
    payments are credited back. The ticket numbers stay allocated and leave
    the draw pool; instant prizes already paid out are kept by the user.

    Raises
    ------
    ValueError
        If the entry is not completed, or its competition has been drawn.
    """
    competition = entry.competition
    if competition.is_drawn:
        raise ValueError("Entries of a drawn competition cannot be refunded")
    entry.mark_refunded()

    if entry.total_cost > 0:
        if entry.payment_method == PAYMENT_METHOD_RYDER_CASH:
            credit_ryder_cash(
                session,
                entry.user,
                entry.total_cost,
                tx_type=TX_CREDIT,
                description=f"Refund: entry {entry.id} for {competition.title}",
                reference=str(entry.id),
            )
        elif entry.payment_reference:
            payment_client = payment_client or _default_payment_client()
            payment_client.refund_payment(entry.payment_reference, entry.total_cost)

    session.flush()
    logger.info("Refunded entry %s in competition %s", entry.id, competition.id)
    return entry


def draw_winner(
    session: Session,
    competition: Competition,
    admin: Admin,
    *,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> DrawRecord:
    """Draw the grand-prize winner of ``competition``.

    See :meth:`~rydercomps.draw.engine.FairDrawEngine.draw` for the algorithm
    and the errors raised.
    """
    engine = FairDrawEngine(session, rng=rng)
    return engine.draw(competition, admin, now=now)


def past_winners(session: Session) -> list[Competition]:
    """Drawn competitions with their winners, most recent draw first."""
    stmt = (
        select(Competition)
        .options(selectinload(Competition.winner))
        .where(Competition.winner_id.is_not(None))
        .order_by(Competition.draw_timestamp.desc(), Competition.id.desc())
    )
    return list(session.scalars(stmt))
