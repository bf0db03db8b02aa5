"""Crediting strategies applied when an instant prize is claimed."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..balances import TX_INSTANT_WIN, credit_cash, credit_ryder_cash
from ..models import Competition, Entry, InstantPrize, PrizeType, User


@dataclass(frozen=True)
class CreditContext:
    """What a strategy needs to know about the claim being paid out."""

    session: Session
    user: User
    prize: InstantPrize
    competition: Competition
    entry: Optional[Entry] = None

    @property
    def description(self) -> str:
        return f"Instant Win: {self.prize.name} from {self.competition.title}"

    @property
    def reference(self) -> Optional[str]:
        return str(self.entry.id) if self.entry is not None else None


@dataclass(frozen=True)
class CreditStrategy:
    """Definition of how one :class:`PrizeType` is paid out.

    Attributes
    ----------
    prize_type : PrizeType
        Prize type handled by this strategy. Used as the registry key.
    credit : Callable[[CreditContext], None]
        Callable applying the balance change inside the caller's transaction.
    description : Optional[str]
        Human-readable summary of where the value ends up.
    """

    prize_type: PrizeType
    credit: Callable[[CreditContext], None]
    description: Optional[str] = None

    def apply(self, context: CreditContext) -> None:
        if context.prize.prize_type != self.prize_type:
            raise ValueError(
                f"Strategy for {self.prize_type.value} cannot credit a "
                f"{context.prize.prize_type.value} prize"
            )
        self.credit(context)


class CreditRegistry:
    """Mutable registry mapping prize types to crediting strategies."""

    def __init__(self) -> None:
        self._strategies: Dict[PrizeType, CreditStrategy] = {}

    def register(self, strategy: CreditStrategy, *, replace: bool = False) -> None:
        """Register ``strategy`` under its prize type.

        Parameters
        ----------
        strategy : CreditStrategy
            Strategy to add to the registry.
        replace : bool, default: False
            When ``True`` an existing registration for the same prize type is
            overwritten. Otherwise a duplicate raises :class:`ValueError`.
        """
        if not replace and strategy.prize_type in self._strategies:
            raise ValueError(
                f"Prize type '{strategy.prize_type.value}' already has a strategy"
            )
        self._strategies[strategy.prize_type] = strategy

    def get(self, prize_type: PrizeType) -> CreditStrategy:
        """Return the strategy registered for ``prize_type``."""
        try:
            return self._strategies[PrizeType(prize_type)]
        except KeyError as exc:
            raise KeyError(f"No crediting strategy for prize type '{prize_type}'") from exc

    def missing(self) -> list[PrizeType]:
        """Prize types that have no registered strategy."""
        return [pt for pt in PrizeType if pt not in self._strategies]

    def ensure_complete(self) -> None:
        """Raise :class:`RuntimeError` unless every :class:`PrizeType` is covered."""
        missing = self.missing()
        if missing:
            names = ", ".join(pt.value for pt in missing)
            raise RuntimeError(f"No crediting strategy registered for: {names}")

    def credit(self, context: CreditContext) -> None:
        self.get(context.prize.prize_type).apply(context)


def _credit_cash(context: CreditContext) -> None:
    credit_cash(context.session, context.user, context.prize.value)


def _credit_site_credit(context: CreditContext) -> None:
    credit_ryder_cash(
        context.session,
        context.user,
        context.prize.value,
        tx_type=TX_INSTANT_WIN,
        description=context.description,
        reference=context.reference,
    )


CASH_STRATEGY = CreditStrategy(
    prize_type=PrizeType.CASH,
    credit=_credit_cash,
    description="Adds the prize value to the withdrawable cash balance.",
)

SITE_CREDIT_STRATEGY = CreditStrategy(
    prize_type=PrizeType.SITE_CREDIT,
    credit=_credit_site_credit,
    description="Adds the prize value to Ryder Cash and logs a transaction.",
)

DEFAULT_CREDIT_REGISTRY = CreditRegistry()
DEFAULT_CREDIT_REGISTRY.register(CASH_STRATEGY)
DEFAULT_CREDIT_REGISTRY.register(SITE_CREDIT_STRATEGY)
# New prize types must ship with a strategy.
DEFAULT_CREDIT_REGISTRY.ensure_complete()


__all__ = [
    "CreditContext",
    "CreditStrategy",
    "CreditRegistry",
    "CASH_STRATEGY",
    "SITE_CREDIT_STRATEGY",
    "DEFAULT_CREDIT_REGISTRY",
]
