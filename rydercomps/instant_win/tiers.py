"""Return-to-player prize planning for instant-win competitions."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Iterable, Optional

from ..models import InstantPrize, PrizeType
from ..models.utils import to_money

RTP_RANGE = (Decimal("0.3"), Decimal("0.7"))
INSTANT_POT_SHARE_RANGE = (Decimal("0.8"), Decimal("0.99"))


@dataclass(frozen=True)
class PrizeTier:
    """One band of instant prizes.

    Attributes
    ----------
    name : str
        Tier label, e.g. ``"Cash Prize"``.
    prize_type : PrizeType
        How the prizes in this tier are paid out.
    value : Decimal
        Value of each prize in the tier.
    percentage : Decimal
        Share of the instant pot spent on this tier, in percent.
    count : Optional[int]
        Fixed number of prizes. Overrides ``percentage`` when positive.
    """

    name: str
    prize_type: PrizeType
    value: Decimal
    percentage: Decimal = Decimal("0")
    count: Optional[int] = None


@dataclass(frozen=True)
class PrizePool:
    """Split of the total prize fund between instant prizes and the end draw."""

    total: Decimal
    instant_pot: Decimal
    end_draw_pot: Decimal


def prize_pool(
    max_tickets: int,
    ticket_price: "Decimal | int | str",
    *,
    rtp: "Decimal | float | str",
    instant_pot_share: "Decimal | float | str",
) -> PrizePool:
    """Compute the prize fund for a sell-out of ``max_tickets``.

    Raises
    ------
    ValueError
        If ``rtp`` is outside 0.3-0.7 or ``instant_pot_share`` is outside 0.8-0.99.
    """
    rtp_d = Decimal(str(rtp))
    share_d = Decimal(str(instant_pot_share))
    if not RTP_RANGE[0] <= rtp_d <= RTP_RANGE[1]:
        raise ValueError("RTP must be between 30% and 70%")
    if not INSTANT_POT_SHARE_RANGE[0] <= share_d <= INSTANT_POT_SHARE_RANGE[1]:
        raise ValueError("Instant pot percentage must be between 80% and 99%")

    total = Decimal(max_tickets) * to_money(ticket_price) * rtp_d
    instant = total * share_d
    return PrizePool(total=total, instant_pot=instant, end_draw_pot=total - instant)


def _label(tier: PrizeTier, value: Decimal) -> str:
    shown = value.normalize() if value == value.to_integral_value() else value
    return f"£{shown:f} {tier.name}"


def plan_tiered_prizes(
    max_tickets: int,
    ticket_price: "Decimal | int | str",
    tiers: Iterable[PrizeTier],
    *,
    rtp: "Decimal | float | str" = Decimal("0.5"),
    instant_pot_share: "Decimal | float | str" = Decimal("0.96"),
) -> list[InstantPrize]:
    """Turn ``tiers`` into unsaved :class:`InstantPrize` rows.

    Each tier receives ``percentage`` percent of the instant pot and gets
    ``floor(budget / value)`` prizes, but never fewer than one. A tier with an
    explicit ``count`` uses that count instead. The result is meant to be
    passed to :func:`~rydercomps.instant_win.allocator.assign_instant_prizes`.
    """
    tiers = list(tiers)
    if not tiers:
        raise ValueError("At least one prize tier is required")

    pool = prize_pool(max_tickets, ticket_price, rtp=rtp, instant_pot_share=instant_pot_share)
    prizes: list[InstantPrize] = []
    for tier in tiers:
        value = to_money(tier.value)
        if value <= 0:
            raise ValueError(f"Tier '{tier.name}' must have a positive value")
        if tier.count is not None and tier.count > 0:
            count = tier.count
        else:
            budget = pool.instant_pot * Decimal(str(tier.percentage)) / Decimal(100)
            count = max(1, int((budget / value).to_integral_value(rounding=ROUND_FLOOR)))
        prizes.append(
            InstantPrize(
                name=_label(tier, value),
                prize_type=tier.prize_type,
                value=value,
                total_wins=count,
            )
        )
    return prizes


__all__ = ["PrizeTier", "PrizePool", "prize_pool", "plan_tiered_prizes"]
