"""Instant-win prizes: assignment, resolution, crediting and planning."""

from .allocator import InstantWin, InstantWinAllocator, assign_instant_prizes
from .crediting import (
    CASH_STRATEGY,
    DEFAULT_CREDIT_REGISTRY,
    SITE_CREDIT_STRATEGY,
    CreditContext,
    CreditRegistry,
    CreditStrategy,
)
from .tiers import PrizePool, PrizeTier, plan_tiered_prizes, prize_pool

__all__ = [
    "InstantWin",
    "InstantWinAllocator",
    "assign_instant_prizes",
    "CreditContext",
    "CreditRegistry",
    "CreditStrategy",
    "CASH_STRATEGY",
    "SITE_CREDIT_STRATEGY",
    "DEFAULT_CREDIT_REGISTRY",
    "PrizePool",
    "PrizeTier",
    "plan_tiered_prizes",
    "prize_pool",
]
