from .base import Base

# import models so Alembic/autoloaders can discover mappers
from .admin import Admin  # noqa: F401
from .user import User  # noqa: F401
from .competition import Competition  # noqa: F401
from .entry import Entry, EntryTicket  # noqa: F401
from .instant_prize import PrizeType, InstantPrize, InstantWinTicket  # noqa: F401
from .ryder_cash import RyderCashTransaction  # noqa: F401
from .withdrawal import WithdrawalRequest  # noqa: F401
from .draw import DrawRecord  # noqa: F401

__all__ = [
    "Base",
    "Admin",
    "User",
    "Competition",
    "Entry",
    "EntryTicket",
    "PrizeType",
    "InstantPrize",
    "InstantWinTicket",
    "RyderCashTransaction",
    "WithdrawalRequest",
    "DrawRecord",
]
