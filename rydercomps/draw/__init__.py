"""Fair draw of competition winners."""

from .engine import FairDrawEngine
from .random_source import default_random, pick_index

__all__ = ["FairDrawEngine", "default_random", "pick_index"]
