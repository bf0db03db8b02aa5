"""Random sources used for instant-prize assignment and the fair draw."""

import random
import secrets


def default_random() -> random.Random:
    """Return the production random source backed by ``os.urandom``.

    Any :class:`random.Random` can be injected instead; tests pass a seeded
    instance to make outcomes reproducible.
    """
    return secrets.SystemRandom()


def pick_index(rng: random.Random, size: int) -> int:
    """Pick a position in ``range(size)`` with every position equally likely."""
    if size <= 0:
        raise ValueError("size must be positive")
    return rng.randrange(size)
