"""Utility helpers for the models package."""

from __future__ import annotations

import re
import secrets
import string
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional
from sqlalchemy.orm import Session

BASE62_ALPHABET = string.digits + string.ascii_uppercase + string.ascii_lowercase

_CENT = Decimal("0.01")


def to_money(value: "Decimal | int | float | str") -> Decimal:
    """Coerce ``value`` to a two-place :class:`~decimal.Decimal`.

    Floats are converted through ``str`` so that ``2.5`` becomes ``2.50``
    rather than its binary approximation.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(_CENT, rounding=ROUND_HALF_UP)


def generate_draw_reference(
    session: Optional[Session] = None,
    prefix: str = "draw",
    length: int = 12,
    max_attempts: int = 32,
) -> str:
    """Return a unique public draw reference using base62 random characters.

    When a session is provided, the helper retries if the generated value is
    already present in ``DrawRecord.draw_reference``.
    """

    select_stmt = None
    record_cls = None
    if session is not None:
        from sqlalchemy import select
        from .draw import DrawRecord

        record_cls = DrawRecord
        select_stmt = select

    attempts = 0
    while attempts < max_attempts:
        suffix = "".join(secrets.choice(BASE62_ALPHABET) for _ in range(length))
        candidate = f"{prefix}-{suffix}"[:64]

        if session is not None and record_cls is not None and select_stmt is not None:
            exists = session.scalar(
                select_stmt(record_cls.id).where(record_cls.draw_reference == candidate)
            )
            if exists is not None:
                attempts += 1
                continue

        return candidate

    raise RuntimeError("Unable to generate a unique draw reference after multiple attempts")


def slugify(title: str) -> str:
    """Lower-case ``title`` and collapse anything non-alphanumeric into dashes."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.strip().lower()).strip("-")
    return slug[:120] or "competition"


def generate_unique_slug(session: Session, title: str, max_attempts: int = 100) -> str:
    """Return a competition slug derived from ``title`` not yet used in the DB.

    Collisions are resolved by appending ``-2``, ``-3`` and so on. Pending
    (unflushed) competitions in the session are taken into account.
    """
    from sqlalchemy import select
    from .competition import Competition

    base = slugify(title)
    pending = {
        obj.slug
        for obj in session.new
        if isinstance(obj, Competition) and getattr(obj, "slug", None)
    }
    for n in range(1, max_attempts + 1):
        candidate = base if n == 1 else f"{base}-{n}"
        if candidate in pending:
            continue
        exists = session.scalar(select(Competition.id).where(Competition.slug == candidate))
        if exists is None:
            return candidate
    raise RuntimeError(f"Unable to generate a unique slug for {title!r}")
