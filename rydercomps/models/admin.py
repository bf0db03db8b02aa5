from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, DateTime, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column, validates

from .base import Base
from .column_types import ID_TYPE

ROLE_SUPER_ADMIN = "super_admin"
ROLE_ADMIN = "admin"
ROLE_SUPPORT = "support"

# Roles allowed to configure competitions, run draws and move balances.
MANAGER_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_ADMIN})


class Admin(Base):
    """Back-office account permitted to configure competitions and run draws."""

    __tablename__ = "admins"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, index=True, autoincrement=True)
    email: Mapped[Optional[str]] = mapped_column(String(100), unique=True, index=True, nullable=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    role: Mapped[str] = mapped_column(String(50), nullable=False, default=ROLE_ADMIN)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @validates("email")
    def _normalize_email(self, _key: str, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        normalized = value.strip().lower()
        return normalized or None

    @validates("role")
    def _validate_role(self, _key: str, value: str) -> str:
        if value not in (ROLE_SUPER_ADMIN, ROLE_ADMIN, ROLE_SUPPORT):
            raise ValueError(f"Unknown admin role: {value!r}")
        return value

    def __repr__(self) -> str:
        return f"<Admin(id={self.id}, email='{self.email}', role='{self.role}')>"

    @property
    def can_manage_competitions(self) -> bool:
        """Whether this account may run draws and adjust user balances.

        Support accounts and deactivated accounts are read-only. An account
        that has not been flushed yet is never trusted.
        """
        return (
            self.id is not None
            and self.is_active is not False
            and (self.role or ROLE_ADMIN) in MANAGER_ROLES
        )

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> Optional["Admin"]:
        """Get admin by their email address."""
        return session.scalar(select(cls).where(cls.email == email.strip().lower()))
