from datetime import datetime, timezone
from decimal import Decimal
from typing import TYPE_CHECKING, Optional
from sqlalchemy.orm import Session, Mapped, mapped_column, relationship, validates
from sqlalchemy import CheckConstraint, DateTime, String, func, select

from .base import Base
from .column_types import ID_TYPE, MONEY
from .utils import to_money

if TYPE_CHECKING:
    from .entry import Entry
    from .ryder_cash import RyderCashTransaction
    from .withdrawal import WithdrawalRequest


class User(Base):
    """A customer who buys competition tickets."""

    def __init__(
        self,
        email: str,
        name: Optional[str] = None,
        cash_balance: "Decimal | int | str" = Decimal("0.00"),
        ryder_cash: "Decimal | int | str" = Decimal("0.00"),
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
    ):
        """Create a new :class:`User` record.

        Parameters
        ----------
        email : str
            Login email address supplied by the authentication service.
        name : str, optional
            Display name shown on winner boards and instant-win tickets.
        cash_balance : Decimal, optional
            Withdrawable balance. Cash instant prizes are credited here.
        ryder_cash : Decimal, optional
            Site credit balance. Only spendable on future entries.
        created_at : datetime, optional
            Explicit creation timestamp.
        updated_at : datetime, optional
            Explicit last update timestamp.
        """

        self.email = email
        self.name = name
        self.cash_balance = to_money(cash_balance)
        self.ryder_cash = to_money(ryder_cash)
        if created_at is not None:
            self.created_at = created_at
        if updated_at is not None:
            self.updated_at = updated_at

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(ID_TYPE, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    cash_balance: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0.00"), server_default="0"
    )
    ryder_cash: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0.00"), server_default="0"
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )

    # relationships
    entries: Mapped[list["Entry"]] = relationship(back_populates="user")
    ryder_cash_transactions: Mapped[list["RyderCashTransaction"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="RyderCashTransaction.id",
    )
    withdrawal_requests: Mapped[list["WithdrawalRequest"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="WithdrawalRequest.user_id",
    )

    __table_args__ = (
        CheckConstraint("cash_balance >= 0", name="cash_balance_non_negative"),
        CheckConstraint("ryder_cash >= 0", name="ryder_cash_non_negative"),
    )

    @validates("email")
    def _normalize_email(self, _key: str, value: str) -> str:
        normalized = value.strip().lower()
        if not normalized:
            raise ValueError("email must not be empty")
        return normalized

    def __repr__(self) -> str:
        return (
            f"<User(id={self.id}, email='{self.email}', name='{self.name}', "
            f"cash_balance={self.cash_balance}, ryder_cash={self.ryder_cash})>"
        )

    @property
    def display_name(self) -> str:
        """Name used on public winner listings."""
        return self.name or "Anonymous"

    @classmethod
    def get_by_email(cls, session: Session, email: str) -> Optional["User"]:
        """Retrieve a user by their email address."""

        return session.scalar(select(cls).where(cls.email == email.strip().lower()))
