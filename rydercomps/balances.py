"""Cash and Ryder Cash (site credit) balance movements.

All balance changes are issued as single ``UPDATE`` statements against the
``users`` row; debits carry a ``balance >= amount`` guard so a concurrent
spend can never take a balance below zero. Every Ryder Cash movement appends
an immutable :class:`RyderCashTransaction` holding the resulting balance.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from .errors import InsufficientBalance, NotAuthorized
from .models import Admin, RyderCashTransaction, User, WithdrawalRequest
from .models.utils import to_money
from .models.withdrawal import (
    WITHDRAWAL_COMPLETED,
    WITHDRAWAL_PENDING,
    WITHDRAWAL_REJECTED,
)

logger = logging.getLogger(__name__)

MIN_WITHDRAWAL = Decimal("5.00")

TX_INSTANT_WIN = "instant_win"
TX_PURCHASE = "purchase"
TX_CREDIT = "credit"
TX_ADMIN_ADJUSTMENT = "admin_adjustment"


def _positive(amount: "Decimal | int | str") -> Decimal:
    value = to_money(amount)
    if value <= 0:
        raise ValueError("amount must be positive")
    return value


def _require_persisted(user: User) -> None:
    if user.id is None:
        raise ValueError("User must be persisted before changing balances")


def _require_manager(admin: Admin) -> None:
    if not isinstance(admin, Admin) or not admin.can_manage_competitions:
        raise NotAuthorized("Only administrators can change balances")


def _record(
    session: Session,
    user: User,
    tx_type: str,
    amount: Decimal,
    *,
    description: Optional[str],
    reference: Optional[str],
    admin: Optional[Admin],
) -> RyderCashTransaction:
    session.refresh(user, attribute_names=["ryder_cash"])
    tx = RyderCashTransaction(
        user_id=user.id,
        type=tx_type,
        amount=amount,
        balance=user.ryder_cash,
        description=description,
        reference=reference,
        created_by_admin_id=admin.id if admin is not None else None,
    )
    session.add(tx)
    session.flush()
    return tx


def credit_ryder_cash(
    session: Session,
    user: User,
    amount: "Decimal | int | str",
    *,
    tx_type: str = TX_CREDIT,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    admin: Optional[Admin] = None,
) -> RyderCashTransaction:
    """Add ``amount`` of site credit to ``user`` and log the movement.

    Returns
    -------
    RyderCashTransaction
        The appended transaction; ``balance`` is the user's new balance.
    """
    _require_persisted(user)
    value = _positive(amount)
    session.execute(
        update(User)
        .where(User.id == user.id)
        .values(ryder_cash=User.ryder_cash + value)
        .execution_options(synchronize_session=False)
    )
    return _record(
        session,
        user,
        tx_type,
        value,
        description=description,
        reference=reference,
        admin=admin,
    )


def debit_ryder_cash(
    session: Session,
    user: User,
    amount: "Decimal | int | str",
    *,
    tx_type: str = TX_PURCHASE,
    description: Optional[str] = None,
    reference: Optional[str] = None,
    admin: Optional[Admin] = None,
) -> RyderCashTransaction:
    """Take ``amount`` of site credit from ``user``.

    Raises
    ------
    InsufficientBalance
        If the balance is lower than ``amount``. Nothing is debited.
    """
    _require_persisted(user)
    value = _positive(amount)
    result = session.execute(
        update(User)
        .where(User.id == user.id, User.ryder_cash >= value)
        .values(ryder_cash=User.ryder_cash - value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        session.refresh(user, attribute_names=["ryder_cash"])
        raise InsufficientBalance(user.ryder_cash, value)
    return _record(
        session,
        user,
        tx_type,
        -value,
        description=description,
        reference=reference,
        admin=admin,
    )


def adjust_ryder_cash(
    session: Session,
    user: User,
    amount: "Decimal | int | str",
    admin: Admin,
    *,
    reason: Optional[str] = None,
) -> RyderCashTransaction:
    """Apply a signed admin correction to ``user``'s site credit.

    Positive amounts credit, negative amounts debit. A debit larger than the
    current balance raises :class:`InsufficientBalance`.
    """
    _require_manager(admin)
    value = to_money(amount)
    if value == 0:
        raise ValueError("amount must not be zero")
    description = reason or "Admin adjustment"
    if value > 0:
        tx = credit_ryder_cash(
            session, user, value, tx_type=TX_ADMIN_ADJUSTMENT, description=description, admin=admin
        )
    else:
        tx = debit_ryder_cash(
            session, user, -value, tx_type=TX_ADMIN_ADJUSTMENT, description=description, admin=admin
        )
    logger.info(
        "Admin %s adjusted ryder cash of user %s by %s (balance %s)",
        admin.id,
        user.id,
        value,
        tx.balance,
    )
    return tx


def credit_cash(session: Session, user: User, amount: "Decimal | int | str") -> Decimal:
    """Add ``amount`` to the withdrawable cash balance and return the new balance."""
    _require_persisted(user)
    value = _positive(amount)
    session.execute(
        update(User)
        .where(User.id == user.id)
        .values(cash_balance=User.cash_balance + value)
        .execution_options(synchronize_session=False)
    )
    session.refresh(user, attribute_names=["cash_balance"])
    return user.cash_balance


def _debit_cash(session: Session, user: User, value: Decimal) -> Decimal:
    result = session.execute(
        update(User)
        .where(User.id == user.id, User.cash_balance >= value)
        .values(cash_balance=User.cash_balance - value)
        .execution_options(synchronize_session=False)
    )
    session.refresh(user, attribute_names=["cash_balance"])
    if result.rowcount != 1:
        raise InsufficientBalance(user.cash_balance, value)
    return user.cash_balance


def request_withdrawal(
    session: Session,
    user: User,
    amount: "Decimal | int | str",
    payment_method: str,
    payment_details: Optional[dict[str, Any]] = None,
) -> WithdrawalRequest:
    """Open a withdrawal request and hold the amount from ``cash_balance``.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session.
    user : User
        Requesting user.
    amount : Decimal
        Amount to withdraw. At least :data:`MIN_WITHDRAWAL`.
    payment_method : str
        Payout channel, e.g. ``"bank_transfer"`` or ``"paypal"``.
    payment_details : Optional[dict], default: None
        Payout details stored as JSON.

    Returns
    -------
    WithdrawalRequest
        The pending request.

    Raises
    ------
    ValueError
        If the amount is below the minimum, no payment method is given, or the
        user already has a pending request.
    InsufficientBalance
        If ``cash_balance`` is lower than ``amount``.
    """
    _require_persisted(user)
    value = to_money(amount)
    if value < MIN_WITHDRAWAL:
        raise ValueError(f"Minimum withdrawal amount is {MIN_WITHDRAWAL}")
    if not payment_method:
        raise ValueError("payment_method is required")

    pending = session.scalar(
        select(WithdrawalRequest.id).where(
            WithdrawalRequest.user_id == user.id,
            WithdrawalRequest.status == WITHDRAWAL_PENDING,
        )
    )
    if pending is not None:
        raise ValueError("User already has a pending withdrawal request")

    _debit_cash(session, user, value)
    request = WithdrawalRequest(
        user_id=user.id,
        amount=value,
        payment_method=payment_method,
        payment_details=json.dumps(payment_details) if payment_details else None,
        status=WITHDRAWAL_PENDING,
    )
    session.add(request)
    session.flush()
    logger.info("User %s requested withdrawal of %s", user.id, value)
    return request


def _require_pending(request: WithdrawalRequest) -> None:
    if request.status != WITHDRAWAL_PENDING:
        raise ValueError(
            f"Withdrawal request {request.id} is already {request.status.lower()}"
        )


def approve_withdrawal(
    session: Session,
    request: WithdrawalRequest,
    admin: Admin,
    *,
    notes: Optional[str] = None,
) -> WithdrawalRequest:
    """Mark a pending withdrawal as paid out."""
    _require_manager(admin)
    _require_pending(request)
    request.status = WITHDRAWAL_COMPLETED
    request.notes = notes
    request.processed_by_admin_id = admin.id
    request.processed_at = datetime.now(timezone.utc)
    session.flush()
    logger.info("Admin %s approved withdrawal %s", admin.id, request.id)
    return request


def reject_withdrawal(
    session: Session,
    request: WithdrawalRequest,
    admin: Admin,
    reason: str,
    *,
    notes: Optional[str] = None,
) -> WithdrawalRequest:
    """Reject a pending withdrawal and return the held amount to the user."""
    _require_manager(admin)
    _require_pending(request)
    if not reason:
        raise ValueError("A rejection reason is required")
    credit_cash(session, request.user, request.amount)
    request.status = WITHDRAWAL_REJECTED
    request.rejection_reason = reason
    request.notes = notes
    request.processed_by_admin_id = admin.id
    request.processed_at = datetime.now(timezone.utc)
    session.flush()
    logger.info("Admin %s rejected withdrawal %s: %s", admin.id, request.id, reason)
    return request


__all__ = [
    "MIN_WITHDRAWAL",
    "TX_INSTANT_WIN",
    "TX_PURCHASE",
    "TX_CREDIT",
    "TX_ADMIN_ADJUSTMENT",
    "credit_ryder_cash",
    "debit_ryder_cash",
    "adjust_ryder_cash",
    "credit_cash",
    "request_withdrawal",
    "approve_withdrawal",
    "reject_withdrawal",
]
