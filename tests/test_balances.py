import json
import unittest
from decimal import Decimal

from sqlalchemy import select

from rydercomps.balances import (
    adjust_ryder_cash,
    approve_withdrawal,
    credit_cash,
    credit_ryder_cash,
    debit_ryder_cash,
    reject_withdrawal,
    request_withdrawal,
)
from rydercomps.db.engine import get_sessionmaker, make_engine
from rydercomps.errors import InsufficientBalance, NotAuthorized
from rydercomps.models import Admin, Base, RyderCashTransaction, User
from rydercomps.models.withdrawal import (
    WITHDRAWAL_COMPLETED,
    WITHDRAWAL_PENDING,
    WITHDRAWAL_REJECTED,
)


class BalanceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _seed(self, session, *, cash="0", ryder_cash="0"):
        admin = Admin(email="finance@example.com", password_hash="x", role="admin")
        user = User(email="saver@example.com", cash_balance=cash, ryder_cash=ryder_cash)
        session.add_all([admin, user])
        session.flush()
        return admin, user

    def test_ryder_cash_ledger_records_running_balance(self):
        with self.Session.begin() as session:
            _, user = self._seed(session)
            credit_ryder_cash(session, user, "10", description="Welcome bonus")
            debit_ryder_cash(session, user, "3.50", reference="entry-1")
            credit_ryder_cash(session, user, Decimal("1.25"))

            self.assertEqual(user.ryder_cash, Decimal("7.75"))
            rows = session.scalars(
                select(RyderCashTransaction).order_by(RyderCashTransaction.id)
            ).all()
            self.assertEqual(
                [(r.type, r.amount, r.balance) for r in rows],
                [
                    ("credit", Decimal("10.00"), Decimal("10.00")),
                    ("purchase", Decimal("-3.50"), Decimal("6.50")),
                    ("credit", Decimal("1.25"), Decimal("7.75")),
                ],
            )
            self.assertEqual([t.id for t in user.ryder_cash_transactions], [r.id for r in rows])

    def test_debit_beyond_balance_is_rejected_whole(self):
        with self.Session.begin() as session:
            _, user = self._seed(session, ryder_cash="5.00")
            with self.assertRaises(InsufficientBalance) as ctx:
                debit_ryder_cash(session, user, "5.01")
            self.assertEqual(ctx.exception.balance, Decimal("5.00"))
            self.assertEqual(ctx.exception.requested, Decimal("5.01"))
            self.assertEqual(user.ryder_cash, Decimal("5.00"))
            self.assertEqual(session.scalars(select(RyderCashTransaction)).all(), [])

            debit_ryder_cash(session, user, "5.00")
            self.assertEqual(user.ryder_cash, Decimal("0.00"))

    def test_amounts_must_be_positive(self):
        with self.Session.begin() as session:
            _, user = self._seed(session)
            with self.assertRaises(ValueError):
                credit_ryder_cash(session, user, "0")
            with self.assertRaises(ValueError):
                debit_ryder_cash(session, user, "-1")
            with self.assertRaises(ValueError):
                credit_cash(session, user, "0")

    def test_admin_adjustment_is_signed(self):
        with self.Session.begin() as session:
            admin, user = self._seed(session, ryder_cash="2.00")
            tx = adjust_ryder_cash(session, user, "8", admin, reason="Goodwill")
            self.assertEqual(tx.type, "admin_adjustment")
            self.assertEqual(tx.created_by_admin_id, admin.id)
            self.assertEqual(tx.description, "Goodwill")
            self.assertEqual(user.ryder_cash, Decimal("10.00"))

            tx = adjust_ryder_cash(session, user, "-4", admin)
            self.assertEqual(tx.amount, Decimal("-4.00"))
            self.assertEqual(user.ryder_cash, Decimal("6.00"))

            with self.assertRaises(InsufficientBalance):
                adjust_ryder_cash(session, user, "-6.01", admin)
            with self.assertRaises(ValueError):
                adjust_ryder_cash(session, user, "0", admin)

    def test_support_accounts_cannot_move_balances(self):
        with self.Session.begin() as session:
            _, user = self._seed(session, cash="20.00")
            support = Admin(email="help@example.com", password_hash="x", role="support")
            session.add(support)
            session.flush()
            with self.assertRaises(NotAuthorized):
                adjust_ryder_cash(session, user, "5", support)
            request = request_withdrawal(session, user, "10", "paypal")
            with self.assertRaises(NotAuthorized):
                approve_withdrawal(session, request, support)
            self.assertEqual(request.status, WITHDRAWAL_PENDING)
            self.assertEqual(user.ryder_cash, Decimal("0.00"))

    def test_withdrawal_holds_funds_until_processed(self):
        with self.Session.begin() as session:
            admin, user = self._seed(session, cash="30.00")
            request = request_withdrawal(
                session, user, "20", "bank_transfer", {"sort_code": "00-00-00"}
            )

            self.assertEqual(request.status, WITHDRAWAL_PENDING)
            self.assertEqual(user.cash_balance, Decimal("10.00"))
            self.assertEqual(json.loads(request.payment_details), {"sort_code": "00-00-00"})

            approve_withdrawal(session, request, admin, notes="paid")
            self.assertEqual(request.status, WITHDRAWAL_COMPLETED)
            self.assertEqual(request.processed_by_admin_id, admin.id)
            self.assertIsNotNone(request.processed_at)
            self.assertEqual(user.cash_balance, Decimal("10.00"))

            with self.assertRaises(ValueError):
                reject_withdrawal(session, request, admin, "too late")

    def test_rejected_withdrawal_is_refunded(self):
        with self.Session.begin() as session:
            admin, user = self._seed(session, cash="12.00")
            request = request_withdrawal(session, user, "12", "paypal")
            self.assertEqual(user.cash_balance, Decimal("0.00"))

            reject_withdrawal(session, request, admin, "Details do not match")
            self.assertEqual(request.status, WITHDRAWAL_REJECTED)
            self.assertEqual(request.rejection_reason, "Details do not match")
            self.assertEqual(user.cash_balance, Decimal("12.00"))

    def test_withdrawal_rules(self):
        with self.Session.begin() as session:
            _, user = self._seed(session, cash="100.00")
            with self.assertRaises(ValueError):
                request_withdrawal(session, user, "4.99", "paypal")
            with self.assertRaises(ValueError):
                request_withdrawal(session, user, "10", "")
            with self.assertRaises(InsufficientBalance):
                request_withdrawal(session, user, "100.01", "paypal")

            request_withdrawal(session, user, "10", "paypal")
            with self.assertRaises(ValueError):
                request_withdrawal(session, user, "10", "paypal")
            self.assertEqual(user.cash_balance, Decimal("90.00"))


if __name__ == "__main__":
    unittest.main()
