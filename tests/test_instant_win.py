import random
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select

from rydercomps.db.engine import get_sessionmaker, make_engine
from rydercomps.instant_win import InstantWinAllocator, assign_instant_prizes
from rydercomps.models import (
    Base,
    Entry,
    InstantPrize,
    InstantWinTicket,
    PrizeType,
    RyderCashTransaction,
    User,
)
from rydercomps.workflows import create_competition

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class FixedSample(random.Random):
    """Random source whose ``sample`` returns preset numbers."""

    def __init__(self, numbers):
        super().__init__(0)
        self.numbers = list(numbers)

    def sample(self, population, k, **kwargs):
        return self.numbers[:k]


class InstantWinTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _competition(self, session, max_tickets: int = 100):
        return create_competition(
            session,
            title="Instant Test",
            ticket_price=Decimal("1.00"),
            max_tickets=max_tickets,
            start_date=NOW - timedelta(days=1),
            end_date=NOW + timedelta(days=1),
        )

    def _user(self, session, email="winner@example.com", name="Winnie"):
        user = User(email=email, name=name)
        session.add(user)
        session.flush()
        return user

    @staticmethod
    def _prize(name, prize_type, value, total_wins):
        return InstantPrize(name=name, prize_type=prize_type, value=value, total_wins=total_wins)

    def test_assignment_is_disjoint_and_complete(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=50)
            prizes = [
                self._prize("£50 Cash", PrizeType.CASH, "50", 5),
                self._prize("£10 Cash", PrizeType.CASH, "10", 10),
                self._prize("£5 Ryder Cash", PrizeType.SITE_CREDIT, "5", 20),
            ]
            tickets = assign_instant_prizes(
                session, competition, prizes, rng=random.Random(1234)
            )

            numbers = [t.ticket_number for t in tickets]
            self.assertEqual(len(numbers), 35)
            self.assertEqual(len(set(numbers)), 35)
            self.assertTrue(all(1 <= n <= 50 for n in numbers))
            self.assertEqual(numbers, sorted(numbers))
            self.assertTrue(competition.has_instant_wins)

            for prize in prizes:
                count = session.scalar(
                    select(func.count(InstantWinTicket.id)).where(
                        InstantWinTicket.prize_id == prize.id
                    )
                )
                self.assertEqual(count, prize.total_wins)
                self.assertEqual(prize.remaining_wins, prize.total_wins)
            self.assertTrue(all(t.winner_id is None for t in tickets))

    def test_assignment_can_fill_every_ticket(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=5)
            tickets = assign_instant_prizes(
                session,
                competition,
                [self._prize("£1 Cash", PrizeType.CASH, "1", 5)],
                rng=random.Random(7),
            )
            self.assertEqual([t.ticket_number for t in tickets], [1, 2, 3, 4, 5])

    def test_assignment_rejects_too_many_slots(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=3)
            with self.assertRaises(ValueError):
                assign_instant_prizes(
                    session, competition, [self._prize("£1 Cash", PrizeType.CASH, "1", 4)]
                )
            self.assertFalse(competition.has_instant_wins)

    def test_assignment_runs_only_once(self):
        with self.Session.begin() as session:
            competition = self._competition(session)
            assign_instant_prizes(
                session, competition, [self._prize("£1 Cash", PrizeType.CASH, "1", 2)]
            )
            with self.assertRaises(ValueError):
                assign_instant_prizes(
                    session, competition, [self._prize("£2 Cash", PrizeType.CASH, "2", 2)]
                )

    def test_purchased_range_claims_pre_assigned_ticket(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=10)
            prize = self._prize("£25 Cash", PrizeType.CASH, "25", 1)
            assign_instant_prizes(session, competition, [prize], rng=FixedSample([7]))
            user = self._user(session)
            entry = Entry(user.id, competition.id, 5, "5.00")
            session.add(entry)
            session.flush()

            wins = InstantWinAllocator(session).resolve(
                competition, [5, 6, 7, 8, 9], user, entry=entry, now=NOW
            )

            self.assertEqual(len(wins), 1)
            self.assertEqual(wins[0].ticket_number, 7)
            self.assertEqual(wins[0].prize_id, prize.id)
            self.assertEqual(wins[0].value, Decimal("25.00"))
            self.assertEqual(prize.remaining_wins, 0)
            self.assertEqual(user.cash_balance, Decimal("25.00"))
            self.assertTrue(entry.has_instant_win)

            ticket = session.scalar(
                select(InstantWinTicket).where(InstantWinTicket.ticket_number == 7)
            )
            self.assertEqual(ticket.winner_id, user.id)
            self.assertEqual(ticket.winner_name, "Winnie")
            self.assertEqual(ticket.entry_id, entry.id)
            self.assertIsNotNone(ticket.claimed_at)

    def test_numbers_without_prize_yield_nothing(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=10)
            assign_instant_prizes(
                session,
                competition,
                [self._prize("£25 Cash", PrizeType.CASH, "25", 1)],
                rng=FixedSample([10]),
            )
            user = self._user(session)
            wins = InstantWinAllocator(session).resolve(competition, [1, 2, 3], user)
            self.assertEqual(wins, [])
            self.assertEqual(user.cash_balance, Decimal("0.00"))

    def test_resolve_is_idempotent(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=10)
            prize = self._prize("£5 Ryder Cash", PrizeType.SITE_CREDIT, "5", 2)
            assign_instant_prizes(session, competition, [prize], rng=FixedSample([2, 4]))
            user = self._user(session)
            allocator = InstantWinAllocator(session)

            first = allocator.resolve(competition, [1, 2, 3, 4], user, now=NOW)
            second = allocator.resolve(competition, [1, 2, 3, 4], user, now=NOW)

            self.assertEqual([w.ticket_number for w in first], [2, 4])
            self.assertEqual(second, [])
            self.assertEqual(prize.remaining_wins, 0)
            self.assertEqual(user.ryder_cash, Decimal("10.00"))
            transactions = session.scalars(
                select(RyderCashTransaction).order_by(RyderCashTransaction.id)
            ).all()
            self.assertEqual(len(transactions), 2)

    def test_claimed_ticket_is_never_reassigned(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=10)
            prize = self._prize("£25 Cash", PrizeType.CASH, "25", 1)
            assign_instant_prizes(session, competition, [prize], rng=FixedSample([3]))
            first = self._user(session, "first@example.com", "First")
            second = self._user(session, "second@example.com", "Second")
            allocator = InstantWinAllocator(session)

            self.assertEqual(len(allocator.resolve(competition, [3], first)), 1)
            self.assertEqual(allocator.resolve(competition, [3], second), [])
            self.assertEqual(second.cash_balance, Decimal("0.00"))

            ticket = session.scalar(select(InstantWinTicket))
            self.assertEqual(ticket.winner_id, first.id)

    def test_site_credit_win_appends_ledger_transaction(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=10)
            prize = self._prize("£5 Ryder Cash", PrizeType.SITE_CREDIT, "5", 1)
            assign_instant_prizes(session, competition, [prize], rng=FixedSample([1]))
            user = self._user(session)
            entry = Entry(user.id, competition.id, 1, "1.00")
            session.add(entry)
            session.flush()

            InstantWinAllocator(session).resolve(competition, [1], user, entry=entry)

            tx = session.scalar(select(RyderCashTransaction))
            self.assertEqual(tx.type, "instant_win")
            self.assertEqual(tx.amount, Decimal("5.00"))
            self.assertEqual(tx.balance, Decimal("5.00"))
            self.assertEqual(tx.reference, str(entry.id))
            self.assertEqual(tx.description, "Instant Win: £5 Ryder Cash from Instant Test")
            self.assertEqual(user.cash_balance, Decimal("0.00"))

    def test_claimed_counts_match_remaining_wins(self):
        with self.Session.begin() as session:
            competition = self._competition(session, max_tickets=40)
            prizes = [
                self._prize("£10 Cash", PrizeType.CASH, "10", 6),
                self._prize("£2 Ryder Cash", PrizeType.SITE_CREDIT, "2", 9),
            ]
            assign_instant_prizes(session, competition, prizes, rng=random.Random(99))
            user = self._user(session)
            InstantWinAllocator(session).resolve(competition, range(1, 21), user)

            for prize in prizes:
                claimed = session.scalar(
                    select(func.count(InstantWinTicket.id)).where(
                        InstantWinTicket.prize_id == prize.id,
                        InstantWinTicket.winner_id.is_not(None),
                    )
                )
                self.assertGreaterEqual(prize.remaining_wins, 0)
                self.assertEqual(prize.total_wins - prize.remaining_wins, claimed)


if __name__ == "__main__":
    unittest.main()
