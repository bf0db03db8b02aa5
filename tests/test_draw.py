import os
import random
import tempfile
import threading
import unittest
from collections import Counter
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import func, select

from rydercomps.db.engine import get_sessionmaker, make_engine
from rydercomps.draw import FairDrawEngine, pick_index
from rydercomps.errors import AlreadyDrawn, NoParticipants, NotAuthorized
from rydercomps.ledger import TicketLedger
from rydercomps.models import Admin, Base, Competition, DrawRecord, Entry, User
from rydercomps.workflows import create_competition, draw_winner, past_winners

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


class FixedIndex(random.Random):
    """Random source that always picks the same pool position."""

    def __init__(self, index: int):
        super().__init__(0)
        self.index = index
        self.sizes = []

    def randrange(self, start, stop=None, step=1):
        self.sizes.append(start if stop is None else stop - start)
        return self.index


class FairDrawTests(unittest.TestCase):
    def setUp(self) -> None:
        self.engine = make_engine("sqlite+pysqlite:///:memory:")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

    def tearDown(self) -> None:
        self.engine.dispose()

    def _competition(self, session, title="Grand Draw", max_tickets=100):
        return create_competition(
            session,
            title=title,
            ticket_price=Decimal("1.00"),
            max_tickets=max_tickets,
            start_date=NOW - timedelta(days=7),
            end_date=NOW - timedelta(hours=1),
        )

    def _admin(self, session):
        admin = Admin(email="ops@example.com", password_hash="x", role="admin")
        session.add(admin)
        session.flush()
        return admin

    def _users(self, session, count):
        users = [User(email=f"user{i}@example.com", name=f"User {i}") for i in range(count)]
        session.add_all(users)
        session.flush()
        return users

    def _sell(self, session, competition, user, numbers, *, completed=True):
        entry = Entry(user.id, competition.id, len(numbers), Decimal(len(numbers)))
        session.add(entry)
        session.flush()
        TicketLedger(session).issue(entry, numbers)
        if completed:
            entry.mark_completed()
        competition.tickets_allocated = max(competition.tickets_allocated, max(numbers))
        session.flush()
        return entry

    def test_selected_ticket_resolves_to_its_owner(self):
        with self.Session.begin() as session:
            admin = self._admin(session)
            competition = self._competition(session)
            alice, bob = self._users(session, 2)
            self._sell(session, competition, alice, list(range(1, 51)))
            self._sell(session, competition, bob, list(range(51, 101)))

            rng = FixedIndex(36)
            record = draw_winner(session, competition, admin, rng=rng, now=NOW)

            self.assertEqual(rng.sizes, [100])
            self.assertEqual(record.winning_ticket_number, 37)
            self.assertEqual(record.winner_id, alice.id)
            self.assertEqual(record.total_tickets, 100)
            self.assertEqual(record.total_participants, 2)
            self.assertEqual(record.random_index, 36)
            self.assertEqual(record.drawn_by_admin_id, admin.id)
            self.assertTrue(record.draw_reference.startswith("draw-"))

            self.assertEqual(competition.winner_id, alice.id)
            self.assertEqual(competition.winning_ticket_number, 37)
            self.assertEqual(competition.draw_reference, record.draw_reference)
            self.assertIsNotNone(competition.draw_timestamp)
            self.assertTrue(competition.is_drawn)

    def test_second_draw_fails_without_new_record(self):
        with self.Session.begin() as session:
            admin = self._admin(session)
            competition = self._competition(session)
            (user,) = self._users(session, 1)
            self._sell(session, competition, user, [1, 2, 3])

            first = draw_winner(session, competition, admin, rng=random.Random(1))
            with self.assertRaises(AlreadyDrawn):
                draw_winner(session, competition, admin, rng=random.Random(2))

            self.assertEqual(session.scalar(select(func.count(DrawRecord.id))), 1)
            self.assertEqual(competition.winning_ticket_number, first.winning_ticket_number)

    def test_draw_without_entries_fails(self):
        with self.Session.begin() as session:
            admin = self._admin(session)
            competition = self._competition(session)
            with self.assertRaises(NoParticipants):
                draw_winner(session, competition, admin)
            self.assertIsNone(competition.winner_id)
            self.assertEqual(session.scalar(select(func.count(DrawRecord.id))), 0)

    def test_pending_and_refunded_entries_are_not_in_the_pool(self):
        with self.Session.begin() as session:
            admin = self._admin(session)
            competition = self._competition(session)
            alice, bob, carol = self._users(session, 3)
            self._sell(session, competition, alice, [1, 2], completed=False)
            refunded = self._sell(session, competition, bob, [3, 4])
            refunded.mark_refunded()
            self._sell(session, competition, carol, [5])

            rng = FixedIndex(0)
            record = draw_winner(session, competition, admin, rng=rng)
            self.assertEqual(rng.sizes, [1])
            self.assertEqual(record.winner_id, carol.id)
            self.assertEqual(record.winning_ticket_number, 5)

    def test_only_admins_can_draw(self):
        with self.Session.begin() as session:
            competition = self._competition(session)
            (user,) = self._users(session, 1)
            self._sell(session, competition, user, [1])
            with self.assertRaises(NotAuthorized):
                draw_winner(session, competition, user)
            with self.assertRaises(NotAuthorized):
                draw_winner(session, competition, Admin(email="new@example.com", password_hash="x"))
            support = Admin(email="help@example.com", password_hash="x", role="support")
            retired = Admin(email="old@example.com", password_hash="x", is_active=False)
            session.add_all([support, retired])
            session.flush()
            with self.assertRaises(NotAuthorized):
                draw_winner(session, competition, support)
            with self.assertRaises(NotAuthorized):
                draw_winner(session, competition, retired)
            self.assertIsNone(competition.winner_id)

    def test_win_frequency_is_proportional_to_tickets_held(self):
        trials = 600
        with self.Session.begin() as session:
            admin = self._admin(session)
            competition = self._competition(session)
            users = self._users(session, 3)
            self._sell(session, competition, users[0], list(range(1, 11)))
            self._sell(session, competition, users[1], list(range(11, 41)))
            self._sell(session, competition, users[2], list(range(41, 101)))

            engine = FairDrawEngine(session, rng=random.Random(20260501))
            wins = Counter()
            for _ in range(trials):
                savepoint = session.begin_nested()
                try:
                    wins[engine.draw(competition, admin).winner_id] += 1
                finally:
                    savepoint.rollback()

            expected = {users[0].id: 0.1, users[1].id: 0.3, users[2].id: 0.6}
            for user_id, share in expected.items():
                self.assertAlmostEqual(wins[user_id] / trials, share, delta=0.08)

    def test_pick_index_is_uniform(self):
        rng = random.Random(42)
        counts = Counter(pick_index(rng, 4) for _ in range(8000))
        self.assertEqual(set(counts), {0, 1, 2, 3})
        for position in range(4):
            self.assertAlmostEqual(counts[position] / 8000, 0.25, delta=0.03)
        with self.assertRaises(ValueError):
            pick_index(rng, 0)

    def test_past_winners_newest_first(self):
        with self.Session.begin() as session:
            admin = self._admin(session)
            (user,) = self._users(session, 1)
            older = self._competition(session, title="Older")
            newer = self._competition(session, title="Newer")
            undrawn = self._competition(session, title="Undrawn")
            for comp in (older, newer, undrawn):
                self._sell(session, comp, user, [1])

            draw_winner(session, older, admin, now=NOW - timedelta(days=1))
            draw_winner(session, newer, admin, now=NOW)

            winners = past_winners(session)
            self.assertEqual([c.title for c in winners], ["Newer", "Older"])
            self.assertEqual(winners[0].winner.display_name, "User 0")


class ConcurrentDrawTests(unittest.TestCase):
    def setUp(self) -> None:
        self.tmpdir = tempfile.TemporaryDirectory()
        path = os.path.join(self.tmpdir.name, "draw.db")
        self.engine = make_engine(f"sqlite+pysqlite:///{path}")
        Base.metadata.create_all(self.engine)
        self.Session = get_sessionmaker(self.engine)

        with self.Session.begin() as session:
            admins = [
                Admin(email=f"ops{i}@example.com", password_hash="x", role="admin")
                for i in range(2)
            ]
            buyer = User(email="buyer@example.com")
            session.add_all([*admins, buyer])
            session.flush()
            competition = create_competition(
                session,
                title="Race Draw",
                ticket_price=Decimal("1.00"),
                max_tickets=20,
                start_date=NOW - timedelta(days=7),
                end_date=NOW - timedelta(hours=1),
            )
            entry = Entry(buyer.id, competition.id, 5, Decimal("5.00"))
            session.add(entry)
            session.flush()
            TicketLedger(session).issue(entry, [1, 2, 3, 4, 5])
            entry.mark_completed()
            competition.tickets_allocated = 5
            self.admin_ids = [a.id for a in admins]
            self.competition_id = competition.id

    def tearDown(self) -> None:
        self.engine.dispose()
        self.tmpdir.cleanup()

    def test_two_concurrent_draws_produce_one_winner(self):
        barrier = threading.Barrier(2)
        outcomes: list = []
        lock = threading.Lock()

        def draw(admin_id: int) -> None:
            barrier.wait()
            try:
                with self.Session.begin() as session:
                    admin = session.get(Admin, admin_id)
                    competition = session.get(Competition, self.competition_id)
                    record = draw_winner(session, competition, admin, now=NOW)
                    ticket = record.winning_ticket_number
                with lock:
                    outcomes.append(ticket)
            except AlreadyDrawn as exc:
                with lock:
                    outcomes.append(exc)

        threads = [threading.Thread(target=draw, args=(aid,)) for aid in self.admin_ids]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=30)

        failures = [o for o in outcomes if isinstance(o, AlreadyDrawn)]
        winners = [o for o in outcomes if isinstance(o, int)]
        self.assertEqual(len(failures), 1)
        self.assertEqual(len(winners), 1)

        with self.Session() as session:
            self.assertEqual(session.scalar(select(func.count(DrawRecord.id))), 1)
            competition = session.get(Competition, self.competition_id)
            self.assertEqual(competition.winning_ticket_number, winners[0])
            self.assertIn(winners[0], range(1, 6))


if __name__ == "__main__":
    unittest.main()
