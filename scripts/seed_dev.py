from datetime import datetime, timedelta, timezone
from decimal import Decimal

from rydercomps.db.engine import get_sessionmaker, make_engine
from rydercomps.instant_win.tiers import PrizeTier, plan_tiered_prizes
from rydercomps.models import Admin, Base, PrizeType, User
from rydercomps.workflows import create_competition, purchase_tickets


def main() -> None:
    """Reset the development database and fill it with sample competitions."""
    engine = make_engine()

    # SQLite struggles with cyclic foreign keys on DROP, so checks are off
    # while the schema is rebuilt.
    with engine.connect() as conn:
        conn.exec_driver_sql("PRAGMA foreign_keys=OFF")
        Base.metadata.drop_all(bind=conn)
        conn.exec_driver_sql("PRAGMA foreign_keys=ON")
        conn.commit()

    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    now = datetime.now(timezone.utc)

    with Session.begin() as session:
        admin = Admin(
            email="admin@example.com",
            password_hash="dev-hash",
            name="ryder_admin",
            role="admin",
        )
        alice = User(email="alice@example.com", name="Alice", ryder_cash=Decimal("20.00"))
        bob = User(email="bob@example.com", name="Bob")
        session.add_all([admin, alice, bob])
        session.flush()

        tiers = [
            PrizeTier("Cash Prize", PrizeType.CASH, Decimal("50"), Decimal("40")),
            PrizeTier("Cash Prize", PrizeType.CASH, Decimal("10"), Decimal("30")),
            PrizeTier("Ryder Cash", PrizeType.SITE_CREDIT, Decimal("5"), Decimal("30")),
        ]
        instant = create_competition(
            session,
            title="Win a Tesla Model 3",
            description="Instant wins on every ticket range.",
            ticket_price=Decimal("2.50"),
            max_tickets=2000,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=14),
            prize_value=Decimal("40000"),
            instant_prizes=plan_tiered_prizes(
                2000, Decimal("2.50"), tiers, rtp=Decimal("0.5"), instant_pot_share=Decimal("0.9")
            ),
        )
        purchase_tickets(session, alice, instant, 4, payment_method="ryder_cash")

        create_competition(
            session,
            title="Weekend Cash Draw",
            ticket_price=Decimal("1.00"),
            max_tickets=500,
            start_date=now - timedelta(days=7),
            end_date=now + timedelta(days=2),
            prize_value=Decimal("1000"),
        )

    print("Seeded development database")


if __name__ == "__main__":
    main()
