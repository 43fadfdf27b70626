from datetime import datetime, timedelta, timezone
from fractions import Fraction

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from spotch.core.database import Base
from spotch.models import badge, quest, social, transaction, wallet, weekly_spot_points  # noqa: F401
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.models.visit import Visit
from spotch.services import ledger
from spotch.services.accrual_engine import AccrualEngine


def main() -> None:
    engine = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        owner = User(open_id="owner", name="Owner")
        visitor = User(open_id="visitor", name="Visitor")
        db.add_all([owner, visitor])
        db.flush()
        spot = Spot(
            spotter_id=owner.id,
            name="Fountain",
            latitude=0.0,
            longitude=0.0,
            total_points=100,
            remaining_points=Fraction(100),
            rate_per_minute=10,
            tax_rate=5,
            active=True,
        )
        db.add(spot)
        db.flush()
        start = datetime(2026, 1, 7, 12, 0, tzinfo=timezone.utc)
        visit = Visit(spot_id=spot.id, user_id=visitor.id, check_in_time=start, earned_points=Fraction(0))
        db.add(visit)
        db.commit()

        engine_ = AccrualEngine(db, heartbeats_per_minute=12)
        gross = 0
        tax = 0
        for i in range(12):
            tick = engine_.heartbeat(visit.id, now=start + timedelta(seconds=5 * (i + 1)))
            gross += tick.points_awarded
            tax += tick.tax_paid

        assert tick.earned_points == Fraction(10), tick.earned_points
        assert gross == 10, gross
        assert tax == 0, tax
        assert ledger.get_balance(db, visitor.id) == 10
        assert ledger.get_balance(db, owner.id) == 0
        assert ledger.is_reconciled(db, visitor.id)
        assert tick.remaining_points == Fraction(90), tick.remaining_points
    finally:
        db.close()


if __name__ == "__main__":
    main()
    print("OK")
