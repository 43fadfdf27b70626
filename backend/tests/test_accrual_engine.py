import unittest
from datetime import timedelta
from fractions import Fraction

from dbutil import T0, make_engine, make_session_factory, make_spot, make_user, open_visit

from spotch.core.errors import Forbidden, NotFound, PreconditionFailed
from spotch.models.spot import Spot
from spotch.models.user import User
from spotch.services import ledger, weekly_points
from spotch.services.accrual_engine import AccrualEngine, crossing_delta


def tick_times(count: int):
    return [T0 + timedelta(seconds=5 * (i + 1)) for i in range(count)]


class TestCrossingDelta(unittest.TestCase):
    def test_counts_integer_crossings(self):
        self.assertEqual(crossing_delta(Fraction(0), Fraction(5, 6)), 0)
        self.assertEqual(crossing_delta(Fraction(5, 6), Fraction(5, 3)), 1)
        self.assertEqual(crossing_delta(Fraction(19, 2), Fraction(21, 2), Fraction(1, 10)), 1)
        self.assertEqual(crossing_delta(Fraction(3), Fraction(4), Fraction(1, 20)), 0)


class TestAccrualEngine(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.Session = make_session_factory(self.engine)
        self.db = self.Session()
        self.owner = make_user(self.db, "owner")
        self.visitor = make_user(self.db, "visitor")

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def run_ticks(self, visit, count, **engine_kwargs):
        engine = AccrualEngine(self.db, heartbeats_per_minute=12, **engine_kwargs)
        return [engine.heartbeat(visit.id, user_id=self.visitor.id, now=at) for at in tick_times(count)]

    def test_unowned_spot_pays_one_point_per_tick(self):
        spot = make_spot(self.db, None, total_points=100, rate_per_minute=12)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 12)

        self.assertEqual(results[-1].earned_points, Fraction(12))
        self.assertEqual(results[-1].remaining_points, Fraction(88))
        self.assertEqual(sum(r.points_awarded for r in results), 12)
        self.assertEqual(sum(r.tax_paid for r in results), 0)
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 12)

    def test_one_minute_at_rate_ten_under_five_percent_tax(self):
        spot = make_spot(self.db, self.owner, total_points=100, rate_per_minute=10, tax_rate=5)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 12)

        self.assertEqual(results[-1].earned_points, Fraction(10))
        self.assertEqual(sum(r.points_awarded for r in results), 10)
        self.assertEqual(sum(r.tax_paid for r in results), 0)
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 10)
        self.assertEqual(ledger.get_balance(self.db, self.owner.id), 0)

    def test_awards_never_drift_from_floor_of_earned(self):
        spot = make_spot(self.db, None, total_points=1000, rate_per_minute=10)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 31)

        earned = results[-1].earned_points
        self.assertEqual(earned, Fraction(10 * 31, 12))
        self.assertEqual(sum(r.points_awarded for r in results), earned.numerator // earned.denominator)
        self.assertEqual(results[-1].remaining_points, Fraction(1000) - earned)

    def test_owner_tax_matches_floor_of_taxed_earnings(self):
        spot = make_spot(self.db, self.owner, total_points=1000, rate_per_minute=7, tax_rate=20)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 100)

        earned = results[-1].earned_points
        taxed = earned * Fraction(20, 100)
        for r in results:
            self.assertEqual(r.user_gain + r.tax_paid, r.points_awarded)
        self.assertEqual(sum(r.tax_paid for r in results), taxed.numerator // taxed.denominator)
        self.assertEqual(ledger.get_balance(self.db, self.owner.id), sum(r.tax_paid for r in results))
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), sum(r.user_gain for r in results))
        self.assertTrue(ledger.is_reconciled(self.db, self.owner.id))
        self.assertTrue(ledger.is_reconciled(self.db, self.visitor.id))

    def test_tax_crossed_between_awards_is_collected_on_the_next_award(self):
        # At 30 % the taxed fraction reaches 1 at earned 10/3, between two awards.
        spot = make_spot(self.db, self.owner, total_points=1000, rate_per_minute=3, tax_rate=30)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 16)

        self.assertEqual(results[-1].earned_points, Fraction(4))
        self.assertEqual(sum(r.points_awarded for r in results), 4)
        self.assertEqual(sum(r.tax_paid for r in results), 1)
        self.assertEqual(results[-1].tax_paid, 1)
        for r in results:
            self.assertEqual(r.user_gain + r.tax_paid, r.points_awarded)
        self.assertEqual(ledger.get_balance(self.db, self.owner.id), 1)
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 3)

    def test_tax_matches_floor_at_every_award_for_uneven_rates(self):
        for tax_rate in (3, 15, 30, 40):
            with self.subTest(tax_rate=tax_rate):
                owner = make_user(self.db, f"owner-{tax_rate}")
                visitor = make_user(self.db, f"visitor-{tax_rate}")
                spot = make_spot(self.db, owner, total_points=1000, rate_per_minute=5, tax_rate=tax_rate)
                visit = open_visit(self.db, spot, visitor)
                engine = AccrualEngine(self.db, heartbeats_per_minute=12)

                paid = 0
                for at in tick_times(60):
                    r = engine.heartbeat(visit.id, user_id=visitor.id, now=at)
                    paid += r.tax_paid
                    if r.points_awarded:
                        taxed = r.earned_points * Fraction(tax_rate, 100)
                        self.assertEqual(paid, taxed.numerator // taxed.denominator)
                self.assertEqual(ledger.get_balance(self.db, owner.id), paid)

    def test_earnings_before_an_owner_arrives_are_not_taxed(self):
        spot = make_spot(self.db, None, total_points=1000, rate_per_minute=12, tax_rate=50)
        visit = open_visit(self.db, spot, self.visitor)
        self.run_ticks(visit, 4)

        spot.owner_id = self.owner.id
        self.db.commit()
        results = self.run_ticks(visit, 2)

        self.assertEqual(results[-1].earned_points, Fraction(6))
        self.assertEqual(ledger.get_balance(self.db, self.owner.id), 1)
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 5)

    def test_active_tax_boost_overrides_spot_rate(self):
        spot = make_spot(self.db, self.owner, total_points=1000, rate_per_minute=12, tax_rate=5)
        spot.tax_boost_expires_at = T0 + timedelta(hours=1)
        self.db.commit()
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 10, tax_boost_rate=50)

        self.assertEqual(sum(r.tax_paid for r in results), 5)
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 5)

    def test_owner_farming_own_spot_pays_no_tax(self):
        spot = make_spot(self.db, self.visitor, total_points=100, rate_per_minute=12, tax_rate=50)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 4)

        self.assertEqual(sum(r.tax_paid for r in results), 0)
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 4)

    def test_takeover_owner_collects_instead_of_spotter(self):
        other = make_user(self.db, "usurper")
        spot = make_spot(self.db, self.owner, owner=other, total_points=1000, rate_per_minute=12, tax_rate=50)
        visit = open_visit(self.db, spot, self.visitor)

        self.run_ticks(visit, 2)

        self.assertEqual(ledger.get_balance(self.db, other.id), 1)
        self.assertEqual(ledger.get_balance(self.db, self.owner.id), 0)

    def test_depleted_spot_is_deactivated_and_tick_rejected(self):
        spot = make_spot(self.db, None, total_points=10, rate_per_minute=12)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 10)
        self.assertEqual(results[-1].remaining_points, Fraction(0))

        engine = AccrualEngine(self.db, heartbeats_per_minute=12)
        with self.assertRaises(PreconditionFailed):
            engine.heartbeat(visit.id, now=T0 + timedelta(minutes=5))

        fresh = self.Session()
        try:
            self.assertFalse(fresh.get(Spot, spot.id).active)
        finally:
            fresh.close()
        self.assertEqual(ledger.get_balance(self.db, self.visitor.id), 10)

        with self.assertRaises(PreconditionFailed):
            engine.heartbeat(visit.id, now=T0 + timedelta(minutes=6))

    def test_budget_may_dip_below_zero_by_less_than_one_increment(self):
        spot = make_spot(self.db, None, total_points=100, remaining=Fraction(1, 2), rate_per_minute=12)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 1)

        self.assertEqual(results[0].remaining_points, Fraction(-1, 2))
        with self.assertRaises(PreconditionFailed):
            self.run_ticks(visit, 1)

    def test_closed_or_unknown_visit_is_not_found(self):
        spot = make_spot(self.db, None)
        visit = open_visit(self.db, spot, self.visitor)
        visit.check_out_time = T0
        self.db.commit()

        engine = AccrualEngine(self.db)
        with self.assertRaises(NotFound) as ctx:
            engine.heartbeat(visit.id, now=T0)
        self.assertEqual(ctx.exception.reason, "Invalid visit session")
        with self.assertRaises(NotFound):
            engine.heartbeat(9999, now=T0)

    def test_foreign_visit_is_forbidden(self):
        spot = make_spot(self.db, None)
        visit = open_visit(self.db, spot, self.visitor)
        with self.assertRaises(Forbidden):
            AccrualEngine(self.db).heartbeat(visit.id, user_id=self.owner.id, now=T0)

    def test_inactive_spot_is_precondition_failed(self):
        spot = make_spot(self.db, None, active=False)
        visit = open_visit(self.db, spot, self.visitor)
        with self.assertRaises(PreconditionFailed):
            AccrualEngine(self.db).heartbeat(visit.id, now=T0)

    def test_xp_is_half_the_increment_with_a_floor_of_one(self):
        slow = make_spot(self.db, None, name="Slow", total_points=1000, rate_per_minute=12)
        visit = open_visit(self.db, slow, self.visitor)
        results = self.run_ticks(visit, 3)
        self.assertEqual([r.earned_xp for r in results], [1, 1, 1])

        fast = make_spot(self.db, None, name="Fast", total_points=1000, rate_per_minute=60)
        visit = open_visit(self.db, fast, self.visitor)
        results = self.run_ticks(visit, 2)
        self.assertEqual([r.earned_xp for r in results], [2, 2])

        self.db.expire_all()
        self.assertEqual(self.db.get(User, self.visitor.id).xp, 7)

    def test_spot_levels_up_every_five_hundred_activity_per_level(self):
        spot = make_spot(self.db, None, total_points=1000, rate_per_minute=12)
        spot.total_activity = 499
        self.db.commit()
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 2)

        self.assertEqual(results[0].spot_level, 2)
        self.assertEqual(results[1].spot_level, 2)

    def test_weekly_points_track_gross_award(self):
        spot = make_spot(self.db, self.owner, total_points=1000, rate_per_minute=12, tax_rate=50)
        visit = open_visit(self.db, spot, self.visitor)

        results = self.run_ticks(visit, 6)

        gross = sum(r.points_awarded for r in results)
        self.assertEqual(gross, 6)
        self.assertEqual(weekly_points.points_for(self.db, spot.id, self.visitor.id, now=T0), 6)
        self.assertLess(ledger.get_balance(self.db, self.visitor.id), gross)


if __name__ == "__main__":
    unittest.main()
