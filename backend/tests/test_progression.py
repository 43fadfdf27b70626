import unittest

from dbutil import make_engine, make_session_factory, make_spot, make_user

from spotch.core.database import unit_of_work
from spotch.core.errors import NotFound
from spotch.models.badge import Badge, UserBadge
from spotch.services import ledger, progression


class TestLevels(unittest.TestCase):
    def test_thresholds_grow_by_level_times_hundred(self):
        self.assertEqual(progression.xp_threshold(1), 0)
        self.assertEqual(progression.xp_threshold(2), 100)
        self.assertEqual(progression.xp_threshold(3), 300)
        self.assertEqual(progression.xp_threshold(4), 600)

    def test_level_for_xp(self):
        self.assertEqual(progression.level_for_xp(0), 1)
        self.assertEqual(progression.level_for_xp(99), 1)
        self.assertEqual(progression.level_for_xp(100), 2)
        self.assertEqual(progression.level_for_xp(299), 2)
        self.assertEqual(progression.level_for_xp(300), 3)

    def test_describe_level(self):
        self.assertEqual(progression.describe_level(150, 2), (50, 200))


class TestProgression(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.user = make_user(self.db, "leveler")

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_add_xp_levels_up_and_unlocks_level_badge(self):
        self.db.add(Badge(name="Rookie", condition_type="level", condition_value=2))
        self.db.commit()

        with unit_of_work(self.db):
            first = progression.add_xp(self.db, self.user.id, 90)
        self.assertFalse(first.leveled_up)
        self.assertEqual(first.new_badges, [])

        with unit_of_work(self.db):
            second = progression.add_xp(self.db, self.user.id, 20)
        self.assertTrue(second.leveled_up)
        self.assertEqual(second.level, 2)
        self.assertEqual(second.total_xp, 110)
        self.assertEqual(second.xp_into_level, 10)
        self.assertEqual(second.xp_needed, 200)
        self.assertEqual(second.new_badges, ["Rookie"])

    def test_add_xp_unknown_user(self):
        with self.assertRaises(NotFound):
            progression.add_xp(self.db, 999, 5)

    def test_badges_unlock_once(self):
        self.db.add_all(
            [
                Badge(name="Creator I", condition_type="spots_created", condition_value=1),
                Badge(name="High Roller", condition_type="points", condition_value=50),
            ]
        )
        self.db.commit()
        make_spot(self.db, self.user)

        with unit_of_work(self.db):
            unlocked = progression.check_badge_unlock(self.db, self.user.id)
        self.assertEqual(unlocked, ["Creator I"])

        with unit_of_work(self.db):
            ledger.credit(self.db, self.user.id, 60, description="Farmed at Fountain")
            unlocked = progression.check_badge_unlock(self.db, self.user.id, "any")
        self.assertEqual(unlocked, ["High Roller"])

        with unit_of_work(self.db):
            self.assertEqual(progression.check_badge_unlock(self.db, self.user.id), [])
        self.assertEqual(self.db.query(UserBadge).filter(UserBadge.user_id == self.user.id).count(), 2)
        self.assertEqual([b.name for b in progression.list_badges(self.db, self.user.id)], ["Creator I", "High Roller"])


if __name__ == "__main__":
    unittest.main()
