import unittest

from dbutil import T0, make_engine, make_session_factory, make_spot, make_user, open_visit

from spotch.core.errors import BadRequest, NotFound
from spotch.models.quest import Quest, QuestCondition, QuestStatus, UserQuest
from spotch.models.social import Follow
from spotch.models.transaction import Transaction
from spotch.services import ledger, quest_tracker


class TestQuestTracker(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.user = make_user(self.db, "quester")
        self.first_step = Quest(
            title="First Step",
            reward_points=100,
            condition_type=QuestCondition.VISIT_COUNT.value,
            condition_value=1,
        )
        self.social = Quest(
            title="Social Butterfly",
            reward_points=300,
            condition_type=QuestCondition.FRIEND_COUNT.value,
            condition_value=2,
        )
        self.vip = Quest(
            title="V.I.P.",
            reward_points=1000,
            condition_type=QuestCondition.PREMIUM_STATUS.value,
            condition_value=1,
        )
        self.db.add_all([self.first_step, self.social, self.vip])
        self.db.commit()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def visit_once(self):
        spot = make_spot(self.db, None)
        open_visit(self.db, spot, self.user)

    def test_list_shows_live_progress_without_writing(self):
        self.visit_once()
        views = {v.title: v for v in quest_tracker.list_quests(self.db, self.user.id)}
        self.assertEqual(views["First Step"].progress, 1)
        self.assertEqual(views["First Step"].status, QuestStatus.COMPLETED.value)
        self.assertEqual(views["V.I.P."].status, QuestStatus.IN_PROGRESS.value)
        self.assertEqual(self.db.query(UserQuest).count(), 0)

    def test_claim_pays_once(self):
        self.visit_once()
        result = quest_tracker.claim_reward(self.db, self.user.id, self.first_step.id, now=T0)
        self.assertEqual(result.reward, 100)
        self.assertEqual(result.balance, 100)

        with self.assertRaises(BadRequest) as ctx:
            quest_tracker.claim_reward(self.db, self.user.id, self.first_step.id, now=T0)
        self.assertEqual(ctx.exception.reason, "Reward already claimed")

        self.assertEqual(ledger.get_balance(self.db, self.user.id), 100)
        rewards = self.db.query(Transaction).filter(Transaction.description == "Quest Reward: First Step").count()
        self.assertEqual(rewards, 1)
        record = self.db.query(UserQuest).filter(UserQuest.quest_id == self.first_step.id).one()
        self.assertEqual(record.status, QuestStatus.CLAIMED.value)
        self.assertIsNotNone(record.completed_at)

    def test_claim_after_refresh_updates_existing_row(self):
        self.visit_once()
        completed = quest_tracker.refresh_progress(self.db, self.user.id, now=T0)
        self.db.commit()
        self.assertEqual(completed, [self.first_step.id])

        quest_tracker.claim_reward(self.db, self.user.id, self.first_step.id, now=T0)
        with self.assertRaises(BadRequest):
            quest_tracker.claim_reward(self.db, self.user.id, self.first_step.id, now=T0)
        self.assertEqual(ledger.get_balance(self.db, self.user.id), 100)

    def test_unmet_requirements(self):
        with self.assertRaises(BadRequest) as ctx:
            quest_tracker.claim_reward(self.db, self.user.id, self.first_step.id)
        self.assertEqual(ctx.exception.reason, "Quest requirements not met")
        self.assertEqual(ledger.get_balance(self.db, self.user.id), 0)

    def test_unknown_quest(self):
        with self.assertRaises(NotFound):
            quest_tracker.claim_reward(self.db, self.user.id, 424242)

    def test_friend_and_premium_conditions(self):
        a = make_user(self.db, "a")
        b = make_user(self.db, "b")
        self.db.add_all([Follow(follower_id=self.user.id, following_id=a.id), Follow(follower_id=self.user.id, following_id=b.id)])
        self.user.is_premium = True
        self.db.commit()

        quest_tracker.claim_reward(self.db, self.user.id, self.social.id)
        quest_tracker.claim_reward(self.db, self.user.id, self.vip.id)
        self.assertEqual(ledger.get_balance(self.db, self.user.id), 1300)

    def test_refresh_never_regresses(self):
        self.visit_once()
        quest_tracker.claim_reward(self.db, self.user.id, self.first_step.id, now=T0)
        quest_tracker.refresh_progress(self.db, self.user.id, now=T0)
        self.db.commit()
        record = self.db.query(UserQuest).filter(UserQuest.quest_id == self.first_step.id).one()
        self.assertEqual(record.status, QuestStatus.CLAIMED.value)


if __name__ == "__main__":
    unittest.main()
