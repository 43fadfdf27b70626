import os
import unittest
from unittest import mock

import requests

from dbutil import make_engine, make_session_factory, make_user

from spotch.core.errors import BadRequest, Forbidden, InternalError
from spotch.core.settings import Settings, settings
from spotch.services import ledger, payments


class FakeStripe:
    def __init__(self, intent):
        self.intent = intent
        self.lookups = []

    def payment_intent(self, intent_id):
        self.lookups.append(intent_id)
        return self.intent


class TestConfirmPurchase(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()
        self.user = make_user(self.db, "buyer", balance=10)

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_succeeded_intent_credits_once(self):
        client = FakeStripe({"status": "succeeded", "amount": 499, "metadata": {"userId": str(self.user.id), "points": "500"}})

        first = payments.confirm_purchase(self.db, self.user.id, "pi_123", 500, client=client)
        again = payments.confirm_purchase(self.db, self.user.id, "pi_123", 500, client=client)

        self.assertTrue(first.credited)
        self.assertEqual(first.balance, 510)
        self.assertEqual(first.reference, "stripe:pi_123")
        self.assertFalse(again.credited)
        self.assertEqual(again.balance, 510)
        self.assertEqual(client.lookups, ["pi_123"])
        txn = ledger.find_by_reference(self.db, self.user.id, "stripe:pi_123")
        self.assertEqual(txn.description, "Point Purchase ($4.99)")

    def test_unfinished_intent_is_rejected(self):
        client = FakeStripe({"status": "requires_payment_method"})
        with self.assertRaises(BadRequest) as ctx:
            payments.confirm_purchase(self.db, self.user.id, "pi_456", 500, client=client)
        self.assertEqual(ctx.exception.reason, "Payment not successful")
        self.assertEqual(ledger.get_balance(self.db, self.user.id), 10)

    def test_metadata_must_match(self):
        other_user = FakeStripe({"status": "succeeded", "metadata": {"userId": "999"}})
        with self.assertRaises(Forbidden):
            payments.confirm_purchase(self.db, self.user.id, "pi_a", 500, client=other_user)

        wrong_points = FakeStripe({"status": "succeeded", "metadata": {"points": "100"}})
        with self.assertRaises(BadRequest):
            payments.confirm_purchase(self.db, self.user.id, "pi_b", 500, client=wrong_points)

    def test_mock_intents_follow_the_setting(self):
        with mock.patch.object(settings, "payments_allow_mock", True):
            result = payments.confirm_purchase(self.db, self.user.id, "pi_mock_1", 250)
        self.assertTrue(result.credited)
        self.assertEqual(result.balance, 260)

        with mock.patch.object(settings, "payments_allow_mock", False):
            with self.assertRaises(BadRequest):
                payments.confirm_purchase(self.db, self.user.id, "pi_mock_2", 250)

    def test_mock_intent_rejected_under_default_settings(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            defaults = Settings()
        self.assertEqual(defaults.environment, "development")
        self.assertFalse(defaults.payments_allow_mock)

        with mock.patch.object(settings, "payments_allow_mock", defaults.payments_allow_mock):
            with self.assertRaises(BadRequest) as ctx:
                payments.confirm_purchase(self.db, self.user.id, "pi_mock_anything", 1000000)
        self.assertEqual(ctx.exception.reason, "Mock payments are disabled")
        self.assertEqual(ledger.get_balance(self.db, self.user.id), 10)

    def test_production_never_allows_mock_intents(self):
        env = {"ENVIRONMENT": "production", "PAYMENTS_ALLOW_MOCK": "true"}
        with mock.patch.dict(os.environ, env, clear=True):
            self.assertFalse(Settings().payments_allow_mock)
        with mock.patch.dict(os.environ, {"PAYMENTS_ALLOW_MOCK": "true"}, clear=True):
            self.assertTrue(Settings().payments_allow_mock)

    def test_input_validation(self):
        with self.assertRaises(BadRequest):
            payments.confirm_purchase(self.db, self.user.id, "  ", 10)
        with self.assertRaises(BadRequest):
            payments.confirm_purchase(self.db, self.user.id, "pi_x", 0)


class TestStripeClient(unittest.TestCase):
    def _client(self, response=None, error=None):
        session = mock.Mock(spec=requests.Session)
        if error is not None:
            session.get.side_effect = error
        else:
            session.get.return_value = response
        return payments.StripeClient("sk_test", session=session), session

    def test_reads_intent_with_bearer_key(self):
        response = mock.Mock(status_code=200)
        response.json.return_value = {"id": "pi_1", "status": "succeeded"}
        client, session = self._client(response)

        self.assertEqual(client.payment_intent_status("pi_1"), "succeeded")
        args, kwargs = session.get.call_args
        self.assertTrue(args[0].endswith("/payment_intents/pi_1"))
        self.assertEqual(kwargs["headers"]["Authorization"], "Bearer sk_test")

    def test_error_mapping(self):
        client, _ = self._client(mock.Mock(status_code=404))
        with self.assertRaises(BadRequest):
            client.payment_intent("pi_gone")

        client, _ = self._client(mock.Mock(status_code=502))
        with self.assertRaises(InternalError):
            client.payment_intent("pi_1")

        client, _ = self._client(error=requests.ConnectionError("down"))
        with self.assertRaises(InternalError):
            client.payment_intent("pi_1")

    def test_missing_key(self):
        client = payments.StripeClient("", session=mock.Mock(spec=requests.Session))
        with self.assertRaises(InternalError):
            client.payment_intent("pi_1")


if __name__ == "__main__":
    unittest.main()
