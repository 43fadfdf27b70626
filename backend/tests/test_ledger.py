import os
import tempfile
import threading
import unittest

from dbutil import make_engine, make_session_factory, make_user

from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest
from spotch.models.transaction import Transaction, TransactionKind
from spotch.models.wallet import Wallet
from spotch.services import ledger


class TestLedger(unittest.TestCase):
    def setUp(self):
        self.engine = make_engine()
        self.db = make_session_factory(self.engine)()

    def tearDown(self):
        self.db.close()
        self.engine.dispose()

    def test_credit_creates_wallet_and_log_row(self):
        user = make_user(self.db, "alice")
        with unit_of_work(self.db):
            entry = ledger.credit(self.db, user.id, 25, description="Farmed at Fountain")
        self.assertEqual(entry.amount, 25)
        self.assertEqual(entry.kind, TransactionKind.EARN.value)
        self.assertEqual(ledger.get_balance(self.db, user.id), 25)
        self.assertTrue(ledger.is_reconciled(self.db, user.id))

    def test_credit_without_wallet_inserts_one(self):
        user = make_user(self.db, "bob")
        self.db.query(Wallet).delete()
        self.db.commit()
        with unit_of_work(self.db):
            ledger.credit(self.db, user.id, 7, description="Tax from Fountain")
        self.assertEqual(ledger.get_balance(self.db, user.id), 7)

    def test_non_positive_amounts_are_rejected(self):
        user = make_user(self.db, "carol", balance=10)
        with self.assertRaises(BadRequest):
            ledger.credit(self.db, user.id, 0, description="nothing")
        with self.assertRaises(BadRequest):
            ledger.debit_if_possible(self.db, user.id, -5, description="nothing")

    def test_debit_if_possible_refuses_overdraft_without_writing(self):
        user = make_user(self.db, "dave", balance=50)
        with unit_of_work(self.db):
            entry = ledger.debit_if_possible(self.db, user.id, 60, description="Too much")
        self.assertIsNone(entry)
        self.assertEqual(ledger.get_balance(self.db, user.id), 50)
        self.assertEqual(self.db.query(Transaction).filter(Transaction.user_id == user.id).count(), 1)

    def test_debit_writes_negative_spend_entry(self):
        user = make_user(self.db, "erin", balance=50)
        with unit_of_work(self.db):
            entry = ledger.debit_or_raise(self.db, user.id, 20, description="Created spot: Park")
        self.assertEqual(entry.amount, -20)
        self.assertEqual(entry.kind, TransactionKind.SPEND.value)
        self.assertEqual(ledger.get_balance(self.db, user.id), 30)
        self.assertTrue(ledger.is_reconciled(self.db, user.id))

    def test_debit_or_raise_rolls_back_the_unit_of_work(self):
        user = make_user(self.db, "frank", balance=10)
        with self.assertRaises(BadRequest) as ctx:
            with unit_of_work(self.db):
                ledger.credit(self.db, user.id, 5, description="Bonus")
                ledger.debit_or_raise(self.db, user.id, 100, description="Takeover")
        self.assertEqual(ctx.exception.reason, "Insufficient funds")
        self.assertEqual(ledger.get_balance(self.db, user.id), 10)
        self.assertTrue(ledger.is_reconciled(self.db, user.id))

    def test_list_transactions_newest_first(self):
        user = make_user(self.db, "gina", balance=100)
        with unit_of_work(self.db):
            ledger.debit_or_raise(self.db, user.id, 10, description="first")
        with unit_of_work(self.db):
            ledger.debit_or_raise(self.db, user.id, 20, description="second")
        rows = ledger.list_transactions(self.db, user.id, limit=2)
        self.assertEqual([r.description for r in rows], ["second", "first"])


class TestConcurrentDebits(unittest.TestCase):
    def setUp(self):
        fd, self.path = tempfile.mkstemp(suffix=".db")
        os.close(fd)
        self.engine = make_engine(f"sqlite:///{self.path}")
        self.Session = make_session_factory(self.engine)
        db = self.Session()
        try:
            self.user_id = make_user(db, "racer", balance=100).id
        finally:
            db.close()

    def tearDown(self):
        self.engine.dispose()
        os.remove(self.path)

    def test_two_debits_of_sixty_leave_forty(self):
        barrier = threading.Barrier(2)
        outcomes: list[str] = []
        lock = threading.Lock()

        def spend():
            db = self.Session()
            try:
                barrier.wait()
                with unit_of_work(db):
                    ledger.debit_or_raise(db, self.user_id, 60, description="Race")
                result = "ok"
            except BadRequest:
                result = "insufficient"
            finally:
                db.close()
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=spend) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        self.assertEqual(sorted(outcomes), ["insufficient", "ok"])
        db = self.Session()
        try:
            self.assertEqual(ledger.get_balance(db, self.user_id), 40)
            self.assertTrue(ledger.is_reconciled(db, self.user_id))
        finally:
            db.close()


if __name__ == "__main__":
    unittest.main()
