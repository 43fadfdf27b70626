from __future__ import annotations

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.errors import BadRequest
from spotch.models.transaction import Transaction, TransactionKind
from spotch.models.wallet import Wallet

# Nothing in this module commits. Callers wrap credits and debits in
# spotch.core.database.unit_of_work together with whatever else they change.


def get_or_create_wallet(db: Session, user_id: int) -> Wallet:
    wallet = db.query(Wallet).filter(Wallet.user_id == user_id).first()
    if wallet is None:
        wallet = Wallet(user_id=user_id, balance=0)
        db.add(wallet)
        db.flush()
    return wallet


def get_balance(db: Session, user_id: int) -> int:
    balance = db.query(Wallet.balance).filter(Wallet.user_id == user_id).scalar()
    return int(balance or 0)


def ledger_sum(db: Session, user_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(Transaction.amount), 0))
        .filter(Transaction.user_id == user_id)
        .scalar()
    )
    return int(total or 0)


def is_reconciled(db: Session, user_id: int) -> bool:
    return get_balance(db, user_id) == ledger_sum(db, user_id)


def _log(
    db: Session,
    user_id: int,
    amount: int,
    kind: TransactionKind,
    description: str,
    reference: str | None,
) -> Transaction:
    entry = Transaction(
        user_id=user_id,
        amount=amount,
        kind=kind.value,
        description=description,
        reference=reference,
    )
    db.add(entry)
    db.flush()
    return entry


def credit(
    db: Session,
    user_id: int,
    amount: int,
    *,
    description: str,
    kind: TransactionKind = TransactionKind.EARN,
    reference: str | None = None,
    now: datetime | None = None,
) -> Transaction:
    amount = int(amount)
    if amount <= 0:
        raise BadRequest("Amount must be positive")
    now = now or utcnow()

    updated = (
        db.query(Wallet)
        .filter(Wallet.user_id == user_id)
        .update(
            {Wallet.balance: Wallet.balance + amount, Wallet.last_transaction_at: now},
            synchronize_session=False,
        )
    )
    if not updated:
        db.add(Wallet(user_id=user_id, balance=amount, last_transaction_at=now))
        db.flush()
    return _log(db, user_id, amount, kind, description, reference)


def debit_if_possible(
    db: Session,
    user_id: int,
    amount: int,
    *,
    description: str,
    reference: str | None = None,
    now: datetime | None = None,
) -> Transaction | None:
    """Take ``amount`` from the wallet in one conditional UPDATE.

    Returns the spend entry, or ``None`` (with nothing written) when the
    balance is too low or the wallet does not exist.
    """
    amount = int(amount)
    if amount <= 0:
        raise BadRequest("Amount must be positive")
    now = now or utcnow()

    updated = (
        db.query(Wallet)
        .filter(Wallet.user_id == user_id, Wallet.balance >= amount)
        .update(
            {Wallet.balance: Wallet.balance - amount, Wallet.last_transaction_at: now},
            synchronize_session=False,
        )
    )
    if not updated:
        return None
    return _log(db, user_id, -amount, TransactionKind.SPEND, description, reference)


def debit_or_raise(
    db: Session,
    user_id: int,
    amount: int,
    *,
    description: str,
    reference: str | None = None,
    now: datetime | None = None,
) -> Transaction:
    entry = debit_if_possible(db, user_id, amount, description=description, reference=reference, now=now)
    if entry is None:
        raise BadRequest("Insufficient funds")
    return entry


def list_transactions(db: Session, user_id: int, limit: int = 50, offset: int = 0) -> list[Transaction]:
    limit = max(1, min(int(limit or 50), 200))
    offset = max(0, int(offset or 0))
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id)
        .order_by(Transaction.created_at.desc(), Transaction.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def find_by_reference(db: Session, user_id: int, reference: str) -> Transaction | None:
    return (
        db.query(Transaction)
        .filter(Transaction.user_id == user_id, Transaction.reference == reference)
        .first()
    )
