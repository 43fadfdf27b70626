from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import requests
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spotch.core.clock import utcnow
from spotch.core.database import unit_of_work
from spotch.core.errors import BadRequest, Forbidden, InternalError
from spotch.core.settings import settings
from spotch.services import ledger

logger = logging.getLogger(__name__)

STRIPE_API_BASE = "https://api.stripe.com/v1"
MOCK_INTENT_PREFIX = "pi_mock_"


class StripeClient:
    """Read-only view of Stripe payment intents."""

    def __init__(self, secret_key: str | None = None, *, timeout_s: float = 30, session: requests.Session | None = None):
        self._secret_key = (secret_key if secret_key is not None else settings.stripe_secret_key) or ""
        self._timeout_s = timeout_s
        self._session = session or requests.Session()

    def payment_intent(self, intent_id: str) -> dict[str, Any]:
        if not self._secret_key:
            raise InternalError("STRIPE_SECRET_KEY is not configured")
        try:
            resp = self._session.get(
                f"{STRIPE_API_BASE}/payment_intents/{intent_id}",
                headers={"Authorization": f"Bearer {self._secret_key}", "Accept": "application/json"},
                timeout=self._timeout_s,
            )
        except requests.RequestException as exc:
            logger.exception("payments.stripe.request_failed intent_id=%s", intent_id)
            raise InternalError("Payment provider unavailable") from exc
        if resp.status_code == 404:
            raise BadRequest("Unknown payment")
        if resp.status_code >= 400:
            raise InternalError(f"Stripe error ({resp.status_code})")
        return resp.json() or {}

    def payment_intent_status(self, intent_id: str) -> str:
        return str(self.payment_intent(intent_id).get("status") or "")


@dataclass(frozen=True)
class PurchaseResult:
    credited: bool
    points: int
    balance: int
    reference: str


def _check_metadata(intent: dict[str, Any], user_id: int, points: int) -> None:
    metadata = intent.get("metadata") or {}
    if not isinstance(metadata, dict):
        return
    owner = str(metadata.get("userId") or metadata.get("user_id") or "").strip()
    if owner and owner != str(user_id):
        raise Forbidden("Payment belongs to another user")
    expected = str(metadata.get("points") or "").strip()
    if expected and expected != str(points):
        raise BadRequest("Points do not match the payment")


def confirm_purchase(
    db: Session,
    user_id: int,
    payment_intent_id: str,
    points: int,
    *,
    client: StripeClient | None = None,
    now: datetime | None = None,
) -> PurchaseResult:
    """Credit bought points once per payment intent.

    A repeated confirmation of the same intent returns the earlier outcome
    without crediting again.
    """
    intent_id = (payment_intent_id or "").strip()
    if not intent_id:
        raise BadRequest("payment_intent_id is required")
    points = int(points)
    if points <= 0:
        raise BadRequest("Points must be positive")
    reference = f"stripe:{intent_id}"

    if ledger.find_by_reference(db, user_id, reference) is not None:
        logger.info("payments.duplicate user_id=%s reference=%s", user_id, reference)
        return PurchaseResult(credited=False, points=points, balance=ledger.get_balance(db, user_id), reference=reference)

    description = "Point Purchase"
    if intent_id.startswith(MOCK_INTENT_PREFIX):
        if not settings.payments_allow_mock:
            raise BadRequest("Mock payments are disabled")
        description = "Point Purchase (mock)"
    else:
        intent = (client or StripeClient()).payment_intent(intent_id)
        if str(intent.get("status") or "") != "succeeded":
            raise BadRequest("Payment not successful")
        _check_metadata(intent, user_id, points)
        amount = intent.get("amount")
        if isinstance(amount, int):
            description = f"Point Purchase (${amount / 100:.2f})"

    with unit_of_work(db):
        try:
            ledger.credit(db, user_id, points, description=description, reference=reference, now=now or utcnow())
        except IntegrityError as exc:
            raise BadRequest("Payment already processed") from exc
        balance = ledger.get_balance(db, user_id)

    logger.info("payments.credited user_id=%s points=%s reference=%s", user_id, points, reference)
    return PurchaseResult(credited=True, points=points, balance=balance, reference=reference)
