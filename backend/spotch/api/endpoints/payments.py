from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import get_current_user, require_user_id
from spotch.schemas.wallet import PurchaseConfirmRequest, PurchaseResponse
from spotch.services import payments

router = APIRouter(dependencies=[Depends(get_current_user)])


def get_stripe_client() -> payments.StripeClient:
    return payments.StripeClient()


@router.post("/payments/confirm", response_model=PurchaseResponse)
async def confirm_purchase(
    body: PurchaseConfirmRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
    client: payments.StripeClient = Depends(get_stripe_client),
):
    result = payments.confirm_purchase(db, user_id, body.payment_intent_id, body.points, client=client)
    return PurchaseResponse.model_validate(result)
