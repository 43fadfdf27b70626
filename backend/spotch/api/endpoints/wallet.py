from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from spotch.core.database import get_db
from spotch.core.security import get_current_user, require_user_id
from spotch.models.wallet import Wallet
from spotch.schemas.wallet import TransactionResponse, WalletResponse
from spotch.services import ledger

router = APIRouter(dependencies=[Depends(get_current_user)])


@router.get("/wallet", response_model=WalletResponse)
async def get_wallet(db: Session = Depends(get_db), user_id: int = Depends(require_user_id)):
    wallet = db.query(Wallet).filter(Wallet.user_id == user_id).first()
    if wallet is None:
        return WalletResponse(balance=0)
    return WalletResponse(balance=int(wallet.balance or 0), last_transaction_at=wallet.last_transaction_at)


@router.get("/wallet/transactions", response_model=list[TransactionResponse])
async def list_transactions(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
    user_id: int = Depends(require_user_id),
):
    return [TransactionResponse.model_validate(t) for t in ledger.list_transactions(db, user_id, limit, offset)]
