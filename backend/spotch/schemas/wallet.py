from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TransactionResponse(BaseModel):
    id: int
    amount: int
    kind: str
    description: Optional[str] = None
    reference: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WalletResponse(BaseModel):
    balance: int
    last_transaction_at: Optional[datetime] = None


class PurchaseConfirmRequest(BaseModel):
    payment_intent_id: str
    points: int = Field(..., ge=1)


class PurchaseResponse(BaseModel):
    credited: bool
    points: int
    balance: int
    reference: str

    class Config:
        from_attributes = True
