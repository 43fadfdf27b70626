import enum

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from spotch.core.database import Base


class TransactionKind(str, enum.Enum):
    EARN = "earn"
    SPEND = "spend"
    INITIAL = "initial"


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (UniqueConstraint("user_id", "reference", name="uq_transactions_user_reference"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    kind = Column(String, index=True, nullable=False)
    description = Column(Text)
    reference = Column(String, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
