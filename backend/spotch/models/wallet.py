from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer

from spotch.core.database import Base


class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False)
    balance = Column(Integer, default=0, nullable=False)
    last_transaction_at = Column(DateTime(timezone=True), nullable=True)
