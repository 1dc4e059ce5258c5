from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class WalletTransactionType(str, Enum):
    DEPOSIT_LOCK = "DEPOSIT_LOCK"
    DEPOSIT_RELEASE = "DEPOSIT_RELEASE"
    DEPOSIT_FORFEIT = "DEPOSIT_FORFEIT"
    PAYOUT = "PAYOUT"


class WalletTransaction(SQLModel, table=True):
    __tablename__ = "wallet_transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    order_id: Optional[int] = Field(default=None, foreign_key="orders.id", index=True)
    application_id: Optional[int] = Field(
        default=None, foreign_key="order_application.id", index=True
    )

    type: WalletTransactionType
    amount: float

    # "<TYPE>:<application or order id>", one ledger movement per key
    idempotency_key: str = Field(unique=True, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
