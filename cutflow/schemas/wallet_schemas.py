from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from cutflow.models.wallet_transaction import WalletTransactionType


class WalletTransactionRead(BaseModel):
    id: int
    type: WalletTransactionType
    amount: float
    order_id: Optional[int] = None
    application_id: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class WalletSummary(BaseModel):
    balance: float
    locked: float
    transactions: List[WalletTransactionRead]
