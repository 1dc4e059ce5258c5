from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PaymentGatewayName(str, Enum):
    RAZORPAY = "RAZORPAY"
    STRIPE = "STRIPE"


class PaymentKind(str, Enum):
    CREATOR_PAYMENT = "CREATOR_PAYMENT"
    EDITOR_DEPOSIT = "EDITOR_DEPOSIT"


class Payment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    order_id: int = Field(foreign_key="orders.id", index=True)
    user_id: int = Field(foreign_key="user.id", index=True)
    application_id: Optional[int] = Field(
        default=None, foreign_key="order_application.id", index=True
    )

    kind: PaymentKind
    gateway: PaymentGatewayName

    amount: float
    currency: str = Field(default="INR")
    status: PaymentStatus = Field(default=PaymentStatus.PENDING)

    # razorpay order id or stripe payment intent id
    gateway_order_id: Optional[str] = Field(default=None, unique=True, index=True)
    gateway_payment_id: Optional[str] = Field(default=None, unique=True, index=True)
    gateway_signature: Optional[str] = None

    processed_at: Optional[datetime] = None
    released_at: Optional[datetime] = None
    release_note: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
