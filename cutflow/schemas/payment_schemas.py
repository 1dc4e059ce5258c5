from typing import Optional

from pydantic import BaseModel

from cutflow.models.payment import PaymentGatewayName, PaymentKind, PaymentStatus


class CreatePaymentRequest(BaseModel):
    order_id: int


class RazorpayPaymentVerifySchema(BaseModel):
    order_id: int
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class DepositCreateRequest(BaseModel):
    application_id: int


class DepositVerifySchema(BaseModel):
    application_id: int
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


class PaymentRead(BaseModel):
    id: int
    order_id: int
    user_id: int
    application_id: Optional[int] = None
    kind: PaymentKind
    gateway: PaymentGatewayName
    amount: float
    currency: str
    status: PaymentStatus
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None

    model_config = {"from_attributes": True}
