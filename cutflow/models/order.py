from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from cutflow.constants.order_status import OrderStatus


class OrderPaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"


class PayoutStatus(str, Enum):
    PENDING = "PENDING"
    RELEASED = "RELEASED"


class Order(SQLModel, table=True):
    __tablename__ = "orders"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    description: Optional[str] = None
    brief: Optional[str] = None

    amount: Optional[float] = None
    currency: str = Field(default="INR")
    deadline: Optional[datetime] = None

    creator_id: int = Field(foreign_key="user.id", index=True)
    editor_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    # only ever written through services.order_service.transition()
    status: OrderStatus = Field(default=OrderStatus.OPEN, index=True)

    payment_status: OrderPaymentStatus = Field(default=OrderPaymentStatus.PENDING)
    payout_status: PayoutStatus = Field(default=PayoutStatus.PENDING)
    payment_gateway: Optional[str] = None

    revision_count: int = Field(default=0)
    is_disputed: bool = Field(default=False)
    dispute_reason: Optional[str] = None
    dispute_created_at: Optional[datetime] = None

    youtube_video_id: Optional[str] = None
    youtube_video_url: Optional[str] = None

    assigned_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
