from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from cutflow.constants.order_status import OrderAction, OrderStatus
from cutflow.models.order import OrderPaymentStatus, PayoutStatus
from cutflow.models.order_application import ApplicationStatus, DepositStatus


class OrderCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    brief: Optional[str] = None
    amount: Optional[float] = Field(default=None, gt=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    deadline: Optional[datetime] = None


class OrderRead(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    brief: Optional[str] = None
    amount: Optional[float] = None
    currency: str
    deadline: Optional[datetime] = None
    creator_id: int
    editor_id: Optional[int] = None
    status: OrderStatus
    payment_status: OrderPaymentStatus
    payout_status: PayoutStatus
    revision_count: int
    is_disputed: bool
    dispute_reason: Optional[str] = None
    youtube_video_id: Optional[str] = None
    youtube_video_url: Optional[str] = None
    assigned_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrderDetail(OrderRead):
    allowed_actions: List[OrderAction] = []


class ApplicationRead(BaseModel):
    id: int
    order_id: int
    editor_id: int
    status: ApplicationStatus
    deposit_amount: float
    deposit_deadline: Optional[datetime] = None
    deposit_status: DepositStatus
    deposit_locked_at: Optional[datetime] = None
    deposit_released_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class NoteRequest(BaseModel):
    note: Optional[str] = None


class ReasonRequest(BaseModel):
    reason: Optional[str] = None


class DisputeRequest(BaseModel):
    reason: str = Field(min_length=1, max_length=2000)


class ResolveDisputeRequest(BaseModel):
    outcome: Literal["COMPLETE", "CANCEL", "RESUME"]
    note: Optional[str] = None


class PublishRequest(BaseModel):
    youtube_video_id: Optional[str] = None
    youtube_video_url: Optional[str] = None
