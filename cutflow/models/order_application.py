from sqlmodel import SQLModel, Field
from typing import Optional
from datetime import datetime
from enum import Enum

from sqlalchemy import Index, UniqueConstraint, text


class ApplicationStatus(str, Enum):
    APPLIED = "APPLIED"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class DepositStatus(str, Enum):
    PENDING = "PENDING"
    LOCKED = "LOCKED"
    RELEASED = "RELEASED"
    FORFEITED = "FORFEITED"


class OrderApplication(SQLModel, table=True):
    __tablename__ = "order_application"
    __table_args__ = (
        UniqueConstraint("order_id", "editor_id", name="uq_application_order_editor"),
        # at most one approved editor per order
        Index(
            "uq_application_one_approved",
            "order_id",
            unique=True,
            sqlite_where=text("status = 'APPROVED'"),
            postgresql_where=text("status = 'APPROVED'"),
        ),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(foreign_key="orders.id", index=True)
    editor_id: int = Field(foreign_key="user.id", index=True)

    status: ApplicationStatus = Field(default=ApplicationStatus.APPLIED)

    deposit_amount: float
    deposit_deadline: Optional[datetime] = None
    deposit_status: DepositStatus = Field(default=DepositStatus.PENDING)
    deposit_locked_at: Optional[datetime] = None
    deposit_released_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
