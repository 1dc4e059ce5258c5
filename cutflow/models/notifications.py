from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field


# ---------- ENUMS (SAFE FOR SQLMODEL) ----------

class NotificationType(str, Enum):
    SYSTEM = "SYSTEM"
    ORDER = "ORDER"
    APPLICATION = "APPLICATION"
    PAYMENT = "PAYMENT"


# ---------- MODEL ----------

class Notification(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)

    user_id: int = Field(foreign_key="user.id", index=True)

    type: NotificationType = NotificationType.SYSTEM
    title: str
    message: str
    link: Optional[str] = None

    is_read: bool = Field(default=False, index=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
