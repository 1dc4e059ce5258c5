from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from cutflow.models.notifications import NotificationType


class NotificationRead(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    link: Optional[str] = None
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class NotificationList(BaseModel):
    notifications: List[NotificationRead]
    unread_count: int
