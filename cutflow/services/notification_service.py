import logging
from datetime import datetime
from typing import Optional

from fastapi.encoders import jsonable_encoder
from sqlalchemy import func, update
from sqlmodel import Session, select

from cutflow.database import run_after_commit
from cutflow.models.notifications import Notification, NotificationType
from cutflow.models.user import User
from cutflow.realtime.hub import order_room, user_room
from cutflow.services.errors import NotFoundError

logger = logging.getLogger(__name__)

LIST_LIMIT = 50


class NotificationService:
    """
    Persists in-app notifications and pushes them to connected clients.

    ``publisher`` is anything with ``publish(room, event, payload)``; the
    app wires in the realtime hub. Pushes are deferred until the session
    commits, so a rolled back change never reaches a client.
    """

    def __init__(self, publisher=None):
        self.publisher = publisher

    def _push(self, session: Optional[Session], room: str, event: str, payload):
        if self.publisher is None:
            return

        if session is None:
            self.publisher.publish(room, event, payload)
        else:
            run_after_commit(session, self.publisher.publish, room, event, payload)

    def create_and_send(
        self,
        session: Session,
        *,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            link=link,
            created_at=datetime.utcnow(),
        )
        session.add(notification)
        session.flush()

        self._push(
            session,
            user_room(user_id),
            "notification",
            jsonable_encoder(notification.model_dump()),
        )
        return notification

    def send_order_event(
        self,
        order_id: int,
        event: str,
        payload: dict,
        session: Optional[Session] = None,
    ):
        # not persisted, clients in the room get it or miss it
        self._push(session, order_room(order_id), event, jsonable_encoder(payload))

    def list_for_user(self, session: Session, user: User, limit: int = LIST_LIMIT) -> dict:
        notifications = session.exec(
            select(Notification)
            .where(Notification.user_id == user.id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        ).all()

        unread_count = session.exec(
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user.id)
            .where(Notification.is_read == False)  # noqa: E712
        ).one()

        return {"notifications": notifications, "unread_count": unread_count}

    def mark_read(self, session: Session, notification_id: int, user: User) -> Notification:
        notification = session.get(Notification, notification_id)

        if not notification or notification.user_id != user.id:
            raise NotFoundError("Notification not found")

        if not notification.is_read:
            notification.is_read = True
            session.add(notification)
            session.commit()
            session.refresh(notification)

        return notification

    def mark_all_read(self, session: Session, user: User) -> int:
        result = session.exec(
            update(Notification)
            .where(Notification.user_id == user.id)
            .where(Notification.is_read == False)  # noqa: E712
            .values(is_read=True)
        )
        session.commit()
        return result.rowcount
