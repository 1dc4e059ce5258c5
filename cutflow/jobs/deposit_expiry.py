import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from cutflow.models.order import Order
from cutflow.models.order_application import (
    ApplicationStatus,
    DepositStatus,
    OrderApplication,
)
from cutflow.models.user import User
from cutflow.notifications import MarketplaceEvent, dispatch_marketplace_event
from cutflow.services import order_service
from cutflow.services.errors import CutflowError
from cutflow.services.notification_service import NotificationService

logger = logging.getLogger(__name__)


def _reject_if_still_pending(session: Session, application: OrderApplication, now: datetime) -> bool:
    result = session.exec(
        update(OrderApplication)
        .where(OrderApplication.id == application.id)
        .where(OrderApplication.status == ApplicationStatus.APPLIED)
        .where(OrderApplication.deposit_status == DepositStatus.PENDING)
        .values(status=ApplicationStatus.REJECTED, updated_at=now)
    )
    return result.rowcount == 1


def handle_deposit_timeouts(
    session: Session,
    notifier: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> int:
    """Reject applications whose deposit was not paid before the deadline."""
    now = now or datetime.utcnow()
    notifier = notifier or NotificationService()

    expired = session.exec(
        select(OrderApplication)
        .where(OrderApplication.status == ApplicationStatus.APPLIED)
        .where(OrderApplication.deposit_status == DepositStatus.PENDING)
        .where(OrderApplication.deposit_deadline < now)
    ).all()

    rejected = 0
    for application in expired:
        try:
            if not _reject_if_still_pending(session, application, now):
                continue

            order = session.get(Order, application.order_id)
            dispatch_marketplace_event(
                event=MarketplaceEvent.DEPOSIT_EXPIRED,
                session=session,
                order=order,
                notifier=notifier,
                editor=session.get(User, application.editor_id),
            )
            order_service.reopen_if_unclaimed(session, order, notifier)
            session.commit()
            rejected += 1
        except (CutflowError, SQLAlchemyError):
            session.rollback()
            logger.exception("Failed to expire application %s", application.id)

    logger.info("Expired %d unpaid deposits", rejected)
    return rejected
