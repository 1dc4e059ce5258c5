import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from cutflow.config import settings
from cutflow.constants.order_status import MARKETPLACE_STATUSES, OrderAction, OrderStatus
from cutflow.database import engine
from cutflow.jobs.deposit_expiry import handle_deposit_timeouts
from cutflow.models.order import Order
from cutflow.services import order_service
from cutflow.services.errors import CutflowError
from cutflow.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

UNASSIGNED_TTL = timedelta(hours=72)
START_WINDOW = timedelta(hours=24)
DEADLINE_STATUSES = (OrderStatus.IN_PROGRESS, OrderStatus.REVISION_REQUESTED)


def _expire(session: Session, order: Order, action: OrderAction, reason: str, notifier) -> bool:
    try:
        order_service.transition(
            session, order, action, None, notifier=notifier, reason=reason
        )
        return True
    except (CutflowError, SQLAlchemyError):
        session.rollback()
        logger.exception("Failed to %s order %s", action.value, order.id)
        return False


def handle_order_timeouts(
    session: Session,
    notifier: Optional[NotificationService] = None,
    now: Optional[datetime] = None,
) -> Dict[str, int]:
    """
    Cancel orders that stalled:
    - OPEN / APPLIED with no editor after 72h
    - ASSIGNED but not started within 24h (deposit forfeited)
    - IN_PROGRESS / REVISION_REQUESTED past their deadline
    """
    now = now or datetime.utcnow()
    notifier = notifier or NotificationService()
    counts = {"unassigned": 0, "unstarted": 0, "overdue": 0}

    unassigned = session.exec(
        select(Order)
        .where(Order.status.in_(MARKETPLACE_STATUSES))
        .where(Order.created_at < now - UNASSIGNED_TTL)
    ).all()
    for order in unassigned:
        if _expire(session, order, OrderAction.CANCEL,
                   "No editor was assigned within 72 hours", notifier):
            counts["unassigned"] += 1

    unstarted = session.exec(
        select(Order)
        .where(Order.status == OrderStatus.ASSIGNED)
        .where(Order.assigned_at < now - START_WINDOW)
    ).all()
    for order in unstarted:
        if _expire(session, order, OrderAction.EXPIRE_UNSTARTED,
                   "The editor did not start within 24 hours", notifier):
            counts["unstarted"] += 1

    overdue = session.exec(
        select(Order)
        .where(Order.status.in_(DEADLINE_STATUSES))
        .where(Order.deadline.is_not(None))
        .where(Order.deadline < now)
    ).all()
    for order in overdue:
        if _expire(session, order, OrderAction.CANCEL, "The deadline passed", notifier):
            counts["overdue"] += 1

    logger.info("Order timeouts: %s", counts)
    return counts


def run_maintenance(notifier: Optional[NotificationService] = None):
    with Session(engine) as session:
        handle_deposit_timeouts(session, notifier)
        handle_order_timeouts(session, notifier)


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level.upper())
    run_maintenance()
