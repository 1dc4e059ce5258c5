"""
Order and application lifecycle.

``transition`` is the only function that writes ``Order.status``. It looks
the (status, action) pair up in ``TRANSITIONS``, checks the actor, swaps the
status with a compare-and-set UPDATE and runs the transition's effects in the
same database transaction.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from cutflow.config import settings
from cutflow.constants.order_status import (
    ACTIVE_JOB_STATUSES,
    ADMIN,
    CREATOR,
    EDITOR,
    MARKETPLACE_STATUSES,
    MAX_ACTIVE_JOBS,
    MAX_REVISIONS,
    SYSTEM,
    Effect,
    OrderAction,
    OrderStatus,
    Transition,
    find_transition,
)
from cutflow.models.order import Order, OrderPaymentStatus, PayoutStatus
from cutflow.models.order_application import (
    ApplicationStatus,
    DepositStatus,
    OrderApplication,
)
from cutflow.models.payment import Payment, PaymentKind, PaymentStatus
from cutflow.models.user import User
from cutflow.notifications import MarketplaceEvent, dispatch_marketplace_event
from cutflow.services import wallet_service
from cutflow.services.errors import (
    ApplicationError,
    ConcurrentUpdateError,
    NotFoundError,
    PermissionDeniedError,
    TransitionError,
)
from cutflow.services.notification_service import NotificationService
from cutflow.services.order_event_service import log_order_event
from cutflow.utils.pagination import paginate

logger = logging.getLogger(__name__)

DEPOSIT_RATE = 0.05
MIN_DEPOSIT = 500
MAX_DEPOSIT = 2000
DEPOSIT_WINDOW = timedelta(hours=24)

PAYOUT_RELEASED_NOTE = "Your earnings were added to your wallet."
PAYOUT_SKIPPED_NOTE = "No payment was captured for this order, so no earnings were credited."

# marketplace event dispatched after each accepted action
ACTION_EVENTS = {
    OrderAction.APPROVE_EDITOR: MarketplaceEvent.EDITOR_APPROVED,
    OrderAction.START_WORK: MarketplaceEvent.WORK_STARTED,
    OrderAction.SUBMIT_PREVIEW: MarketplaceEvent.PREVIEW_SUBMITTED,
    OrderAction.APPROVE_PREVIEW: MarketplaceEvent.PREVIEW_APPROVED,
    OrderAction.REQUEST_REVISION: MarketplaceEvent.REVISION_REQUESTED,
    OrderAction.SUBMIT_FINAL: MarketplaceEvent.FINAL_SUBMITTED,
    OrderAction.PUBLISH: MarketplaceEvent.ORDER_PUBLISHED,
    OrderAction.COMPLETE: MarketplaceEvent.ORDER_COMPLETED,
    OrderAction.CANCEL: MarketplaceEvent.ORDER_CANCELLED,
    OrderAction.EXPIRE_UNSTARTED: MarketplaceEvent.ORDER_CANCELLED,
    OrderAction.DISPUTE: MarketplaceEvent.DISPUTE_RAISED,
}

DISPUTE_OUTCOMES = {
    "COMPLETE": OrderAction.COMPLETE,
    "CANCEL": OrderAction.CANCEL,
    "RESUME": OrderAction.RESUME_WORK,
}


def compute_deposit_amount(amount: Optional[float]) -> float:
    """5% of the order amount rounded half up, clamped to [500, 2000]."""
    if not amount:
        return float(MIN_DEPOSIT)
    deposit = math.floor(amount * DEPOSIT_RATE + 0.5)
    return float(min(max(deposit, MIN_DEPOSIT), MAX_DEPOSIT))


def payout_amount(amount: float) -> float:
    return round(amount * (1 - settings.platform_fee_percent / 100), 2)


def actor_role(actor: Optional[User]) -> str:
    if actor is None:
        return SYSTEM
    return getattr(actor.role, "value", actor.role)


def active_job_count(session: Session, editor_id: int) -> int:
    return session.exec(
        select(func.count())
        .select_from(Order)
        .where(Order.editor_id == editor_id)
        .where(Order.status.in_(ACTIVE_JOB_STATUSES))
    ).one()


def _applications(session: Session, order_id: int, *statuses) -> List[OrderApplication]:
    query = select(OrderApplication).where(OrderApplication.order_id == order_id)
    if statuses:
        query = query.where(OrderApplication.status.in_(statuses))
    return session.exec(query.order_by(OrderApplication.id)).all()


def _commit(session: Session):
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise ConcurrentUpdateError("Conflicting update, reload and retry")


def authorize(order: Order, action: OrderAction, actor: Optional[User]) -> Transition:
    """Return the transition ``actor`` may take, or raise."""
    status = OrderStatus(order.status)
    transition_ = find_transition(status, action)

    if transition_ is None:
        raise TransitionError(
            f"Cannot {OrderAction(action).value} an order that is {status.value}"
        )

    role = actor_role(actor)
    if role not in transition_.roles:
        raise TransitionError(
            f"{role} cannot {OrderAction(action).value} this order",
            status_code=403,
        )

    if role == CREATOR and order.creator_id != actor.id:
        raise PermissionDeniedError("Only the order's creator can do this")

    if role == EDITOR and action != OrderAction.APPLY and order.editor_id != actor.id:
        raise PermissionDeniedError("Only the assigned editor can do this")

    return transition_


def _check_preconditions(order: Order, action: OrderAction, application):
    if action == OrderAction.REQUEST_REVISION and order.revision_count >= MAX_REVISIONS:
        raise TransitionError(f"Maximum of {MAX_REVISIONS} revisions reached")

    if action == OrderAction.APPROVE_EDITOR and application is None:
        raise TransitionError("An application is required to assign an editor")


def _apply_effects(
    session: Session,
    order: Order,
    transition_: Transition,
    *,
    application: Optional[OrderApplication],
    reason: Optional[str],
    meta: dict,
    now: datetime,
):
    for effect in transition_.effects:
        if effect == Effect.ASSIGN_EDITOR:
            application.status = ApplicationStatus.APPROVED
            application.updated_at = now
            session.add(application)
            order.editor_id = application.editor_id
            order.assigned_at = now
            try:
                session.flush()
            except IntegrityError:
                session.rollback()
                raise ConcurrentUpdateError("Another editor was already approved")

        elif effect == Effect.REJECT_OTHER_APPLICATIONS:
            for other in _applications(session, order.id, ApplicationStatus.APPLIED):
                if other.id == application.id:
                    continue
                other.status = ApplicationStatus.REJECTED
                other.updated_at = now
                session.add(other)
                wallet_service.release_deposit(session, other)

        elif effect == Effect.COUNT_REVISION:
            order.revision_count += 1

        elif effect == Effect.STAMP_PUBLISHED:
            order.published_at = now
            if meta.get("youtube_video_id"):
                order.youtube_video_id = meta["youtube_video_id"]
            if meta.get("youtube_video_url"):
                order.youtube_video_url = meta["youtube_video_url"]

        elif effect == Effect.RELEASE_DEPOSITS:
            for app in _applications(session, order.id):
                if (
                    transition_.to == OrderStatus.CANCELLED
                    and app.status == ApplicationStatus.APPLIED
                ):
                    app.status = ApplicationStatus.REJECTED
                    app.updated_at = now
                    session.add(app)
                wallet_service.release_deposit(session, app)

        elif effect == Effect.FORFEIT_DEPOSIT:
            for app in _applications(session, order.id, ApplicationStatus.APPROVED):
                wallet_service.forfeit_deposit(session, app)

        elif effect == Effect.PAYOUT_EDITOR:
            _payout_editor(session, order, now)

        elif effect == Effect.MARK_DISPUTE:
            order.is_disputed = True
            order.dispute_reason = reason
            order.dispute_created_at = now

        elif effect == Effect.CLEAR_DISPUTE:
            order.is_disputed = False

    if transition_.to == OrderStatus.COMPLETED:
        order.completed_at = now
    elif transition_.to == OrderStatus.CANCELLED:
        order.cancelled_at = now


def _payout_editor(session: Session, order: Order, now: datetime):
    if not order.editor_id or not order.amount:
        return

    if order.payment_status != OrderPaymentStatus.PAID:
        logger.warning("Order %s completed without a captured payment, no payout", order.id)
        return

    if not wallet_service.credit_payout(
        session, order, order.editor_id, payout_amount(order.amount)
    ):
        return

    payment = session.exec(
        select(Payment)
        .where(Payment.order_id == order.id)
        .where(Payment.kind == PaymentKind.CREATOR_PAYMENT)
        .where(Payment.status == PaymentStatus.COMPLETED)
    ).first()

    if payment:
        payment.released_at = now
        payment.release_note = "Released to editor on completion"
        session.add(payment)

    order.payout_status = PayoutStatus.RELEASED


def transition(
    session: Session,
    order: Order,
    action: OrderAction,
    actor: Optional[User] = None,
    *,
    notifier: Optional[NotificationService] = None,
    application: Optional[OrderApplication] = None,
    reason: Optional[str] = None,
    meta: Optional[dict] = None,
    commit: bool = True,
) -> Order:
    """
    Apply ``action`` to ``order`` on behalf of ``actor`` (None means SYSTEM).

    Raises TransitionError / PermissionDeniedError when the action is not
    allowed and ConcurrentUpdateError when the order changed underneath us.
    """
    action = OrderAction(action)
    transition_ = authorize(order, action, actor)
    _check_preconditions(order, action, application)

    from_status = OrderStatus(order.status)
    now = datetime.utcnow()
    meta = meta or {}

    result = session.exec(
        update(Order)
        .where(Order.id == order.id)
        .where(Order.status == from_status)
        .values(status=transition_.to, updated_at=now)
    )
    if result.rowcount != 1:
        raise ConcurrentUpdateError(
            f"Order {order.id} is no longer {from_status.value}, reload and retry"
        )

    _apply_effects(
        session,
        order,
        transition_,
        application=application,
        reason=reason,
        meta=meta,
        now=now,
    )
    session.add(order)

    role = actor_role(actor)
    log_order_event(
        session,
        order.id,
        event_type=action.value,
        label=f"{from_status.value} -> {transition_.to.value}",
        created_by=role if actor is None else f"{role}:{actor.id}",
        meta={
            "from": from_status.value,
            "to": transition_.to.value,
            "reason": reason,
            **meta,
        },
    )

    notifier = notifier or NotificationService()
    notifier.send_order_event(
        order.id,
        "order_status",
        {
            "order_id": order.id,
            "status": transition_.to.value,
            "previous_status": from_status.value,
            "action": action.value,
        },
        session=session,
    )

    event = ACTION_EVENTS.get(action)
    if event:
        extra = {"reason": reason or ""}
        if transition_.to == OrderStatus.COMPLETED:
            extra["payout_note"] = (
                PAYOUT_RELEASED_NOTE
                if order.payout_status == PayoutStatus.RELEASED
                else PAYOUT_SKIPPED_NOTE
            )
        dispatch_marketplace_event(
            event=event,
            session=session,
            order=order,
            notifier=notifier,
            extra=extra,
        )

    session.flush()
    logger.info(
        "Order %s %s -> %s (%s by %s)",
        order.id, from_status.value, transition_.to.value, action.value, role,
    )

    if commit:
        _commit(session)
        session.refresh(order)

    return order


# ---------------------------------------------------------------------------
# creation and listing
# ---------------------------------------------------------------------------

def create_order(
    session: Session,
    creator: User,
    *,
    title: str,
    description: Optional[str] = None,
    brief: Optional[str] = None,
    amount: Optional[float] = None,
    currency: str = "INR",
    deadline: Optional[datetime] = None,
) -> Order:
    if amount is not None and amount <= 0:
        raise TransitionError("Order amount must be positive")

    now = datetime.utcnow()
    order = Order(
        title=title,
        description=description,
        brief=brief,
        amount=amount,
        currency=currency,
        deadline=deadline,
        creator_id=creator.id,
        status=OrderStatus.OPEN,
        created_at=now,
        updated_at=now,
    )
    session.add(order)
    session.flush()

    log_order_event(
        session,
        order.id,
        event_type="created",
        label="Order created",
        created_by=f"{CREATOR}:{creator.id}",
    )
    session.commit()
    session.refresh(order)

    logger.info("Order %s created by %s", order.id, creator.id)
    return order


def list_orders(
    session: Session,
    user: User,
    *,
    page: int = 1,
    limit: int = 20,
    status: Optional[OrderStatus] = None,
    mine: bool = False,
):
    """Creators see their own orders, editors the marketplace (or their jobs), admins everything."""
    query = select(Order)
    role = actor_role(user)

    if role == CREATOR:
        query = query.where(Order.creator_id == user.id)
    elif role == EDITOR:
        if mine:
            query = query.where(Order.editor_id == user.id)
        else:
            query = query.where(Order.status.in_(MARKETPLACE_STATUSES))

    if status:
        query = query.where(Order.status == status)

    query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return paginate(session=session, query=query, page=page, limit=limit)


def has_applied(session: Session, order_id: int, editor_id: int) -> bool:
    return session.exec(
        select(OrderApplication)
        .where(OrderApplication.order_id == order_id)
        .where(OrderApplication.editor_id == editor_id)
    ).first() is not None


def is_participant(order: Order, user: User) -> bool:
    return (
        actor_role(user) == ADMIN
        or order.creator_id == user.id
        or order.editor_id == user.id
    )


def get_order_for_user(session: Session, order_id: int, user: User) -> Order:
    order = session.get(Order, order_id)

    if not order:
        raise NotFoundError("Order not found")

    if is_participant(order, user):
        return order

    if actor_role(user) == EDITOR and (
        order.status in MARKETPLACE_STATUSES or has_applied(session, order.id, user.id)
    ):
        return order

    raise PermissionDeniedError("Not allowed to view this order")


def list_applications(session: Session, order: Order, user: User) -> List[OrderApplication]:
    query = select(OrderApplication).where(OrderApplication.order_id == order.id)

    if actor_role(user) == EDITOR and order.editor_id != user.id:
        query = query.where(OrderApplication.editor_id == user.id)
    elif not is_participant(order, user):
        raise PermissionDeniedError("Not allowed to view applications")

    return session.exec(query.order_by(OrderApplication.created_at)).all()


# ---------------------------------------------------------------------------
# applications
# ---------------------------------------------------------------------------

def apply_to_order(
    session: Session,
    order: Order,
    editor: User,
    notifier: Optional[NotificationService] = None,
) -> OrderApplication:
    """
    Create an application for ``editor``. The deposit is locked from the
    wallet right away when the balance covers it, otherwise it stays PENDING
    until paid through the gateway.
    """
    notifier = notifier or NotificationService()

    if order.status not in MARKETPLACE_STATUSES:
        raise ApplicationError("Order is not accepting applications")

    if has_applied(session, order.id, editor.id):
        raise ApplicationError("You have already applied to this order", status_code=409)

    if active_job_count(session, editor.id) >= MAX_ACTIVE_JOBS:
        raise ApplicationError(
            f"Editors can hold at most {MAX_ACTIVE_JOBS} active jobs"
        )

    now = datetime.utcnow()
    application = OrderApplication(
        order_id=order.id,
        editor_id=editor.id,
        deposit_amount=compute_deposit_amount(order.amount),
        deposit_deadline=now + DEPOSIT_WINDOW,
        created_at=now,
        updated_at=now,
    )
    session.add(application)
    try:
        session.flush()
    except IntegrityError:
        session.rollback()
        raise ApplicationError("You have already applied to this order", status_code=409)

    transition(
        session,
        order,
        OrderAction.APPLY,
        editor,
        notifier=notifier,
        meta={"application_id": application.id},
        commit=False,
    )

    if editor.wallet_balance >= application.deposit_amount:
        wallet_service.lock_deposit(session, application, source="wallet")
        dispatch_marketplace_event(
            event=MarketplaceEvent.DEPOSIT_LOCKED,
            session=session,
            order=order,
            notifier=notifier,
            editor=editor,
            extra={"amount": application.deposit_amount},
        )

    dispatch_marketplace_event(
        event=MarketplaceEvent.APPLICATION_RECEIVED,
        session=session,
        order=order,
        notifier=notifier,
        editor=editor,
    )

    _commit(session)
    session.refresh(application)
    return application


def approve_application(
    session: Session,
    order: Order,
    application: OrderApplication,
    actor: User,
    notifier: Optional[NotificationService] = None,
) -> Order:
    notifier = notifier or NotificationService()
    authorize(order, OrderAction.APPROVE_EDITOR, actor)

    if application.order_id != order.id:
        raise NotFoundError("Application not found")

    if application.status != ApplicationStatus.APPLIED:
        raise ApplicationError("Application is no longer pending")

    if application.deposit_status != DepositStatus.LOCKED:
        raise ApplicationError("Editor deposit must be locked before approval")

    if active_job_count(session, application.editor_id) >= MAX_ACTIVE_JOBS:
        raise ApplicationError("Editor already has the maximum number of active jobs")

    rejected = [
        other
        for other in _applications(session, order.id, ApplicationStatus.APPLIED)
        if other.id != application.id
    ]

    transition(
        session,
        order,
        OrderAction.APPROVE_EDITOR,
        actor,
        notifier=notifier,
        application=application,
        meta={"application_id": application.id, "editor_id": application.editor_id},
        commit=False,
    )

    for other in rejected:
        dispatch_marketplace_event(
            event=MarketplaceEvent.APPLICATION_REJECTED,
            session=session,
            order=order,
            notifier=notifier,
            editor=session.get(User, other.editor_id),
        )

    _commit(session)
    session.refresh(order)
    return order


def reopen_if_unclaimed(
    session: Session,
    order: Order,
    notifier: Optional[NotificationService] = None,
) -> bool:
    """Send an APPLIED order back to OPEN once no application is pending."""
    if order.status != OrderStatus.APPLIED:
        return False

    if _applications(session, order.id, ApplicationStatus.APPLIED):
        return False

    transition(session, order, OrderAction.REOPEN, None, notifier=notifier, commit=False)
    return True


# ---------------------------------------------------------------------------
# delivery
# ---------------------------------------------------------------------------

def start_work(session, order, actor, notifier=None) -> Order:
    return transition(session, order, OrderAction.START_WORK, actor, notifier=notifier)


def submit_preview(session, order, actor, notifier=None, note: Optional[str] = None) -> Order:
    return transition(
        session, order, OrderAction.SUBMIT_PREVIEW, actor,
        notifier=notifier, meta={"note": note} if note else None,
    )


def approve_preview(session, order, actor, notifier=None) -> Order:
    return transition(session, order, OrderAction.APPROVE_PREVIEW, actor, notifier=notifier)


def request_revision(session, order, actor, notifier=None, reason: Optional[str] = None) -> Order:
    return transition(
        session, order, OrderAction.REQUEST_REVISION, actor,
        notifier=notifier, reason=reason,
    )


def resume_work(session, order, actor, notifier=None) -> Order:
    return transition(session, order, OrderAction.RESUME_WORK, actor, notifier=notifier)


def submit_final(session, order, actor, notifier=None, note: Optional[str] = None) -> Order:
    return transition(
        session, order, OrderAction.SUBMIT_FINAL, actor,
        notifier=notifier, meta={"note": note} if note else None,
    )


def publish(
    session,
    order,
    actor,
    notifier=None,
    youtube_video_id: Optional[str] = None,
    youtube_video_url: Optional[str] = None,
) -> Order:
    if youtube_video_id and not youtube_video_url:
        youtube_video_url = f"https://www.youtube.com/watch?v={youtube_video_id}"

    meta = {}
    if youtube_video_id:
        meta["youtube_video_id"] = youtube_video_id
    if youtube_video_url:
        meta["youtube_video_url"] = youtube_video_url

    return transition(session, order, OrderAction.PUBLISH, actor, notifier=notifier, meta=meta)


def complete(session, order, actor, notifier=None) -> Order:
    return transition(session, order, OrderAction.COMPLETE, actor, notifier=notifier)


def cancel(session, order, actor, notifier=None, reason: Optional[str] = None) -> Order:
    return transition(session, order, OrderAction.CANCEL, actor, notifier=notifier, reason=reason)


def dispute(session, order, actor, reason: str, notifier=None) -> Order:
    if not reason or not reason.strip():
        raise TransitionError("A reason is required to open a dispute")

    return transition(
        session, order, OrderAction.DISPUTE, actor,
        notifier=notifier, reason=reason.strip(),
    )


def resolve_dispute(session, order, actor, outcome: str, notifier=None, note: Optional[str] = None) -> Order:
    action = DISPUTE_OUTCOMES.get(str(outcome).upper())
    if action is None:
        raise TransitionError(f"Unknown dispute outcome: {outcome}")

    if order.status != OrderStatus.DISPUTED:
        raise TransitionError("Order is not in dispute")

    return transition(
        session, order, action, actor,
        notifier=notifier, reason=note, meta={"dispute_outcome": action.value},
    )
