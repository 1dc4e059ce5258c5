from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlmodel import Session

from cutflow.constants.order_status import MAX_ACTIVE_JOBS, OrderStatus, allowed_actions
from cutflow.database import get_session
from cutflow.dependencies.roles import require_creator, require_editor
from cutflow.dependencies.services import get_notifier
from cutflow.models.order import Order
from cutflow.models.order_application import OrderApplication
from cutflow.models.user import User
from cutflow.schemas.order_schemas import (
    ApplicationRead,
    DisputeRequest,
    NoteRequest,
    OrderCreate,
    OrderDetail,
    OrderRead,
    PublishRequest,
    ReasonRequest,
    ResolveDisputeRequest,
)
from cutflow.services import order_service
from cutflow.services.errors import NotFoundError
from cutflow.services.notification_service import NotificationService
from cutflow.services.order_event_service import order_timeline
from cutflow.utils.token import get_current_user

router = APIRouter()


def _load_order(session: Session, order_id: int) -> Order:
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


@router.get("")
def list_orders(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = None,
    mine: bool = False,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    return order_service.list_orders(
        session,
        current_user,
        page=page,
        limit=limit,
        status=status,
        mine=mine,
    )


@router.post("", response_model=OrderRead, status_code=201)
def create_order(
    data: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_creator),
):
    return order_service.create_order(session, current_user, **data.model_dump())


@router.get("/editor/active-count")
def editor_active_count(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_editor),
):
    return {
        "active_jobs": order_service.active_job_count(session, current_user.id),
        "max_active_jobs": MAX_ACTIVE_JOBS,
    }


@router.get("/{order_id}", response_model=OrderDetail)
def get_order(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = order_service.get_order_for_user(session, order_id, current_user)

    return OrderDetail(
        **OrderRead.model_validate(order).model_dump(),
        allowed_actions=allowed_actions(order.status, current_user.role),
    )


@router.get("/{order_id}/events")
def get_order_events(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = order_service.get_order_for_user(session, order_id, current_user)
    return order_timeline(session, order.id)


# -------------------------
# APPLICATIONS
# -------------------------

@router.post("/{order_id}/apply", response_model=ApplicationRead, status_code=201)
def apply_to_order(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_editor),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.apply_to_order(session, order, current_user, notifier)


@router.get("/{order_id}/applications", response_model=list[ApplicationRead])
def list_applications(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = _load_order(session, order_id)
    return order_service.list_applications(session, order, current_user)


@router.post(
    "/{order_id}/applications/{application_id}/approve",
    response_model=OrderRead,
)
def approve_editor(
    order_id: int,
    application_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    application = session.get(OrderApplication, application_id)

    if not application:
        raise NotFoundError("Application not found")

    return order_service.approve_application(
        session, order, application, current_user, notifier
    )


# -------------------------
# DELIVERY
# -------------------------

@router.post("/{order_id}/start", response_model=OrderRead)
def start_work(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.start_work(session, order, current_user, notifier)


@router.post("/{order_id}/submit-preview", response_model=OrderRead)
def submit_preview(
    order_id: int,
    data: Optional[NoteRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.submit_preview(
        session, order, current_user, notifier, note=data.note if data else None
    )


@router.post("/{order_id}/approve-preview", response_model=OrderRead)
def approve_preview(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.approve_preview(session, order, current_user, notifier)


@router.post("/{order_id}/request-revision", response_model=OrderRead)
def request_revision(
    order_id: int,
    data: Optional[ReasonRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.request_revision(
        session, order, current_user, notifier, reason=data.reason if data else None
    )


@router.post("/{order_id}/resume", response_model=OrderRead)
def resume_work(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.resume_work(session, order, current_user, notifier)


@router.post("/{order_id}/submit-final", response_model=OrderRead)
def submit_final(
    order_id: int,
    data: Optional[NoteRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.submit_final(
        session, order, current_user, notifier, note=data.note if data else None
    )


@router.post("/{order_id}/publish", response_model=OrderRead)
def publish(
    order_id: int,
    data: Optional[PublishRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    data = data or PublishRequest()
    return order_service.publish(
        session,
        order,
        current_user,
        notifier,
        youtube_video_id=data.youtube_video_id,
        youtube_video_url=data.youtube_video_url,
    )


@router.post("/{order_id}/complete", response_model=OrderRead)
def complete(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.complete(session, order, current_user, notifier)


@router.post("/{order_id}/cancel", response_model=OrderRead)
def cancel(
    order_id: int,
    data: Optional[ReasonRequest] = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.cancel(
        session, order, current_user, notifier, reason=data.reason if data else None
    )


# -------------------------
# DISPUTES
# -------------------------

@router.post("/{order_id}/dispute", response_model=OrderRead)
def dispute(
    order_id: int,
    data: DisputeRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.dispute(session, order, current_user, data.reason, notifier)


@router.post("/{order_id}/resolve-dispute", response_model=OrderRead)
def resolve_dispute(
    order_id: int,
    data: ResolveDisputeRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
    notifier: NotificationService = Depends(get_notifier),
):
    order = _load_order(session, order_id)
    return order_service.resolve_dispute(
        session, order, current_user, data.outcome, notifier, note=data.note
    )
