from datetime import datetime

import pytest
from sqlmodel import Session, select

from cutflow.constants.order_status import OrderStatus
from cutflow.database import engine
from cutflow.models.notifications import Notification
from cutflow.models.order import Order, OrderPaymentStatus, PayoutStatus
from cutflow.models.order_application import (
    ApplicationStatus,
    DepositStatus,
    OrderApplication,
)
from cutflow.models.user import User, UserRole
from cutflow.realtime.hub import order_room, user_room
from cutflow.services import order_service
from cutflow.services.errors import (
    ApplicationError,
    ConcurrentUpdateError,
    NotFoundError,
    PermissionDeniedError,
    TransitionError,
)
from cutflow.services.notification_service import NotificationService
from cutflow.services.order_event_service import order_timeline


@pytest.mark.parametrize(
    "amount, deposit",
    [
        (None, 500.0),
        (1000, 500.0),
        (10010, 501.0),
        (15010, 751.0),
        (20000, 1000.0),
        (39990, 2000.0),
        (100000, 2000.0),
    ],
)
def test_compute_deposit_amount(amount, deposit):
    assert order_service.compute_deposit_amount(amount) == deposit


def test_create_order_logs_event(session, creator, make_order):
    order = make_order(creator)

    assert order.status == OrderStatus.OPEN
    events = order_timeline(session, order.id)
    assert [e.event_type for e in events] == ["created"]
    assert events[0].created_by == f"CREATOR:{creator.id}"


def test_create_order_rejects_non_positive_amount(session, creator):
    with pytest.raises(TransitionError):
        order_service.create_order(session, creator, title="Bad", amount=0)


# -------------------------
# applications
# -------------------------

def test_apply_locks_deposit_from_wallet(session, creator, editor, make_order):
    order = make_order(creator)

    application = order_service.apply_to_order(session, order, editor)
    session.refresh(order)
    session.refresh(editor)

    assert order.status == OrderStatus.APPLIED
    assert application.status == ApplicationStatus.APPLIED
    assert application.deposit_amount == 1000.0
    assert application.deposit_status == DepositStatus.LOCKED
    assert application.deposit_deadline is not None
    assert editor.wallet_balance == 4000.0
    assert editor.wallet_locked == 1000.0

    notifications = session.exec(
        select(Notification).where(Notification.user_id == creator.id)
    ).all()
    assert [n.title for n in notifications] == ["New application"]
    assert [e.event_type for e in order_timeline(session, order.id)] == ["created", "apply"]


def test_apply_without_balance_leaves_deposit_pending(session, creator, make_user, make_order):
    order = make_order(creator)
    broke = make_user(UserRole.EDITOR)

    application = order_service.apply_to_order(session, order, broke)

    assert application.deposit_status == DepositStatus.PENDING


def test_second_applicant_keeps_order_applied(session, creator, editor, make_user, make_order):
    order = make_order(creator)
    other = make_user(UserRole.EDITOR, wallet_balance=5000.0)

    order_service.apply_to_order(session, order, editor)
    order_service.apply_to_order(session, order, other)
    session.refresh(order)

    assert order.status == OrderStatus.APPLIED
    assert len(order_service.list_applications(session, order, creator)) == 2


def test_duplicate_application(session, creator, editor, make_order):
    order = make_order(creator)
    order_service.apply_to_order(session, order, editor)

    with pytest.raises(ApplicationError) as exc:
        order_service.apply_to_order(session, order, editor)
    assert exc.value.status_code == 409


def test_cannot_apply_to_assigned_order(session, make_user, assigned_order):
    late = make_user(UserRole.EDITOR, wallet_balance=5000.0)

    with pytest.raises(ApplicationError):
        order_service.apply_to_order(session, assigned_order, late)


def test_active_job_limit(session, creator, editor, make_order):
    for _ in range(2):
        order = make_order(creator)
        application = order_service.apply_to_order(session, order, editor)
        order_service.approve_application(session, order, application, creator)

    assert order_service.active_job_count(session, editor.id) == 2

    third = make_order(creator)
    with pytest.raises(ApplicationError):
        order_service.apply_to_order(session, third, editor)


def test_approve_requires_locked_deposit(session, creator, make_user, make_order):
    order = make_order(creator)
    broke = make_user(UserRole.EDITOR)
    application = order_service.apply_to_order(session, order, broke)

    with pytest.raises(ApplicationError):
        order_service.approve_application(session, order, application, creator)


def test_approve_rejects_and_refunds_other_applicants(session, creator, editor, make_user, make_order):
    order = make_order(creator)
    other = make_user(UserRole.EDITOR, wallet_balance=5000.0)
    chosen = order_service.apply_to_order(session, order, editor)
    passed_over = order_service.apply_to_order(session, order, other)

    order_service.approve_application(session, order, chosen, creator)
    session.refresh(chosen)
    session.refresh(passed_over)
    session.refresh(other)

    assert order.status == OrderStatus.ASSIGNED
    assert order.editor_id == editor.id
    assert order.assigned_at is not None
    assert chosen.status == ApplicationStatus.APPROVED
    assert chosen.deposit_status == DepositStatus.LOCKED
    assert passed_over.status == ApplicationStatus.REJECTED
    assert passed_over.deposit_status == DepositStatus.RELEASED
    assert other.wallet_balance == 5000.0
    assert other.wallet_locked == 0.0

    titles = session.exec(
        select(Notification.title).where(Notification.user_id == other.id)
    ).all()
    assert "Application closed" in titles


def test_editor_cannot_approve(session, creator, editor, make_order):
    order = make_order(creator)
    application = order_service.apply_to_order(session, order, editor)

    with pytest.raises(TransitionError) as exc:
        order_service.approve_application(session, order, application, editor)
    assert exc.value.status_code == 403


def test_other_creator_cannot_approve(session, creator, editor, make_user, make_order):
    order = make_order(creator)
    application = order_service.apply_to_order(session, order, editor)
    stranger = make_user(UserRole.CREATOR)

    with pytest.raises(PermissionDeniedError):
        order_service.approve_application(session, order, application, stranger)


def test_application_from_other_order(session, creator, editor, make_order):
    order = make_order(creator)
    other_order = make_order(creator)
    application = order_service.apply_to_order(session, other_order, editor)

    with pytest.raises(NotFoundError):
        order_service.approve_application(session, order, application, creator)


# -------------------------
# delivery
# -------------------------

def test_delivery_flow_and_revision_limit(session, creator, editor, assigned_order):
    order = assigned_order

    order_service.start_work(session, order, editor)
    order_service.submit_preview(session, order, editor, note="v1")
    order_service.request_revision(session, order, creator, reason="Tighter cuts")
    order_service.submit_preview(session, order, editor)
    order_service.request_revision(session, order, creator)
    order_service.submit_preview(session, order, editor)

    assert order.revision_count == 2
    with pytest.raises(TransitionError, match="Maximum"):
        order_service.request_revision(session, order, creator)

    order_service.approve_preview(session, order, creator)
    order_service.submit_final(session, order, editor)
    order_service.publish(session, order, creator, youtube_video_id="abc123")

    assert order.status == OrderStatus.PUBLISHED
    assert order.youtube_video_url == "https://www.youtube.com/watch?v=abc123"
    assert order.published_at is not None

    labels = [e.label for e in order_timeline(session, order.id)]
    assert labels[-1] == "FINAL_SUBMITTED -> PUBLISHED"


def test_only_assigned_editor_can_start(session, make_user, assigned_order):
    intruder = make_user(UserRole.EDITOR)

    with pytest.raises(PermissionDeniedError):
        order_service.start_work(session, assigned_order, intruder)


def test_undefined_action_is_rejected(session, creator, assigned_order):
    with pytest.raises(TransitionError) as exc:
        order_service.publish(session, assigned_order, creator)
    assert exc.value.status_code == 400


def test_stale_order_raises_conflict(session, editor, assigned_order):
    with Session(engine) as other:
        fresh = other.get(Order, assigned_order.id)
        order_service.start_work(other, fresh, editor)

    with pytest.raises(ConcurrentUpdateError):
        order_service.start_work(session, assigned_order, editor)


def test_concurrent_approvals_assign_one_editor(session, creator, editor, make_user, make_order):
    order = make_order(creator)
    rival = make_user(UserRole.EDITOR, wallet_balance=5000.0)
    first = order_service.apply_to_order(session, order, editor)
    second = order_service.apply_to_order(session, order, rival)
    assert order.status == OrderStatus.APPLIED
    assert second.status == ApplicationStatus.APPLIED

    with Session(engine) as other:
        order_service.approve_application(
            other,
            other.get(Order, order.id),
            other.get(OrderApplication, first.id),
            other.get(User, creator.id),
        )

    with pytest.raises(ConcurrentUpdateError):
        order_service.approve_application(session, order, second, creator)

    with Session(engine) as check:
        approved = check.exec(
            select(OrderApplication)
            .where(OrderApplication.order_id == order.id)
            .where(OrderApplication.status == ApplicationStatus.APPROVED)
        ).all()
        assert [a.editor_id for a in approved] == [editor.id]
        assert check.get(Order, order.id).editor_id == editor.id


def _deliver(session, order, creator, editor):
    order_service.start_work(session, order, editor)
    order_service.submit_preview(session, order, editor)
    order_service.approve_preview(session, order, creator)
    order_service.submit_final(session, order, editor)


def _last_message(session, user):
    return session.exec(
        select(Notification.message)
        .where(Notification.user_id == user.id)
        .order_by(Notification.id.desc())
    ).first()


def test_complete_pays_editor(session, creator, editor, assigned_order):
    order = assigned_order
    order.payment_status = OrderPaymentStatus.PAID
    session.add(order)
    session.commit()

    _deliver(session, order, creator, editor)
    order_service.complete(session, order, creator)
    session.refresh(editor)

    assert order.status == OrderStatus.COMPLETED
    assert order.completed_at is not None
    assert order.payout_status == PayoutStatus.RELEASED
    # 4000 left after the deposit, deposit returned, 90% of 20000 paid out
    assert editor.wallet_balance == 4000.0 + 1000.0 + 18000.0
    assert editor.wallet_locked == 0.0
    assert _last_message(session, editor) == (
        f'"{order.title}" is complete. Your earnings were added to your wallet.'
    )


def test_complete_without_payment_skips_payout(session, creator, editor, assigned_order):
    _deliver(session, assigned_order, creator, editor)
    order_service.complete(session, assigned_order, creator)
    session.refresh(editor)

    assert assigned_order.payout_status == PayoutStatus.PENDING
    assert editor.wallet_balance == 5000.0
    assert "no earnings were credited" in _last_message(session, editor)


def test_cancel_releases_deposit(session, creator, editor, assigned_order):
    order_service.cancel(session, assigned_order, creator, reason="Changed plans")
    session.refresh(editor)

    assert assigned_order.status == OrderStatus.CANCELLED
    assert assigned_order.cancelled_at is not None
    assert editor.wallet_balance == 5000.0
    assert editor.wallet_locked == 0.0


def test_cancel_open_order_rejects_pending_applications(session, creator, editor, make_order):
    order = make_order(creator)
    application = order_service.apply_to_order(session, order, editor)

    order_service.cancel(session, order, creator)
    session.refresh(application)

    assert application.status == ApplicationStatus.REJECTED
    assert application.deposit_status == DepositStatus.RELEASED


# -------------------------
# disputes
# -------------------------

def test_dispute_requires_reason(session, creator, editor, assigned_order):
    order_service.start_work(session, assigned_order, editor)

    with pytest.raises(TransitionError):
        order_service.dispute(session, assigned_order, creator, "  ")


def test_admin_resolves_dispute(session, creator, editor, admin, assigned_order):
    order = assigned_order
    order_service.start_work(session, order, editor)
    order_service.dispute(session, order, editor, "Creator is unresponsive")

    assert order.status == OrderStatus.DISPUTED
    assert order.is_disputed
    assert order.dispute_reason == "Creator is unresponsive"

    with pytest.raises(TransitionError):
        order_service.resolve_dispute(session, order, creator, "COMPLETE")

    order_service.resolve_dispute(session, order, admin, "resume", note="Both agreed")

    assert order.status == OrderStatus.IN_PROGRESS
    assert not order.is_disputed


def test_unknown_dispute_outcome(session, admin, assigned_order):
    with pytest.raises(TransitionError):
        order_service.resolve_dispute(session, assigned_order, admin, "REFUND")


# -------------------------
# visibility and realtime
# -------------------------

def test_order_visibility(session, creator, editor, make_user, make_order):
    open_order = make_order(creator)
    stranger = make_user(UserRole.CREATOR)
    outsider = make_user(UserRole.EDITOR)

    assert order_service.get_order_for_user(session, open_order.id, outsider) == open_order
    with pytest.raises(PermissionDeniedError):
        order_service.get_order_for_user(session, open_order.id, stranger)
    with pytest.raises(NotFoundError):
        order_service.get_order_for_user(session, 999, creator)

    application = order_service.apply_to_order(session, open_order, editor)
    order_service.approve_application(session, open_order, application, creator)

    with pytest.raises(PermissionDeniedError):
        order_service.get_order_for_user(session, open_order.id, outsider)


def test_list_orders_by_role(session, creator, editor, admin, make_user, make_order):
    mine = make_order(creator)
    other_creator = make_user(UserRole.CREATOR)
    make_order(other_creator)

    as_creator = order_service.list_orders(session, creator)
    assert [o.id for o in as_creator["results"]] == [mine.id]

    as_editor = order_service.list_orders(session, editor)
    assert as_editor["total_items"] == 2

    assert order_service.list_orders(session, editor, mine=True)["total_items"] == 0
    assert order_service.list_orders(session, admin, status=OrderStatus.OPEN)["total_items"] == 2


def test_status_change_pushed_after_commit(session, publisher, creator, editor, assigned_order):
    notifier = NotificationService(publisher)

    order_service.start_work(session, assigned_order, editor, notifier)

    room = order_room(assigned_order.id)
    assert "order_status" in publisher.events_for(room)
    status_payload = next(p for r, e, p in publisher.messages if e == "order_status")
    assert status_payload["status"] == "IN_PROGRESS"
    assert status_payload["previous_status"] == "ASSIGNED"
    assert "notification" in publisher.events_for(user_room(creator.id))


def test_failed_transition_publishes_nothing(session, publisher, creator, assigned_order):
    notifier = NotificationService(publisher)

    with pytest.raises(TransitionError):
        order_service.submit_final(session, assigned_order, creator, notifier)

    assert publisher.messages == []


def test_reopen_when_last_application_gone(session, creator, make_user, make_order):
    order = make_order(creator)
    broke = make_user(UserRole.EDITOR)
    application = order_service.apply_to_order(session, order, broke)

    application.status = ApplicationStatus.REJECTED
    application.updated_at = datetime.utcnow()
    session.add(application)
    session.flush()

    assert order_service.reopen_if_unclaimed(session, order) is True
    session.commit()
    session.refresh(order)
    assert order.status == OrderStatus.OPEN
    assert order_service.reopen_if_unclaimed(session, order) is False


def test_applications_are_scoped_for_editors(session, creator, editor, make_user, make_order):
    order = make_order(creator)
    other = make_user(UserRole.EDITOR, wallet_balance=5000.0)
    order_service.apply_to_order(session, order, editor)
    order_service.apply_to_order(session, order, other)

    visible = order_service.list_applications(session, order, other)

    assert [a.editor_id for a in visible] == [other.id]
    assert len(session.exec(select(OrderApplication)).all()) == 2
