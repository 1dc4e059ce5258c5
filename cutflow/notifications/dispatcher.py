import logging

from sqlmodel import Session

from cutflow.config import settings
from cutflow.database import run_after_commit
from cutflow.models.user import User
from cutflow.notifications.channels import Channel
from cutflow.notifications.email_handlers import send_user_email
from cutflow.notifications.events import MarketplaceEvent
from cutflow.notifications.rules import (
    EMAIL_TEMPLATES,
    NOTIFICATION_COPY,
    NOTIFICATION_RULES,
)

logger = logging.getLogger(__name__)


def _queue_email(session, event, user, context):
    template, subject = EMAIL_TEMPLATES[event]
    run_after_commit(
        session,
        send_user_email,
        template=template,
        subject=subject.format(**context),
        user=user,
        **context,
    )


def dispatch_marketplace_event(
    *,
    event: MarketplaceEvent,
    session: Session,
    order,
    notifier,
    editor: User = None,
    extra: dict = None,
):
    """
    Central notification dispatcher.

    Handles:
    - in-app notifications for the creator and the editor
    - creator / editor email (sent after commit)
    - order room broadcast

    ``editor`` defaults to the order's assigned editor; pass the applicant
    for application events.
    """

    rules = NOTIFICATION_RULES.get(event, {})
    copy = NOTIFICATION_COPY[event]

    creator = session.get(User, order.creator_id)
    if editor is None and order.editor_id:
        editor = session.get(User, order.editor_id)

    context = {
        "order_id": order.id,
        "title": order.title,
        "status": getattr(order.status, "value", order.status),
        "amount": order.amount,
        "creator_name": creator.name if creator else "",
        "editor_name": editor.name if editor else "",
        "reason": "",
        "payout_note": "",
        "platform_name": settings.PLATFORM_NAME,
    }
    context.update(extra or {})

    link = f"/orders/{order.id}"
    title = copy["title"].format(**context)

    # -------------------------
    # IN-APP
    # -------------------------
    if rules.get(Channel.INAPP_CREATOR) and creator:
        notifier.create_and_send(
            session,
            user_id=creator.id,
            type=copy["type"],
            title=title,
            message=copy["creator"].format(**context).strip(),
            link=link,
        )

    if rules.get(Channel.INAPP_EDITOR) and editor:
        notifier.create_and_send(
            session,
            user_id=editor.id,
            type=copy["type"],
            title=title,
            message=copy["editor"].format(**context).strip(),
            link=link,
        )

    # -------------------------
    # EMAIL
    # -------------------------
    if rules.get(Channel.EMAIL_CREATOR) and creator:
        _queue_email(session, event, creator, context)

    if rules.get(Channel.EMAIL_EDITOR) and editor:
        _queue_email(session, event, editor, context)

    # -------------------------
    # ORDER ROOM
    # -------------------------
    if rules.get(Channel.ORDER_ROOM):
        notifier.send_order_event(
            order.id,
            event.value,
            {"order_id": order.id, "status": getattr(order.status, "value", order.status)},
            session=session,
        )

    logger.debug("Dispatched %s for order %s", event.value, order.id)
