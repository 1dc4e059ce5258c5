import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlmodel import Session, select

from cutflow.config import settings
from cutflow.database import get_session
from cutflow.dependencies.roles import require_creator, require_editor
from cutflow.dependencies.services import get_notifier
from cutflow.models.order import Order
from cutflow.models.order_application import OrderApplication
from cutflow.models.payment import Payment, PaymentKind
from cutflow.models.user import User
from cutflow.schemas.payment_schemas import (
    CreatePaymentRequest,
    DepositCreateRequest,
    DepositVerifySchema,
    PaymentRead,
    RazorpayPaymentVerifySchema,
)
from cutflow.services import order_service, payment_service
from cutflow.services.errors import NotFoundError, PaymentError, PermissionDeniedError
from cutflow.services.notification_service import NotificationService
from cutflow.services.payment_service import PaymentGateway, get_payment_gateway
from cutflow.utils.token import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _payment_for_gateway_order(session: Session, gateway_order_id: str, kind: PaymentKind) -> Payment:
    payment = session.exec(
        select(Payment)
        .where(Payment.gateway_order_id == gateway_order_id)
        .where(Payment.kind == kind)
    ).first()

    if not payment:
        raise NotFoundError("Payment not found")
    return payment


# -------------------------
# CREATOR PAYMENT
# -------------------------

@router.post("/create-order")
def create_payment_order(
    data: CreatePaymentRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_creator),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """Create a Razorpay order (India) or Stripe PaymentIntent for the order amount"""
    order = session.get(Order, data.order_id)
    if not order:
        raise NotFoundError("Order not found")

    return payment_service.create_creator_payment(session, order, current_user, gateway)


@router.post("/verify")
def verify_payment(
    payload: RazorpayPaymentVerifySchema,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_creator),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
):
    order = session.get(Order, payload.order_id)
    if not order or order.creator_id != current_user.id:
        raise NotFoundError("Order not found")

    payment = _payment_for_gateway_order(
        session, payload.razorpay_order_id, PaymentKind.CREATOR_PAYMENT
    )
    if payment.order_id != order.id:
        raise PaymentError("Razorpay order mismatch")

    payment = payment_service.confirm_razorpay_payment(
        session,
        payment,
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        razorpay_signature=payload.razorpay_signature,
        gateway=gateway,
        notifier=notifier,
    )

    return {
        "message": "Payment verified",
        "order_id": order.id,
        "payment_id": payment.id,
        "status": payment.status,
    }


# -------------------------
# EDITOR DEPOSIT
# -------------------------

@router.post("/editor-deposit/create")
def create_deposit_order(
    data: DepositCreateRequest,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_editor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    application = session.get(OrderApplication, data.application_id)
    if not application:
        raise NotFoundError("Application not found")

    return payment_service.create_deposit_payment(session, application, current_user, gateway)


@router.post("/editor-deposit/verify")
def verify_deposit(
    payload: DepositVerifySchema,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_editor),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
):
    application = session.get(OrderApplication, payload.application_id)
    if not application or application.editor_id != current_user.id:
        raise NotFoundError("Application not found")

    payment = _payment_for_gateway_order(
        session, payload.razorpay_order_id, PaymentKind.EDITOR_DEPOSIT
    )
    if payment.application_id != application.id:
        raise PaymentError("Razorpay order mismatch")

    payment_service.confirm_razorpay_payment(
        session,
        payment,
        razorpay_order_id=payload.razorpay_order_id,
        razorpay_payment_id=payload.razorpay_payment_id,
        razorpay_signature=payload.razorpay_signature,
        gateway=gateway,
        notifier=notifier,
    )
    session.refresh(application)

    return {
        "message": "Deposit verified",
        "application_id": application.id,
        "deposit_status": application.deposit_status,
    }


# -------------------------
# WEBHOOKS
# -------------------------

@router.post("/webhook")
async def razorpay_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    notifier: NotificationService = Depends(get_notifier),
):
    body = await request.body()

    if not payment_service.verify_webhook_signature(
        body, x_razorpay_signature, settings.razorpay_webhook_secret
    ):
        logger.warning("Rejected Razorpay webhook with invalid signature")
        raise HTTPException(status_code=400, detail="Invalid signature")

    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    result = payment_service.handle_razorpay_event(session, event, notifier)
    logger.info("Razorpay webhook %s: %s", event.get("event"), result)

    return {"status": "ok", "result": result}


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None),
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
):
    body = await request.body()
    event = gateway.construct_stripe_event(body, stripe_signature)

    result = payment_service.handle_stripe_event(session, event, notifier)
    logger.info("Stripe webhook %s: %s", event["type"], result)

    return {"status": "ok", "result": result}


@router.get("/order/{order_id}", response_model=list[PaymentRead])
def payments_for_order(
    order_id: int,
    session: Session = Depends(get_session),
    current_user: User = Depends(get_current_user),
):
    order = session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")

    if not order_service.is_participant(order, current_user):
        raise PermissionDeniedError("Not allowed to view these payments")

    return session.exec(
        select(Payment)
        .where(Payment.order_id == order.id)
        .order_by(Payment.created_at.desc())
    ).all()
