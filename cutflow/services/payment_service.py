"""
Payment gateway adapter and capture handling.

Razorpay serves Indian accounts (always INR), Stripe everyone else. Capture
processing is idempotent: a payment already COMPLETED or a deposit already
LOCKED is skipped, so replayed webhooks are acknowledged without effect.
"""
import hashlib
import hmac
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

import stripe
from sqlmodel import Session, select

from cutflow.config import settings
from cutflow.constants.order_status import TERMINAL_STATUSES
from cutflow.models.order import Order, OrderPaymentStatus
from cutflow.models.order_application import (
    ApplicationStatus,
    DepositStatus,
    OrderApplication,
)
from cutflow.models.payment import (
    Payment,
    PaymentGatewayName,
    PaymentKind,
    PaymentStatus,
)
from cutflow.models.user import User
from cutflow.notifications import MarketplaceEvent, dispatch_marketplace_event
from cutflow.services import wallet_service
from cutflow.services.errors import PaymentError
from cutflow.services.notification_service import NotificationService

logger = logging.getLogger(__name__)

ZERO_DECIMAL_CURRENCIES = {"JPY", "KRW"}
CAPTURED_STATES = ("captured", "authorized")


# ---------------------------------------------------------------------------
# signatures
# ---------------------------------------------------------------------------

def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_webhook_signature(
    body: Union[bytes, str],
    signature: Optional[Union[bytes, str]],
    secret: Optional[str],
) -> bool:
    """
    HMAC-SHA256(secret, body) hex digest compared in constant time.

    Returns False for any malformed input instead of raising.
    """
    if not signature or not secret:
        return False

    if isinstance(body, str):
        body = body.encode("utf-8")

    if isinstance(signature, bytes):
        try:
            signature = signature.decode("ascii")
        except UnicodeDecodeError:
            return False

    expected = compute_hmac_sha256(secret, body)

    try:
        return hmac.compare_digest(expected, signature)
    except TypeError:
        # compare_digest refuses non-ASCII str
        return False


def verify_payment_signature(
    order_id: str,
    payment_id: str,
    signature: Optional[str],
    secret: Optional[str],
) -> bool:
    """Razorpay checkout signature over ``"<order_id>|<payment_id>"``."""
    if not order_id or not payment_id:
        return False
    return verify_webhook_signature(f"{order_id}|{payment_id}", signature, secret)


# ---------------------------------------------------------------------------
# gateway adapter
# ---------------------------------------------------------------------------

class PaymentGateway:
    def __init__(self, razorpay_client=None):
        self._razorpay = razorpay_client

    @staticmethod
    def gateway_for_country(country_code: Optional[str]) -> PaymentGatewayName:
        if (country_code or "").upper() == "IN":
            return PaymentGatewayName.RAZORPAY
        return PaymentGatewayName.STRIPE

    @staticmethod
    def currency_for(gateway: PaymentGatewayName, currency: Optional[str]) -> str:
        if gateway == PaymentGatewayName.RAZORPAY:
            return "INR"
        return (currency or "USD").upper()

    @staticmethod
    def to_minor_units(amount: float, currency: str) -> int:
        if currency.upper() in ZERO_DECIMAL_CURRENCIES:
            return int(round(amount))
        return int(round(amount * 100))

    @property
    def razorpay(self):
        if self._razorpay is None:
            if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
                raise PaymentError("Razorpay is not configured", status_code=503)

            import razorpay

            self._razorpay = razorpay.Client(
                auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET)
            )
        return self._razorpay

    def create_razorpay_order(
        self,
        amount: float,
        receipt: str,
        notes: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return self.razorpay.order.create(
            {
                "amount": self.to_minor_units(amount, "INR"),
                "currency": "INR",
                "receipt": receipt,
                "notes": notes or {},
            }
        )

    def fetch_razorpay_payment(self, payment_id: str) -> Dict[str, Any]:
        return self.razorpay.payment.fetch(payment_id)

    def create_stripe_intent(
        self,
        amount: float,
        currency: str,
        metadata: Dict[str, str],
    ) -> Dict[str, Any]:
        if not settings.STRIPE_SECRET_KEY:
            raise PaymentError("Stripe is not configured", status_code=503)

        intent = stripe.PaymentIntent.create(
            api_key=settings.STRIPE_SECRET_KEY,
            amount=self.to_minor_units(amount, currency),
            currency=currency.lower(),
            metadata=metadata,
            automatic_payment_methods={"enabled": True},
        )
        return {"id": intent["id"], "client_secret": intent["client_secret"]}

    def construct_stripe_event(self, payload: bytes, sig_header: Optional[str]):
        if not settings.STRIPE_WEBHOOK_SECRET:
            raise PaymentError("Stripe webhook secret is not configured", status_code=503)

        try:
            return stripe.Webhook.construct_event(
                payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
            )
        except (ValueError, stripe.SignatureVerificationError):
            raise PaymentError("Invalid Stripe signature")


payment_gateway = PaymentGateway()


def get_payment_gateway() -> PaymentGateway:
    return payment_gateway


# ---------------------------------------------------------------------------
# creating payments
# ---------------------------------------------------------------------------

def create_creator_payment(
    session: Session,
    order: Order,
    creator: User,
    gateway: PaymentGateway,
) -> Dict[str, Any]:
    if order.creator_id != creator.id:
        raise PaymentError("Only the order's creator can pay for it", status_code=403)

    if order.status in TERMINAL_STATUSES:
        raise PaymentError("This order is closed and cannot be paid for", status_code=409)

    if not order.editor_id:
        raise PaymentError("Assign an editor before paying")

    if not order.amount:
        raise PaymentError("Order has no amount")

    existing = session.exec(
        select(Payment)
        .where(Payment.order_id == order.id)
        .where(Payment.kind == PaymentKind.CREATOR_PAYMENT)
        .where(Payment.status != PaymentStatus.FAILED)
    ).first()

    if existing:
        raise PaymentError("A payment for this order already exists", status_code=409)

    gateway_name = gateway.gateway_for_country(creator.country_code)
    currency = gateway.currency_for(gateway_name, order.currency)

    if gateway_name == PaymentGatewayName.RAZORPAY:
        rp_order = gateway.create_razorpay_order(
            order.amount,
            receipt=f"order_{order.id}",
            notes={"order_id": order.id, "kind": PaymentKind.CREATOR_PAYMENT.value},
        )
        gateway_order_id = rp_order["id"]
        client = {
            "razorpay_order_id": gateway_order_id,
            "razorpay_key": settings.RAZORPAY_KEY_ID,
        }
    else:
        intent = gateway.create_stripe_intent(
            order.amount,
            currency,
            metadata={
                "order_id": str(order.id),
                "kind": PaymentKind.CREATOR_PAYMENT.value,
            },
        )
        gateway_order_id = intent["id"]
        client = {"client_secret": intent["client_secret"]}

    payment = Payment(
        order_id=order.id,
        user_id=creator.id,
        kind=PaymentKind.CREATOR_PAYMENT,
        gateway=gateway_name,
        amount=order.amount,
        currency=currency,
        gateway_order_id=gateway_order_id,
    )
    session.add(payment)

    order.payment_gateway = gateway_name.value
    session.add(order)
    session.commit()
    session.refresh(payment)

    logger.info("Created %s payment %s for order %s", gateway_name.value, payment.id, order.id)

    return {
        "payment_id": payment.id,
        "order_id": order.id,
        "gateway": gateway_name.value,
        "amount": payment.amount,
        "currency": currency,
        **client,
    }


def create_deposit_payment(
    session: Session,
    application: OrderApplication,
    editor: User,
    gateway: PaymentGateway,
) -> Dict[str, Any]:
    if application.editor_id != editor.id:
        raise PaymentError("Application not found", status_code=404)

    if application.status != ApplicationStatus.APPLIED:
        raise PaymentError("Application is no longer pending")

    if application.deposit_status != DepositStatus.PENDING:
        raise PaymentError("Deposit is already paid")

    if application.deposit_deadline and application.deposit_deadline < datetime.utcnow():
        raise PaymentError("Deposit window has expired")

    payment = session.exec(
        select(Payment)
        .where(Payment.application_id == application.id)
        .where(Payment.status == PaymentStatus.PENDING)
    ).first()

    if payment is None:
        rp_order = gateway.create_razorpay_order(
            application.deposit_amount,
            receipt=f"deposit_{application.id}",
            notes={
                "application_id": application.id,
                "kind": PaymentKind.EDITOR_DEPOSIT.value,
            },
        )
        payment = Payment(
            order_id=application.order_id,
            user_id=editor.id,
            application_id=application.id,
            kind=PaymentKind.EDITOR_DEPOSIT,
            gateway=PaymentGatewayName.RAZORPAY,
            amount=application.deposit_amount,
            currency="INR",
            gateway_order_id=rp_order["id"],
        )
        session.add(payment)
        session.commit()
        session.refresh(payment)

    return {
        "payment_id": payment.id,
        "application_id": application.id,
        "razorpay_order_id": payment.gateway_order_id,
        "razorpay_key": settings.RAZORPAY_KEY_ID,
        "amount": payment.amount,
        "currency": payment.currency,
    }


# ---------------------------------------------------------------------------
# capture / failure
# ---------------------------------------------------------------------------

def _mark_completed(payment: Payment, gateway_payment_id: Optional[str], signature: Optional[str]):
    payment.status = PaymentStatus.COMPLETED
    payment.gateway_payment_id = gateway_payment_id or payment.gateway_payment_id
    payment.gateway_signature = signature or payment.gateway_signature
    payment.processed_at = datetime.utcnow()


def complete_payment(
    session: Session,
    payment: Payment,
    gateway_payment_id: Optional[str],
    notifier: Optional[NotificationService] = None,
    signature: Optional[str] = None,
) -> bool:
    """
    Apply a captured payment. Returns False when it was already processed.

    Does not commit.
    """
    notifier = notifier or NotificationService()

    if payment.status == PaymentStatus.COMPLETED:
        logger.info("Payment %s already completed, skipping", payment.id)
        return False

    order = session.get(Order, payment.order_id)
    _mark_completed(payment, gateway_payment_id, signature)
    session.add(payment)

    if payment.kind == PaymentKind.CREATOR_PAYMENT:
        order.payment_status = OrderPaymentStatus.PAID
        order.updated_at = datetime.utcnow()
        session.add(order)
        session.flush()

        dispatch_marketplace_event(
            event=MarketplaceEvent.PAYMENT_RECEIVED,
            session=session,
            order=order,
            notifier=notifier,
            extra={"amount": payment.amount},
        )
    else:
        application = session.get(OrderApplication, payment.application_id)

        if (
            application.status == ApplicationStatus.APPLIED
            and application.deposit_status == DepositStatus.PENDING
        ):
            session.flush()
            wallet_service.lock_deposit(session, application, source="gateway")
            dispatch_marketplace_event(
                event=MarketplaceEvent.DEPOSIT_LOCKED,
                session=session,
                order=order,
                notifier=notifier,
                editor=session.get(User, application.editor_id),
                extra={"amount": application.deposit_amount},
            )
        else:
            logger.warning(
                "Deposit payment %s captured for application %s in state %s/%s",
                payment.id, application.id,
                application.status.value, application.deposit_status.value,
            )
            payment.release_note = "Application no longer pending when deposit was captured"
            session.flush()

    logger.info("Payment %s completed (%s)", payment.id, payment.kind.value)
    return True


def fail_payment(session: Session, payment: Payment, reason: Optional[str] = None) -> bool:
    if payment.status in (PaymentStatus.COMPLETED, PaymentStatus.FAILED):
        return False

    payment.status = PaymentStatus.FAILED
    payment.processed_at = datetime.utcnow()
    payment.release_note = reason
    session.add(payment)

    if payment.kind == PaymentKind.CREATOR_PAYMENT:
        order = session.get(Order, payment.order_id)
        order.payment_status = OrderPaymentStatus.FAILED
        session.add(order)

    logger.warning("Payment %s failed: %s", payment.id, reason)
    return True


def confirm_razorpay_payment(
    session: Session,
    payment: Payment,
    *,
    razorpay_order_id: str,
    razorpay_payment_id: str,
    razorpay_signature: str,
    gateway: PaymentGateway,
    notifier: Optional[NotificationService] = None,
) -> Payment:
    """Client-side confirmation after Razorpay checkout."""
    if payment.gateway_order_id != razorpay_order_id:
        raise PaymentError("Razorpay order mismatch")

    if not verify_payment_signature(
        razorpay_order_id,
        razorpay_payment_id,
        razorpay_signature,
        settings.RAZORPAY_KEY_SECRET,
    ):
        raise PaymentError("Payment verification failed")

    if payment.status == PaymentStatus.COMPLETED:
        return payment

    details = gateway.fetch_razorpay_payment(razorpay_payment_id)

    if details.get("order_id") != razorpay_order_id:
        raise PaymentError("Payment does not belong to this order")

    if details.get("status") not in CAPTURED_STATES:
        raise PaymentError(f"Payment is {details.get('status')}, not captured")

    complete_payment(
        session,
        payment,
        razorpay_payment_id,
        notifier=notifier,
        signature=razorpay_signature,
    )
    session.commit()
    session.refresh(payment)
    return payment


def _payment_by_gateway_order(session: Session, gateway_order_id: Optional[str]) -> Optional[Payment]:
    if not gateway_order_id:
        return None
    return session.exec(
        select(Payment).where(Payment.gateway_order_id == gateway_order_id)
    ).first()


def handle_razorpay_event(
    session: Session,
    event: Dict[str, Any],
    notifier: Optional[NotificationService] = None,
) -> str:
    """Process a verified Razorpay webhook body; returns what happened."""
    event_type = event.get("event")
    entity = (
        event.get("payload", {}).get("payment", {}).get("entity", {})
    )

    payment = _payment_by_gateway_order(session, entity.get("order_id"))
    if payment is None:
        logger.info("Razorpay %s for unknown order %s", event_type, entity.get("order_id"))
        return "ignored"

    if event_type == "payment.captured":
        processed = complete_payment(session, payment, entity.get("id"), notifier=notifier)
    elif event_type == "payment.failed":
        processed = fail_payment(session, payment, entity.get("error_description"))
    else:
        return "ignored"

    session.commit()
    return "processed" if processed else "duplicate"


def handle_stripe_event(
    session: Session,
    event,
    notifier: Optional[NotificationService] = None,
) -> str:
    event_type = event["type"]
    intent = event["data"]["object"]

    payment = _payment_by_gateway_order(session, intent.get("id"))
    if payment is None:
        logger.info("Stripe %s for unknown intent %s", event_type, intent.get("id"))
        return "ignored"

    if event_type == "payment_intent.succeeded":
        processed = complete_payment(
            session,
            payment,
            intent.get("latest_charge") or intent.get("id"),
            notifier=notifier,
        )
    elif event_type == "payment_intent.payment_failed":
        error = intent.get("last_payment_error") or {}
        processed = fail_payment(session, payment, error.get("message"))
    else:
        return "ignored"

    session.commit()
    return "processed" if processed else "duplicate"
