import json

import pytest

from cutflow.models.order import Order, OrderPaymentStatus
from cutflow.models.order_application import DepositStatus, OrderApplication
from cutflow.models.payment import Payment, PaymentStatus
from cutflow.models.user import User, UserRole
from cutflow.services import order_service
from cutflow.services.payment_service import compute_hmac_sha256


def _checkout_signature(order_id, payment_id):
    return compute_hmac_sha256("rzp_test_secret", f"{order_id}|{payment_id}".encode())


def _razorpay_webhook(client, event, entity, secret="rzp_webhook_secret"):
    body = json.dumps({"event": event, "payload": {"payment": {"entity": entity}}}).encode()
    return client.post(
        "/api/payments/webhook",
        content=body,
        headers={
            "X-Razorpay-Signature": compute_hmac_sha256(secret, body),
            "Content-Type": "application/json",
        },
    )


@pytest.fixture
def rp_order_id(client, gateway, headers, creator, assigned_order):
    resp = client.post(
        "/api/payments/create-order",
        json={"order_id": assigned_order.id},
        headers=headers(creator),
    )
    assert resp.status_code == 200, resp.text
    return resp.json()["razorpay_order_id"]


def test_create_razorpay_order(client, gateway, headers, creator, assigned_order):
    resp = client.post(
        "/api/payments/create-order",
        json={"order_id": assigned_order.id},
        headers=headers(creator),
    )

    body = resp.json()
    assert body["gateway"] == "RAZORPAY"
    assert body["currency"] == "INR"
    assert body["amount"] == 20000.0
    assert body["razorpay_key"] == "rzp_test_key"
    assert gateway.razorpay_orders[0]["amount"] == 2000000

    again = client.post(
        "/api/payments/create-order",
        json={"order_id": assigned_order.id},
        headers=headers(creator),
    )
    assert again.status_code == 409


def test_cannot_pay_before_assignment(client, gateway, headers, creator, make_order):
    order = make_order(creator)

    resp = client.post(
        "/api/payments/create-order", json={"order_id": order.id}, headers=headers(creator)
    )
    assert resp.status_code == 400


def test_cannot_pay_for_closed_order(client, session, gateway, headers, creator, assigned_order):
    order_service.cancel(session, assigned_order, creator, reason="Changed plans")

    resp = client.post(
        "/api/payments/create-order",
        json={"order_id": assigned_order.id},
        headers=headers(creator),
    )

    assert resp.status_code == 409
    assert gateway.razorpay_orders == []
    assert client.get(
        f"/api/payments/order/{assigned_order.id}", headers=headers(creator)
    ).json() == []


def test_verify_checkout(client, session, gateway, headers, creator, assigned_order, rp_order_id):
    gateway.razorpay_payments["pay_1"] = {
        "id": "pay_1", "order_id": rp_order_id, "status": "captured",
    }

    resp = client.post(
        "/api/payments/verify",
        json={
            "order_id": assigned_order.id,
            "razorpay_order_id": rp_order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": _checkout_signature(rp_order_id, "pay_1"),
        },
        headers=headers(creator),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["status"] == "COMPLETED"

    session.expire_all()
    assert session.get(Order, assigned_order.id).payment_status == OrderPaymentStatus.PAID


def test_verify_rejects_bad_signature(client, gateway, headers, creator, assigned_order, rp_order_id):
    resp = client.post(
        "/api/payments/verify",
        json={
            "order_id": assigned_order.id,
            "razorpay_order_id": rp_order_id,
            "razorpay_payment_id": "pay_1",
            "razorpay_signature": "0" * 64,
        },
        headers=headers(creator),
    )
    assert resp.status_code == 400
    assert resp.json()["detail"] == "Payment verification failed"


def test_verify_rejects_uncaptured_payment(client, gateway, headers, creator, assigned_order, rp_order_id):
    gateway.razorpay_payments["pay_2"] = {
        "id": "pay_2", "order_id": rp_order_id, "status": "failed",
    }

    resp = client.post(
        "/api/payments/verify",
        json={
            "order_id": assigned_order.id,
            "razorpay_order_id": rp_order_id,
            "razorpay_payment_id": "pay_2",
            "razorpay_signature": _checkout_signature(rp_order_id, "pay_2"),
        },
        headers=headers(creator),
    )
    assert resp.status_code == 400


def test_captured_webhook_is_idempotent(client, session, headers, creator, editor, assigned_order, rp_order_id):
    entity = {"id": "pay_9", "order_id": rp_order_id, "status": "captured"}

    first = _razorpay_webhook(client, "payment.captured", entity)
    assert first.json() == {"status": "ok", "result": "processed"}

    replay = _razorpay_webhook(client, "payment.captured", entity)
    assert replay.json()["result"] == "duplicate"

    session.expire_all()
    payment = session.get(Payment, 1)
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.gateway_payment_id == "pay_9"

    notes = client.get("/api/notifications", headers=headers(editor)).json()
    assert [n["title"] for n in notes["notifications"]].count("Payment received") == 1


def test_webhook_signature_required(client, rp_order_id):
    entity = {"id": "pay_9", "order_id": rp_order_id}

    assert _razorpay_webhook(client, "payment.captured", entity, secret="wrong").status_code == 400

    resp = client.post("/api/payments/webhook", content=b"{}")
    assert resp.status_code == 400


def test_failed_webhook_allows_new_attempt(client, session, gateway, headers, creator, assigned_order, rp_order_id):
    resp = _razorpay_webhook(
        client,
        "payment.failed",
        {"id": "pay_3", "order_id": rp_order_id, "error_description": "Card declined"},
    )
    assert resp.json()["result"] == "processed"

    session.expire_all()
    assert session.get(Order, assigned_order.id).payment_status == OrderPaymentStatus.FAILED

    retry = client.post(
        "/api/payments/create-order",
        json={"order_id": assigned_order.id},
        headers=headers(creator),
    )
    assert retry.status_code == 200


def test_unknown_webhook_order_is_ignored(client):
    resp = _razorpay_webhook(client, "payment.captured", {"id": "pay_x", "order_id": "order_nope"})
    assert resp.json()["result"] == "ignored"


def test_payments_visible_to_participants_only(client, headers, creator, editor, make_user, assigned_order, rp_order_id):
    resp = client.get(f"/api/payments/order/{assigned_order.id}", headers=headers(editor))
    assert [p["gateway_order_id"] for p in resp.json()] == [rp_order_id]

    stranger = make_user(UserRole.EDITOR)
    resp = client.get(f"/api/payments/order/{assigned_order.id}", headers=headers(stranger))
    assert resp.status_code == 403


# -------------------------
# editor deposits
# -------------------------

@pytest.fixture
def pending_application(session, creator, make_user, make_order):
    order = make_order(creator)
    editor = make_user(UserRole.EDITOR)
    application = order_service.apply_to_order(session, order, editor)
    assert application.deposit_status == DepositStatus.PENDING
    return application


def test_deposit_paid_through_razorpay(client, session, gateway, headers, pending_application):
    editor = session.get(User, pending_application.editor_id)

    created = client.post(
        "/api/payments/editor-deposit/create",
        json={"application_id": pending_application.id},
        headers=headers(editor),
    ).json()
    assert created["amount"] == 1000.0

    # a second call reuses the pending payment
    again = client.post(
        "/api/payments/editor-deposit/create",
        json={"application_id": pending_application.id},
        headers=headers(editor),
    ).json()
    assert again["razorpay_order_id"] == created["razorpay_order_id"]
    assert len(gateway.razorpay_orders) == 1

    rp_order_id = created["razorpay_order_id"]
    gateway.razorpay_payments["pay_d"] = {
        "id": "pay_d", "order_id": rp_order_id, "status": "captured",
    }
    resp = client.post(
        "/api/payments/editor-deposit/verify",
        json={
            "application_id": pending_application.id,
            "razorpay_order_id": rp_order_id,
            "razorpay_payment_id": "pay_d",
            "razorpay_signature": _checkout_signature(rp_order_id, "pay_d"),
        },
        headers=headers(editor),
    )
    assert resp.status_code == 200, resp.text
    assert resp.json()["deposit_status"] == "LOCKED"

    session.expire_all()
    editor = session.get(User, editor.id)
    assert editor.wallet_balance == 0.0
    assert editor.wallet_locked == 1000.0


def test_deposit_for_someone_elses_application(client, gateway, headers, editor, pending_application):
    resp = client.post(
        "/api/payments/editor-deposit/create",
        json={"application_id": pending_application.id},
        headers=headers(editor),
    )
    assert resp.status_code == 404


def test_late_deposit_capture_does_not_lock(client, session, gateway, headers, creator, pending_application):
    editor = session.get(User, pending_application.editor_id)
    rp_order_id = client.post(
        "/api/payments/editor-deposit/create",
        json={"application_id": pending_application.id},
        headers=headers(editor),
    ).json()["razorpay_order_id"]

    application = session.get(OrderApplication, pending_application.id)
    order_service.cancel(session, session.get(Order, application.order_id), creator)

    resp = _razorpay_webhook(
        client, "payment.captured", {"id": "pay_late", "order_id": rp_order_id}
    )
    assert resp.json()["result"] == "processed"

    session.expire_all()
    application = session.get(OrderApplication, pending_application.id)
    payment = session.get(Payment, 1)
    assert application.deposit_status == DepositStatus.PENDING
    assert payment.status == PaymentStatus.COMPLETED
    assert payment.release_note


# -------------------------
# stripe
# -------------------------

@pytest.fixture
def us_order(session, make_user, editor, make_order):
    creator = make_user(UserRole.CREATOR, country_code="US")
    order = make_order(creator, amount=300.0, currency="USD")
    application = order_service.apply_to_order(session, order, editor)
    order_service.approve_application(session, order, application, creator)
    return order, creator


def _stripe_webhook(client, event_type, intent, signature="valid-stripe-signature"):
    body = json.dumps({"type": event_type, "data": {"object": intent}}).encode()
    return client.post(
        "/api/payments/stripe/webhook",
        content=body,
        headers={"Stripe-Signature": signature},
    )


def test_stripe_payment_flow(client, session, gateway, headers, us_order):
    order, creator = us_order

    created = client.post(
        "/api/payments/create-order", json={"order_id": order.id}, headers=headers(creator)
    ).json()
    assert created["gateway"] == "STRIPE"
    assert created["currency"] == "USD"
    assert created["client_secret"] == "pi_secret"
    assert gateway.stripe_intents[0]["amount"] == 30000

    intent = {"id": "pi_test_1", "latest_charge": "ch_1"}
    assert _stripe_webhook(client, "payment_intent.succeeded", intent).json()["result"] == "processed"
    assert _stripe_webhook(client, "payment_intent.succeeded", intent).json()["result"] == "duplicate"

    session.expire_all()
    assert session.get(Order, order.id).payment_status == OrderPaymentStatus.PAID


def test_stripe_webhook_bad_signature(client, gateway):
    resp = _stripe_webhook(client, "payment_intent.succeeded", {"id": "pi_x"}, signature="forged")
    assert resp.status_code == 400
