from cutflow.models.notifications import NotificationType
from cutflow.models.user import UserRole
from cutflow.services import order_service
from cutflow.services.notification_service import NotificationService


def test_health(client):
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["database"] == "ok"


def test_root_lists_endpoints(client):
    assert "/api/orders" in client.get("/").json()["order_endpoints"]


def test_wallet_summary(client, session, headers, creator, editor, make_order):
    order = make_order(creator)
    order_service.apply_to_order(session, order, editor)

    body = client.get("/api/wallet", headers=headers(editor)).json()

    assert body["balance"] == 4000.0
    assert body["locked"] == 1000.0
    assert [tx["type"] for tx in body["transactions"]] == ["DEPOSIT_LOCK"]


def test_notifications_read_flow(client, session, headers, creator):
    notifier = NotificationService()
    for title in ("One", "Two"):
        notifier.create_and_send(
            session,
            user_id=creator.id,
            type=NotificationType.SYSTEM,
            title=title,
            message="hello",
        )
    session.commit()

    body = client.get("/api/notifications", headers=headers(creator)).json()
    assert body["unread_count"] == 2
    first_id = body["notifications"][-1]["id"]

    resp = client.patch(f"/api/notifications/{first_id}/read", headers=headers(creator))
    assert resp.json()["is_read"] is True

    resp = client.patch("/api/notifications/read-all", headers=headers(creator))
    assert resp.json()["updated"] == 1
    assert client.get("/api/notifications", headers=headers(creator)).json()["unread_count"] == 0


def test_cannot_read_other_users_notification(client, session, headers, creator, editor):
    notification = NotificationService().create_and_send(
        session,
        user_id=editor.id,
        type=NotificationType.SYSTEM,
        title="Private",
        message="hello",
    )
    session.commit()

    resp = client.patch(f"/api/notifications/{notification.id}/read", headers=headers(creator))
    assert resp.status_code == 404


def test_invoice_pdf(client, headers, creator, editor, make_user, assigned_order):
    resp = client.get(f"/api/invoices/order/{assigned_order.id}", headers=headers(creator))

    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/pdf"
    assert resp.content.startswith(b"%PDF")
    expected = f'attachment; filename="Invoice-INV-{assigned_order.id:08d}.pdf"'
    assert resp.headers["content-disposition"] == expected

    assert client.get(f"/api/invoices/order/{assigned_order.id}", headers=headers(editor)).status_code == 200

    outsider = make_user(UserRole.CREATOR)
    resp = client.get(f"/api/invoices/order/{assigned_order.id}", headers=headers(outsider))
    assert resp.status_code == 403
