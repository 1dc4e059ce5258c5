"""initial marketplace schema

Revision ID: 4c1e9a7d2b10
Revises:
Create Date: 2026-10-18 10:12:41.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4c1e9a7d2b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_STATUSES = (
    "OPEN", "APPLIED", "ASSIGNED", "IN_PROGRESS", "PREVIEW_SUBMITTED",
    "REVISION_REQUESTED", "FINAL_SUBMITTED", "PUBLISHED", "COMPLETED",
    "CANCELLED", "DISPUTED",
)


def upgrade():
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("password", sa.String(), nullable=True),
        sa.Column("role", sa.Enum("CREATOR", "EDITOR", "ADMIN", name="userrole"), nullable=False),
        sa.Column("can_login", sa.Boolean(), nullable=False),
        sa.Column("country_code", sa.String(), nullable=False),
        sa.Column("wallet_balance", sa.Float(), nullable=False),
        sa.Column("wallet_locked", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_user_email", "user", ["email"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("brief", sa.String(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=True),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column("deadline", sa.DateTime(), nullable=True),
        sa.Column("creator_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("editor_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=True),
        sa.Column("status", sa.Enum(*ORDER_STATUSES, name="orderstatus"), nullable=False),
        sa.Column(
            "payment_status",
            sa.Enum("PENDING", "PAID", "FAILED", name="orderpaymentstatus"),
            nullable=False,
        ),
        sa.Column(
            "payout_status",
            sa.Enum("PENDING", "RELEASED", name="payoutstatus"),
            nullable=False,
        ),
        sa.Column("payment_gateway", sa.String(), nullable=True),
        sa.Column("revision_count", sa.Integer(), nullable=False),
        sa.Column("is_disputed", sa.Boolean(), nullable=False),
        sa.Column("dispute_reason", sa.String(), nullable=True),
        sa.Column("dispute_created_at", sa.DateTime(), nullable=True),
        sa.Column("youtube_video_id", sa.String(), nullable=True),
        sa.Column("youtube_video_url", sa.String(), nullable=True),
        sa.Column("assigned_at", sa.DateTime(), nullable=True),
        sa.Column("published_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_orders_creator_id", "orders", ["creator_id"])
    op.create_index("ix_orders_editor_id", "orders", ["editor_id"])
    op.create_index("ix_orders_status", "orders", ["status"])

    op.create_table(
        "order_application",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("editor_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column(
            "status",
            sa.Enum("APPLIED", "APPROVED", "REJECTED", name="applicationstatus"),
            nullable=False,
        ),
        sa.Column("deposit_amount", sa.Float(), nullable=False),
        sa.Column("deposit_deadline", sa.DateTime(), nullable=True),
        sa.Column(
            "deposit_status",
            sa.Enum("PENDING", "LOCKED", "RELEASED", "FORFEITED", name="depositstatus"),
            nullable=False,
        ),
        sa.Column("deposit_locked_at", sa.DateTime(), nullable=True),
        sa.Column("deposit_released_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("order_id", "editor_id", name="uq_application_order_editor"),
    )
    op.create_index("ix_order_application_order_id", "order_application", ["order_id"])
    op.create_index("ix_order_application_editor_id", "order_application", ["editor_id"])

    # one approved editor per order
    op.create_index(
        "uq_application_one_approved",
        "order_application",
        ["order_id"],
        unique=True,
        postgresql_where=sa.text("status = 'APPROVED'"),
        sqlite_where=sa.text("status = 'APPROVED'"),
    )

    op.create_table(
        "wallet_transaction",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=True),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("order_application.id"),
            nullable=True,
        ),
        sa.Column(
            "type",
            sa.Enum(
                "DEPOSIT_LOCK", "DEPOSIT_RELEASE", "DEPOSIT_FORFEIT", "PAYOUT",
                name="wallettransactiontype",
            ),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("idempotency_key", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_wallet_transaction_user_id", "wallet_transaction", ["user_id"])
    op.create_index("ix_wallet_transaction_order_id", "wallet_transaction", ["order_id"])
    op.create_index(
        "ix_wallet_transaction_application_id", "wallet_transaction", ["application_id"]
    )
    op.create_index(
        "ix_wallet_transaction_idempotency_key",
        "wallet_transaction",
        ["idempotency_key"],
        unique=True,
    )

    op.create_table(
        "notification",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column(
            "type",
            sa.Enum("SYSTEM", "ORDER", "APPLICATION", "PAYMENT", name="notificationtype"),
            nullable=False,
        ),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.String(), nullable=False),
        sa.Column("link", sa.String(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_notification_user_id", "notification", ["user_id"])
    op.create_index("ix_notification_is_read", "notification", ["is_read"])

    op.create_table(
        "payment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column(
            "application_id",
            sa.Integer(),
            sa.ForeignKey("order_application.id"),
            nullable=True,
        ),
        sa.Column(
            "kind",
            sa.Enum("CREATOR_PAYMENT", "EDITOR_DEPOSIT", name="paymentkind"),
            nullable=False,
        ),
        sa.Column(
            "gateway",
            sa.Enum("RAZORPAY", "STRIPE", name="paymentgatewayname"),
            nullable=False,
        ),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "PENDING", "PROCESSING", "COMPLETED", "FAILED", "REFUNDED",
                name="paymentstatus",
            ),
            nullable=False,
        ),
        sa.Column("gateway_order_id", sa.String(), nullable=True),
        sa.Column("gateway_payment_id", sa.String(), nullable=True),
        sa.Column("gateway_signature", sa.String(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("released_at", sa.DateTime(), nullable=True),
        sa.Column("release_note", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payment_order_id", "payment", ["order_id"])
    op.create_index("ix_payment_user_id", "payment", ["user_id"])
    op.create_index("ix_payment_application_id", "payment", ["application_id"])
    op.create_index("ix_payment_gateway_order_id", "payment", ["gateway_order_id"], unique=True)
    op.create_index(
        "ix_payment_gateway_payment_id", "payment", ["gateway_payment_id"], unique=True
    )

    op.create_table(
        "youtube_account",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id"), nullable=False),
        sa.Column("channel_id", sa.String(), nullable=True),
        sa.Column("access_token_enc", sa.String(), nullable=False),
        sa.Column("refresh_token_enc", sa.String(), nullable=False),
        sa.Column("scope", sa.String(), nullable=True),
        sa.Column("token_type", sa.String(), nullable=True),
        sa.Column("expiry_date", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_youtube_account_user_id", "youtube_account", ["user_id"], unique=True)

    op.create_table(
        "order_event",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("event_type", sa.String(), nullable=False),
        sa.Column("label", sa.String(), nullable=False),
        sa.Column("meta", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False, server_default="system"),
    )

    # indexes for fast timeline queries
    op.create_index("ix_order_event_order_id", "order_event", ["order_id"])
    op.create_index("ix_order_event_event_type", "order_event", ["event_type"])


def downgrade():
    op.drop_table("order_event")
    op.drop_table("youtube_account")
    op.drop_table("payment")
    op.drop_table("notification")
    op.drop_table("wallet_transaction")
    op.drop_index("uq_application_one_approved", table_name="order_application")
    op.drop_table("order_application")
    op.drop_table("orders")
    op.drop_table("user")

    bind = op.get_bind()
    for enum_name in (
        "notificationtype", "paymentstatus", "paymentgatewayname", "paymentkind",
        "wallettransactiontype", "depositstatus", "applicationstatus",
        "payoutstatus", "orderpaymentstatus", "orderstatus", "userrole",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
