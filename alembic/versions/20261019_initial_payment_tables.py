"""initial payment tables

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "payment_intents",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("tracking_code", sa.String(length=32), nullable=False),
        sa.Column("channel", sa.Enum("manual", "gateway", name="paymentchannel"), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("user_name", sa.String(length=255), nullable=False),
        sa.Column("user_email", sa.String(length=255), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("order_ids", sa.JSON, nullable=False),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("description", sa.String(length=255), nullable=False),
        sa.Column(
            "status",
            sa.Enum("pending", "completed", "failed", name="paymentintentstatus"),
            nullable=False,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("paid_amount", sa.Integer, nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fail_reason", sa.String(length=255), nullable=True),
        sa.Column("order_code", sa.BigInteger, nullable=True, unique=True),
        sa.Column("payment_link_id", sa.String(length=64), nullable=True),
        sa.Column("checkout_url", sa.String(length=500), nullable=True),
        sa.Column("qr_code", sa.String(length=1000), nullable=True),
        sa.Column("bin", sa.String(length=16), nullable=True),
        sa.Column("account_number", sa.String(length=64), nullable=True),
        sa.Column("account_name", sa.String(length=255), nullable=True),
        sa.Column("transaction_reference", sa.String(length=128), nullable=True),
        sa.Column("counter_account_name", sa.String(length=255), nullable=True),
        sa.Column("counter_account_number", sa.String(length=64), nullable=True),
        sa.Column("counter_account_bank_name", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("amount > 0", name="ck_payment_intents_positive_amount"),
    )
    op.create_index("ix_payment_intents_tracking_code", "payment_intents", ["tracking_code"])
    op.create_index("ix_payment_intents_tracking_status", "payment_intents", ["tracking_code", "status"])
    op.create_index("ix_payment_intents_user_status", "payment_intents", ["user_id", "status"])
    op.create_index("ix_payment_intents_status_created", "payment_intents", ["status", "created_at"])

    op.create_table(
        "daily_orders",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("date", sa.String(length=10), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("user_name", sa.String(length=255), nullable=False),
        sa.Column("user_email", sa.String(length=255), nullable=False),
        sa.Column("menu_item_id", sa.String(length=64), nullable=False),
        sa.Column("menu_item_name", sa.String(length=255), nullable=False),
        sa.Column("menu_item_price", sa.Integer, nullable=False),
        sa.Column("quantity", sa.Integer, nullable=False),
        sa.Column("note", sa.String(length=500), nullable=True),
        sa.Column("is_paid", sa.Boolean, nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("quantity > 0", name="ck_daily_orders_positive_quantity"),
    )
    op.create_index("ix_daily_orders_date_paid", "daily_orders", ["date", "is_paid"])
    op.create_index("ix_daily_orders_user_paid", "daily_orders", ["user_id", "is_paid"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("actor", sa.String(length=100), nullable=False),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity", sa.String(length=100), nullable=False),
        sa.Column("entity_id", sa.Integer, nullable=False),
        sa.Column("data_json", sa.JSON, nullable=False),
        sa.Column("at", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_daily_orders_user_paid", table_name="daily_orders")
    op.drop_index("ix_daily_orders_date_paid", table_name="daily_orders")
    op.drop_table("daily_orders")
    op.drop_index("ix_payment_intents_status_created", table_name="payment_intents")
    op.drop_index("ix_payment_intents_user_status", table_name="payment_intents")
    op.drop_index("ix_payment_intents_tracking_status", table_name="payment_intents")
    op.drop_index("ix_payment_intents_tracking_code", table_name="payment_intents")
    op.drop_table("payment_intents")
