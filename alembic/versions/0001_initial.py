"""initial

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "transactions",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("transaction_code", sa.String(100), nullable=False),
        sa.Column("gateway_transaction_id", sa.String(100), nullable=True),
        sa.Column("payment_status", sa.Enum("pending", "paid", "failed", name="paymentstatus"), nullable=False, server_default="pending"),
        sa.Column("gateway_transaction_status", sa.String(50), nullable=True),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("total_amount", sa.Numeric(15, 2), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=False, server_default="Anonymous"),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("customer_email", sa.String(255), nullable=True),
        sa.Column("payment_token", sa.String(255), nullable=True),
        sa.Column("payment_url", sa.String(512), nullable=True),
        sa.Column("invoice_url", sa.String(512), nullable=True),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_transactions_id", "transactions", ["id"], unique=False)
    op.create_index("ix_transactions_transaction_code", "transactions", ["transaction_code"], unique=True)
    op.create_index("ix_transactions_gateway_transaction_id", "transactions", ["gateway_transaction_id"], unique=False)
    op.create_index("ix_transactions_status_created", "transactions", ["payment_status", "created_at"], unique=False)

    op.create_table(
        "webhook_logs",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("order_id", sa.String(100), nullable=False),
        sa.Column("transaction_status", sa.String(50), nullable=False, server_default="unknown"),
        sa.Column("status_code", sa.String(8), nullable=True),
        sa.Column("payment_type", sa.String(50), nullable=False, server_default="unknown"),
        sa.Column("fraud_status", sa.String(32), nullable=True),
        sa.Column("amount", sa.Numeric(15, 2), nullable=False, server_default="0"),
        sa.Column("signature_valid", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("raw_payload", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
    )
    op.create_index("ix_webhook_logs_id", "webhook_logs", ["id"], unique=False)
    op.create_index("ix_webhook_logs_order_id", "webhook_logs", ["order_id"], unique=False)


def downgrade():
    op.drop_index("ix_webhook_logs_order_id", table_name="webhook_logs")
    op.drop_index("ix_webhook_logs_id", table_name="webhook_logs")
    op.drop_table("webhook_logs")
    op.drop_index("ix_transactions_status_created", table_name="transactions")
    op.drop_index("ix_transactions_gateway_transaction_id", table_name="transactions")
    op.drop_index("ix_transactions_transaction_code", table_name="transactions")
    op.drop_index("ix_transactions_id", table_name="transactions")
    op.drop_table("transactions")
    sa.Enum(name="paymentstatus").drop(op.get_bind(), checkfirst=True)
