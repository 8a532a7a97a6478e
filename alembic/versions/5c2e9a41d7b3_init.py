"""init

Revision ID: 5c2e9a41d7b3
Revises: 
Create Date: 2026-10-17 10:12:40.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c2e9a41d7b3'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "request_metrics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("subject_id", sa.String(length=128), nullable=False),
        sa.Column("method", sa.String(length=16), nullable=False),
        sa.Column("path", sa.Text(), nullable=False),
        sa.Column("status_code", sa.Integer(), nullable=True),
        sa.Column("elapsed_ms", sa.Integer(), nullable=False),
        sa.Column("captured_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("client_ip", sa.String(length=64), nullable=True),
        sa.Column("user_agent", sa.Text(), nullable=True),
    )
    op.create_index("ix_request_metrics_subject_id", "request_metrics", ["subject_id"], unique=False)
    op.create_index("ix_request_metrics_path", "request_metrics", ["path"], unique=False)
    op.create_index("ix_request_metrics_captured_at", "request_metrics", ["captured_at"], unique=False)
    op.create_index(
        "ix_request_metrics_subject_captured", "request_metrics", ["subject_id", "captured_at"], unique=False
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=32), primary_key=True, nullable=False),
        sa.Column("customer", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=False),
        sa.Column("address_street", sa.String(length=255), nullable=False),
        sa.Column("address_number", sa.String(length=32), nullable=False),
        sa.Column("address_district", sa.String(length=255), nullable=False),
        sa.Column("address_reference", sa.String(length=255), nullable=False),
        sa.Column("order_type", sa.String(length=32), nullable=False),
        sa.Column("payment_method", sa.String(length=64), nullable=False),
        sa.Column("delivery_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("estimated_delivery_minutes", sa.Integer(), nullable=False),
        sa.Column("courier_id", sa.String(length=128), nullable=False),
        sa.Column("courier_name", sa.String(length=255), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("created_by", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_created_by", "orders", ["created_by"], unique=False)
    op.create_index("ix_orders_created_at", "orders", ["created_at"], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("ix_orders_created_by", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_request_metrics_subject_captured", table_name="request_metrics")
    op.drop_index("ix_request_metrics_captured_at", table_name="request_metrics")
    op.drop_index("ix_request_metrics_path", table_name="request_metrics")
    op.drop_index("ix_request_metrics_subject_id", table_name="request_metrics")
    op.drop_table("request_metrics")
