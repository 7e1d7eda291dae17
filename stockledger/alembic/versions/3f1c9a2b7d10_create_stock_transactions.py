"""create branches, skus and stock_transactions

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-02-02 09:12:44.105312
"""
from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TRANSACTION_TYPES = ("RESTOCK", "CHECK_OUT", "CHECK_IN", "WASTE", "ADJUSTMENT")


def upgrade() -> None:
    op.create_table(
        "branches",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_table(
        "skus",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64)),
        sa.Column("pieces_per_packet", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("pieces_per_packet > 0", name="ck_sku_pieces_per_packet_pos"),
    )
    op.create_table(
        "stock_transactions",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("batch_id", sa.String(64)),
        sa.Column("timestamp", sa.BigInteger(), nullable=False),
        sa.Column("date", sa.String(10), nullable=False),
        sa.Column("branch_id", sa.String(64), nullable=False),
        sa.Column("sku_id", sa.String(64), nullable=False),
        sa.Column("type", sa.Enum(*TRANSACTION_TYPES, name="transaction_type"), nullable=False),
        sa.Column("quantity_pieces", sa.Integer(), nullable=False),
        sa.Column("image_urls", sa.JSON(), nullable=False),
        sa.Column("image_url", sa.Text()),
        sa.Column("user_id", sa.String(64)),
        sa.Column("user_name", sa.String(200)),
        sa.Column("deleted_at", sa.BigInteger()),
        sa.Column("deleted_by", sa.String(200)),
    )
    op.create_index("ix_stock_transactions_batch_id", "stock_transactions", ["batch_id"])
    op.create_index("ix_stock_transactions_date_branch", "stock_transactions", ["date", "branch_id"])
    op.create_index("ix_stock_transactions_deleted_at", "stock_transactions", ["deleted_at"])


def downgrade() -> None:
    op.drop_index("ix_stock_transactions_deleted_at", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_date_branch", table_name="stock_transactions")
    op.drop_index("ix_stock_transactions_batch_id", table_name="stock_transactions")
    op.drop_table("stock_transactions")
    sa.Enum(name="transaction_type").drop(op.get_bind(), checkfirst=True)
    op.drop_table("skus")
    op.drop_table("branches")
