"""initial marketplace schema: users, datasets, transactions

Revision ID: 0001_initial
Revises:
"""

import sqlalchemy as sa
from alembic import op

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(18, 8)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("email", sa.String(254), nullable=False),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("wallet_address", sa.String(42), nullable=False),
        sa.Column("password_hash", sa.String(128), nullable=False),
        sa.Column("bio", sa.String(500), nullable=True),
        sa.Column("avatar", sa.Text(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=False),
        sa.Column("role", sa.String(16), server_default="user", nullable=False),
        sa.Column("total_sales", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_purchases", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_earnings", MONEY, server_default="0", nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role in ('user', 'admin')", name="ck_users_role"),
        sa.CheckConstraint(
            "total_sales >= 0 AND total_purchases >= 0 AND total_earnings >= 0",
            name="ck_users_counters_non_negative",
        ),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)
    op.create_index("ix_users_wallet_address", "users", ["wallet_address"], unique=True)
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "datasets",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("seller_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("description", sa.String(2000), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), server_default="ETH", nullable=False),
        sa.Column("tags", sa.JSON(), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("file_name", sa.String(255), nullable=False),
        sa.Column("file_path", sa.Text(), nullable=False),
        sa.Column("file_type", sa.String(8), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column("downloads", sa.Integer(), server_default="0", nullable=False),
        sa.Column("views", sa.Integer(), server_default="0", nullable=False),
        sa.Column("rating", sa.Float(), server_default="0", nullable=False),
        sa.Column("review_count", sa.Integer(), server_default="0", nullable=False),
        *_timestamps(),
        sa.CheckConstraint("price >= 0 AND price <= 1000", name="ck_datasets_price_range"),
        sa.CheckConstraint("file_size >= 0", name="ck_datasets_file_size"),
        sa.CheckConstraint("downloads >= 0 AND views >= 0 AND review_count >= 0", name="ck_datasets_counters"),
        sa.CheckConstraint("rating >= 0 AND rating <= 5", name="ck_datasets_rating"),
    )
    op.create_index("ix_datasets_seller", "datasets", ["seller_id"])
    op.create_index("ix_datasets_category", "datasets", ["category"])
    op.create_index("ix_datasets_active_created", "datasets", ["is_active", "created_at"])
    op.create_index("ix_datasets_price", "datasets", ["price"])
    op.create_index("ix_datasets_downloads", "datasets", ["downloads"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.Uuid(), primary_key=True, nullable=False),
        sa.Column("buyer_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("seller_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("dataset_id", sa.Uuid(), sa.ForeignKey("datasets.id", ondelete="SET NULL"), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), server_default="ETH", nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("payment_method", sa.String(32), nullable=False),
        sa.Column("processing_fee", MONEY, server_default="0", nullable=False),
        sa.Column("blockchain_tx_hash", sa.String(66), nullable=True),
        sa.Column("block_number", sa.BigInteger(), nullable=True),
        sa.Column("gas_used", sa.BigInteger(), nullable=True),
        sa.Column("gas_fee", MONEY, nullable=True),
        sa.Column("stats_propagated", sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount >= 0", name="ck_transactions_amount"),
        sa.CheckConstraint("status in ('pending', 'completed', 'failed', 'refunded')", name="ck_transactions_status"),
    )
    op.create_index(
        "uq_transactions_buyer_dataset_completed",
        "transactions",
        ["buyer_id", "dataset_id"],
        unique=True,
        postgresql_where=sa.text("status = 'completed'"),
        sqlite_where=sa.text("status = 'completed'"),
    )
    op.create_index("ix_transactions_buyer_status", "transactions", ["buyer_id", "status"])
    op.create_index("ix_transactions_seller_status", "transactions", ["seller_id", "status"])
    op.create_index("ix_transactions_buyer_created", "transactions", ["buyer_id", "created_at"])
    op.create_index("ix_transactions_seller_created", "transactions", ["seller_id", "created_at"])
    op.create_index("ix_transactions_dataset", "transactions", ["dataset_id"])
    op.create_index("ix_transactions_tx_hash", "transactions", ["blockchain_tx_hash"])


def downgrade():
    op.drop_table("transactions")
    op.drop_table("datasets")
    op.drop_table("users")
