"""EXP ledger, token conversions, voucher redemptions and flashcard reviews.

Creates users, exp_transactions, user_video_progress, token_conversions,
vouchers, voucher_redeems and user_flashcard_reviews.

Revision ID: 001_rindo_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "001_rindo_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Users ---
    op.create_table(
        "users",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("wallet_address", sa.String(42), nullable=False, unique=True),
        sa.Column("email", sa.String(320), nullable=True),
        sa.Column("name", sa.String(128), nullable=True),
        sa.Column("current_exp", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("total_exp_earned", sa.BigInteger, nullable=False, server_default="0"),
        sa.Column("conversion_in_flight", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.CheckConstraint("current_exp >= 0", name="ck_users_current_exp_non_negative"),
    )

    # --- Reward attempts ---
    op.create_table(
        "exp_transactions",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("source_id", sa.BigInteger, nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("credited", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index(
        "idx_exp_tx_user_type_source",
        "exp_transactions",
        ["user_id", "type", "source_id", "created_at"],
    )

    # --- Video completion markers ---
    op.create_table(
        "user_video_progress",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("video_id", sa.BigInteger, nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
        sa.UniqueConstraint("user_id", "video_id", name="uq_user_video"),
    )

    # --- Token conversions ---
    op.create_table(
        "token_conversions",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("exp_amount", sa.BigInteger, nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="confirmed"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("idx_token_conversions_user", "token_conversions", ["user_id", sa.text("created_at DESC")])

    # --- Voucher catalog ---
    op.create_table(
        "vouchers",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("nft_token_id", sa.BigInteger, nullable=False, unique=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("partner_name", sa.String(200), nullable=False),
        sa.Column("discount", sa.String(64), nullable=False),
        sa.Column("cost_in_rindo", sa.BigInteger, nullable=False),
        sa.Column("metadata_uri", sa.Text, nullable=True),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
    )

    # --- Voucher redemptions ---
    op.create_table(
        "voucher_redeems",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("voucher_id", sa.BigInteger, nullable=False),
        sa.Column("nft_token_id", sa.BigInteger, nullable=False),
        sa.Column("tx_hash", sa.String(66), nullable=False, unique=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="confirmed"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("NOW()")),
    )
    op.create_index("idx_voucher_redeems_user", "voucher_redeems", ["user_id", sa.text("created_at DESC")])

    # --- Flashcard reviews ---
    op.create_table(
        "user_flashcard_reviews",
        sa.Column("id", sa.BigInteger, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("flashcard_id", sa.BigInteger, nullable=False),
        sa.Column("difficulty", sa.String(16), nullable=False),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("next_review_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("user_id", "flashcard_id", name="uq_user_flashcard"),
    )
    op.create_index("idx_flashcard_reviews_due", "user_flashcard_reviews", ["user_id", "next_review_at"])


def downgrade() -> None:
    op.drop_table("user_flashcard_reviews")
    op.drop_table("voucher_redeems")
    op.drop_table("vouchers")
    op.drop_table("token_conversions")
    op.drop_table("user_video_progress")
    op.drop_table("exp_transactions")
    op.drop_table("users")
