"""ORM models for the EXP ledger, conversions, redemptions and flashcard reviews.

Every table here is owned by this service. Balances live only on ``users`` and
are changed with conditional arithmetic updates, never by writing back a value
read earlier in the request.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rindo.db.base import Base, BigIntPK


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class User(Base):
    """User account keyed by lower-cased wallet address."""

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("current_exp >= 0", name="ck_users_current_exp_non_negative"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    wallet_address: Mapped[str] = mapped_column(String(42), unique=True, nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    current_exp: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    total_exp_earned: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0, server_default="0")
    # Set while a conversion is between balance check and debit; at most one mint per account at a time.
    conversion_in_flight: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Reward ledger
# ---------------------------------------------------------------------------


class ExpTransaction(Base):
    """One row per attempt to earn EXP, written before the duplicate check.

    ``credited`` flips to True only in the transaction that increments the balance.
    """

    __tablename__ = "exp_transactions"
    __table_args__ = (
        Index("idx_exp_tx_user_type_source", "user_id", "type", "source_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    source_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    credited: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


class UserVideoProgress(Base):
    """Permanent completion marker; presence blocks further video_complete credits."""

    __tablename__ = "user_video_progress"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_user_video"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    video_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Conversions and redemptions
# ---------------------------------------------------------------------------


class TokenConversion(Base):
    """Confirmed EXP -> RINDO mint. Immutable once written."""

    __tablename__ = "token_conversions"
    __table_args__ = (
        Index("idx_token_conversions_user", "user_id", text("created_at DESC")),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    exp_amount: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="confirmed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    user: Mapped[User] = relationship("User")


class Voucher(Base):
    """Voucher catalog entry mapped to an ERC-1155 token id on the voucher contract."""

    __tablename__ = "vouchers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    nft_token_id: Mapped[int] = mapped_column(BigInteger, unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    partner_name: Mapped[str] = mapped_column(String(200), nullable=False)
    discount: Mapped[str] = mapped_column(String(64), nullable=False)
    cost_in_rindo: Mapped[int] = mapped_column(BigInteger, nullable=False)
    metadata_uri: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")


class VoucherRedeem(Base):
    """Off-chain mirror of a client-confirmed voucher NFT mint. The chain is the authority."""

    __tablename__ = "voucher_redeems"
    __table_args__ = (
        Index("idx_voucher_redeems_user", "user_id", text("created_at DESC")),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    voucher_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    nft_token_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="confirmed")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)


# ---------------------------------------------------------------------------
# Flashcards
# ---------------------------------------------------------------------------


class UserFlashcardReview(Base):
    """Latest spaced-repetition schedule per (user, flashcard). Upserted on every review."""

    __tablename__ = "user_flashcard_reviews"
    __table_args__ = (
        UniqueConstraint("user_id", "flashcard_id", name="uq_user_flashcard"),
        Index("idx_flashcard_reviews_due", "user_id", "next_review_at"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    flashcard_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(16), nullable=False)
    last_reviewed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    next_review_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
