"""
SQLAlchemy ORM models for the payment verification service.

Tables:
    accounts             — registered participants (owned by the account service)
    content_items        — posts that tips may reference (owned by the content service)
    ledger_signatures    — one row per accepted on-chain signature (global dedup key)
    subscription_proofs  — verified subscription payments
    subscriptions        — live subscriber -> target relationships
    tips                 — verified tips with platform fee

Counters on accounts/content_items are written only by services/payment_ledger.py.
"""
from datetime import datetime

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, ForeignKey,
    UniqueConstraint, Index,
)

from database import Base

# $CREAM amounts carry up to 6 fractional digits
AMOUNT = Numeric(20, 6)


class Account(Base):
    """Participants. Registration and profile fields live elsewhere."""
    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(32), unique=True, nullable=False, index=True)
    wallet_address = Column(String(44), nullable=False, index=True)
    subscription_price = Column(AMOUNT, nullable=False, default=0)

    # Aggregates (ledger-owned)
    subscriber_count = Column(Integer, nullable=False, default=0)
    tip_count = Column(Integer, nullable=False, default=0)
    tip_volume = Column(AMOUNT, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)


class ContentItem(Base):
    """Tippable content. Only existence and tip aggregates matter here."""
    __tablename__ = "content_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    author_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(300), nullable=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    tip_count = Column(Integer, nullable=False, default=0)
    tip_volume = Column(AMOUNT, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)


class LedgerSignature(Base):
    """
    Global idempotency table for on-chain signatures.

    A signature is accepted at most once across subscriptions and tips.
    The primary key is the conflict target of the conditional insert.
    """
    __tablename__ = "ledger_signatures"

    signature = Column(String(128), primary_key=True)
    kind = Column(String(20), nullable=False)  # "subscription" | "tip"
    recorded_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class SubscriptionProof(Base):
    """Verified payment behind a subscribe call. Kept after unsubscribe."""
    __tablename__ = "subscription_proofs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    target_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    signature = Column(String(128), unique=True, nullable=False, index=True)
    amount = Column(AMOUNT, nullable=False)
    sender_address = Column(String(44), nullable=False)
    recorded_at = Column(DateTime, default=datetime.utcnow, index=True)


class Subscription(Base):
    """Live subscriber -> target relationship. One row per pair."""
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    subscriber_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    target_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("subscriber_id", "target_id", name="uq_subscription_pair"),
    )


class Tip(Base):
    """Verified tip. fee_amount = round(amount * fee_rate, 6)."""
    __tablename__ = "tips"

    id = Column(Integer, primary_key=True, autoincrement=True)
    tipper_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    recipient_id = Column(Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    content_item_id = Column(
        Integer, ForeignKey("content_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount = Column(AMOUNT, nullable=False)
    fee_amount = Column(AMOUNT, nullable=False)
    signature = Column(String(128), unique=True, nullable=False, index=True)
    recorded_at = Column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        # Recent tips received / sent, newest first
        Index("ix_tips_recipient_recorded", "recipient_id", "recorded_at"),
        Index("ix_tips_tipper_recorded", "tipper_id", "recorded_at"),
    )
