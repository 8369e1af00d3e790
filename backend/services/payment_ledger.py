"""
Payment Ledger — durable, idempotent store of verified payments.

Every accepted signature first claims a row in ledger_signatures through a
conditional insert (INSERT ... ON CONFLICT DO NOTHING). Only the caller whose
insert lands (rowcount == 1) writes the proof/tip row and bumps counters, all
inside the caller's session transaction. Concurrent duplicates are therefore
resolved by the database, never by a read-then-insert in Python.

find_by_signature() exists for friendly duplicate messages only.

Counters written here and nowhere else:
    accounts.subscriber_count / tip_count / tip_volume
    content_items.tip_count / tip_volume
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import delete, distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from database import conditional_insert
from domain.constants import AMOUNT_DECIMALS
from domain.enums import LedgerKind, RecordOutcome

logger = logging.getLogger(__name__)

_QUANTUM = Decimal(1).scaleb(-AMOUNT_DECIMALS)  # 0.000001

RECENT_TIPS_LIMIT = 20
CONTENT_TIPS_LIMIT = 50


def to_amount(value) -> Decimal:
    """Coerce to a Decimal with exactly 6 fractional digits."""
    return Decimal(str(value)).quantize(_QUANTUM, rounding=ROUND_HALF_UP)


def format_amount(value) -> str:
    return f"{to_amount(value or 0):.{AMOUNT_DECIMALS}f}"


def compute_fee(amount, fee_rate) -> Decimal:
    """round(amount * fee_rate, 6), half-up. 100 @ 0.10 -> 10.000000."""
    return (Decimal(str(amount)) * Decimal(str(fee_rate))).quantize(_QUANTUM, rounding=ROUND_HALF_UP)


# ════════════════════════════════════════════════════════════════════
# Conditional inserts
# ════════════════════════════════════════════════════════════════════


async def _claim_signature(db: AsyncSession, signature: str, kind: LedgerKind) -> bool:
    """Conditional insert keyed by signature. True only for the inserting caller."""
    from db_models import LedgerSignature

    stmt = (
        conditional_insert(db, LedgerSignature)
        .values(signature=signature, kind=kind.value, recorded_at=datetime.utcnow())
        .on_conflict_do_nothing(index_elements=["signature"])
    )
    res = await db.execute(stmt)
    return getattr(res, "rowcount", 0) == 1


async def record_subscription_proof(
    db: AsyncSession,
    *,
    subscriber_id: int,
    target_id: int,
    signature: str,
    amount,
    sender_address: str,
):
    """
    Record a verified subscription payment if its signature is new.

    Returns:
        (RecordOutcome, SubscriptionProof | None)
    """
    from db_models import SubscriptionProof

    if not await _claim_signature(db, signature, LedgerKind.SUBSCRIPTION):
        logger.info(f"Duplicate subscription proof rejected: {signature[:12]}...")
        return RecordOutcome.DUPLICATE, None

    proof = SubscriptionProof(
        subscriber_id=subscriber_id,
        target_id=target_id,
        signature=signature,
        amount=to_amount(amount),
        sender_address=sender_address,
        recorded_at=datetime.utcnow(),
    )
    db.add(proof)
    await db.flush()

    logger.info(
        f"Subscription proof #{proof.id}: account {subscriber_id} -> {target_id} "
        f"({proof.amount} $CREAM, tx {signature[:12]}...)"
    )
    return RecordOutcome.ACCEPTED, proof


async def record_tip(
    db: AsyncSession,
    *,
    tipper_id: int,
    recipient_id: int,
    content_item_id: Optional[int],
    amount,
    fee_amount,
    signature: str,
):
    """
    Record a verified tip if its signature is new, and bump aggregates.

    Returns:
        (RecordOutcome, Tip | None)
    """
    from db_models import Account, ContentItem, Tip

    if not await _claim_signature(db, signature, LedgerKind.TIP):
        logger.info(f"Duplicate tip rejected: {signature[:12]}...")
        return RecordOutcome.DUPLICATE, None

    amount = to_amount(amount)
    tip = Tip(
        tipper_id=tipper_id,
        recipient_id=recipient_id,
        content_item_id=content_item_id,
        amount=amount,
        fee_amount=to_amount(fee_amount),
        signature=signature,
        recorded_at=datetime.utcnow(),
    )
    db.add(tip)
    await db.flush()

    # Atomic increments in the same unit of work as the insert
    await db.execute(
        update(Account)
        .where(Account.id == recipient_id)
        .values(
            tip_count=Account.tip_count + 1,
            tip_volume=Account.tip_volume + amount,
        )
    )
    if content_item_id is not None:
        await db.execute(
            update(ContentItem)
            .where(ContentItem.id == content_item_id)
            .values(
                tip_count=ContentItem.tip_count + 1,
                tip_volume=ContentItem.tip_volume + amount,
            )
        )

    logger.info(
        f"Tip #{tip.id}: account {tipper_id} -> {recipient_id} "
        f"({amount} $CREAM, fee {tip.fee_amount}, tx {signature[:12]}...)"
    )
    return RecordOutcome.ACCEPTED, tip


async def add_subscription_pair(db: AsyncSession, subscriber_id: int, target_id: int) -> bool:
    """
    Conditional insert of the (subscriber, target) pair.

    Returns True only for the call that created the pair; that call alone
    increments the target's subscriber_count.
    """
    from db_models import Account, Subscription

    stmt = (
        conditional_insert(db, Subscription)
        .values(subscriber_id=subscriber_id, target_id=target_id, created_at=datetime.utcnow())
        .on_conflict_do_nothing(index_elements=["subscriber_id", "target_id"])
    )
    res = await db.execute(stmt)
    if getattr(res, "rowcount", 0) != 1:
        return False

    await db.execute(
        update(Account)
        .where(Account.id == target_id)
        .values(subscriber_count=Account.subscriber_count + 1)
    )
    return True


async def remove_subscription_pair(db: AsyncSession, subscriber_id: int, target_id: int) -> bool:
    """Delete the pair; decrement subscriber_count, never below zero."""
    from db_models import Account, Subscription

    res = await db.execute(
        delete(Subscription).where(
            Subscription.subscriber_id == subscriber_id,
            Subscription.target_id == target_id,
        )
    )
    if getattr(res, "rowcount", 0) == 0:
        return False

    await db.execute(
        update(Account)
        .where(Account.id == target_id, Account.subscriber_count > 0)
        .values(subscriber_count=Account.subscriber_count - 1)
    )
    return True


# ════════════════════════════════════════════════════════════════════
# Reads
# ════════════════════════════════════════════════════════════════════


async def find_by_signature(db: AsyncSession, signature: str):
    """Existing ledger entry for a signature, if any. Not a concurrency guard."""
    from db_models import LedgerSignature

    result = await db.execute(
        select(LedgerSignature).where(LedgerSignature.signature == signature)
    )
    return result.scalar_one_or_none()


async def is_subscribed(db: AsyncSession, subscriber_id: int, target_id: int) -> bool:
    from db_models import Subscription

    result = await db.execute(
        select(Subscription.id).where(
            Subscription.subscriber_id == subscriber_id,
            Subscription.target_id == target_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def get_platform_stats(db: AsyncSession) -> dict:
    """Platform-wide tipping and subscription totals."""
    from db_models import Subscription, SubscriptionProof, Tip

    tips = (
        await db.execute(
            select(
                func.count(Tip.id),
                func.coalesce(func.sum(Tip.amount), 0),
                func.coalesce(func.sum(Tip.fee_amount), 0),
                func.count(distinct(Tip.tipper_id)),
                func.count(distinct(Tip.recipient_id)),
            )
        )
    ).one()
    proofs = (
        await db.execute(
            select(
                func.count(SubscriptionProof.id),
                func.coalesce(func.sum(SubscriptionProof.amount), 0),
            )
        )
    ).one()
    active = (await db.execute(select(func.count(Subscription.id)))).scalar_one()

    return {
        "total_tips": tips[0],
        "total_volume": format_amount(tips[1]),
        "total_fees": format_amount(tips[2]),
        "unique_tippers": tips[3],
        "unique_recipients": tips[4],
        "total_subscription_payments": proofs[0],
        "subscription_volume": format_amount(proofs[1]),
        "active_subscriptions": active,
    }


def _tip_row(tip, counterpart_name: str, counterpart_key: str) -> dict:
    return {
        "id": tip.id,
        "amount": format_amount(tip.amount),
        "fee_amount": format_amount(tip.fee_amount),
        "tx_signature": tip.signature,
        "content_item_id": tip.content_item_id,
        "created_at": tip.recorded_at.isoformat() if tip.recorded_at else None,
        counterpart_key: counterpart_name,
    }


async def get_account_stats(db: AsyncSession, account_id: int) -> dict:
    """Tips received and sent by one account, with the 20 most recent of each."""
    from db_models import Account, Tip

    async def _totals(column):
        row = (
            await db.execute(
                select(func.count(Tip.id), func.coalesce(func.sum(Tip.amount), 0)).where(
                    column == account_id
                )
            )
        ).one()
        return {"count": row[0], "volume": format_amount(row[1])}

    counterpart = aliased(Account)

    received_rows = (
        await db.execute(
            select(Tip, counterpart.name)
            .join(counterpart, Tip.tipper_id == counterpart.id)
            .where(Tip.recipient_id == account_id)
            .order_by(Tip.recorded_at.desc(), Tip.id.desc())
            .limit(RECENT_TIPS_LIMIT)
        )
    ).all()
    sent_rows = (
        await db.execute(
            select(Tip, counterpart.name)
            .join(counterpart, Tip.recipient_id == counterpart.id)
            .where(Tip.tipper_id == account_id)
            .order_by(Tip.recorded_at.desc(), Tip.id.desc())
            .limit(RECENT_TIPS_LIMIT)
        )
    ).all()

    received = await _totals(Tip.recipient_id)
    received["recent"] = [_tip_row(t, name, "tipper_name") for t, name in received_rows]
    sent = await _totals(Tip.tipper_id)
    sent["recent"] = [_tip_row(t, name, "recipient_name") for t, name in sent_rows]

    return {"received": received, "sent": sent}


async def get_content_tips(db: AsyncSession, content_item_id: int) -> dict:
    """Tip totals for a content item plus its 50 most recent tips."""
    from db_models import Account, Tip

    totals = (
        await db.execute(
            select(func.count(Tip.id), func.coalesce(func.sum(Tip.amount), 0)).where(
                Tip.content_item_id == content_item_id
            )
        )
    ).one()
    rows = (
        await db.execute(
            select(Tip, Account.name)
            .join(Account, Tip.tipper_id == Account.id)
            .where(Tip.content_item_id == content_item_id)
            .order_by(Tip.recorded_at.desc(), Tip.id.desc())
            .limit(CONTENT_TIPS_LIMIT)
        )
    ).all()

    return {
        "tip_count": totals[0],
        "tip_volume": format_amount(totals[1]),
        "tips": [_tip_row(t, name, "tipper_name") for t, name in rows],
    }


async def reconcile_counters(db: AsyncSession) -> None:
    """
    Recompute every aggregate counter from the underlying records.

    Maintenance path only; the write path keeps counters current.
    Caller commits.
    """
    from db_models import Account, ContentItem, Subscription, Tip

    await db.execute(
        update(Account).values(
            subscriber_count=select(func.count(Subscription.id))
            .where(Subscription.target_id == Account.id)
            .scalar_subquery(),
            tip_count=select(func.count(Tip.id))
            .where(Tip.recipient_id == Account.id)
            .scalar_subquery(),
            tip_volume=select(func.coalesce(func.sum(Tip.amount), 0))
            .where(Tip.recipient_id == Account.id)
            .scalar_subquery(),
        ),
        execution_options={"synchronize_session": False},
    )
    await db.execute(
        update(ContentItem).values(
            tip_count=select(func.count(Tip.id))
            .where(Tip.content_item_id == ContentItem.id)
            .scalar_subquery(),
            tip_volume=select(func.coalesce(func.sum(Tip.amount), 0))
            .where(Tip.content_item_id == ContentItem.id)
            .scalar_subquery(),
        ),
        execution_options={"synchronize_session": False},
    )
    logger.info("Aggregate counters reconciled from ledger records")
