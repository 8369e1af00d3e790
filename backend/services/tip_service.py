"""
Tip Service — records $CREAM tips paid through the on-chain tipping program.

The deployed program performs the recipient/treasury split itself, so this
layer only confirms the transaction exists and did not fail; it does not
re-derive amounts from instruction data.

Fee rule:
    fee_amount = round(amount * TIP_FEE_RATE, 6)    (100 -> 10.000000 at 10%)

On acceptance the recipient's tip_count/tip_volume (and the content item's,
when one is referenced) are incremented in the same unit of work.
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.enums import RecordOutcome
from domain.errors import (
    DuplicateTransactionError,
    ReferencedResourceMissingError,
    SelfReferentialError,
)
from services import directory_service, payment_ledger
from services.transfer_verifier import TransferVerifier, ensure_valid
from utils.validators import parse_amount, validate_signature

logger = logging.getLogger(__name__)


def serialize_tip(tip) -> dict:
    return {
        "id": tip.id,
        "tipper_id": tip.tipper_id,
        "recipient_id": tip.recipient_id,
        "content_item_id": tip.content_item_id,
        "amount": payment_ledger.format_amount(tip.amount),
        "fee_amount": payment_ledger.format_amount(tip.fee_amount),
        "tx_signature": tip.signature,
        "created_at": tip.recorded_at.isoformat() if tip.recorded_at else None,
    }


async def tip(
    db: AsyncSession,
    verifier: TransferVerifier,
    *,
    tipper,
    recipient,
    content_item_id: Optional[int],
    amount,
    signature: str,
) -> dict:
    """
    Record a tip from `tipper` to `recipient`.

    Returns:
        dict: serialized tip record

    Raises:
        SelfReferentialError, BadRequestError, ReferencedResourceMissingError,
        DuplicateTransactionError, NotFoundOnChainError,
        TransactionFailedOnChainError, UpstreamUnavailableError
    """
    if tipper.id == recipient.id:
        raise SelfReferentialError("Cannot tip yourself")

    amount = parse_amount(amount)

    if content_item_id is not None and not await directory_service.content_item_exists(db, content_item_id):
        raise ReferencedResourceMissingError("Content item", str(content_item_id))

    fee_amount = payment_ledger.compute_fee(amount, settings.tip_fee_rate)

    validate_signature(signature)

    # Friendly early exit only; the conditional insert below is authoritative
    if await payment_ledger.find_by_signature(db, signature):
        raise DuplicateTransactionError(signature)

    # No transaction stays open across the chain call
    await db.commit()

    ensure_valid(await verifier.verify_settled(signature), signature)

    try:
        outcome, record = await payment_ledger.record_tip(
            db,
            tipper_id=tipper.id,
            recipient_id=recipient.id,
            content_item_id=content_item_id,
            amount=amount,
            fee_amount=fee_amount,
            signature=signature,
        )
        if outcome == RecordOutcome.DUPLICATE:
            raise DuplicateTransactionError(signature)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    return serialize_tip(record)


async def record_tip(
    db: AsyncSession,
    verifier: TransferVerifier,
    *,
    tipper,
    recipient_name: str,
    content_item_id: Optional[int],
    amount,
    signature: str,
) -> dict:
    """Entry point for the HTTP layer: resolves the recipient by name."""
    recipient = await directory_service.get_account_by_name(db, recipient_name)
    if recipient is None:
        raise ReferencedResourceMissingError("Recipient account", recipient_name)
    return await tip(
        db,
        verifier,
        tipper=tipper,
        recipient=recipient,
        content_item_id=content_item_id,
        amount=amount,
        signature=signature,
    )


async def get_platform_stats(db: AsyncSession) -> dict:
    return await payment_ledger.get_platform_stats(db)


async def get_account_stats(db: AsyncSession, account) -> dict:
    stats = await payment_ledger.get_account_stats(db, account.id)
    return {
        "account": account.name,
        "subscriber_count": account.subscriber_count,
        **stats,
    }


async def get_content_tips(db: AsyncSession, content_item_id: int) -> dict:
    if not await directory_service.content_item_exists(db, content_item_id):
        raise ReferencedResourceMissingError("Content item", str(content_item_id))
    return {
        "content_item_id": content_item_id,
        **await payment_ledger.get_content_tips(db, content_item_id),
    }
