"""
Subscription Service — paid subscriptions gated by an on-chain $CREAM transfer.

subscribe():
    1. Reject self-subscription and targets without a positive price
    2. Verify the transfer (target wallet, price as minimum) on Solana
    3. Record the SubscriptionProof (signature globally unique)
    4. Conditionally insert the (subscriber, target) pair; only the call that
       creates it bumps subscriber_count, later calls report already_subscribed

Steps 3-4 are one unit of work: any failure rolls both back. A payment made
while already subscribed is still recorded as a proof.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from config import settings
from domain.enums import RecordOutcome, SubscriptionAction
from domain.errors import (
    BadRequestError,
    DuplicateTransactionError,
    ReferencedResourceMissingError,
    SelfReferentialError,
)
from domain.payments import TransferClaim
from services import directory_service, payment_ledger
from services.transfer_verifier import TransferVerifier, ensure_valid
from utils.validators import validate_signature, validate_solana_address

logger = logging.getLogger(__name__)


async def subscribe(
    db: AsyncSession,
    verifier: TransferVerifier,
    *,
    subscriber,
    target,
    signature: str,
) -> dict:
    """
    Subscribe `subscriber` to `target` using the payment in `signature`.

    Returns:
        dict: {action, amount, sender, tx_verified}

    Raises:
        SelfReferentialError, BadRequestError, DuplicateTransactionError,
        NotFoundOnChainError, TransactionFailedOnChainError,
        NoMatchingTransferError, UpstreamUnavailableError
    """
    if subscriber.id == target.id:
        raise SelfReferentialError("Cannot subscribe to yourself")

    price = payment_ledger.to_amount(target.subscription_price or 0)
    if price <= 0:
        raise BadRequestError(
            "This account has not set a subscription price",
            details={"account": target.name},
        )

    validate_solana_address(target.wallet_address)
    validate_signature(signature)

    # Friendly early exit only; the conditional insert below is authoritative
    if await payment_ledger.find_by_signature(db, signature):
        raise DuplicateTransactionError(signature)

    # No transaction stays open across the chain call
    await db.commit()

    result = ensure_valid(
        await verifier.verify(
            TransferClaim(
                signature=signature,
                recipient_address=target.wallet_address,
                token_mint=settings.cream_token_mint,
                minimum_amount=price,
            )
        ),
        signature,
    )

    try:
        outcome, _ = await payment_ledger.record_subscription_proof(
            db,
            subscriber_id=subscriber.id,
            target_id=target.id,
            signature=signature,
            amount=result.amount,
            sender_address=result.sender_address,
        )
        if outcome == RecordOutcome.DUPLICATE:
            raise DuplicateTransactionError(signature)

        created = await payment_ledger.add_subscription_pair(db, subscriber.id, target.id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    action = SubscriptionAction.SUBSCRIBED if created else SubscriptionAction.ALREADY_SUBSCRIBED
    logger.info(
        f"Subscription {subscriber.name} -> {target.name}: {action.value} "
        f"({result.amount} $CREAM, tx {signature[:12]}...)"
    )
    return {
        "action": action.value,
        "amount": payment_ledger.format_amount(result.amount),
        "sender": result.sender_address,
        "tx_verified": True,
    }


async def unsubscribe(db: AsyncSession, *, subscriber, target) -> dict:
    """Remove the relationship. Payment proofs are kept."""
    try:
        removed = await payment_ledger.remove_subscription_pair(db, subscriber.id, target.id)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    action = SubscriptionAction.UNSUBSCRIBED if removed else SubscriptionAction.NOT_SUBSCRIBED
    logger.info(f"Unsubscribe {subscriber.name} -> {target.name}: {action.value}")
    return {"action": action.value}



async def verify_and_record_subscription(
    db: AsyncSession,
    verifier: TransferVerifier,
    *,
    subscriber,
    target_name: str,
    signature: str,
) -> dict:
    """Entry point for the HTTP layer: resolves the target by name."""
    target = await directory_service.get_account_by_name(db, target_name)
    if target is None:
        raise ReferencedResourceMissingError("Account", target_name)
    return await subscribe(db, verifier, subscriber=subscriber, target=target, signature=signature)
