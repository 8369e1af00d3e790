"""
Account subscription endpoints.

Endpoints:
    POST   /accounts/{name}/subscribe     — Subscribe with a verified $CREAM payment
    DELETE /accounts/{name}/subscribe     — Unsubscribe (payment proofs are kept)
    GET    /accounts/{name}/subscription  — Whether the caller is subscribed
"""
import logging

from fastapi import APIRouter, Depends, Path
from sqlalchemy.ext.asyncio import AsyncSession

from deps import account_from_path, get_db, get_transfer_verifier, require_account
from domain.responses import success_response
from models import SubscribeRequest
from services import payment_ledger, subscription_service
from services.transfer_verifier import TransferVerifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/accounts", tags=["subscriptions"])


# ── POST /accounts/{name}/subscribe ────────────────────────────────
@router.post("/{name}/subscribe")
async def subscribe(
    body: SubscribeRequest,
    name: str = Path(..., min_length=1, max_length=32),
    caller=Depends(require_account),
    verifier: TransferVerifier = Depends(get_transfer_verifier),
    db: AsyncSession = Depends(get_db),
):
    """
    Subscribe the caller to `{name}`.

    The body carries the signature of a $CREAM transfer of at least the
    target's subscription price to the target's wallet.
    """
    result = await subscription_service.verify_and_record_subscription(
        db, verifier, subscriber=caller, target_name=name, signature=body.tx_id,
    )
    return success_response(result)


# ── DELETE /accounts/{name}/subscribe ──────────────────────────────
@router.delete("/{name}/subscribe")
async def unsubscribe(
    target=Depends(account_from_path),
    caller=Depends(require_account),
    db: AsyncSession = Depends(get_db),
):
    result = await subscription_service.unsubscribe(db, subscriber=caller, target=target)
    return success_response(result)


# ── GET /accounts/{name}/subscription ──────────────────────────────
@router.get("/{name}/subscription")
async def subscription_status(
    target=Depends(account_from_path),
    caller=Depends(require_account),
    db: AsyncSession = Depends(get_db),
):
    subscribed = await payment_ledger.is_subscribed(db, caller.id, target.id)
    return success_response({
        "account": target.name,
        "is_subscribed": subscribed,
        "subscription_price": payment_ledger.format_amount(target.subscription_price or 0),
    })
