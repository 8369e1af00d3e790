"""
Tip endpoints — record tips paid on-chain and read tip statistics.

Endpoints:
    POST /tips                      — Record a tip (201)
    GET  /tips/stats                — Platform-wide totals
    GET  /tips/account/{name}       — Tips received and sent by an account
    GET  /tips/content/{id}         — Tips on one content item
"""
import logging

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from deps import account_from_path, get_db, get_transfer_verifier, require_account
from domain.responses import success_response
from models import TipRequest
from services import tip_service
from services.transfer_verifier import TransferVerifier

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/tips", tags=["tips"])


# ── POST /tips ──────────────────────────────────────────────────────
@router.post("", status_code=status.HTTP_201_CREATED)
async def create_tip(
    body: TipRequest,
    caller=Depends(require_account),
    verifier: TransferVerifier = Depends(get_transfer_verifier),
    db: AsyncSession = Depends(get_db),
):
    """
    Record a tip from the caller.

    The tipping program splits the payment on-chain; the transaction only
    has to exist and have succeeded. The platform fee is derived from
    `amount` at the configured rate.
    """
    tip = await tip_service.record_tip(
        db,
        verifier,
        tipper=caller,
        recipient_name=body.recipient_name,
        content_item_id=body.content_item_id,
        amount=body.amount,
        signature=body.tx_signature,
    )
    return success_response(tip)


# ── GET /tips/stats ─────────────────────────────────────────────────
@router.get("/stats")
async def platform_stats(db: AsyncSession = Depends(get_db)):
    return success_response(await tip_service.get_platform_stats(db))


# ── GET /tips/account/{name} ────────────────────────────────────────
@router.get("/account/{name}")
async def account_stats(
    account=Depends(account_from_path),
    db: AsyncSession = Depends(get_db),
):
    """Received/sent counts, volumes and the most recent tips each way."""
    return success_response(await tip_service.get_account_stats(db, account))


# ── GET /tips/content/{id} ──────────────────────────────────────────
@router.get("/content/{content_item_id}")
async def content_tips(
    content_item_id: int = Path(..., ge=1),
    db: AsyncSession = Depends(get_db),
):
    return success_response(await tip_service.get_content_tips(db, content_item_id))
