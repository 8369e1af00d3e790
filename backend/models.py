"""
Pydantic models for request/response validation.
"""
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ApiBase(BaseModel):
    """Shared base — allows construction by Python name or alias."""
    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


# ── Subscriptions ───────────────────────────────────────────────────

class SubscribeRequest(ApiBase):
    """Proof of payment for a subscription."""
    tx_id: str = Field(
        ...,
        min_length=1,
        max_length=128,
        description="Signature of the $CREAM transfer to the target's wallet",
    )


# ── Tips ────────────────────────────────────────────────────────────

class TipRequest(ApiBase):
    recipient_name: str = Field(..., min_length=1, max_length=32)
    content_item_id: Optional[int] = Field(default=None, alias="post_id")
    amount: Decimal = Field(..., description="Tip amount in $CREAM (up to 6 dp)")
    tx_signature: str = Field(..., min_length=1, max_length=128)

