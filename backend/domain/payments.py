"""
Value objects exchanged between the chain client, the verifier and the managers.

None of these are persisted. Amounts are Decimal in token UI units.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Union

from domain.constants import UNRESOLVED_SENDER
from domain.enums import FailureReason


# ── Chain view ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class ChainTransaction:
    """
    A settled transaction as reported by the node.

    instructions is already flattened: every outer instruction first, then the
    inner instruction groups in the order the node reported them.
    """

    signature: str
    failed: bool
    instructions: list[dict[str, Any]] = field(default_factory=list)
    slot: int | None = None
    block_time: int | None = None


@dataclass(frozen=True)
class AccountState:
    """Contents of an SPL token account."""

    address: str
    owner: str
    mint: str
    decimals: int | None = None


# ── Decoded instructions ────────────────────────────────────────────


@dataclass(frozen=True)
class PlainTransfer:
    """SPL `transfer`: raw base-unit amount, token type only via the destination."""

    source: str
    destination: str
    raw_amount: int


@dataclass(frozen=True)
class CheckedTransfer:
    """SPL `transferChecked`: names its mint and carries a UI amount."""

    source: str
    destination: str
    mint: str
    amount: Decimal


@dataclass(frozen=True)
class OtherInstruction:
    """Anything that is not a token transfer."""

    program: str | None = None
    kind: str | None = None


DecodedInstruction = Union[PlainTransfer, CheckedTransfer, OtherInstruction]


# ── Verification ────────────────────────────────────────────────────


@dataclass(frozen=True)
class TransferClaim:
    """What the caller says a transaction proves."""

    signature: str
    recipient_address: str
    token_mint: str
    minimum_amount: Decimal


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    amount: Decimal = Decimal("0")
    sender_address: str = ""
    failure_reason: FailureReason | None = None
    # Candidates skipped because their accounts could not be resolved
    unresolved_candidates: int = 0

    @classmethod
    def success(cls, amount: Decimal, sender_address: str | None) -> "VerificationResult":
        return cls(valid=True, amount=amount, sender_address=sender_address or UNRESOLVED_SENDER)

    @classmethod
    def failure(cls, reason: FailureReason, unresolved_candidates: int = 0) -> "VerificationResult":
        return cls(valid=False, failure_reason=reason, unresolved_candidates=unresolved_candidates)
