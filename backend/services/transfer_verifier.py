"""
Transfer Verifier — decides whether a Solana transaction proves a $CREAM payment.

Flow for verify(claim):
    1. Fetch the transaction (absent -> NOT_FOUND_ON_CHAIN, meta.err -> TRANSACTION_FAILED_ON_CHAIN)
    2. Decode every instruction (outer, then inner) into PlainTransfer /
       CheckedTransfer / OtherInstruction
    3. For each transfer, resolve the destination token account and test
       mint, owner and amount >= minimum
    4. The FIRST qualifying transfer wins; its source owner is resolved
       best-effort ("unresolved" on failure)
    5. Nothing qualifies -> NO_MATCHING_TRANSFER

Resolution errors for a single candidate are logged and skipped. Errors
fetching the transaction itself, and exceeding verification_timeout_seconds,
surface as UpstreamUnavailableError so callers can retry.

Overpayment is accepted and the first qualifying transfer wins, even if a
later instruction pays more.
"""
import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from config import settings
from domain.constants import (
    IX_TRANSFER,
    IX_TRANSFER_CHECKED,
    TOKEN_PROGRAM_IDS,
    TOKEN_PROGRAM_LABELS,
    UNRESOLVED_SENDER,
)
from domain.enums import FailureReason
from domain.errors import (
    NoMatchingTransferError,
    NotFoundOnChainError,
    TransactionFailedOnChainError,
    UpstreamUnavailableError,
)
from domain.payments import (
    ChainTransaction,
    CheckedTransfer,
    DecodedInstruction,
    OtherInstruction,
    PlainTransfer,
    TransferClaim,
    VerificationResult,
)
from exceptions import ChainDataError
from solana_client import ChainClient

logger = logging.getLogger(__name__)


# ════════════════════════════════════════════════════════════════════
# Instruction decoding
# ════════════════════════════════════════════════════════════════════


def _is_token_program(ix: dict[str, Any]) -> bool:
    return ix.get("program") in TOKEN_PROGRAM_LABELS or ix.get("programId") in TOKEN_PROGRAM_IDS


def _checked_ui_amount(token_amount: Any) -> Optional[Decimal]:
    """UI amount of a transferChecked tokenAmount block; None unless finite."""
    if not isinstance(token_amount, dict):
        return None
    try:
        if token_amount.get("uiAmountString") is not None:
            amount = Decimal(str(token_amount["uiAmountString"]))
        elif token_amount.get("uiAmount") is not None:
            amount = Decimal(str(token_amount["uiAmount"]))
        elif token_amount.get("amount") is not None and isinstance(token_amount.get("decimals"), int):
            amount = Decimal(str(token_amount["amount"])).scaleb(-token_amount["decimals"])
        else:
            return None
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def decode_instruction(ix: Any) -> DecodedInstruction:
    """
    Normalize one jsonParsed instruction.

    Anything that is not a well-formed SPL transfer / transferChecked
    becomes OtherInstruction; this function never raises.
    """
    if not isinstance(ix, dict):
        return OtherInstruction()

    program = ix.get("program") or ix.get("programId")
    parsed = ix.get("parsed")
    if not _is_token_program(ix) or not isinstance(parsed, dict):
        return OtherInstruction(program=program)

    kind = parsed.get("type")
    info = parsed.get("info")
    if not isinstance(info, dict):
        return OtherInstruction(program=program, kind=kind)

    source = info.get("source")
    destination = info.get("destination")
    if not source or not destination:
        return OtherInstruction(program=program, kind=kind)

    if kind == IX_TRANSFER:
        try:
            raw_amount = int(str(info.get("amount")))
        except ValueError:
            return OtherInstruction(program=program, kind=kind)
        return PlainTransfer(source=source, destination=destination, raw_amount=raw_amount)

    if kind == IX_TRANSFER_CHECKED:
        mint = info.get("mint")
        amount = _checked_ui_amount(info.get("tokenAmount"))
        if not mint or amount is None:
            return OtherInstruction(program=program, kind=kind)
        return CheckedTransfer(source=source, destination=destination, mint=mint, amount=amount)

    return OtherInstruction(program=program, kind=kind)


def decode_instructions(tx: ChainTransaction) -> list[DecodedInstruction]:
    return [decode_instruction(ix) for ix in tx.instructions]


# ════════════════════════════════════════════════════════════════════
# Verifier
# ════════════════════════════════════════════════════════════════════


class TransferVerifier:
    """Checks transfer claims against the chain. Holds no state of its own."""

    def __init__(self, chain: ChainClient, timeout_seconds: float | None = None):
        self.chain = chain
        self.timeout_seconds = (
            settings.verification_timeout_seconds if timeout_seconds is None else timeout_seconds
        )

    async def _bounded(self, coro, signature: str) -> VerificationResult:
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout_seconds)
        except asyncio.TimeoutError as e:
            logger.warning(f"Verification of {signature[:12]}... exceeded {self.timeout_seconds}s")
            raise UpstreamUnavailableError(
                "Timed out verifying transaction",
                details={"signature": signature, "timeoutSeconds": self.timeout_seconds},
            ) from e

    async def verify(self, claim: TransferClaim) -> VerificationResult:
        """Full payment check: settled, and pays >= minimum of the mint to the recipient."""
        return await self._bounded(self._verify(claim), claim.signature)

    async def verify_settled(self, signature: str) -> VerificationResult:
        """Existence and non-failure only; the amount is not derived from instructions."""
        return await self._bounded(self._verify_settled(signature), signature)

    # ── internals ───────────────────────────────────────────────────

    async def _fetch_settled(self, signature: str):
        tx = await self.chain.fetch_transaction(signature)
        if tx is None:
            return None, VerificationResult.failure(FailureReason.NOT_FOUND_ON_CHAIN)
        if tx.failed:
            return None, VerificationResult.failure(FailureReason.TRANSACTION_FAILED_ON_CHAIN)
        return tx, None

    async def _verify_settled(self, signature: str) -> VerificationResult:
        tx, failure = await self._fetch_settled(signature)
        if failure:
            logger.info(f"Settlement check {signature[:12]}...: {failure.failure_reason.value}")
            return failure
        return VerificationResult(valid=True)

    async def _verify(self, claim: TransferClaim) -> VerificationResult:
        tx, failure = await self._fetch_settled(claim.signature)
        if failure:
            logger.info(f"Verification {claim.signature[:12]}...: {failure.failure_reason.value}")
            return failure

        unresolved = 0
        for position, decoded in enumerate(decode_instructions(tx)):
            if isinstance(decoded, OtherInstruction):
                continue
            try:
                amount = await self._qualifying_amount(decoded, claim)
            except (UpstreamUnavailableError, ChainDataError) as e:
                unresolved += 1
                logger.warning(
                    f"Skipping transfer #{position} in {claim.signature[:12]}...: "
                    f"destination unresolved ({e})"
                )
                continue

            if amount is None:
                continue

            sender = await self._resolve_owner(decoded.source)
            logger.info(
                f"Verified {claim.signature[:12]}...: {amount} to {claim.recipient_address[:8]}... "
                f"from {sender[:8]}... (instruction #{position})"
            )
            return VerificationResult.success(amount, sender)

        logger.info(
            f"Verification {claim.signature[:12]}...: no matching transfer "
            f"({unresolved} unresolved candidate(s))"
        )
        return VerificationResult.failure(
            FailureReason.NO_MATCHING_TRANSFER, unresolved_candidates=unresolved
        )

    async def _qualifying_amount(
        self, transfer: PlainTransfer | CheckedTransfer, claim: TransferClaim
    ) -> Optional[Decimal]:
        """Amount of the transfer if it satisfies the claim, else None."""
        if isinstance(transfer, CheckedTransfer):
            if transfer.mint != claim.token_mint:
                return None
            destination = await self.chain.fetch_account_state(transfer.destination)
            if destination is None or destination.owner != claim.recipient_address:
                return None
            amount = transfer.amount
        else:
            destination = await self.chain.fetch_account_state(transfer.destination)
            if destination is None:
                return None
            if destination.mint != claim.token_mint or destination.owner != claim.recipient_address:
                return None
            if destination.decimals is None:
                raise ChainDataError(f"Token account {transfer.destination} reports no decimals")
            amount = Decimal(transfer.raw_amount).scaleb(-destination.decimals)

        if amount < claim.minimum_amount:
            return None
        return amount

    async def _resolve_owner(self, token_account: str) -> str:
        """Owner of a token account, or the unresolved sentinel."""
        try:
            state = await self.chain.fetch_account_state(token_account)
        except (UpstreamUnavailableError, ChainDataError) as e:
            logger.info(f"Source {token_account[:8]}... unresolved: {e}")
            return UNRESOLVED_SENDER
        return state.owner if state else UNRESOLVED_SENDER


def ensure_valid(result: VerificationResult, signature: str) -> VerificationResult:
    """Map a failed VerificationResult onto its typed error; pass valid ones through."""
    if result.valid:
        return result

    details = {"signature": signature}
    if result.failure_reason == FailureReason.NOT_FOUND_ON_CHAIN:
        raise NotFoundOnChainError(details=details)
    if result.failure_reason == FailureReason.TRANSACTION_FAILED_ON_CHAIN:
        raise TransactionFailedOnChainError(details=details)
    raise NoMatchingTransferError(
        details={**details, "unresolvedCandidates": result.unresolved_candidates},
    )
