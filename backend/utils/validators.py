"""
Input validation utilities for the payment service.

Provides reusable validators for Solana addresses, transaction signatures
and token amounts. Callers can submit any string as a signature, so every
value is checked before it reaches the RPC node.
"""
from decimal import Decimal, InvalidOperation

import base58

from domain.constants import AMOUNT_DECIMALS
from domain.errors import BadRequestError

# Ed25519 public keys and signatures
_PUBKEY_BYTES = 32
_SIGNATURE_BYTES = 64


def _b58_length(value: str) -> int | None:
    try:
        return len(base58.b58decode(value))
    except ValueError:
        return None


def is_valid_solana_address(address: str) -> bool:
    if not address or not 32 <= len(address) <= 44:
        return False
    return _b58_length(address) == _PUBKEY_BYTES


def is_valid_signature(signature: str) -> bool:
    if not signature or not 64 <= len(signature) <= 128:
        return False
    return _b58_length(signature) == _SIGNATURE_BYTES


def validate_solana_address(address: str) -> str:
    """
    Validate a base-58 Solana address.

    Raises:
        BadRequestError if the address is invalid
    """
    if not address:
        raise BadRequestError("Wallet address is required")
    if not is_valid_solana_address(address):
        raise BadRequestError(f"Invalid Solana address: {address[:12]}...")
    return address


def validate_signature(signature: str) -> str:
    """
    Validate a base-58 transaction signature.

    Raises:
        BadRequestError if the signature is malformed
    """
    if not signature:
        raise BadRequestError("Transaction signature is required")
    if not is_valid_signature(signature):
        raise BadRequestError(f"Invalid transaction signature: {signature[:12]}...")
    return signature


def parse_amount(value) -> Decimal:
    """
    Parse a positive token amount with at most 6 fractional digits.

    Raises:
        BadRequestError for non-numeric, non-finite, non-positive or over-precise values
    """
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise BadRequestError("amount must be a positive number")
    if not amount.is_finite() or amount <= 0:
        raise BadRequestError("amount must be a positive number")
    if amount.as_tuple().exponent < -AMOUNT_DECIMALS:
        raise BadRequestError(f"amount supports at most {AMOUNT_DECIMALS} decimal places")
    return amount

