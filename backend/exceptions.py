"""
Custom exception classes for Solana data handling.
"""


class ChainDataError(Exception):
    """Raised when on-chain account data is not a parseable SPL token account."""
    pass
