"""
Custom domain exceptions for consistent error handling.

These exceptions are mapped to HTTP status codes by the global exception handler
in main.py. Each class carries a stable machine-readable `code`; only
UpstreamUnavailableError is retryable, every other kind is terminal for the
signature that produced it.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    """Base class for all domain-specific errors."""
    code = "domain_error"
    retryable = False

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST, details: dict | None = None):
        super().__init__(status_code=status_code, detail=message)
        self.message = message
        self.details = details or {}


class BadRequestError(DomainError):
    """Malformed or unpayable request (400)."""
    code = "bad_request"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class SelfReferentialError(DomainError):
    """Caller targeted their own account (400)."""
    code = "self_referential"

    def __init__(self, message: str = "Cannot target your own account", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ReferencedResourceMissingError(DomainError):
    """Referenced account or content item does not exist (404)."""
    code = "referenced_resource_missing"

    def __init__(self, resource_type: str, identifier: str, details: dict | None = None):
        message = f"{resource_type} not found: {identifier}"
        super().__init__(message, status_code=status.HTTP_404_NOT_FOUND, details=details)


class UnauthorizedError(DomainError):
    """Unauthorized access (401)."""
    code = "unauthorized"

    def __init__(self, message: str = "Unauthorized", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_401_UNAUTHORIZED, details=details)


class DuplicateTransactionError(DomainError):
    """Signature already recorded somewhere in the ledger (409)."""
    code = "duplicate_transaction"

    def __init__(self, signature: str, details: dict | None = None):
        super().__init__(
            "This transaction has already been recorded",
            status_code=status.HTTP_409_CONFLICT,
            details={"signature": signature, **(details or {})},
        )


# ── Verification failures ───────────────────────────────────────────


class NotFoundOnChainError(DomainError):
    """Signature unknown to the Solana node (400)."""
    code = "not_found_on_chain"

    def __init__(self, message: str = "Transaction not found on-chain", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class TransactionFailedOnChainError(DomainError):
    """Transaction landed but its execution failed (400)."""
    code = "transaction_failed_on_chain"

    def __init__(self, message: str = "Transaction failed on-chain", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class NoMatchingTransferError(DomainError):
    """No qualifying token transfer in the transaction (400)."""
    code = "no_matching_transfer"

    def __init__(
        self,
        message: str = "No matching $CREAM transfer found in transaction",
        details: dict | None = None,
    ):
        super().__init__(message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class UpstreamUnavailableError(DomainError):
    """Solana node timed out, errored, or returned garbage (503, retryable)."""
    code = "upstream_unavailable"
    retryable = True

    def __init__(self, message: str = "Blockchain node unavailable", details: dict | None = None):
        super().__init__(message, status_code=status.HTTP_503_SERVICE_UNAVAILABLE, details=details)
