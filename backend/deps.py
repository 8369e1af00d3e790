"""
Shared FastAPI dependencies.

Centralizes common dependencies so routers import from a single place
(DB session, caller account, chain client, verifier, account lookups).
"""

from __future__ import annotations

from fastapi import Depends, Path, Request
from sqlalchemy.ext.asyncio import AsyncSession

from database import get_db
from domain.errors import ReferencedResourceMissingError
from middleware.auth import require_account
from services import directory_service
from services.transfer_verifier import TransferVerifier
from solana_client import ChainClient

__all__ = [
    "get_db",
    "require_account",
    "get_chain_client",
    "get_transfer_verifier",
    "account_from_path",
]


def get_chain_client(request: Request) -> ChainClient:
    """The process-wide Solana client created in main.lifespan."""
    return request.app.state.chain_client


def get_transfer_verifier(chain: ChainClient = Depends(get_chain_client)) -> TransferVerifier:
    return TransferVerifier(chain)


async def account_from_path(
    name: str = Path(..., min_length=1, max_length=32, description="Account name"),
    db: AsyncSession = Depends(get_db),
):
    """Resolve `{name}` to an Account or 404."""
    account = await directory_service.get_account_by_name(db, name)
    if account is None:
        raise ReferencedResourceMissingError("Account", name)
    return account
