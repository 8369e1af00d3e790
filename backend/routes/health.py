"""
Health check endpoint.
"""
from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from deps import get_chain_client
from domain.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check(chain=Depends(get_chain_client)):
    """Health check — verifies Solana RPC connectivity."""
    try:
        slot = await chain.get_slot()
        return {
            "status": "healthy",
            "solana_connected": True,
            "slot": slot,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
    except UpstreamUnavailableError as e:
        logger.error(f"Health check failed: {e.message}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={
                "status": "unhealthy",
                "solana_connected": False,
                "error": e.message,
            },
        )
