"""
Solana JSON-RPC client — fetches parsed transactions and token accounts.

Pure I/O boundary. Callers get either a value, None (the node has no such
transaction/account), or UpstreamUnavailableError (timeout, transport error,
JSON-RPC error, malformed payload). Transient failures are retried with
exponential backoff up to rpc_max_retries extra attempts.

The client is injected (see deps.get_chain_client); tests substitute a fake
that implements the ChainClient protocol.
"""
import asyncio
import itertools
import logging
from typing import Any, Optional, Protocol

import httpx

from config import settings
from domain.errors import UpstreamUnavailableError
from domain.payments import AccountState, ChainTransaction
from exceptions import ChainDataError

logger = logging.getLogger(__name__)


class ChainClient(Protocol):
    """What the verifier needs from a ledger node."""

    async def fetch_transaction(
        self, signature: str, commitment: Optional[str] = None
    ) -> Optional[ChainTransaction]:
        ...

    async def fetch_account_state(self, address: str) -> Optional[AccountState]:
        ...

    async def get_slot(self) -> int:
        ...


class SolanaRpcClient:
    """httpx-based ChainClient for a Solana RPC node."""

    def __init__(
        self,
        rpc_url: str | None = None,
        *,
        commitment: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.rpc_url = rpc_url or settings.solana_rpc_url
        self.commitment = commitment or settings.solana_commitment
        self.max_retries = settings.rpc_max_retries if max_retries is None else max_retries
        self.backoff_seconds = (
            settings.rpc_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            timeout=timeout or settings.rpc_timeout_seconds,
        )
        self._ids = itertools.count(1)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ── JSON-RPC plumbing ───────────────────────────────────────────

    async def _rpc_once(self, method: str, params: list) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await self._client.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except httpx.TimeoutException as e:
            raise UpstreamUnavailableError(
                f"Solana RPC {method} timed out", details={"method": method}
            ) from e
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(
                f"Solana RPC {method} failed: {e.__class__.__name__}",
                details={"method": method},
            ) from e
        except ValueError as e:
            raise UpstreamUnavailableError(
                f"Solana RPC {method} returned invalid JSON", details={"method": method}
            ) from e

        if not isinstance(body, dict):
            raise UpstreamUnavailableError(
                f"Solana RPC {method} returned a non-object body", details={"method": method}
            )
        if body.get("error"):
            error = body["error"]
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise UpstreamUnavailableError(
                f"Solana RPC {method} error: {message}",
                details={"method": method, "rpcError": error},
            )
        return body.get("result")

    async def _rpc(self, method: str, params: list) -> Any:
        """Call the node, retrying transient failures with exponential backoff."""
        attempt = 0
        while True:
            try:
                return await self._rpc_once(method, params)
            except UpstreamUnavailableError as e:
                if attempt >= self.max_retries:
                    logger.warning(f"{method} gave up after {attempt + 1} attempt(s): {e.message}")
                    raise
                delay = self.backoff_seconds * (2 ** attempt)
                attempt += 1
                logger.info(f"{method} failed ({e.message}), retry {attempt}/{self.max_retries} in {delay:.2f}s")
                await asyncio.sleep(delay)

    # ── Public API ──────────────────────────────────────────────────

    async def fetch_transaction(
        self, signature: str, commitment: Optional[str] = None
    ) -> Optional[ChainTransaction]:
        """
        getTransaction with jsonParsed encoding.

        Returns None when the node has no record of the signature.
        """
        result = await self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": commitment or self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if result is None:
            return None
        try:
            return parse_transaction(signature, result)
        except (KeyError, TypeError, AttributeError) as e:
            raise UpstreamUnavailableError(
                "Solana RPC getTransaction returned a malformed transaction",
                details={"signature": signature},
            ) from e

    async def fetch_account_state(self, address: str) -> Optional[AccountState]:
        """
        getAccountInfo with jsonParsed encoding.

        Returns None for an unknown address; raises ChainDataError when the
        account exists but is not an SPL token account.
        """
        result = await self._rpc(
            "getAccountInfo",
            [address, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        if not isinstance(result, dict):
            raise UpstreamUnavailableError(
                "Solana RPC getAccountInfo returned a malformed result",
                details={"address": address},
            )
        value = result.get("value")
        if value is None:
            return None
        return parse_token_account(address, value)

    async def get_slot(self) -> int:
        result = await self._rpc("getSlot", [{"commitment": self.commitment}])
        if not isinstance(result, int):
            raise UpstreamUnavailableError("Solana RPC getSlot returned a malformed result")
        return result


# ════════════════════════════════════════════════════════════════════
# Payload parsing
# ════════════════════════════════════════════════════════════════════


def parse_transaction(signature: str, result: dict) -> ChainTransaction:
    """
    Flatten a jsonParsed getTransaction result.

    Order: every outer instruction first, then the inner instruction groups
    in the order the node reported them.
    """
    message = result["transaction"]["message"]
    meta = result.get("meta") or {}

    instructions: list[dict] = list(message.get("instructions") or [])
    for group in meta.get("innerInstructions") or []:
        instructions.extend(group.get("instructions") or [])

    return ChainTransaction(
        signature=signature,
        failed=meta.get("err") is not None,
        instructions=instructions,
        slot=result.get("slot"),
        block_time=result.get("blockTime"),
    )


def parse_token_account(address: str, value: dict) -> AccountState:
    """Extract owner/mint/decimals from a jsonParsed token account."""
    data = value.get("data") if isinstance(value, dict) else None
    parsed = data.get("parsed") if isinstance(data, dict) else None
    info = parsed.get("info") if isinstance(parsed, dict) else None
    if not isinstance(info, dict) or not info.get("owner") or not info.get("mint"):
        raise ChainDataError(f"Account {address} is not a parsed SPL token account")

    token_amount = info.get("tokenAmount")
    decimals = token_amount.get("decimals") if isinstance(token_amount, dict) else None

    return AccountState(
        address=address,
        owner=info["owner"],
        mint=info["mint"],
        decimals=decimals if isinstance(decimals, int) else None,
    )
