"""
Tests for the Solana JSON-RPC client using httpx.MockTransport.

Tests: request shape, result parsing, retry/backoff, error classification
"""
import json

import httpx
import pytest

from domain.errors import UpstreamUnavailableError
from exceptions import ChainDataError
from solana_client import SolanaRpcClient
from tests.factories import (
    CREAM_MINT,
    make_address,
    make_signature,
    memo_ix,
    token_account_payload,
    transaction_payload,
    transfer_ix,
)

RPC_URL = "https://rpc.test"
SIG = make_signature(3)


def rpc_client(handler, max_retries=2) -> SolanaRpcClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SolanaRpcClient(
        RPC_URL,
        commitment="confirmed",
        max_retries=max_retries,
        backoff_seconds=0,
        http_client=http,
    )


def rpc_result(request: httpx.Request, result) -> httpx.Response:
    body = json.loads(request.content)
    return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})


class TestFetchTransaction:

    @pytest.mark.asyncio
    async def test_request_uses_json_parsed_and_version_zero(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return rpc_result(request, None)

        await rpc_client(handler).fetch_transaction(SIG)

        assert seen[0]["method"] == "getTransaction"
        assert seen[0]["params"] == [
            SIG,
            {"encoding": "jsonParsed", "commitment": "confirmed", "maxSupportedTransactionVersion": 0},
        ]

    @pytest.mark.asyncio
    async def test_parses_transaction(self):
        src, dst = make_address(1), make_address(2)
        payload = transaction_payload([memo_ix()], [[transfer_ix(src, dst, 5)]])

        tx = await rpc_client(lambda r: rpc_result(r, payload)).fetch_transaction(SIG)

        assert tx.signature == SIG
        assert tx.failed is False
        assert len(tx.instructions) == 2
        assert tx.instructions[1]["parsed"]["info"]["amount"] == "5"

    @pytest.mark.asyncio
    async def test_null_result_means_not_found(self):
        assert await rpc_client(lambda r: rpc_result(r, None)).fetch_transaction(SIG) is None

    @pytest.mark.asyncio
    async def test_malformed_transaction_is_upstream_error(self):
        client = rpc_client(lambda r: rpc_result(r, {"slot": 1}))
        with pytest.raises(UpstreamUnavailableError):
            await client.fetch_transaction(SIG)


class TestRetries:

    @pytest.mark.asyncio
    async def test_transient_http_error_is_retried(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            if len(attempts) < 3:
                return httpx.Response(502)
            return rpc_result(request, None)

        assert await rpc_client(handler, max_retries=2).fetch_transaction(SIG) is None
        assert len(attempts) == 3

    @pytest.mark.asyncio
    async def test_gives_up_after_max_retries(self):
        attempts = []

        def handler(request):
            attempts.append(1)
            return httpx.Response(503)

        with pytest.raises(UpstreamUnavailableError):
            await rpc_client(handler, max_retries=1).fetch_transaction(SIG)
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_timeout_is_upstream_error(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await rpc_client(handler, max_retries=0).fetch_transaction(SIG)
        assert "timed out" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_json_rpc_error_is_upstream_error(self):
        def handler(request):
            return httpx.Response(
                200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}}
            )

        with pytest.raises(UpstreamUnavailableError) as exc_info:
            await rpc_client(handler, max_retries=0).fetch_transaction(SIG)
        assert exc_info.value.details["rpcError"]["code"] == -32005

    @pytest.mark.asyncio
    async def test_invalid_json_is_upstream_error(self):
        client = rpc_client(lambda r: httpx.Response(200, content=b"<html>"), max_retries=0)
        with pytest.raises(UpstreamUnavailableError):
            await client.fetch_transaction(SIG)


class TestFetchAccountState:

    @pytest.mark.asyncio
    async def test_token_account(self):
        owner = make_address(4)
        value = token_account_payload(owner, CREAM_MINT, decimals=6)
        client = rpc_client(lambda r: rpc_result(r, {"context": {"slot": 1}, "value": value}))

        state = await client.fetch_account_state(make_address(5))

        assert state.owner == owner
        assert state.mint == CREAM_MINT
        assert state.decimals == 6

    @pytest.mark.asyncio
    async def test_unknown_account(self):
        client = rpc_client(lambda r: rpc_result(r, {"context": {"slot": 1}, "value": None}))
        assert await client.fetch_account_state(make_address(5)) is None

    @pytest.mark.asyncio
    async def test_non_token_account_is_chain_data_error(self):
        value = {"owner": "11111111111111111111111111111111", "data": ["", "base64"]}
        client = rpc_client(lambda r: rpc_result(r, {"context": {"slot": 1}, "value": value}))
        with pytest.raises(ChainDataError):
            await client.fetch_account_state(make_address(5))


class TestGetSlot:

    @pytest.mark.asyncio
    async def test_returns_slot(self):
        assert await rpc_client(lambda r: rpc_result(r, 123)).get_slot() == 123
