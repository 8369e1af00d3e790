"""
Tests for API route endpoints.

Tests: health, subscription and tip routes through the ASGI app, including
auth and the error envelope.
"""
import pytest

from domain.errors import UpstreamUnavailableError
from tests.factories import CREAM_MINT, make_address, make_signature, memo_ix, transfer_checked_ix

ALICE_ATA = make_address(111)
CREATOR_ATA = make_address(122)


@pytest.fixture
def funded_chain(chain, alice, creator):
    chain.add_token_account(ALICE_ATA, owner=alice.wallet_address)
    chain.add_token_account(CREATOR_ATA, owner=creator.wallet_address)
    return chain


class TestHealthEndpoint:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_health_reports_slot(self, api_client, chain):
        response = await api_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["slot"] == chain.slot

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_health_unhealthy_when_node_down(self, api_client, chain):
        chain.slot = UpstreamUnavailableError("connection refused")
        response = await api_client.get("/health")
        assert response.status_code == 503
        assert response.json()["solana_connected"] is False


class TestAuth:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_token(self, api_client, creator):
        response = await api_client.post("/accounts/creator/subscribe", json={"tx_id": make_signature(1)})
        assert response.status_code == 401
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "unauthorized"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_garbage_token(self, api_client, creator):
        response = await api_client.post(
            "/accounts/creator/subscribe",
            json={"tx_id": make_signature(1)},
            headers={"Authorization": "Bearer not.a.jwt"},
        )
        assert response.status_code == 401


class TestSubscriptionRoutes:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_subscribe_flow(self, api_client, funded_chain, alice, creator, auth_headers):
        sig = make_signature(300)
        funded_chain.add_transaction(sig, [transfer_checked_ix(ALICE_ATA, CREATOR_ATA, CREAM_MINT, "25")])

        response = await api_client.post(
            "/accounts/creator/subscribe", json={"tx_id": sig}, headers=auth_headers(alice)
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["action"] == "subscribed"
        assert body["data"]["amount"] == "25.000000"
        assert body["data"]["sender"] == alice.wallet_address

        status = await api_client.get("/accounts/creator/subscription", headers=auth_headers(alice))
        assert status.json()["data"]["is_subscribed"] is True

        removed = await api_client.delete("/accounts/creator/subscribe", headers=auth_headers(alice))
        assert removed.json()["data"]["action"] == "unsubscribed"

        status = await api_client.get("/accounts/creator/subscription", headers=auth_headers(alice))
        assert status.json()["data"]["is_subscribed"] is False

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_duplicate_signature_is_409(self, api_client, funded_chain, alice, creator, auth_headers):
        sig = make_signature(301)
        funded_chain.add_transaction(sig, [transfer_checked_ix(ALICE_ATA, CREATOR_ATA, CREAM_MINT, "25")])

        await api_client.post("/accounts/creator/subscribe", json={"tx_id": sig}, headers=auth_headers(alice))
        response = await api_client.post(
            "/accounts/creator/subscribe", json={"tx_id": sig}, headers=auth_headers(alice)
        )

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "duplicate_transaction"
        assert error["retryable"] is False
        assert error["details"]["signature"] == sig

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_no_matching_transfer_is_400(self, api_client, funded_chain, alice, creator, auth_headers):
        sig = make_signature(302)
        funded_chain.add_transaction(sig, [transfer_checked_ix(ALICE_ATA, CREATOR_ATA, CREAM_MINT, "1")])

        response = await api_client.post(
            "/accounts/creator/subscribe", json={"tx_id": sig}, headers=auth_headers(alice)
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "no_matching_transfer"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_upstream_failure_is_retryable_503(self, api_client, funded_chain, alice, creator, auth_headers):
        sig = make_signature(303)
        funded_chain.transactions[sig] = UpstreamUnavailableError("node down")

        response = await api_client.post(
            "/accounts/creator/subscribe", json={"tx_id": sig}, headers=auth_headers(alice)
        )

        assert response.status_code == 503
        error = response.json()["error"]
        assert error["code"] == "upstream_unavailable"
        assert error["retryable"] is True

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_unknown_target_is_404(self, api_client, alice, auth_headers):
        response = await api_client.post(
            "/accounts/ghost/subscribe", json={"tx_id": make_signature(304)}, headers=auth_headers(alice)
        )
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "referenced_resource_missing"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_self_subscribe_is_400(self, api_client, creator, auth_headers):
        response = await api_client.post(
            "/accounts/creator/subscribe", json={"tx_id": make_signature(305)}, headers=auth_headers(creator)
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "self_referential"


class TestTipRoutes:

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_create_tip(self, api_client, chain, alice, creator, post, auth_headers):
        sig = make_signature(310)
        chain.add_transaction(sig, [memo_ix("tip")])

        response = await api_client.post(
            "/tips",
            json={"recipient_name": "creator", "post_id": post.id, "amount": 100, "tx_signature": sig},
            headers=auth_headers(alice),
        )

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["amount"] == "100.000000"
        assert data["fee_amount"] == "10.000000"
        assert data["content_item_id"] == post.id

        content = await api_client.get(f"/tips/content/{post.id}")
        assert content.json()["data"]["tip_count"] == 1

        account = await api_client.get("/tips/account/creator")
        received = account.json()["data"]["received"]
        assert received["count"] == 1
        assert received["recent"][0]["tipper_name"] == "alice"

        stats = await api_client.get("/tips/stats")
        assert stats.json()["data"]["total_fees"] == "10.000000"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_tip_not_on_chain(self, api_client, alice, creator, auth_headers):
        response = await api_client.post(
            "/tips",
            json={"recipient_name": "creator", "amount": "5", "tx_signature": make_signature(311)},
            headers=auth_headers(alice),
        )
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "not_found_on_chain"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_tip_validation_error_envelope(self, api_client, alice, auth_headers):
        response = await api_client.post("/tips", json={"amount": "5"}, headers=auth_headers(alice))
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "validation_error"

    @pytest.mark.api
    @pytest.mark.asyncio
    async def test_missing_content_is_404(self, api_client):
        response = await api_client.get("/tips/content/12345")
        assert response.status_code == 404
