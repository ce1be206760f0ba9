# -*- coding: utf-8 -*-
"""
backend/tests/modules/billing/test_vote_routes.py

Tests HTTP de /api/billing/votes:
- Catálogo público
- Crear intent (201) por rail, validaciones (401/422)
- Verificar (200 COMPLETED idempotente, 202 PENDING, 404 de otro usuario)
- Estado e historial

Autor: Banter Backend
Fecha: 2026-02-18
"""

import httpx
import pytest

from tests.factories import (
    FLUTTERWAVE_BASE_URL,
    SOLANA_MINT,
    SOLANA_PRIMARY,
    SOLANA_RECEIVER,
    SOLANA_SIGNATURE,
    flutterwave_transaction,
    solana_rpc_response,
    solana_transaction,
)

BASE = "/api/billing/votes"


@pytest.fixture
async def user(db_session, make_user):
    return await make_user(db_session, "u1")


def _mock_solana_ok(rail_router):
    rail_router.add(
        "POST",
        SOLANA_PRIMARY,
        lambda request: httpx.Response(200, json=solana_rpc_response(solana_transaction())),
    )


async def _create(async_client, auth_headers, bundle_id="b1", rail="ACCOUNT_CHAIN", user_id="u1"):
    return await async_client.post(
        f"{BASE}/intents",
        json={"bundleId": bundle_id, "rail": rail},
        headers=auth_headers(user_id),
    )


class TestBundles:

    @pytest.mark.anyio
    async def test_lists_catalog_without_auth(self, async_client):
        response = await async_client.get(f"{BASE}/bundles")
        assert response.status_code == 200
        body = response.json()
        assert [b["id"] for b in body["bundles"]] == ["b1", "b2", "b3", "b4"]
        assert body["bundles"][1]["popular"] is True
        assert body["usdcDecimals"] == 6
        assert body["accountChainMint"] == SOLANA_MINT


class TestCreateIntent:

    @pytest.mark.anyio
    async def test_requires_auth(self, async_client):
        response = await async_client.post(f"{BASE}/intents", json={"bundleId": "b1", "rail": "ACCOUNT_CHAIN"})
        assert response.status_code == 401

    @pytest.mark.anyio
    async def test_invalid_token(self, async_client):
        response = await async_client.post(
            f"{BASE}/intents",
            json={"bundleId": "b1", "rail": "ACCOUNT_CHAIN"},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert response.status_code == 401
        assert response.json()["detail"]["error"] == "invalid_token"

    @pytest.mark.anyio
    async def test_account_chain_created(self, async_client, auth_headers, user):
        response = await _create(async_client, auth_headers)
        assert response.status_code == 201
        body = response.json()
        assert body["rail"] == "ACCOUNT_CHAIN"
        assert body["status"] == "PENDING"
        assert body["payload"]["amountRaw"] == "10000000"
        assert body["payload"]["toAddress"] == SOLANA_RECEIVER
        assert body["payload"]["assetIdentifier"] == SOLANA_MINT

    @pytest.mark.anyio
    async def test_move_chain_includes_template(self, async_client, auth_headers, user):
        response = await _create(async_client, auth_headers, rail="MOVE_CHAIN")
        assert response.status_code == 201
        assert "transactionTemplate" in response.json()["payload"]

    @pytest.mark.anyio
    async def test_card_returns_checkout_url(self, async_client, auth_headers, rail_router, user):
        rail_router.add(
            "POST",
            f"{FLUTTERWAVE_BASE_URL}/payments",
            lambda request: httpx.Response(200, json={"status": "success", "data": {"link": "https://pay.test/x"}}),
        )
        response = await _create(async_client, auth_headers, rail="CARD")
        assert response.status_code == 201
        payload = response.json()["payload"]
        assert payload["checkoutUrl"] == "https://pay.test/x"
        assert payload["reference"].startswith("BANTER_u1_")

    @pytest.mark.anyio
    async def test_card_processor_down_is_503(self, async_client, auth_headers, user):
        response = await _create(async_client, auth_headers, rail="CARD")
        assert response.status_code == 503

    @pytest.mark.anyio
    async def test_unknown_bundle_is_422(self, async_client, auth_headers, user):
        response = await _create(async_client, auth_headers, bundle_id="b42")
        assert response.status_code == 422
        assert response.json()["detail"]["field"] == "bundle_id"

    @pytest.mark.anyio
    async def test_unknown_rail_is_422(self, async_client, auth_headers, user):
        response = await _create(async_client, auth_headers, rail="PAYPAL")
        assert response.status_code == 422

    @pytest.mark.anyio
    async def test_unknown_user_is_404(self, async_client, auth_headers):
        response = await _create(async_client, auth_headers, user_id="nobody")
        assert response.status_code == 404


class TestVerify:

    @pytest.mark.anyio
    async def test_verify_completes_and_is_idempotent(self, async_client, auth_headers, rail_router, user):
        _mock_solana_ok(rail_router)
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]

        body = {"intentId": intent_id, "externalReference": SOLANA_SIGNATURE}
        first = await async_client.post(f"{BASE}/verify", json=body, headers=auth_headers())
        assert first.status_code == 200
        assert first.json()["status"] == "COMPLETED"
        assert first.json()["intent"]["externalReference"] == SOLANA_SIGNATURE

        second = await async_client.post(f"{BASE}/verify", json=body, headers=auth_headers())
        assert second.status_code == 200
        assert second.json()["status"] == "COMPLETED"
        assert len(rail_router.calls_to(SOLANA_PRIMARY)) == 1

        status_response = await async_client.get(f"{BASE}/intents/{intent_id}", headers=auth_headers())
        assert status_response.json()["status"] == "COMPLETED"
        assert status_response.json()["completedAt"] is not None

    @pytest.mark.anyio
    async def test_card_polling_with_returned_reference(self, async_client, auth_headers, rail_router, user):
        rail_router.add(
            "POST",
            f"{FLUTTERWAVE_BASE_URL}/payments",
            lambda request: httpx.Response(200, json={"status": "success", "data": {"link": "https://pay.test/x"}}),
        )
        created = (await _create(async_client, auth_headers, rail="CARD")).json()
        tx_ref = created["payload"]["reference"]

        rail_router.add(
            "GET",
            f"{FLUTTERWAVE_BASE_URL}/transactions",
            httpx.Response(200, json={"status": "success", "data": [{"id": 4975123, "status": "successful"}]}),
        )
        rail_router.add(
            "GET",
            f"{FLUTTERWAVE_BASE_URL}/transactions/4975123/verify",
            httpx.Response(200, json={"status": "success", "data": flutterwave_transaction(tx_ref=tx_ref)}),
        )

        response = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": created["intentId"], "externalReference": tx_ref},
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "COMPLETED"
        assert response.json()["intent"]["externalReference"] == "4975123"

    @pytest.mark.anyio
    async def test_rpc_down_is_202_pending(self, async_client, auth_headers, user):
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]
        response = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": intent_id, "externalReference": SOLANA_SIGNATURE},
            headers=auth_headers(),
        )
        assert response.status_code == 202
        assert response.json()["status"] == "PENDING"

    @pytest.mark.anyio
    async def test_underpayment_fails_with_generic_message(self, async_client, auth_headers, rail_router, user):
        rail_router.add(
            "POST",
            SOLANA_PRIMARY,
            lambda request: httpx.Response(200, json=solana_rpc_response(solana_transaction(post="5000001"))),
        )
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]
        response = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": intent_id, "externalReference": SOLANA_SIGNATURE},
            headers=auth_headers(),
        )
        assert response.status_code == 200
        assert response.json()["status"] == "FAILED"
        assert response.json()["message"] == "Payment not confirmed"
        assert "AMOUNT_TOO_LOW" not in response.text

    @pytest.mark.anyio
    async def test_unknown_signature_is_404(self, async_client, auth_headers, rail_router, user):
        rail_router.add("POST", SOLANA_PRIMARY, lambda request: httpx.Response(200, json=solana_rpc_response(None)))
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]
        response = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": intent_id, "externalReference": SOLANA_SIGNATURE},
            headers=auth_headers(),
        )
        assert response.status_code == 404

    @pytest.mark.anyio
    async def test_malformed_reference_is_422(self, async_client, auth_headers, user):
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]
        response = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": intent_id, "externalReference": "0xnothing"},
            headers=auth_headers(),
        )
        assert response.status_code == 422

    @pytest.mark.anyio
    async def test_replayed_signature_is_409(self, async_client, auth_headers, rail_router, user):
        _mock_solana_ok(rail_router)
        first_id = (await _create(async_client, auth_headers)).json()["intentId"]
        second_id = (await _create(async_client, auth_headers)).json()["intentId"]

        ok = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": first_id, "externalReference": SOLANA_SIGNATURE},
            headers=auth_headers(),
        )
        assert ok.status_code == 200

        replay = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": second_id, "externalReference": SOLANA_SIGNATURE},
            headers=auth_headers(),
        )
        assert replay.status_code == 409

        status_response = await async_client.get(f"{BASE}/intents/{second_id}", headers=auth_headers())
        assert status_response.json()["status"] == "PENDING"

    @pytest.mark.anyio
    async def test_other_users_intent_is_404(self, async_client, auth_headers, db_session, make_user, user):
        await make_user(db_session, "u2")
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]
        response = await async_client.post(
            f"{BASE}/verify",
            json={"intentId": intent_id, "externalReference": SOLANA_SIGNATURE},
            headers=auth_headers("u2"),
        )
        assert response.status_code == 404


class TestIntentQueries:

    @pytest.mark.anyio
    async def test_status_only_for_owner(self, async_client, auth_headers, user):
        intent_id = (await _create(async_client, auth_headers)).json()["intentId"]

        own = await async_client.get(f"{BASE}/intents/{intent_id}", headers=auth_headers())
        assert own.status_code == 200
        assert own.json()["status"] == "PENDING"

        other = await async_client.get(f"{BASE}/intents/{intent_id}", headers=auth_headers("u2"))
        assert other.status_code == 404

    @pytest.mark.anyio
    async def test_history_with_total(self, async_client, auth_headers, user):
        for bundle_id in ("b1", "b2", "b3"):
            await _create(async_client, auth_headers, bundle_id=bundle_id)

        response = await async_client.get(f"{BASE}/intents", params={"limit": 2}, headers=auth_headers())
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert len(body["items"]) == 2
        assert {item["bundleId"] for item in body["items"]} <= {"b1", "b2", "b3"}


class TestHealth:

    @pytest.mark.anyio
    async def test_health(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        assert response.json()["database"]["reachable"] is True

# Fin del archivo backend/tests/modules/billing/test_vote_routes.py
