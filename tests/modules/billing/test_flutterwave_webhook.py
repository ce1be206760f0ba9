# -*- coding: utf-8 -*-
"""
backend/tests/modules/billing/test_flutterwave_webhook.py

Tests del webhook de Flutterwave:
- Firma verif-hash (401 sin header o inválido, antes de tocar la BD)
- Payload malformado (400)
- Eventos ignorados / referencias desconocidas (200 sin cambios)
- Re-verificación contra la API y liquidación idempotente
- Pago aún en curso (503 para que el procesador reintente)

Autor: Banter Backend
Fecha: 2026-02-18
"""

import httpx
import pytest
from sqlalchemy import select

from app.modules.accounts.models import AppUser
from app.modules.billing.enums import PaymentRail
from app.modules.billing.webhooks.flutterwave_handler import verify_flutterwave_signature, WebhookNotConfigured

from tests.factories import FLUTTERWAVE_BASE_URL, flutterwave_transaction

URL = "/api/billing/webhooks/flutterwave"
HASH = "test-webhook-hash"
TX_REF = "BANTER_u1_1700000000000"
TX_ID = 4975123


def _event(tx_ref=TX_REF, event="charge.completed", status="successful"):
    return {
        "event": event,
        "data": {"id": TX_ID, "tx_ref": tx_ref, "status": status, "amount": 10, "currency": "USD"},
    }


def _mock_verify(rail_router, status="successful", amount=10):
    rail_router.add(
        "GET",
        f"{FLUTTERWAVE_BASE_URL}/transactions/{TX_ID}/verify",
        lambda request: httpx.Response(
            200,
            json={
                "status": "success",
                "data": flutterwave_transaction(tx_ref=TX_REF, transaction_id=TX_ID, status=status, amount=amount),
            },
        ),
    )


@pytest.fixture
async def card_intent(db_session, make_user, make_intent):
    await make_user(db_session, "u1")
    return await make_intent(db_session, rail=PaymentRail.CARD)


async def _balance(session_factory):
    async with session_factory() as s:
        return await s.scalar(select(AppUser.vote_balance).where(AppUser.user_id == "u1"))


class TestSignature:

    def test_constant_time_comparison(self):
        assert verify_flutterwave_signature(HASH, HASH) is True
        assert verify_flutterwave_signature("nope", HASH) is False
        assert verify_flutterwave_signature(None, HASH) is False

    def test_missing_secret(self):
        with pytest.raises(WebhookNotConfigured):
            verify_flutterwave_signature(HASH, None)

    @pytest.mark.anyio
    async def test_missing_header_is_401(self, async_client, rail_router):
        response = await async_client.post(URL, json=_event())
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid signature"
        assert rail_router.calls == []

    @pytest.mark.anyio
    async def test_wrong_hash_is_401(self, async_client):
        response = await async_client.post(URL, json=_event(), headers={"verif-hash": "forged"})
        assert response.status_code == 401

    @pytest.mark.anyio
    async def test_unconfigured_secret_is_500(self, async_client, billing_container):
        billing_container.settings = billing_container.settings.model_copy(update={"flutterwave_webhook_hash": None})
        response = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert response.status_code == 500


class TestPayload:

    @pytest.mark.anyio
    async def test_malformed_json_is_400(self, async_client):
        response = await async_client.post(
            URL,
            content=b"{not json",
            headers={"verif-hash": HASH, "Content-Type": "application/json"},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Malformed payload"

    @pytest.mark.anyio
    async def test_non_object_is_400(self, async_client):
        response = await async_client.post(URL, json=[1, 2], headers={"verif-hash": HASH})
        assert response.status_code == 400

    @pytest.mark.anyio
    async def test_unknown_reference_is_acknowledged(self, async_client, card_intent, rail_router):
        response = await async_client.post(URL, json=_event(tx_ref="BANTER_x_1"), headers={"verif-hash": HASH})
        assert response.status_code == 200
        assert response.json()["result"] == "ignored"
        assert rail_router.calls == []

    @pytest.mark.anyio
    async def test_other_event_types_are_ignored(self, async_client, card_intent):
        response = await async_client.post(URL, json=_event(event="transfer.completed"), headers={"verif-hash": HASH})
        assert response.status_code == 200
        assert response.json()["result"] == "ignored"


class TestSettlementViaWebhook:

    @pytest.mark.anyio
    async def test_successful_charge_settles_once(self, async_client, card_intent, rail_router, session_factory):
        _mock_verify(rail_router)

        first = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert first.status_code == 200
        assert first.json() == {"received": True, "result": "completed", "intent_id": card_intent.id}

        second = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert second.status_code == 200
        assert second.json()["result"] == "already_terminal"

        assert await _balance(session_factory) == 10
        assert len(rail_router.calls_to(f"{FLUTTERWAVE_BASE_URL}/transactions/{TX_ID}/verify")) == 1

    @pytest.mark.anyio
    async def test_body_status_is_not_trusted(self, async_client, card_intent, rail_router, session_factory):
        """El cuerpo dice successful pero la API reporta failed: no se acredita."""
        _mock_verify(rail_router, status="failed")
        response = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert response.status_code == 200
        assert response.json()["result"] == "failed"
        assert await _balance(session_factory) == 0

    @pytest.mark.anyio
    async def test_pending_charge_is_503(self, async_client, card_intent, rail_router, session_factory):
        _mock_verify(rail_router, status="pending")
        response = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert response.status_code == 503
        assert response.json()["detail"] == "Payment confirmation pending"
        assert await _balance(session_factory) == 0

    @pytest.mark.anyio
    async def test_processor_unknown_transaction(self, async_client, card_intent, rail_router):
        rail_router.add(
            "GET",
            f"{FLUTTERWAVE_BASE_URL}/transactions/{TX_ID}/verify",
            lambda request: httpx.Response(404, json={"status": "error", "message": "No transaction was found"}),
        )
        response = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert response.status_code == 200
        assert response.json()["result"] == "not_found"

    @pytest.mark.anyio
    async def test_webhook_and_polling_credit_once(
        self, async_client, card_intent, rail_router, session_factory, auth_headers
    ):
        _mock_verify(rail_router)
        webhook = await async_client.post(URL, json=_event(), headers={"verif-hash": HASH})
        assert webhook.json()["result"] == "completed"

        poll = await async_client.post(
            "/api/billing/votes/verify",
            json={"intentId": card_intent.id, "externalReference": str(TX_ID)},
            headers=auth_headers(),
        )
        assert poll.status_code == 200
        assert poll.json()["status"] == "COMPLETED"
        assert await _balance(session_factory) == 10

# Fin del archivo backend/tests/modules/billing/test_flutterwave_webhook.py
