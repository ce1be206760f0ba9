# -*- coding: utf-8 -*-
"""
backend/tests/modules/billing/test_move_chain_verifier.py

Tests del rail MOVE_CHAIN (Movement):
- Decodificador de payload (fungible asset vs coin)
- Reglas de aceptación (sender, receptor, activo, monto, éxito)
- Verificador con RPC simulado (fallback de endpoints, plazo, hash inválido)

Autor: Banter Backend
Fecha: 2026-02-18
"""

import asyncio

import httpx
import pytest

from app.modules.billing.enums import RejectionReason
from app.modules.billing.errors import BillingValidationError, TransientUnavailable
from app.modules.billing.models import PaymentIntent
from app.modules.billing.providers.movement_rpc import MovementRpcClient
from app.modules.billing.verifiers.base import normalize_move_address
from app.modules.billing.verifiers.move_chain import (
    CoinTransfer,
    FungibleAssetTransfer,
    MoveChainVerifier,
    UnsupportedPayload,
    decode_transfer_payload,
    evaluate_move_transaction,
    validate_tx_hash,
)
from app.shared.core.http_retry_utils import RetryPolicy

from tests.factories import MOVEMENT_ASSET, MOVEMENT_RECEIVER, MOVEMENT_TX_HASH, PAYER_MOVEMENT, movement_transaction

TX_HASH = MOVEMENT_TX_HASH
COIN_TYPE = "0x" + "ab" * 32 + "::usdc::USDC"


def _intent(amount_raw="10000000", asset=MOVEMENT_ASSET, **overrides):
    values = dict(
        id="intent-move-1",
        user_id="u1",
        rail="MOVE_CHAIN",
        status="PENDING",
        bundle_id="b1",
        credit_count=10,
        amount_raw=amount_raw,
        currency="USDC",
        asset_identifier=asset,
        from_address=PAYER_MOVEMENT,
        to_address=MOVEMENT_RECEIVER,
    )
    values.update(overrides)
    return PaymentIntent(**values)


class TestDecodeTransferPayload:

    def test_fungible_asset_form(self):
        transfer = decode_transfer_payload({
            "function": "0x1::primary_fungible_store::transfer",
            "type_arguments": ["0x1::fungible_asset::Metadata"],
            "arguments": [{"inner": "0xabc"}, "0xdef", "123456789012345678"],
        })
        assert isinstance(transfer, FungibleAssetTransfer)
        assert transfer.asset == "0xabc"
        assert transfer.receiver == "0xdef"
        assert transfer.amount == 123456789012345678

    def test_coin_form(self):
        transfer = decode_transfer_payload({
            "function": "0x1::coin::transfer",
            "type_arguments": [COIN_TYPE],
            "arguments": ["0xdef", "500"],
        })
        assert isinstance(transfer, CoinTransfer)
        assert transfer.asset == COIN_TYPE
        assert transfer.amount == 500

    def test_coin_form_without_type_argument(self):
        transfer = decode_transfer_payload({"function": "0x1::coin::transfer", "arguments": ["0xdef", "1"]})
        assert transfer.asset is None

    def test_camel_case_payload_keys(self):
        transfer = decode_transfer_payload({
            "function": "0x1::primary_fungible_store::transfer",
            "typeArguments": [],
            "functionArguments": ["0xabc", "0xdef", "9"],
        })
        assert transfer.amount == 9

    def test_same_transfer_decodes_identically_regardless_of_label(self):
        """La forma depende de los argumentos, no de lo que diga el cliente."""
        base = {"function": "0x1::primary_fungible_store::transfer", "arguments": ["0xa", "0xb", "10"]}
        labeled = dict(base, type="coin_transfer")
        assert decode_transfer_payload(base) == decode_transfer_payload(labeled)

    @pytest.mark.parametrize("args", [[], ["0xa"], ["0xa", "0xb", "1", "x"]])
    def test_unsupported_argument_counts(self, args):
        with pytest.raises(UnsupportedPayload):
            decode_transfer_payload({"function": "0x1::coin::transfer", "arguments": args})

    def test_invalid_amount(self):
        with pytest.raises(UnsupportedPayload):
            decode_transfer_payload({"arguments": ["0xa", "12.5"]})

    def test_missing_payload(self):
        with pytest.raises(UnsupportedPayload):
            decode_transfer_payload(None)


class TestNormalizeMoveAddress:

    def test_short_and_long_forms_match(self):
        assert normalize_move_address("0x1") == normalize_move_address("0x" + "0" * 63 + "1")

    def test_type_tag_keeps_module_path(self):
        assert normalize_move_address("0x1::Coin::X").endswith("::coin::x")

    def test_empty(self):
        assert normalize_move_address(None) == ""


class TestEvaluateMoveTransaction:

    def test_accepts_exact_fungible_asset_payment(self):
        result = evaluate_move_transaction(_intent(), movement_transaction(), TX_HASH)
        assert result.accepted
        assert result.external_id == TX_HASH
        assert result.payload["kind"] == "fungible_asset"

    def test_accepts_overpayment(self):
        result = evaluate_move_transaction(_intent(), movement_transaction(amount="10000001"), TX_HASH)
        assert result.accepted

    def test_accepts_coin_transfer_for_coin_asset(self):
        intent = _intent(asset=COIN_TYPE)
        tx = movement_transaction(asset=COIN_TYPE, coin=True)
        assert evaluate_move_transaction(intent, tx, TX_HASH).accepted

    def test_large_amounts_compare_exactly(self):
        intent = _intent(amount_raw="123456789012345678")
        short = movement_transaction(amount="123456789012345677")
        exact = movement_transaction(amount="123456789012345678")
        assert evaluate_move_transaction(intent, short, TX_HASH).reason is RejectionReason.AMOUNT_TOO_LOW
        assert evaluate_move_transaction(intent, exact, TX_HASH).accepted

    def test_rejects_failed_transaction(self):
        result = evaluate_move_transaction(_intent(), movement_transaction(success=False), TX_HASH)
        assert not result.accepted
        assert result.reason is RejectionReason.ONCHAIN_ERROR

    def test_rejects_other_sender(self):
        tx = movement_transaction(sender="0x" + "99" * 32)
        assert evaluate_move_transaction(_intent(), tx, TX_HASH).reason is RejectionReason.SENDER_MISMATCH

    def test_rejects_other_receiver(self):
        tx = movement_transaction(receiver="0x" + "98" * 32)
        assert evaluate_move_transaction(_intent(), tx, TX_HASH).reason is RejectionReason.RECEIVER_MISMATCH

    def test_rejects_other_asset(self):
        tx = movement_transaction(asset="0x" + "77" * 32)
        assert evaluate_move_transaction(_intent(), tx, TX_HASH).reason is RejectionReason.ASSET_MISMATCH

    def test_asset_checked_only_when_payload_declares_it(self):
        tx = movement_transaction(coin=True)
        tx["payload"]["type_arguments"] = []
        result = evaluate_move_transaction(_intent(), tx, TX_HASH)
        assert result.accepted
        assert result.payload["asset"] is None

    def test_rejects_native_coin_transfer(self):
        tx = movement_transaction(coin=True)
        tx["payload"]["function"] = "0x1::aptos_account::transfer"
        tx["payload"]["type_arguments"] = []
        assert evaluate_move_transaction(_intent(), tx, TX_HASH).reason is RejectionReason.UNSUPPORTED_PAYLOAD

    def test_rejects_underpayment(self):
        tx = movement_transaction(amount="9999999")
        result = evaluate_move_transaction(_intent(), tx, TX_HASH)
        assert result.reason is RejectionReason.AMOUNT_TOO_LOW
        assert "required=10000000" in result.detail

    def test_rejects_non_transfer_function(self):
        tx = movement_transaction()
        tx["payload"]["function"] = "0xbad::exploit::transfer"
        assert evaluate_move_transaction(_intent(), tx, TX_HASH).reason is RejectionReason.UNSUPPORTED_PAYLOAD

    def test_rejects_unknown_payload_shape(self):
        tx = movement_transaction()
        tx["payload"]["arguments"] = ["0x1"]
        assert evaluate_move_transaction(_intent(), tx, TX_HASH).reason is RejectionReason.UNSUPPORTED_PAYLOAD

    def test_short_and_uppercase_address_forms_are_equivalent(self):
        intent = _intent(to_address="0x00cd")
        tx = movement_transaction(receiver="0xCD")
        assert evaluate_move_transaction(intent, tx, TX_HASH).accepted

    def test_payload_summary_records_amount_as_string(self):
        result = evaluate_move_transaction(_intent(), movement_transaction(), TX_HASH)
        assert result.payload["amount"] == "10000000"
        assert result.payload["receiver"] == MOVEMENT_RECEIVER


class TestValidateTxHash:

    def test_valid_hash_is_lowercased(self):
        assert validate_tx_hash("0x" + "AB" * 32) == "0x" + "ab" * 32

    @pytest.mark.parametrize("value", [None, "", "0x123", "11" * 32, "0x" + "zz" * 32])
    def test_invalid_hashes(self, value):
        with pytest.raises(BillingValidationError):
            validate_tx_hash(value)


class TestMoveChainVerifier:

    def _rpc(self, handler, attempts=2):
        async def _no_sleep(_):
            return None

        http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return http, MovementRpcClient(
            http,
            ["https://m1.test/v1", "https://m2.test/v1"],
            policy=RetryPolicy.immediate(attempts),
            sleep=_no_sleep,
        )

    @pytest.mark.anyio
    async def test_fallback_endpoint_serves_transaction(self):
        seen = []

        def handler(request):
            seen.append(request.url.host)
            if request.url.host == "m1.test":
                return httpx.Response(502)
            return httpx.Response(200, json=movement_transaction())

        http, rpc = self._rpc(handler)
        async with http:
            result = await MoveChainVerifier(rpc).verify(_intent(), TX_HASH)

        assert result.accepted
        assert seen == ["m1.test", "m2.test"]

    @pytest.mark.anyio
    async def test_not_yet_visible_then_visible(self):
        calls = {"n": 0}

        def handler(request):
            calls["n"] += 1
            if calls["n"] <= 2:
                return httpx.Response(404, json={"error_code": "transaction_not_found"})
            if calls["n"] == 3:
                return httpx.Response(200, json={"type": "pending_transaction", "hash": TX_HASH})
            return httpx.Response(200, json=movement_transaction())

        http, rpc = self._rpc(handler, attempts=3)
        async with http:
            result = await MoveChainVerifier(rpc).verify(_intent(), TX_HASH)

        assert result.accepted
        assert calls["n"] == 4

    @pytest.mark.anyio
    async def test_exhausted_endpoints_are_transient(self):
        http, rpc = self._rpc(lambda request: httpx.Response(404))
        async with http:
            with pytest.raises(TransientUnavailable) as exc:
                await MoveChainVerifier(rpc).verify(_intent(), TX_HASH)
        assert exc.value.rail == "MOVE_CHAIN"

    @pytest.mark.anyio
    async def test_deadline_returns_transient(self):
        class _SlowRpc:
            async def fetch_transaction(self, tx_hash):
                await asyncio.sleep(0.2)
                return movement_transaction()

        verifier = MoveChainVerifier(_SlowRpc(), deadline_seconds=0.01)
        with pytest.raises(TransientUnavailable):
            await verifier.verify(_intent(), TX_HASH)
        # La consulta sigue en segundo plano hasta terminar
        await asyncio.sleep(0.3)

    @pytest.mark.anyio
    async def test_malformed_hash_is_validation_error(self):
        http, rpc = self._rpc(lambda request: httpx.Response(200, json={}))
        async with http:
            with pytest.raises(BillingValidationError):
                await MoveChainVerifier(rpc).verify(_intent(), "not-a-hash")

# Fin del archivo backend/tests/modules/billing/test_move_chain_verifier.py
