# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/verifiers/move_chain.py

Rail MOVE_CHAIN (Movement / Aptos, USDC.e).

Decodificación del payload `entry_function_payload`: dos formas de
transferencia, distinguidas por la cantidad de argumentos:

- Fungible asset:  arguments = [asset, receiver, amount]
- Coin (legacy):   arguments = [receiver, amount], type_arguments = [coin_type]

Los montos son enteros u64 en la unidad mínima; se comparan como int de
Python (precisión arbitraria), nunca como float.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

from app.modules.billing.amounts import parse_raw_amount
from app.modules.billing.enums import RejectionReason
from app.modules.billing.errors import BillingValidationError, TransientUnavailable
from app.modules.billing.models import PaymentIntent
from app.modules.billing.providers.movement_rpc import MovementRpcClient
from app.shared.core.http_retry_utils import EndpointsExhausted, RetryableError, wait_shielded
from .base import VerificationResult, normalize_move_address

logger = logging.getLogger(__name__)

RAIL = "MOVE_CHAIN"

_TX_HASH_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")

# Funciones de framework que mueven fondos con las formas soportadas
TRANSFER_FUNCTIONS = frozenset({
    "0x1::primary_fungible_store::transfer",
    "0x1::aptos_account::transfer_fungible_assets",
    "0x1::coin::transfer",
    "0x1::aptos_account::transfer_coins",
})


# =============================================================================
# Unión etiquetada de transferencias
# =============================================================================

@dataclass(frozen=True)
class FungibleAssetTransfer:
    asset: str
    receiver: str
    amount: int
    function: str = ""
    kind: str = "fungible_asset"


@dataclass(frozen=True)
class CoinTransfer:
    coin_type: Optional[str]
    receiver: str
    amount: int
    function: str = ""
    kind: str = "coin"

    @property
    def asset(self) -> Optional[str]:
        return self.coin_type


DecodedTransfer = Union[FungibleAssetTransfer, CoinTransfer]


class UnsupportedPayload(ValueError):
    """El payload no tiene ninguna de las dos formas de transferencia."""


def _asset_arg(value: Any) -> str:
    # Object<Metadata> se serializa como {"inner": "0x..."}
    if isinstance(value, dict):
        value = value.get("inner", "")
    return str(value or "")


def decode_transfer_payload(payload: Optional[Dict[str, Any]]) -> DecodedTransfer:
    """
    Decodifica un entry function payload a una transferencia.

    La forma se decide por número de argumentos, no por el nombre de la
    función ni por ninguna etiqueta enviada por el cliente.

    Raises:
        UnsupportedPayload: forma desconocida o monto inválido
    """
    payload = payload or {}
    function = str(payload.get("function") or payload.get("entry_function_id") or "")
    type_args = payload.get("type_arguments")
    if type_args is None:
        type_args = payload.get("typeArguments") or []
    args = payload.get("arguments")
    if args is None:
        args = payload.get("functionArguments") or []

    if not isinstance(args, list) or not isinstance(type_args, list):
        raise UnsupportedPayload("arguments/type_arguments deben ser listas")

    try:
        if len(args) == 3:
            return FungibleAssetTransfer(
                asset=_asset_arg(args[0]),
                receiver=str(args[1] or ""),
                amount=parse_raw_amount(args[2]),
                function=function,
            )
        if len(args) == 2:
            return CoinTransfer(
                coin_type=str(type_args[0]) if type_args else None,
                receiver=str(args[0] or ""),
                amount=parse_raw_amount(args[1]),
                function=function,
            )
    except ValueError as e:
        raise UnsupportedPayload(f"monto inválido: {e}") from e

    raise UnsupportedPayload(f"{len(args)} argumentos no corresponden a una transferencia")


# =============================================================================
# Decisión (pura)
# =============================================================================

def evaluate_move_transaction(
    intent: PaymentIntent,
    transaction: Dict[str, Any],
    tx_hash: str,
) -> VerificationResult:
    """
    Acepta sii la transacción tuvo éxito, sender == from_address,
    receptor == to_address, activo == asset_identifier y monto >= amount_raw.

    El activo se compara solo cuando el payload lo declara. Las transferencias
    sin activo (moneda nativa, `aptos_account::transfer`) quedan fuera por
    `TRANSFER_FUNCTIONS`: todas las funciones admitidas llevan el activo en
    sus argumentos o type_arguments.
    """
    summary: Dict[str, Any] = {
        "hash": tx_hash,
        "version": transaction.get("version"),
        "sender": transaction.get("sender"),
        "success": transaction.get("success"),
        "vm_status": transaction.get("vm_status"),
    }

    if transaction.get("success") is not True:
        return VerificationResult.reject(
            tx_hash, RejectionReason.ONCHAIN_ERROR, f"vm_status={transaction.get('vm_status')}", summary
        )

    if normalize_move_address(transaction.get("sender")) != normalize_move_address(intent.from_address):
        return VerificationResult.reject(tx_hash, RejectionReason.SENDER_MISMATCH, None, summary)

    try:
        transfer = decode_transfer_payload(transaction.get("payload"))
    except UnsupportedPayload as e:
        return VerificationResult.reject(tx_hash, RejectionReason.UNSUPPORTED_PAYLOAD, str(e), summary)

    summary.update(
        kind=transfer.kind,
        function=transfer.function,
        receiver=transfer.receiver,
        asset=transfer.asset,
        amount=str(transfer.amount),
    )

    if normalize_move_address(transfer.function) not in {normalize_move_address(f) for f in TRANSFER_FUNCTIONS}:
        return VerificationResult.reject(
            tx_hash, RejectionReason.UNSUPPORTED_PAYLOAD, f"function={transfer.function}", summary
        )

    receiver = normalize_move_address(transfer.receiver)
    if not receiver or receiver != normalize_move_address(intent.to_address):
        return VerificationResult.reject(tx_hash, RejectionReason.RECEIVER_MISMATCH, None, summary)

    expected_asset = normalize_move_address(intent.asset_identifier)
    if expected_asset and transfer.asset and normalize_move_address(transfer.asset) != expected_asset:
        return VerificationResult.reject(
            tx_hash, RejectionReason.ASSET_MISMATCH, f"asset={transfer.asset}", summary
        )

    required = parse_raw_amount(intent.amount_raw)
    if transfer.amount < required:
        return VerificationResult.reject(
            tx_hash,
            RejectionReason.AMOUNT_TOO_LOW,
            f"paid={transfer.amount} required={required}",
            summary,
        )

    return VerificationResult.accept(tx_hash, summary)


# =============================================================================
# Verificador
# =============================================================================

def validate_tx_hash(value: Optional[str]) -> str:
    tx_hash = (value or "").strip()
    if not _TX_HASH_RE.match(tx_hash):
        raise BillingValidationError("Hash de transacción Movement inválido", field="external_reference")
    return tx_hash.lower()


class MoveChainVerifier:
    """
    Verificador de transferencias en Movement.

    `deadline_seconds` acota la espera del request del usuario; si vence,
    la consulta en curso sigue ejecutándose en segundo plano y el intent
    queda PENDING para el siguiente intento.
    """

    def __init__(self, rpc: MovementRpcClient, *, deadline_seconds: float = 45.0):
        self.rpc = rpc
        self.deadline_seconds = deadline_seconds

    async def fetch(self, tx_hash: str) -> Dict[str, Any]:
        """
        Raises:
            TransientUnavailable: endpoints agotados o plazo vencido
        """
        try:
            return await wait_shielded(self.rpc.fetch_transaction(tx_hash), self.deadline_seconds)
        except TimeoutError as e:
            logger.warning("movement_verify_deadline hash=%s deadline=%.0fs", tx_hash[:14], self.deadline_seconds)
            raise TransientUnavailable(RAIL, "confirmation pending") from e
        except (EndpointsExhausted, RetryableError, httpx.HTTPError, ValueError) as e:
            logger.warning("movement_verify_unavailable hash=%s error=%s", tx_hash[:14], repr(e))
            raise TransientUnavailable(RAIL, "rpc unavailable") from e

    async def verify(
        self,
        intent: PaymentIntent,
        external_reference: Optional[str],
    ) -> VerificationResult:
        tx_hash = validate_tx_hash(external_reference)
        transaction = await self.fetch(tx_hash)
        return evaluate_move_transaction(intent, transaction, tx_hash)


__all__ = [
    "MoveChainVerifier",
    "FungibleAssetTransfer",
    "CoinTransfer",
    "DecodedTransfer",
    "UnsupportedPayload",
    "decode_transfer_payload",
    "evaluate_move_transaction",
    "validate_tx_hash",
    "TRANSFER_FUNCTIONS",
]
