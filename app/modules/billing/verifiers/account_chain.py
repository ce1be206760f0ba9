# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/verifiers/account_chain.py

Rail ACCOUNT_CHAIN (Solana, USDC SPL).

Una transferencia se acepta solo si se cumplen ambas condiciones:
1. El saldo del token (mint del intent) del receptor sube al menos
   `amount_raw` entre preTokenBalances y postTokenBalances.
2. La wallet registrada del pagador está entre los firmantes.

La condición 2 evita acreditar por una transferencia que cualquier
tercero haya hecho al receptor.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

import httpx

from app.modules.billing.amounts import parse_raw_amount
from app.modules.billing.enums import RejectionReason
from app.modules.billing.errors import BillingValidationError, PaymentNotFound, TransientUnavailable
from app.modules.billing.models import PaymentIntent
from app.modules.billing.providers.solana_rpc import SolanaRpcClient
from app.shared.core.http_retry_utils import EndpointsExhausted, RetryableError
from .base import VerificationResult

logger = logging.getLogger(__name__)

RAIL = "ACCOUNT_CHAIN"

# Firma base58 de 64 bytes (87-88 caracteres en la práctica)
_SIGNATURE_RE = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{64,90}$")


def _token_balance(entries: Iterable[Dict[str, Any]], owner: str, mint: str) -> int:
    """Suma los balances crudos de las token accounts de (owner, mint)."""
    total = 0
    for entry in entries or []:
        if entry.get("owner") != owner or entry.get("mint") != mint:
            continue
        raw = (entry.get("uiTokenAmount") or {}).get("amount", "0")
        total += parse_raw_amount(raw)
    return total


def extract_signers(transaction: Dict[str, Any]) -> List[str]:
    """
    Firmantes requeridos de la transacción.

    jsonParsed entrega accountKeys como objetos {pubkey, signer}; en otros
    encodings son strings y los firmantes son las primeras
    `header.numRequiredSignatures` llaves.
    """
    message = (transaction.get("transaction") or {}).get("message") or {}
    keys = message.get("accountKeys") or []
    signers: List[str] = []

    if keys and all(isinstance(k, str) for k in keys):
        required = int((message.get("header") or {}).get("numRequiredSignatures", 0))
        return list(keys[:required])

    for key in keys:
        if isinstance(key, dict) and key.get("signer"):
            pubkey = key.get("pubkey")
            if pubkey:
                signers.append(str(pubkey))
    return signers


def evaluate_solana_transaction(
    intent: PaymentIntent,
    transaction: Dict[str, Any],
    signature: str,
) -> VerificationResult:
    """
    Decide sobre una transacción finalizada (función pura).

    Acepta sii no hubo error on-chain, delta(receptor, mint) >= amount_raw
    y `intent.from_address` firmó.
    """
    meta = transaction.get("meta") or {}
    receiver = (intent.to_address or "").strip()
    mint = (intent.asset_identifier or "").strip()

    if meta.get("err") is not None:
        return VerificationResult.reject(
            signature,
            RejectionReason.ONCHAIN_ERROR,
            f"err={meta.get('err')!r}",
            {"signature": signature, "slot": transaction.get("slot")},
        )

    try:
        pre = _token_balance(meta.get("preTokenBalances"), receiver, mint)
        post = _token_balance(meta.get("postTokenBalances"), receiver, mint)
    except ValueError as e:
        return VerificationResult.reject(
            signature, RejectionReason.UNSUPPORTED_PAYLOAD, f"token balance: {e}", {"signature": signature}
        )

    delta = post - pre
    required = parse_raw_amount(intent.amount_raw)
    signers = extract_signers(transaction)

    summary = {
        "signature": signature,
        "slot": transaction.get("slot"),
        "block_time": transaction.get("blockTime"),
        "receiver": receiver,
        "mint": mint,
        "delta": str(delta),
        "signers": signers,
    }

    if delta < required:
        return VerificationResult.reject(
            signature,
            RejectionReason.AMOUNT_TOO_LOW,
            f"delta={delta} required={required}",
            summary,
        )

    if (intent.from_address or "").strip() not in signers:
        return VerificationResult.reject(
            signature,
            RejectionReason.SIGNER_MISSING,
            f"signers={len(signers)}",
            summary,
        )

    return VerificationResult.accept(signature, summary)


class AccountChainVerifier:
    """Verificador de transferencias USDC en Solana."""

    def __init__(self, rpc: SolanaRpcClient):
        self.rpc = rpc

    async def verify(
        self,
        intent: PaymentIntent,
        external_reference: Optional[str],
    ) -> VerificationResult:
        """
        Raises:
            BillingValidationError: firma mal formada
            PaymentNotFound: el nodo no conoce la transacción finalizada
            TransientUnavailable: todos los endpoints fallaron
        """
        signature = (external_reference or "").strip()
        if not _SIGNATURE_RE.match(signature):
            raise BillingValidationError("Firma de transacción Solana inválida", field="external_reference")

        try:
            transaction = await self.rpc.get_transaction(signature)
        except (EndpointsExhausted, RetryableError, httpx.HTTPError) as e:
            logger.warning(
                "solana_verify_unavailable intent=%s signature=%s error=%s",
                intent.id, signature[:16], repr(e),
            )
            raise TransientUnavailable(RAIL, "rpc unavailable") from e

        if transaction is None:
            raise PaymentNotFound(signature, what="solana transaction")

        return evaluate_solana_transaction(intent, transaction, signature)


__all__ = ["AccountChainVerifier", "evaluate_solana_transaction", "extract_signers"]
