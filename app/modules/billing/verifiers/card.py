# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/verifiers/card.py

Rail de tarjeta (Flutterwave): checkout hospedado + verificación.

Polling del cliente y webhook convergen en `CardVerifier.verify`, que a
su vez delega la decisión en `evaluate_card_transaction` (función pura).

Montos: se comparan en centavos enteros. El monto pagado se trunca
(ROUND_DOWN) y se compara contra `intent.amount_raw`.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from app.modules.billing.amounts import to_minor_units
from app.modules.billing.enums import RejectionReason
from app.modules.billing.errors import PaymentNotFound, TransientUnavailable
from app.modules.billing.models import PaymentIntent
from app.modules.billing.providers.flutterwave_provider import (
    CheckoutSession,
    FlutterwaveClient,
    FlutterwaveNotConfigured,
)
from .base import VerificationResult

logger = logging.getLogger(__name__)

RAIL = "CARD"

SUCCESSFUL = "successful"
# Estados que aún pueden terminar en éxito
IN_PROGRESS_STATUSES = frozenset({"pending", "processing", "new"})

_NON_DIGITS = re.compile(r"\D+")


# =============================================================================
# Identidad del cliente y parámetros del checkout
# =============================================================================

@dataclass(frozen=True)
class CustomerIdentity:
    """Datos del comprador enviados al procesador."""
    user_id: str
    email: str
    name: str
    phone: str


def build_tx_ref(user_id: str, now_ms: Optional[int] = None) -> str:
    """Referencia propia del checkout: BANTER_<userId>_<epoch-ms>."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"BANTER_{user_id}_{now_ms}"


def normalize_email(value: Optional[str], user_id: str, domain: str = "banter.app") -> str:
    raw = (value or "").strip()
    if "@" in raw and "." in raw:
        return raw
    return f"user-{user_id}@{domain}"


def normalize_phone(value: Optional[str]) -> str:
    digits = _NON_DIGITS.sub("", value or "")
    if len(digits) < 8:
        return "0000000000"
    return digits


def _is_https(value: Optional[str]) -> bool:
    return isinstance(value, str) and value.strip().lower().startswith("https://")


def resolve_redirect_url(
    requested: Optional[str],
    *,
    configured: Optional[str],
    frontend_url: Optional[str],
    default: str = "https://sportbanter.online",
) -> str:
    """Primera URL https en orden: solicitada, configurada, frontend, default."""
    for candidate in (requested, configured, frontend_url):
        if _is_https(candidate):
            return candidate.strip()
    return default


# =============================================================================
# Decisión (pura)
# =============================================================================

def evaluate_card_transaction(
    intent: PaymentIntent,
    data: Dict[str, Any],
    *,
    currency_decimals: int = 2,
) -> VerificationResult:
    """
    Acepta sii status == successful, tx_ref coincide con el del intent,
    la moneda coincide y el monto en centavos >= intent.amount_raw.
    """
    external_id = str(data.get("id") or "")
    summary = {
        "id": external_id,
        "tx_ref": data.get("tx_ref"),
        "status": data.get("status"),
        "amount": str(data.get("amount")),
        "currency": data.get("currency"),
        "flw_ref": data.get("flw_ref"),
    }

    status = str(data.get("status") or "").lower()
    if status != SUCCESSFUL:
        return VerificationResult.reject(external_id, RejectionReason.NOT_SUCCESSFUL, f"status={status}", summary)

    if not intent.provider_reference or data.get("tx_ref") != intent.provider_reference:
        return VerificationResult.reject(external_id, RejectionReason.REFERENCE_MISMATCH, None, summary)

    currency = str(data.get("currency") or "").upper()
    if currency != (intent.currency or "").upper():
        return VerificationResult.reject(
            external_id, RejectionReason.CURRENCY_MISMATCH, f"currency={currency}", summary
        )

    try:
        paid_minor = to_minor_units(data.get("amount"), currency_decimals)
    except ValueError:
        return VerificationResult.reject(external_id, RejectionReason.AMOUNT_TOO_LOW, "amount=invalid", summary)

    required = int(intent.amount_raw)
    if paid_minor < required:
        return VerificationResult.reject(
            external_id,
            RejectionReason.AMOUNT_TOO_LOW,
            f"paid={paid_minor} required={required}",
            summary,
        )

    return VerificationResult.accept(external_id, summary)


# =============================================================================
# Verificador
# =============================================================================

class CardVerifier:
    """Checkout hospedado + verificación por id o por tx_ref."""

    def __init__(
        self,
        client: FlutterwaveClient,
        *,
        currency_decimals: int = 2,
        checkout_title: str = "Banter Vote Purchase",
        logo_url: Optional[str] = None,
    ):
        self.client = client
        self.currency_decimals = currency_decimals
        self.checkout_title = checkout_title
        self.logo_url = logo_url

    async def create_checkout(
        self,
        intent: PaymentIntent,
        customer: CustomerIdentity,
        *,
        redirect_url: str,
    ) -> CheckoutSession:
        """
        Crea el checkout hospedado. El intent ya debe tener su tx_ref
        (`provider_reference`) persistido.

        Raises:
            TransientUnavailable: procesador no disponible o no configurado
        """
        payload: Dict[str, Any] = {
            "tx_ref": intent.provider_reference,
            "amount": str(intent.amount),
            "currency": intent.currency,
            "email": customer.email,
            "redirect_url": redirect_url,
            "payment_options": "card",
            "customer": {
                "email": customer.email,
                "name": customer.name,
                "phonenumber": customer.phone,
                "phone_number": customer.phone,
            },
            "meta": {
                "intent_id": intent.id,
                "user_id": intent.user_id,
                "bundle_id": intent.bundle_id,
            },
            "customizations": {
                "title": self.checkout_title,
                "description": f"{intent.credit_count} votes",
            },
        }
        if self.logo_url:
            payload["customizations"]["logo"] = self.logo_url

        try:
            return await self.client.create_payment(payload)
        except (httpx.HTTPError, ValueError, FlutterwaveNotConfigured) as e:
            logger.error(
                "flutterwave_checkout_failed intent=%s tx_ref=%s error=%s",
                intent.id, intent.provider_reference, repr(e),
            )
            raise TransientUnavailable(RAIL, "checkout unavailable") from e

    async def verify(
        self,
        intent: PaymentIntent,
        external_reference: Optional[str],
    ) -> VerificationResult:
        """
        Verifica la transacción del intent.

        `external_reference` puede ser el id numérico de Flutterwave o el
        tx_ref que devolvió la creación del intent; vacío o no numérico se
        resuelve por tx_ref antes de consultar la transacción.

        Raises:
            PaymentNotFound: Flutterwave no conoce la transacción
            TransientUnavailable: procesador inalcanzable o pago aún en curso
        """
        reference = (external_reference or "").strip()
        transaction_id = reference if reference.isdigit() else ""
        try:
            if not transaction_id:
                tx_ref = reference or intent.provider_reference
                if not tx_ref:
                    raise PaymentNotFound(intent.id, what="card transaction")
                transaction_id = await self.client.find_transaction_id(tx_ref) or ""
                if not transaction_id:
                    raise PaymentNotFound(tx_ref, what="card transaction")

            data = await self.client.verify_transaction(transaction_id)
        except (httpx.HTTPError, ValueError, FlutterwaveNotConfigured) as e:
            logger.warning(
                "flutterwave_verify_unavailable intent=%s tx_id=%s error=%s",
                intent.id, transaction_id or "-", repr(e),
            )
            raise TransientUnavailable(RAIL, "processor unavailable") from e

        if data is None:
            raise PaymentNotFound(transaction_id, what="card transaction")

        status = str(data.get("status") or "").lower()
        if status in IN_PROGRESS_STATUSES:
            logger.info("flutterwave_payment_in_progress intent=%s tx_id=%s status=%s", intent.id, transaction_id, status)
            raise TransientUnavailable(RAIL, f"payment {status}")

        if data.get("id") is None:
            data = {**data, "id": transaction_id}

        return evaluate_card_transaction(intent, data, currency_decimals=self.currency_decimals)


__all__ = [
    "CardVerifier",
    "CustomerIdentity",
    "evaluate_card_transaction",
    "build_tx_ref",
    "normalize_email",
    "normalize_phone",
    "resolve_redirect_url",
]
