# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/schemas.py

Esquemas Pydantic de la API de compra de votos.

El contrato con el frontend es camelCase (bundleId, intentId,
externalReference...). Los modelos aceptan también snake_case
(populate_by_name) y FastAPI serializa por alias.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .enums import PaymentRail, PaymentStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


# =============================================================================
# Requests
# =============================================================================

class CreateIntentRequest(CamelModel):
    """Request para crear un intent de compra."""

    bundle_id: str = Field(min_length=1, max_length=50, description="ID del bundle (b1..b4)")
    rail: PaymentRail = Field(description="CARD | ACCOUNT_CHAIN | MOVE_CHAIN")
    redirect_url: Optional[str] = Field(
        default=None,
        max_length=500,
        description="Redirect https tras el checkout de tarjeta (opcional)",
    )


class VerifyRequest(CamelModel):
    """
    Request de verificación.

    `external_reference` es la firma/hash on-chain o el id de transacción
    de Flutterwave. Para CARD puede omitirse: se resuelve por tx_ref.
    """

    intent_id: str = Field(min_length=1, max_length=64)
    external_reference: Optional[str] = Field(default=None, max_length=160)


# =============================================================================
# Responses
# =============================================================================

class VoteBundleItem(CamelModel):
    id: str
    name: str
    credits: int
    price: Decimal
    currency: str
    popular: bool = False


class VoteBundlesResponse(CamelModel):
    """Catálogo + parámetros de pago on-chain para el cliente."""

    bundles: List[VoteBundleItem]
    usdc_decimals: int
    account_chain_mint: Optional[str] = None
    move_chain_asset: Optional[str] = None


class IntentView(CamelModel):
    """Representación pública de un intent."""

    id: str
    rail: PaymentRail
    status: PaymentStatus
    bundle_id: str
    credit_count: int
    amount: Decimal
    amount_raw: str
    currency: str
    asset_identifier: Optional[str] = None
    to_address: Optional[str] = None
    external_reference: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class CreateIntentResponse(CamelModel):
    """
    `payload` depende del rail:
    - CARD:          {checkoutUrl, reference, amount, currency}
    - ACCOUNT_CHAIN: {fromAddress, toAddress, amountRaw, assetIdentifier, decimals}
    - MOVE_CHAIN:    lo anterior + transactionTemplate, o {status, externalReference}
                     cuando la wallet es custodiada por el servidor
    """

    intent_id: str
    rail: PaymentRail
    status: PaymentStatus
    payload: Dict[str, Any]


class VerifyResponse(CamelModel):
    status: PaymentStatus
    message: Optional[str] = None
    intent: IntentView


class IntentStatusResponse(CamelModel):
    status: PaymentStatus
    external_reference: Optional[str] = None
    completed_at: Optional[datetime] = None


class IntentHistoryResponse(CamelModel):
    items: List[IntentView]
    total: int


class WebhookAck(BaseModel):
    received: bool = True
    result: str
    intent_id: Optional[str] = None


def camelize_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Claves snake_case de las instrucciones de rail -> camelCase (1 nivel)."""
    return {to_camel(key): value for key, value in payload.items()}


__all__ = [
    "CreateIntentRequest",
    "VerifyRequest",
    "VoteBundleItem",
    "VoteBundlesResponse",
    "IntentView",
    "CreateIntentResponse",
    "VerifyResponse",
    "IntentStatusResponse",
    "IntentHistoryResponse",
    "WebhookAck",
    "camelize_payload",
]

# Fin del archivo backend/app/modules/billing/schemas.py
