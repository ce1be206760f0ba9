# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/verifiers/base.py

Contrato común de los verificadores de rail.

Cada verificador recibe el intent persistido y la referencia externa que
aporta el cliente (o el webhook) y devuelve un VerificationResult. Los
errores propios del rail (httpx, JSON-RPC, timeouts) se traducen aquí a
la taxonomía de billing:

- PaymentNotFound        -> la transacción no existe (sin cambio de estado)
- TransientUnavailable   -> RPC/procesador inalcanzable (intent sigue PENDING)
- BillingValidationError -> referencia mal formada

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Protocol

from app.modules.billing.enums import RejectionReason
from app.modules.billing.models import PaymentIntent


@dataclass(frozen=True)
class VerificationResult:
    """
    Decisión de un verificador.

    `payload` es un resumen auditable de lo que el rail reportó; se guarda
    en la metadata del intent al liquidar.
    """
    accepted: bool
    external_id: str
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None
    payload: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def accept(cls, external_id: str, payload: Optional[Dict[str, Any]] = None) -> "VerificationResult":
        return cls(accepted=True, external_id=external_id, payload=payload or {})

    @classmethod
    def reject(
        cls,
        external_id: str,
        reason: RejectionReason,
        detail: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> "VerificationResult":
        return cls(
            accepted=False,
            external_id=external_id,
            reason=reason,
            detail=detail,
            payload=payload or {},
        )


class RailVerifier(Protocol):
    """Interfaz que implementan los tres verificadores."""

    async def verify(
        self,
        intent: PaymentIntent,
        external_reference: Optional[str],
    ) -> VerificationResult:
        ...


_HEX_ADDRESS = re.compile(r"^0x[0-9a-f]{1,64}$")


def normalize_move_address(value: Optional[str]) -> str:
    """
    Normaliza direcciones/identificadores Move para comparar.

    - trim + minúsculas
    - direcciones hex se rellenan a 64 dígitos ("0x1" == "0x000...01")
    - tipos (`0x1::coin::Coin<...>`) solo normalizan la dirección inicial
    """
    text = (value or "").strip().lower()
    if not text:
        return ""
    head, sep, rest = text.partition("::")
    if _HEX_ADDRESS.match(head):
        head = "0x" + head[2:].rjust(64, "0")
    return head + sep + rest


__all__ = ["VerificationResult", "RailVerifier", "normalize_move_address"]
