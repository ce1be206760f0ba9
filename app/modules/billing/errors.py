# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/errors.py

Excepciones de dominio del motor de pagos.

Los errores específicos de cada rail (httpx, JSON-RPC, formato de payload)
se normalizan a esta taxonomía en el borde de cada verificador; la
liquidación y las rutas nunca ramifican sobre excepciones de un rail.

Un rechazo no es una excepción: el verificador devuelve un
`VerificationResult` con `accepted=False` y un `RejectionReason`, y
`SettlementService.reject` lo lleva a FAILED.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from typing import Optional


class BillingError(Exception):
    """Base de errores de billing."""
    code = "billing_error"


class BillingValidationError(BillingError):
    """Entrada inválida (bundle, rail, wallet faltante). Nada se persiste."""
    code = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class BundleNotFound(BillingValidationError):
    """Se lanza cuando el bundle solicitado no existe en el catálogo."""
    def __init__(self, bundle_id: str):
        self.bundle_id = bundle_id
        super().__init__(f"Bundle no encontrado: {bundle_id}", field="bundle_id")


class PaymentNotFound(BillingError):
    """Intent o transacción desconocida. Sin cambio de estado."""
    code = "not_found"

    def __init__(self, identifier: str, what: str = "payment"):
        self.identifier = identifier
        self.what = what
        super().__init__(f"{what} no encontrado: {identifier}")


class TransientUnavailable(BillingError):
    """RPC/procesador no disponible tras reintentos. El intent sigue PENDING."""
    code = "payment_pending"

    def __init__(self, rail: str, detail: Optional[str] = None):
        self.rail = rail
        self.detail = detail
        super().__init__(f"{rail} no disponible" + (f": {detail}" if detail else ""))


class ReplayConflict(BillingError):
    """La referencia externa ya está ligada a otro intent. El intent sigue PENDING."""
    code = "replay_conflict"

    def __init__(self, external_reference: str, intent_id: str, bound_intent_id: Optional[str] = None):
        self.external_reference = external_reference
        self.intent_id = intent_id
        self.bound_intent_id = bound_intent_id
        super().__init__(
            f"Referencia {external_reference} ya usada por intent {bound_intent_id or '?'} "
            f"(intento sobre {intent_id})"
        )


__all__ = [
    "BillingError",
    "BillingValidationError",
    "BundleNotFound",
    "PaymentNotFound",
    "TransientUnavailable",
    "ReplayConflict",
]

# Fin del archivo backend/app/modules/billing/errors.py
