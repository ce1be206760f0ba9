# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/services/verification_service.py

Orquestación de verificación: intent -> verificador del rail -> liquidación.

Es el camino común de:
- POST /billing/votes/verify (polling del cliente)
- Webhook de Flutterwave (evento successful)
- Envío custodiado en Movement (hash obtenido por el servidor)

Resultados:
- aceptado      -> SettlementService.settle (COMPLETED, idempotente)
- rechazado     -> SettlementService.reject (FAILED con motivo tipado)
- transitorio   -> intent sigue PENDING, `pending=True`
- no encontrado -> PaymentNotFound sin cambio de estado

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.billing.enums import PaymentRail, PaymentStatus, RejectionReason
from app.modules.billing.errors import BillingValidationError, PaymentNotFound, TransientUnavailable
from app.modules.billing.metrics import billing_verification_latency_seconds, billing_verifications_total
from app.modules.billing.models import PaymentIntent
from app.modules.billing.repository import PaymentIntentRepository
from app.modules.billing.verifiers.base import RailVerifier
from .settlement_service import SettlementService

logger = logging.getLogger(__name__)


@dataclass
class VerifyOutcome:
    """Estado del intent después de un intento de verificación."""
    intent: PaymentIntent
    pending: bool = False
    reason: Optional[RejectionReason] = None

    @property
    def status(self) -> PaymentStatus:
        return PaymentStatus(self.intent.status)


class VerificationService:
    """Despacha al verificador del rail y decide la transición."""

    def __init__(
        self,
        verifiers: Mapping[PaymentRail, RailVerifier],
        settlement: SettlementService,
        *,
        intent_repo: Optional[PaymentIntentRepository] = None,
    ):
        self.verifiers = dict(verifiers)
        self.settlement = settlement
        self.intent_repo = intent_repo or PaymentIntentRepository()

    async def verify_intent(
        self,
        session: AsyncSession,
        *,
        intent_id: str,
        external_reference: Optional[str],
        user_id: Optional[str] = None,
    ) -> VerifyOutcome:
        """
        Verifica y liquida un intent.

        Con `user_id` el intent debe pertenecer a ese usuario (si no, se
        reporta como inexistente). Sin `user_id` (webhook) no se filtra.

        Raises:
            PaymentNotFound: intent o transacción inexistente
            BillingValidationError: referencia mal formada o rail deshabilitado
            ReplayConflict: la referencia ya liquidó otro intent
        """
        if user_id is not None:
            intent = await self.intent_repo.get_for_user(session, intent_id, user_id)
        else:
            intent = await self.intent_repo.get_by_id(session, intent_id)
        if intent is None:
            raise PaymentNotFound(intent_id, what="payment intent")

        # Idempotencia: un intent terminal se devuelve tal cual, sin ir al rail
        if intent.status != PaymentStatus.PENDING.value:
            logger.info("verify_skipped intent=%s status=%s reason=terminal", intent.id, intent.status)
            return VerifyOutcome(intent=intent)

        # Cierra la transacción de lectura antes de la llamada de red
        await session.commit()

        rail = PaymentRail(intent.rail)
        verifier = self.verifiers.get(rail)
        if verifier is None:
            raise BillingValidationError(f"Rail {rail.value} deshabilitado", field="rail")

        started = time.perf_counter()
        try:
            result = await verifier.verify(intent, external_reference)
        except TransientUnavailable as e:
            billing_verifications_total.labels(rail.value, "transient").inc()
            logger.warning(
                "verify_pending intent=%s rail=%s detail=%s",
                intent.id, rail.value, e.detail or "-",
            )
            return VerifyOutcome(intent=intent, pending=True)
        except PaymentNotFound:
            billing_verifications_total.labels(rail.value, "not_found").inc()
            raise
        finally:
            billing_verification_latency_seconds.labels(rail.value).observe(time.perf_counter() - started)

        if result.accepted:
            billing_verifications_total.labels(rail.value, "accepted").inc()
            outcome = await self.settlement.settle(
                session,
                intent.id,
                result.external_id,
                verification_payload=result.payload,
            )
            return VerifyOutcome(intent=outcome.intent)

        billing_verifications_total.labels(rail.value, "rejected").inc()
        logger.warning(
            "verify_rejected intent=%s rail=%s ref=%s reason=%s detail=%s",
            intent.id, rail.value, result.external_id or "-",
            result.reason.value if result.reason else "-", result.detail or "-",
        )
        outcome = await self.settlement.reject(
            session,
            intent.id,
            result.reason or RejectionReason.NOT_SUCCESSFUL,
            result.detail,
        )
        return VerifyOutcome(intent=outcome.intent, reason=result.reason)


__all__ = ["VerificationService", "VerifyOutcome"]
