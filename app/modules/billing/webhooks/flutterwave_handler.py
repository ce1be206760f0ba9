# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/webhooks/flutterwave_handler.py

Handler de webhooks de Flutterwave (compra de votos con tarjeta).

Procesa eventos:
- charge.completed: re-verifica la transacción contra la API y liquida

El cuerpo del webhook solo se usa para localizar el intent (tx_ref) y el
id de transacción; el estado y el monto siempre se confirman con
GET /transactions/{id}/verify por el mismo camino que el polling.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.billing.enums import PaymentRail, PaymentStatus
from app.modules.billing.errors import PaymentNotFound, ReplayConflict, TransientUnavailable
from app.modules.billing.metrics import billing_webhooks_total
from app.modules.billing.repository import PaymentIntentRepository
from app.modules.billing.services.verification_service import VerificationService

logger = logging.getLogger(__name__)

PROVIDER = "flutterwave"
SIGNATURE_HEADER = "verif-hash"
CHARGE_COMPLETED = "charge.completed"


class WebhookNotConfigured(RuntimeError):
    """No hay secret hash configurado para validar webhooks."""


def verify_flutterwave_signature(header_value: Optional[str], secret_hash: Optional[str]) -> bool:
    """
    Compara el header verif-hash con el secret hash configurado
    en tiempo constante.

    Raises:
        WebhookNotConfigured: si no hay secret hash
    """
    if not secret_hash:
        raise WebhookNotConfigured("FLUTTERWAVE_WEBHOOK_HASH not configured")
    if not header_value:
        return False
    return hmac.compare_digest(header_value.encode("utf-8"), secret_hash.encode("utf-8"))


def _ack(result: str, intent_id: Optional[str] = None) -> Dict[str, Any]:
    billing_webhooks_total.labels(PROVIDER, result).inc()
    return {"received": True, "result": result, "intent_id": intent_id}


async def handle_flutterwave_event(
    session: AsyncSession,
    event: Dict[str, Any],
    verification: VerificationService,
    *,
    intent_repo: Optional[PaymentIntentRepository] = None,
) -> Dict[str, Any]:
    """
    Procesa un evento ya autenticado.

    Returns:
        Acuse con `result` en: ignored, not_found, already_terminal,
        completed, failed, replay_conflict.

    Raises:
        TransientUnavailable: el procesador no confirmó aún (la ruta responde
        5xx para que Flutterwave reintente)
    """
    repo = intent_repo or PaymentIntentRepository()

    event_type = str(event.get("event") or "")
    data = event.get("data") if isinstance(event.get("data"), dict) else {}
    tx_ref = str(data.get("tx_ref") or "").strip()
    transaction_id = data.get("id")

    if event_type and event_type != CHARGE_COMPLETED:
        logger.info("flutterwave_webhook_ignored event=%s reason=unsupported_event", event_type)
        return _ack("ignored")

    if not tx_ref:
        logger.info("flutterwave_webhook_ignored event=%s reason=missing_tx_ref", event_type or "-")
        return _ack("ignored")

    intent = await repo.get_by_provider_reference(session, tx_ref)
    if intent is None or intent.rail != PaymentRail.CARD.value:
        logger.info("flutterwave_webhook_ignored tx_ref=%s reason=unknown_reference", tx_ref)
        return _ack("ignored")

    if intent.status != PaymentStatus.PENDING.value:
        await session.commit()
        logger.info("flutterwave_webhook_skipped intent=%s status=%s", intent.id, intent.status)
        return _ack("already_terminal", intent.id)

    external_reference = str(transaction_id) if transaction_id is not None else None

    try:
        outcome = await verification.verify_intent(
            session,
            intent_id=intent.id,
            external_reference=external_reference,
        )
    except PaymentNotFound:
        logger.warning(
            "flutterwave_webhook_unmatched intent=%s tx_id=%s reason=transaction_not_found",
            intent.id, external_reference or "-",
        )
        return _ack("not_found", intent.id)
    except ReplayConflict:
        return _ack("replay_conflict", intent.id)

    if outcome.pending:
        # El procesador aún no confirma: que Flutterwave reintente
        billing_webhooks_total.labels(PROVIDER, "pending").inc()
        raise TransientUnavailable(PaymentRail.CARD.value, "payment pending")

    result = "completed" if outcome.status is PaymentStatus.COMPLETED else "failed"
    logger.info(
        "flutterwave_webhook_processed intent=%s tx_id=%s status=%s",
        intent.id, external_reference or "-", outcome.status.value,
    )
    return _ack(result, intent.id)


__all__ = [
    "PROVIDER",
    "SIGNATURE_HEADER",
    "WebhookNotConfigured",
    "verify_flutterwave_signature",
    "handle_flutterwave_event",
]
