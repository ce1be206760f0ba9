# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/webhook_routes.py

Rutas de webhooks para billing (compra de votos con tarjeta).

Endpoint:
- POST /api/billing/webhooks/flutterwave

La firma (header verif-hash) se valida antes de leer el cuerpo o tocar
la base de datos. Payloads válidos que no corresponden a ningún intent
responden 200 para que el procesador no reintente.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.shared.database.database import get_async_session

from .dependencies import BillingContainer, get_billing_container
from .errors import TransientUnavailable
from .metrics import billing_webhooks_total
from .schemas import WebhookAck
from .webhooks.flutterwave_handler import (
    PROVIDER,
    SIGNATURE_HEADER,
    WebhookNotConfigured,
    handle_flutterwave_event,
    verify_flutterwave_signature,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/billing/webhooks",
    tags=["billing:webhooks"],
)


@router.post(
    "/flutterwave",
    response_model=WebhookAck,
    status_code=status.HTTP_200_OK,
)
async def flutterwave_webhook(
    request: Request,
    session: AsyncSession = Depends(get_async_session),
    container: BillingContainer = Depends(get_billing_container),
) -> Dict[str, Any]:
    """
    Webhook de Flutterwave.

    Requiere header verif-hash igual al secret hash configurado.
    """
    settings = container.settings
    signature = request.headers.get(SIGNATURE_HEADER)

    if settings.allow_insecure_webhooks:
        logger.warning("INSECURE: Skipping Flutterwave webhook signature verification")
    else:
        try:
            valid = verify_flutterwave_signature(signature, settings.flutterwave_webhook_hash)
        except WebhookNotConfigured as e:
            logger.error("Webhook configuration error: %s", e)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Webhook not configured",
            )
        if not valid:
            billing_webhooks_total.labels(PROVIDER, "invalid_signature").inc()
            logger.warning(
                "flutterwave_webhook_rejected reason=%s",
                "missing_signature" if not signature else "invalid_signature",
            )
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid signature",
            )

    raw_body = await request.body()
    try:
        event = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError):
        billing_webhooks_total.labels(PROVIDER, "malformed").inc()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed payload",
        )
    if not isinstance(event, dict):
        billing_webhooks_total.labels(PROVIDER, "malformed").inc()
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed payload",
        )

    logger.info("Flutterwave webhook received: event=%s", event.get("event"))

    try:
        return await handle_flutterwave_event(session, event, container.verification)
    except TransientUnavailable as e:
        logger.warning("flutterwave_webhook_deferred detail=%s", e.detail or "-")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payment confirmation pending",
        )


__all__ = ["router"]
