# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/routes.py

Rutas de compra de votos.

Endpoints:
- GET  /api/billing/votes/bundles              (público)
- POST /api/billing/votes/intents              (auth requerido)
- GET  /api/billing/votes/intents              (auth requerido, historial)
- GET  /api/billing/votes/intents/{intent_id}  (auth requerido, solo dueño)
- POST /api/billing/votes/verify               (auth requerido, idempotente)

Mapeo de errores:
- BillingValidationError -> 422
- PaymentNotFound        -> 404 (también intents de otro usuario)
- ReplayConflict         -> 409
- TransientUnavailable   -> 503 al crear; en verify responde 202 PENDING

El usuario nunca ve el motivo específico de un rechazo; queda en logs.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from typing import NoReturn

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.auth.dependencies import get_current_user_id
from app.shared.database.database import get_async_session

from .dependencies import BillingContainer, get_billing_container
from .enums import PaymentStatus
from .errors import (
    BillingError,
    BillingValidationError,
    PaymentNotFound,
    ReplayConflict,
    TransientUnavailable,
)
from .repository import PaymentIntentRepository
from .schemas import (
    CreateIntentRequest,
    CreateIntentResponse,
    IntentHistoryResponse,
    IntentStatusResponse,
    IntentView,
    VerifyRequest,
    VerifyResponse,
    VoteBundleItem,
    VoteBundlesResponse,
    camelize_payload,
)
from .vote_bundles import get_vote_bundles

logger = logging.getLogger(__name__)

NOT_CONFIRMED_MESSAGE = "Payment not confirmed"
PENDING_MESSAGE = "Payment pending confirmation"

router = APIRouter(
    prefix="/billing/votes",
    tags=["billing"],
)


def _raise_http(error: BillingError) -> NoReturn:
    """Traduce la taxonomía de billing a HTTPException."""
    if isinstance(error, BillingValidationError):
        detail = {"error": error.code, "message": str(error)}
        if error.field:
            detail["field"] = error.field
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail) from error
    if isinstance(error, PaymentNotFound):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": error.code, "message": f"{error.what.capitalize()} not found"},
        ) from error
    if isinstance(error, ReplayConflict):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": error.code, "message": NOT_CONFIRMED_MESSAGE},
        ) from error
    if isinstance(error, TransientUnavailable):
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": error.code, "message": "Payment provider temporarily unavailable"},
        ) from error
    raise HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail={"error": error.code, "message": NOT_CONFIRMED_MESSAGE},
    ) from error


# =============================================================================
# Catálogo (público)
# =============================================================================

@router.get(
    "/bundles",
    response_model=VoteBundlesResponse,
    summary="Listar bundles de votos",
)
async def list_vote_bundles(
    container: BillingContainer = Depends(get_billing_container),
) -> VoteBundlesResponse:
    s = container.settings
    return VoteBundlesResponse(
        bundles=[VoteBundleItem(**bundle.model_dump()) for bundle in get_vote_bundles()],
        usdc_decimals=s.solana_usdc_decimals,
        account_chain_mint=s.solana_usdc_mint,
        move_chain_asset=s.movement_usdc_address,
    )


# =============================================================================
# Intents
# =============================================================================

@router.post(
    "/intents",
    response_model=CreateIntentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Crear intent de compra de votos",
)
async def create_vote_intent(
    payload: CreateIntentRequest,
    session: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
    container: BillingContainer = Depends(get_billing_container),
) -> CreateIntentResponse:
    """
    Crea un intent PENDING y devuelve las instrucciones del rail.

    Raises:
        401: No autenticado
        404: Usuario inexistente
        422: bundle inválido, rail deshabilitado o wallet no registrada
        503: procesador de tarjetas no disponible
    """
    try:
        result = await container.intents.create_intent(
            session,
            user_id=user_id,
            bundle_id=payload.bundle_id,
            rail=payload.rail,
            redirect_url=payload.redirect_url,
        )
    except BillingError as e:
        logger.info("create_intent_failed user=%s rail=%s error=%s", user_id, payload.rail.value, e.code)
        _raise_http(e)

    intent = result.intent
    return CreateIntentResponse(
        intent_id=intent.id,
        rail=intent.rail,
        status=intent.status,
        payload=camelize_payload(result.instructions),
    )


@router.get(
    "/intents",
    response_model=IntentHistoryResponse,
    summary="Historial de intents del usuario",
)
async def list_vote_intents(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
) -> IntentHistoryResponse:
    repo = PaymentIntentRepository()
    intents = await repo.list_by_user(session, user_id, limit=limit, offset=offset)
    total = await repo.count_by_user(session, user_id)
    return IntentHistoryResponse(
        items=[IntentView.model_validate(intent) for intent in intents],
        total=total,
    )


@router.get(
    "/intents/{intent_id}",
    response_model=IntentStatusResponse,
    summary="Estado de un intent",
)
async def get_vote_intent_status(
    intent_id: str,
    session: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
) -> IntentStatusResponse:
    """Solo lectura; un intent de otro usuario responde 404."""
    intent = await PaymentIntentRepository().get_for_user(session, intent_id, user_id)
    if intent is None:
        _raise_http(PaymentNotFound(intent_id, what="payment intent"))
    return IntentStatusResponse(
        status=intent.status,
        external_reference=intent.external_reference,
        completed_at=intent.completed_at,
    )


# =============================================================================
# Verificación
# =============================================================================

@router.post(
    "/verify",
    response_model=VerifyResponse,
    summary="Verificar y acreditar un pago",
    responses={202: {"description": "Confirmación pendiente; reintentar más tarde"}},
)
async def verify_vote_payment(
    payload: VerifyRequest,
    response: Response,
    session: AsyncSession = Depends(get_async_session),
    user_id: str = Depends(get_current_user_id),
    container: BillingContainer = Depends(get_billing_container),
) -> VerifyResponse:
    """
    Verifica el pago contra su rail y liquida.

    Idempotente: un intent ya COMPLETED o FAILED se devuelve tal cual
    sin volver a consultar el rail ni acreditar de nuevo.
    """
    try:
        outcome = await container.verification.verify_intent(
            session,
            intent_id=payload.intent_id,
            external_reference=payload.external_reference,
            user_id=user_id,
        )
    except BillingError as e:
        logger.info("verify_failed user=%s intent=%s error=%s", user_id, payload.intent_id, e.code)
        _raise_http(e)

    if outcome.pending:
        response.status_code = status.HTTP_202_ACCEPTED
        return VerifyResponse(
            status=PaymentStatus.PENDING,
            message=PENDING_MESSAGE,
            intent=IntentView.model_validate(outcome.intent),
        )

    message = NOT_CONFIRMED_MESSAGE if outcome.status is PaymentStatus.FAILED else None
    return VerifyResponse(
        status=outcome.status,
        message=message,
        intent=IntentView.model_validate(outcome.intent),
    )


__all__ = ["router"]

# Fin del archivo backend/app/modules/billing/routes.py
