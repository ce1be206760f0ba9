# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/repository.py

Repositorio para payment_intents.

Las transiciones de estado solo ocurren con UPDATE condicionados a
`status = 'PENDING'` (compare-and-set): si otra transacción ya movió el
intent, el UPDATE afecta 0 filas y el llamador lo detecta.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .enums import PaymentRail, PaymentStatus, RejectionReason
from .errors import BillingValidationError
from .models import PaymentIntent
from .vote_bundles import VoteBundle

logger = logging.getLogger(__name__)


class PaymentIntentRepository:
    """
    Repositorio para operaciones con payment_intents.

    No hace commit: la frontera transaccional la define el servicio.
    """

    async def create(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        bundle: VoteBundle,
        rail: PaymentRail,
        payer_address: Optional[str],
        receiver_address: Optional[str],
        amount_raw: str,
        currency: str,
        asset_identifier: Optional[str] = None,
        provider_reference: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> PaymentIntent:
        """
        Crea un intent PENDING con snapshot del bundle.

        Raises:
            BillingValidationError: si faltan las direcciones que exige el rail
        """
        rail = PaymentRail(rail)
        payer = (payer_address or "").strip()
        receiver = (receiver_address or "").strip()

        if not payer:
            raise BillingValidationError(
                f"Wallet del pagador no registrada para {rail.value}",
                field="from_address",
            )
        if not receiver:
            raise BillingValidationError(
                f"Receptor de pagos no configurado para {rail.value}",
                field="to_address",
            )

        intent = PaymentIntent(
            user_id=user_id,
            rail=rail.value,
            status=PaymentStatus.PENDING.value,
            bundle_id=bundle.id,
            credit_count=bundle.credits,
            amount=Decimal(bundle.price),
            amount_raw=str(amount_raw),
            currency=currency,
            asset_identifier=asset_identifier,
            from_address=payer,
            to_address=receiver,
            provider_reference=provider_reference,
            intent_metadata={
                "bundle_id": bundle.id,
                "votes": bundle.credits,
                **(metadata or {}),
            },
        )
        session.add(intent)
        await session.flush()

        logger.info(
            "payment_intent_created intent=%s user=%s rail=%s bundle=%s amount_raw=%s",
            intent.id, user_id, rail.value, bundle.id, intent.amount_raw,
        )
        return intent

    async def get_by_id(
        self,
        session: AsyncSession,
        intent_id: str,
        *,
        for_update: bool = False,
    ) -> Optional[PaymentIntent]:
        """
        Obtiene un intent por id.

        Con `for_update=True` toma lock de fila (Postgres) y fuerza a
        refrescar la instancia del identity map con la fila recién leída.
        """
        stmt = select(PaymentIntent).where(PaymentIntent.id == intent_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_user(
        self,
        session: AsyncSession,
        intent_id: str,
        user_id: str,
    ) -> Optional[PaymentIntent]:
        """Intent del usuario; None si no existe o pertenece a otro."""
        stmt = select(PaymentIntent).where(
            PaymentIntent.id == intent_id,
            PaymentIntent.user_id == user_id,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_provider_reference(
        self,
        session: AsyncSession,
        provider_reference: str,
    ) -> Optional[PaymentIntent]:
        stmt = select(PaymentIntent).where(PaymentIntent.provider_reference == provider_reference)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_external_reference(
        self,
        session: AsyncSession,
        external_reference: str,
    ) -> Optional[PaymentIntent]:
        stmt = select(PaymentIntent).where(PaymentIntent.external_reference == external_reference)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        limit: int = 50,
        offset: int = 0,
    ) -> List[PaymentIntent]:
        stmt = (
            select(PaymentIntent)
            .where(PaymentIntent.user_id == user_id)
            .order_by(PaymentIntent.created_at.desc(), PaymentIntent.id)
            .limit(limit)
            .offset(offset)
        )
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def count_by_user(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.count()).select_from(PaymentIntent).where(PaymentIntent.user_id == user_id)
        return int(await session.scalar(stmt) or 0)

    async def guarded_complete(
        self,
        session: AsyncSession,
        intent_id: str,
        external_reference: str,
        *,
        extra_values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """
        PENDING -> COMPLETED (compare-and-set).

        `extra_values` permite fijar columnas adicionales en el mismo UPDATE
        (p.ej. metadata con el payload de verificación).

        Returns:
            True si esta llamada hizo la transición, False si el intent ya no
            estaba PENDING.
        """
        values: Dict[str, Any] = dict(extra_values or {})
        values.update(
            status=PaymentStatus.COMPLETED.value,
            external_reference=external_reference,
            completed_at=datetime.now(timezone.utc),
            failure_reason=None,
        )
        stmt = (
            update(PaymentIntent)
            .where(
                PaymentIntent.id == intent_id,
                PaymentIntent.status == PaymentStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def guarded_fail(
        self,
        session: AsyncSession,
        intent_id: str,
        reason: RejectionReason,
    ) -> bool:
        """
        PENDING -> FAILED (compare-and-set). No toca saldo ni ledger.

        La referencia externa no se liga en un rechazo: queda libre para
        el intent al que realmente corresponda.
        """
        values: Dict[str, Any] = {
            "status": PaymentStatus.FAILED.value,
            "failure_reason": RejectionReason(reason).value,
        }
        stmt = (
            update(PaymentIntent)
            .where(
                PaymentIntent.id == intent_id,
                PaymentIntent.status == PaymentStatus.PENDING.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1


__all__ = ["PaymentIntentRepository"]
