# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/ledger/repository.py

Repositorio append-only del ledger de transferencias.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.billing.enums import LedgerDirection, LedgerTxType
from .models import WalletTransaction

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Inserciones y lecturas de WalletTransaction. Sin updates ni deletes."""

    async def append(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        external_reference: str,
        chain: str,
        amount_raw: str,
        payment_intent_id: str,
        asset_identifier: Optional[str] = None,
        token_symbol: Optional[str] = None,
        from_address: Optional[str] = None,
        to_address: Optional[str] = None,
        description: Optional[str] = None,
        tx_type: LedgerTxType = LedgerTxType.PAYMENT,
        direction: LedgerDirection = LedgerDirection.IN,
        tx_metadata: Optional[dict] = None,
    ) -> WalletTransaction:
        """
        Agrega una entrada al ledger.

        La unicidad de `external_reference` la garantiza la BD: un duplicado
        produce IntegrityError en el flush y lo resuelve el llamador.
        """
        if not external_reference:
            raise ValueError("external_reference is required")

        entry = WalletTransaction(
            user_id=user_id,
            external_reference=external_reference,
            tx_type=LedgerTxType(tx_type).value,
            direction=LedgerDirection(direction).value,
            chain=chain,
            amount_raw=str(amount_raw),
            asset_identifier=asset_identifier,
            token_symbol=token_symbol,
            from_address=from_address,
            to_address=to_address,
            status="COMPLETED",
            description=description,
            payment_intent_id=payment_intent_id,
            tx_metadata=tx_metadata or {},
        )
        session.add(entry)
        await session.flush()

        logger.debug(
            "ledger_entry_appended ref=%s chain=%s amount_raw=%s intent=%s",
            external_reference, chain, amount_raw, payment_intent_id,
        )
        return entry

    async def get_by_external_reference(
        self,
        session: AsyncSession,
        external_reference: str,
    ) -> Optional[WalletTransaction]:
        stmt = select(WalletTransaction).where(
            WalletTransaction.external_reference == external_reference
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def count_for_intent(
        self,
        session: AsyncSession,
        payment_intent_id: str,
    ) -> int:
        stmt = select(func.count(WalletTransaction.id)).where(
            WalletTransaction.payment_intent_id == payment_intent_id
        )
        return int(await session.scalar(stmt) or 0)


__all__ = ["LedgerRepository"]
