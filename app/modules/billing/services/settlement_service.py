# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/services/settlement_service.py

Liquidación de intents de compra de votos (único punto de mutación).

Pipeline de `settle` (una sola transacción):
1. Re-lee el intent dentro de la transacción (FOR UPDATE en Postgres)
2. Si ya no está PENDING -> no-op idempotente, devuelve el estado actual
3. Guardia de replay: la referencia externa no puede estar ligada a otro intent
4. PENDING -> COMPLETED con UPDATE condicionado (compare-and-set)
5. Incrementa vote_balance en credit_count (UPDATE atómico)
6. Agrega la entrada del ledger con clave en la referencia externa
7. Commit (4-6 se aplican todos o ninguno)
8. Fuera de la transacción: notificación best-effort

IMPORTANTE: ningún otro código cambia el estado de un intent ni acredita
votos. Polling y webhook llegan aquí por el mismo camino.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.accounts.repository import UserRepository
from app.modules.billing.enums import PaymentRail, PaymentStatus, RejectionReason
from app.modules.billing.errors import PaymentNotFound, ReplayConflict
from app.modules.billing.ledger import LedgerRepository
from app.modules.billing.metrics import billing_replay_conflicts_total, billing_settlements_total
from app.modules.billing.models import PaymentIntent
from app.modules.billing.repository import PaymentIntentRepository
from app.modules.notifications.service import NotificationService

logger = logging.getLogger(__name__)

LEDGER_DESCRIPTION = "Vote bundle purchase"

# Símbolo del token por rail para el ledger
_TOKEN_SYMBOLS = {
    PaymentRail.ACCOUNT_CHAIN: "USDC",
    PaymentRail.MOVE_CHAIN: "USDC.e",
}


@dataclass
class SettlementOutcome:
    """Resultado de una llamada a settle/reject."""
    intent: PaymentIntent
    result: Literal["completed", "already_terminal", "failed"]
    new_balance: Optional[int] = None

    @property
    def status(self) -> PaymentStatus:
        return PaymentStatus(self.intent.status)


class SettlementService:
    """
    Motor de liquidación.

    Garantías:
    - At-most-once: el saldo sube en credit_count una sola vez por intent
    - Atomicidad: intent COMPLETED + saldo + ledger, todo o nada
    - Replay: una referencia externa liquida a lo sumo un intent
    """

    def __init__(
        self,
        *,
        intent_repo: Optional[PaymentIntentRepository] = None,
        user_repo: Optional[UserRepository] = None,
        ledger_repo: Optional[LedgerRepository] = None,
        notifier: Optional[NotificationService] = None,
    ):
        self.intent_repo = intent_repo or PaymentIntentRepository()
        self.user_repo = user_repo or UserRepository()
        self.ledger_repo = ledger_repo or LedgerRepository()
        self.notifier = notifier

    async def _load_locked(self, session: AsyncSession, intent_id: str) -> PaymentIntent:
        intent = await self.intent_repo.get_by_id(session, intent_id, for_update=True)
        if intent is None:
            raise PaymentNotFound(intent_id, what="payment intent")
        return intent

    async def _replay_conflict(
        self,
        session: AsyncSession,
        intent: PaymentIntent,
        external_reference: str,
    ) -> ReplayConflict:
        """Construye, loguea y cuenta un ReplayConflict (señal de posible ataque)."""
        bound = await self.intent_repo.get_by_external_reference(session, external_reference)
        bound_id = bound.id if bound is not None else None
        logger.warning(
            "replay_conflict intent=%s user=%s rail=%s ref=%s bound_intent=%s",
            intent.id, intent.user_id, intent.rail, external_reference, bound_id or "ledger",
        )
        billing_replay_conflicts_total.labels(intent.rail).inc()
        return ReplayConflict(external_reference, intent.id, bound_id)

    async def settle(
        self,
        session: AsyncSession,
        intent_id: str,
        external_reference: str,
        verification_payload: Optional[Dict[str, Any]] = None,
    ) -> SettlementOutcome:
        """
        Liquida un intent verificado.

        Returns:
            SettlementOutcome con result="completed" si esta llamada acreditó,
            o "already_terminal" si el intent ya no estaba PENDING.

        Raises:
            PaymentNotFound: el intent no existe
            ReplayConflict: la referencia ya liquidó otro intent (intent sigue PENDING)
        """
        if not external_reference:
            raise ValueError("external_reference is required")

        intent = await self._load_locked(session, intent_id)

        # 2) Guardia de exactamente-una-vez, dentro de la transacción
        if intent.status != PaymentStatus.PENDING.value:
            await session.commit()
            logger.info(
                "settlement_skipped intent=%s status=%s ref=%s reason=already_terminal",
                intent.id, intent.status, external_reference,
            )
            billing_settlements_total.labels(intent.rail, "already_terminal").inc()
            return SettlementOutcome(intent=intent, result="already_terminal")

        # 3) Replay: ¿la referencia ya está ligada a otro intent?
        bound = await self.intent_repo.get_by_external_reference(session, external_reference)
        if bound is not None and bound.id != intent.id:
            conflict = await self._replay_conflict(session, intent, external_reference)
            await session.commit()
            raise conflict

        rail = PaymentRail(intent.rail)
        metadata = dict(intent.intent_metadata or {})
        if verification_payload:
            metadata["verification"] = verification_payload

        try:
            # 4) PENDING -> COMPLETED (compare-and-set)
            transitioned = await self.intent_repo.guarded_complete(
                session,
                intent.id,
                external_reference,
                extra_values={"intent_metadata": metadata},
            )
            if not transitioned:
                # Otra liquidación concurrente ganó la carrera (el UPDATE no escribió nada)
                intent = await self._load_locked(session, intent_id)
                await session.commit()
                logger.info(
                    "settlement_skipped intent=%s status=%s ref=%s reason=concurrent",
                    intent.id, intent.status, external_reference,
                )
                billing_settlements_total.labels(intent.rail, "already_terminal").inc()
                return SettlementOutcome(intent=intent, result="already_terminal")

            # 5) Saldo
            new_balance = await self.user_repo.increment_vote_balance(
                session, intent.user_id, intent.credit_count
            )

            # 6) Ledger
            await self.ledger_repo.append(
                session,
                user_id=intent.user_id,
                external_reference=external_reference,
                chain=rail.chain_label,
                amount_raw=intent.amount_raw,
                payment_intent_id=intent.id,
                asset_identifier=intent.asset_identifier,
                token_symbol=_TOKEN_SYMBOLS.get(rail, intent.currency),
                from_address=intent.from_address,
                to_address=intent.to_address,
                description=LEDGER_DESCRIPTION,
                tx_metadata={
                    "bundle_id": intent.bundle_id,
                    "votes": intent.credit_count,
                },
            )

            # 7) Commit
            await session.commit()
        except IntegrityError as e:
            # Unicidad de external_reference (intent o ledger) violada por otra transacción
            await session.rollback()
            intent = await self._load_locked(session, intent_id)
            if intent.status != PaymentStatus.PENDING.value:
                await session.commit()
                billing_settlements_total.labels(intent.rail, "already_terminal").inc()
                return SettlementOutcome(intent=intent, result="already_terminal")
            conflict = await self._replay_conflict(session, intent, external_reference)
            await session.commit()
            raise conflict from e
        except ValueError:
            # Usuario inexistente: nada de 4-6 se aplica
            await session.rollback()
            raise

        await session.refresh(intent)

        logger.info(
            "payment_settled intent=%s user=%s rail=%s ref=%s votes=%d balance_after=%d",
            intent.id, intent.user_id, intent.rail, external_reference,
            intent.credit_count, new_balance,
        )
        billing_settlements_total.labels(intent.rail, "completed").inc()

        # 8) Notificación best-effort fuera de la transacción
        if self.notifier is not None:
            await self.notifier.notify_vote_purchase(
                user_id=intent.user_id,
                intent_id=intent.id,
                credit_count=intent.credit_count,
                rail=intent.rail,
            )

        return SettlementOutcome(intent=intent, result="completed", new_balance=new_balance)

    async def reject(
        self,
        session: AsyncSession,
        intent_id: str,
        reason: RejectionReason,
        detail: Optional[str] = None,
    ) -> SettlementOutcome:
        """
        PENDING -> FAILED con motivo tipado. Sin crédito ni ledger.

        Idempotente: un intent ya terminal se devuelve sin cambios.
        """
        intent = await self._load_locked(session, intent_id)
        if intent.status != PaymentStatus.PENDING.value:
            await session.commit()
            return SettlementOutcome(intent=intent, result="already_terminal")

        transitioned = await self.intent_repo.guarded_fail(session, intent.id, reason)
        await session.commit()
        await session.refresh(intent)

        if not transitioned:
            return SettlementOutcome(intent=intent, result="already_terminal")

        logger.warning(
            "payment_rejected intent=%s user=%s rail=%s reason=%s detail=%s",
            intent.id, intent.user_id, intent.rail, RejectionReason(reason).value, detail or "-",
        )
        billing_settlements_total.labels(intent.rail, "failed").inc()
        return SettlementOutcome(intent=intent, result="failed")


__all__ = ["SettlementService", "SettlementOutcome", "LEDGER_DESCRIPTION"]
