# -*- coding: utf-8 -*-
"""
backend/app/modules/notifications/service.py

Servicio de notificaciones post-liquidación.

Características:
- Idempotente: referencia única `vote_purchase:<intent_id>`
- Best-effort: errores y timeouts se loguean pero NO se propagan
- Usa su propia sesión: nunca participa de la transacción de liquidación
- Publisher opcional (websocket/push) invocado tras persistir

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .models import Notification

logger = logging.getLogger(__name__)

# Tipos
VOTE_PURCHASE = "VOTE_PURCHASE"

NotificationPublisher = Callable[[str, Dict[str, Any]], Awaitable[None]]


def vote_purchase_reference(intent_id: str) -> str:
    return f"vote_purchase:{intent_id}"


class NotificationService:
    """Persistencia + emisión de notificaciones de compra de votos."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        publisher: Optional[NotificationPublisher] = None,
        timeout_seconds: float = 5.0,
    ):
        self.session_factory = session_factory
        self.publisher = publisher
        self.timeout_seconds = timeout_seconds

    async def notify_vote_purchase(
        self,
        *,
        user_id: str,
        intent_id: str,
        credit_count: int,
        rail: str,
    ) -> bool:
        """
        Notifica al usuario que su compra se acreditó.

        Returns:
            True si se creó la notificación, False si ya existía o falló.
        """
        payload = {
            "intent_id": intent_id,
            "votes": credit_count,
            "rail": rail,
        }
        try:
            return await asyncio.wait_for(
                self._deliver(user_id, vote_purchase_reference(intent_id), credit_count, payload),
                timeout=self.timeout_seconds,
            )
        except Exception as e:
            logger.warning(
                "vote_purchase_notify_failed user=%s intent=%s error=%s",
                user_id, intent_id, repr(e),
            )
            return False

    async def _deliver(
        self,
        user_id: str,
        reference: str,
        credit_count: int,
        payload: Dict[str, Any],
    ) -> bool:
        async with self.session_factory() as session:
            existing = await session.scalar(
                select(Notification.id).where(Notification.reference == reference)
            )
            if existing is not None:
                logger.info("vote_purchase_notify_skipped reason=already_sent ref=%s", reference)
                return False

            session.add(
                Notification(
                    user_id=user_id,
                    notification_type=VOTE_PURCHASE,
                    reference=reference,
                    title="Votes purchased",
                    body=f"{credit_count} votes were added to your balance.",
                    payload=payload,
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                # Otra entrega concurrente ganó la carrera
                await session.rollback()
                logger.info("vote_purchase_notify_skipped reason=concurrent ref=%s", reference)
                return False

        if self.publisher is not None:
            await self.publisher(user_id, {"type": VOTE_PURCHASE, **payload})

        logger.info("vote_purchase_notified user=%s ref=%s", user_id, reference)
        return True


__all__ = ["NotificationService", "NotificationPublisher", "vote_purchase_reference", "VOTE_PURCHASE"]
