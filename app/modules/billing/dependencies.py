# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/dependencies.py

Contenedor de dependencias del motor de pagos.

Construye una sola vez (en el lifespan de la app) los clientes HTTP por
rail, los verificadores habilitados y los servicios. Nada de singletons
de módulo: las rutas lo obtienen vía `Depends(get_billing_container)` y
los tests inyectan el suyo en `app.state.billing` antes del lifespan
(que entonces no lo construye ni lo cierra).

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional

import httpx
from fastapi import HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.modules.notifications.service import NotificationService
from app.shared.config import get_settings
from app.shared.config.settings_payments import PaymentsSettings
from app.shared.core.http_retry_utils import RetryPolicy, build_endpoint_list

from .custody import CustodyService
from .enums import PaymentRail
from .providers import FlutterwaveClient, MovementRpcClient, SolanaRpcClient
from .services import IntentService, SettlementService, VerificationService
from .verifiers import AccountChainVerifier, CardVerifier, MoveChainVerifier
from .verifiers.base import RailVerifier

logger = logging.getLogger(__name__)


def _build_http_client(timeout_seconds: float, user_agent: str) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout_seconds, connect=5.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=10, keepalive_expiry=30.0),
        headers={"User-Agent": user_agent},
    )


class BillingContainer:
    """Grafo de objetos del motor de pagos (un cliente HTTP por rail)."""

    def __init__(
        self,
        settings: PaymentsSettings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        card_http: Optional[httpx.AsyncClient] = None,
        solana_http: Optional[httpx.AsyncClient] = None,
        movement_http: Optional[httpx.AsyncClient] = None,
    ):
        app_settings = get_settings()
        user_agent = f"{app_settings.app_name}/{app_settings.app_version}"

        self.settings = settings
        self._http_clients: List[httpx.AsyncClient] = []

        self.card_http = card_http or self._own(_build_http_client(settings.card_timeout_seconds, user_agent))
        self.solana_http = solana_http or self._own(_build_http_client(settings.solana_timeout_seconds, user_agent))
        self.movement_http = movement_http or self._own(
            _build_http_client(settings.movement_timeout_seconds, user_agent)
        )

        # ── Clientes de rail
        self.flutterwave = FlutterwaveClient(
            self.card_http,
            secret_key=settings.flutterwave_secret_key,
            base_url=settings.flutterwave_base_url,
            max_retries=settings.card_max_retries,
        )
        self.solana_rpc = SolanaRpcClient(
            self.solana_http,
            build_endpoint_list(settings.solana_endpoints()),
            commitment=settings.solana_commitment,
        )
        self.movement_rpc = MovementRpcClient(
            self.movement_http,
            build_endpoint_list(settings.movement_endpoints()),
            policy=RetryPolicy.linear(
                max_attempts=settings.movement_retry_attempts,
                step_seconds=settings.movement_retry_step_seconds,
            ),
        )

        # ── Verificadores (solo rails habilitados)
        self.card_verifier = CardVerifier(
            self.flutterwave,
            currency_decimals=settings.card_currency_decimals,
            checkout_title=settings.checkout_title,
            logo_url=settings.flutterwave_logo_url,
        )
        self.verifiers: Dict[PaymentRail, RailVerifier] = {}
        if settings.card_rail_enabled:
            self.verifiers[PaymentRail.CARD] = self.card_verifier
        if settings.account_chain_enabled:
            self.verifiers[PaymentRail.ACCOUNT_CHAIN] = AccountChainVerifier(self.solana_rpc)
        if settings.move_chain_enabled:
            self.verifiers[PaymentRail.MOVE_CHAIN] = MoveChainVerifier(
                self.movement_rpc,
                deadline_seconds=settings.movement_verify_deadline_seconds,
            )

        # ── Servicios
        self.notifier = NotificationService(
            session_factory,
            timeout_seconds=settings.notification_timeout_seconds,
        )
        self.settlement = SettlementService(notifier=self.notifier)
        self.verification = VerificationService(self.verifiers, self.settlement)
        self.custody = CustodyService(
            self.movement_rpc,
            encryption_key=settings.custody_encryption_key,
            enabled=settings.custody_enabled,
            max_gas_amount=settings.movement_max_gas_amount,
            gas_unit_price=settings.movement_gas_unit_price,
            expiration_seconds=settings.movement_tx_expiration_seconds,
        )
        self.intents = IntentService(
            settings,
            self.verification,
            card_verifier=self.card_verifier if settings.card_rail_enabled else None,
            custody=self.custody,
        )

        logger.info(
            "billing_container_ready rails=%s solana_endpoints=%d movement_endpoints=%d",
            ",".join(r.value for r in self.verifiers) or "-",
            len(self.solana_rpc.endpoints),
            len(self.movement_rpc.endpoints),
        )

    def _own(self, client: httpx.AsyncClient) -> httpx.AsyncClient:
        self._http_clients.append(client)
        return client

    async def aclose(self) -> None:
        """Cierra los clientes HTTP creados por el contenedor."""
        for client in self._http_clients:
            await client.aclose()
        self._http_clients.clear()


def get_billing_container(request: Request) -> BillingContainer:
    """Dependencia FastAPI: contenedor creado en el lifespan."""
    container = getattr(request.app.state, "billing", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "payments_unavailable", "message": "Payments are not initialized"},
        )
    return container


__all__ = ["BillingContainer", "get_billing_container"]
