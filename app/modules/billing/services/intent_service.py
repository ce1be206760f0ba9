# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/services/intent_service.py

Creación de intents de compra de votos por rail.

Devuelve las instrucciones propias de cada rail:
- CARD:          checkoutUrl (checkout hospedado de Flutterwave)
- ACCOUNT_CHAIN: toAddress + amountRaw + assetIdentifier (firma el cliente)
- MOVE_CHAIN:    lo anterior + transactionTemplate, o bien el resultado de
                 la transferencia custodiada si el servidor administra la wallet

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from app.modules.accounts.models import AppUser
from app.modules.accounts.repository import UserRepository
from app.modules.billing.amounts import price_to_raw
from app.modules.billing.custody import CustodyAvailable, CustodyKeyError, CustodyService, build_transfer_template
from app.modules.billing.enums import PaymentRail, PaymentStatus
from app.modules.billing.errors import BillingValidationError, PaymentNotFound
from app.modules.billing.metrics import billing_intents_created_total
from app.modules.billing.models import PaymentIntent
from app.modules.billing.repository import PaymentIntentRepository
from app.modules.billing.verifiers.card import (
    CardVerifier,
    CustomerIdentity,
    build_tx_ref,
    normalize_email,
    normalize_phone,
    resolve_redirect_url,
)
from app.modules.billing.vote_bundles import resolve_bundle
from app.shared.config.settings_payments import PaymentsSettings
from app.shared.core.http_retry_utils import EndpointsExhausted, RetryableError
from .verification_service import VerificationService

logger = logging.getLogger(__name__)

CARD_RECEIVER = "FLUTTERWAVE"

# Fallos del envío custodiado que degradan a instrucciones para el cliente
_CUSTODY_SUBMIT_ERRORS = (
    CustodyKeyError,
    httpx.HTTPError,
    EndpointsExhausted,
    RetryableError,
    KeyError,
    ValueError,
)


@dataclass
class CreateIntentResult:
    """Intent creado + instrucciones del rail."""
    intent: PaymentIntent
    instructions: Dict[str, Any] = field(default_factory=dict)
    custodial: bool = False


class IntentService:
    """Crea intents PENDING y prepara el pago en el rail elegido."""

    def __init__(
        self,
        settings: PaymentsSettings,
        verification: VerificationService,
        *,
        card_verifier: Optional[CardVerifier] = None,
        custody: Optional[CustodyService] = None,
        intent_repo: Optional[PaymentIntentRepository] = None,
        user_repo: Optional[UserRepository] = None,
    ):
        self.settings = settings
        self.verification = verification
        self.card_verifier = card_verifier
        self.custody = custody
        self.intent_repo = intent_repo or PaymentIntentRepository()
        self.user_repo = user_repo or UserRepository()

    def _ensure_rail_enabled(self, rail: PaymentRail) -> None:
        enabled = {
            PaymentRail.CARD: self.settings.card_rail_enabled and self.card_verifier is not None,
            PaymentRail.ACCOUNT_CHAIN: self.settings.account_chain_enabled,
            PaymentRail.MOVE_CHAIN: self.settings.move_chain_enabled,
        }[rail]
        if not self.settings.payments_enabled or not enabled:
            raise BillingValidationError(f"Rail {rail.value} deshabilitado", field="rail")

    async def create_intent(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        bundle_id: str,
        rail: PaymentRail,
        redirect_url: Optional[str] = None,
    ) -> CreateIntentResult:
        """
        Crea un intent para (usuario, bundle, rail).

        Raises:
            BillingValidationError: bundle inválido, rail deshabilitado o wallet faltante
            PaymentNotFound: usuario inexistente
            TransientUnavailable: el procesador de tarjetas no respondió (CARD)
        """
        rail = PaymentRail(rail)
        self._ensure_rail_enabled(rail)
        bundle = resolve_bundle(bundle_id)

        user = await self.user_repo.get_by_id(session, user_id)
        if user is None:
            raise PaymentNotFound(user_id, what="user")

        if rail is PaymentRail.CARD:
            return await self._create_card(session, user, bundle, redirect_url)
        if rail is PaymentRail.ACCOUNT_CHAIN:
            return await self._create_account_chain(session, user, bundle)
        return await self._create_move_chain(session, user, bundle)

    # ------------------------------------------------------------------ CARD

    async def _create_card(self, session, user: AppUser, bundle, redirect_url: Optional[str]) -> CreateIntentResult:
        s = self.settings
        tx_ref = build_tx_ref(user.user_id)
        email = normalize_email(user.email, user.user_id, s.customer_email_domain)

        intent = await self.intent_repo.create(
            session,
            user_id=user.user_id,
            bundle=bundle,
            rail=PaymentRail.CARD,
            payer_address=email,
            receiver_address=CARD_RECEIVER,
            amount_raw=price_to_raw(bundle.price, s.card_currency_decimals),
            currency=s.card_currency,
            asset_identifier=s.card_currency,
            provider_reference=tx_ref,
            metadata={"tx_ref": tx_ref},
        )
        # El tx_ref queda persistido antes de redirigir al usuario
        await session.commit()
        billing_intents_created_total.labels(PaymentRail.CARD.value).inc()

        customer = CustomerIdentity(
            user_id=user.user_id,
            email=email,
            name=user.display_name or user.username or "Banter User",
            phone=normalize_phone(user.phone),
        )
        checkout = await self.card_verifier.create_checkout(
            intent,
            customer,
            redirect_url=resolve_redirect_url(
                redirect_url,
                configured=s.flutterwave_redirect_url,
                frontend_url=s.frontend_url,
                default=s.default_redirect_url,
            ),
        )
        return CreateIntentResult(
            intent=intent,
            instructions={
                "checkout_url": checkout.checkout_url,
                "reference": tx_ref,
                "amount": str(intent.amount),
                "currency": intent.currency,
            },
        )

    # --------------------------------------------------------- ACCOUNT_CHAIN

    async def _create_account_chain(self, session, user: AppUser, bundle) -> CreateIntentResult:
        s = self.settings
        intent = await self.intent_repo.create(
            session,
            user_id=user.user_id,
            bundle=bundle,
            rail=PaymentRail.ACCOUNT_CHAIN,
            payer_address=user.solana_address,
            receiver_address=s.solana_usdc_receiver,
            amount_raw=price_to_raw(bundle.price, s.solana_usdc_decimals),
            currency="USDC",
            asset_identifier=s.solana_usdc_mint,
        )
        await session.commit()
        billing_intents_created_total.labels(PaymentRail.ACCOUNT_CHAIN.value).inc()

        return CreateIntentResult(
            intent=intent,
            instructions={
                "from_address": intent.from_address,
                "to_address": intent.to_address,
                "amount_raw": intent.amount_raw,
                "asset_identifier": intent.asset_identifier,
                "decimals": s.solana_usdc_decimals,
            },
        )

    # ------------------------------------------------------------ MOVE_CHAIN

    async def _create_move_chain(self, session, user: AppUser, bundle) -> CreateIntentResult:
        s = self.settings
        if not s.movement_usdc_address:
            raise BillingValidationError("Activo de Movement no configurado", field="asset_identifier")

        amount_raw = price_to_raw(bundle.price, s.movement_usdc_decimals)
        intent = await self.intent_repo.create(
            session,
            user_id=user.user_id,
            bundle=bundle,
            rail=PaymentRail.MOVE_CHAIN,
            payer_address=user.movement_address,
            receiver_address=s.movement_usdc_receiver,
            amount_raw=amount_raw,
            currency="USDC",
            asset_identifier=s.movement_usdc_address,
        )
        await session.commit()
        billing_intents_created_total.labels(PaymentRail.MOVE_CHAIN.value).inc()

        template = build_transfer_template(intent.asset_identifier, intent.to_address, intent.amount_raw)
        instructions: Dict[str, Any] = {
            "from_address": intent.from_address,
            "to_address": intent.to_address,
            "amount_raw": intent.amount_raw,
            "asset_identifier": intent.asset_identifier,
            "decimals": s.movement_usdc_decimals,
            "transaction_template": template,
        }

        if self.custody is None:
            return CreateIntentResult(intent=intent, instructions=instructions)

        capability = await self.custody.check(session, user)
        if not isinstance(capability, CustodyAvailable):
            logger.debug("custody_unavailable user=%s reason=%s", user.user_id, capability.reason)
            return CreateIntentResult(intent=intent, instructions=instructions)

        try:
            tx_hash = await self.custody.submit_transfer(capability.wallet, template)
        except _CUSTODY_SUBMIT_ERRORS as e:
            logger.warning(
                "custodial_submit_failed intent=%s user=%s error=%s fallback=client_signing",
                intent.id, user.user_id, repr(e),
            )
            return CreateIntentResult(intent=intent, instructions=instructions)

        outcome = await self.verification.verify_intent(
            session,
            intent_id=intent.id,
            external_reference=tx_hash,
            user_id=user.user_id,
        )
        status = PaymentStatus.PENDING if outcome.pending else outcome.status
        return CreateIntentResult(
            intent=outcome.intent,
            instructions={"status": status.value, "external_reference": tx_hash},
            custodial=True,
        )


__all__ = ["IntentService", "CreateIntentResult"]
