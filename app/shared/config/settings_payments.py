# -*- coding: utf-8 -*-
"""
backend/app/shared/config/settings_payments.py

Configuración de rails de pago para la compra de votos.

Descripción:
    Centraliza configuración de los tres rails (tarjeta vía Flutterwave,
    Solana USDC y Movement USDC), direcciones receptoras, timeouts,
    política de reintentos y la clave de custodia de wallets del servidor.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from typing import List, Optional
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PaymentsSettings(BaseSettings):
    """Configuración de sistema de pagos."""

    # =========================================================================
    # FEATURE FLAGS
    # =========================================================================

    payments_enabled: bool = Field(
        default=True,
        validation_alias="PAYMENTS_ENABLED",
        description="Habilita el sistema de pagos globalmente",
    )

    card_rail_enabled: bool = Field(
        default=True,
        validation_alias="CARD_RAIL_ENABLED",
        description="Habilita pagos con tarjeta (Flutterwave)",
    )

    account_chain_enabled: bool = Field(
        default=True,
        validation_alias="SOLANA_PAYMENTS_ENABLED",
        description="Habilita pagos USDC en Solana",
    )

    move_chain_enabled: bool = Field(
        default=True,
        validation_alias="MOVEMENT_PAYMENTS_ENABLED",
        description="Habilita pagos USDC en Movement",
    )

    # =========================================================================
    # TARJETA (FLUTTERWAVE)
    # =========================================================================

    flutterwave_secret_key: Optional[str] = Field(
        default=None,
        validation_alias="FLUTTERWAVE_SECRET_KEY",
        description="Secret key de Flutterwave (FLWSECK-...)",
    )

    flutterwave_base_url: str = Field(
        default="https://api.flutterwave.com/v3",
        validation_alias="FLUTTERWAVE_BASE_URL",
    )

    flutterwave_webhook_hash: Optional[str] = Field(
        default=None,
        validation_alias="FLUTTERWAVE_WEBHOOK_HASH",
        description="Secret hash compartido que Flutterwave envía en el header verif-hash",
    )

    flutterwave_redirect_url: Optional[str] = Field(
        default=None,
        validation_alias="FLUTTERWAVE_REDIRECT_URL",
    )

    flutterwave_logo_url: Optional[str] = Field(
        default=None,
        validation_alias="FLUTTERWAVE_LOGO_URL",
    )

    frontend_url: Optional[str] = Field(
        default=None,
        validation_alias="FRONTEND_URL",
        description="URL base del frontend (fallback de redirect)",
    )

    default_redirect_url: str = Field(
        default="https://sportbanter.online",
        validation_alias="DEFAULT_REDIRECT_URL",
    )

    card_currency: str = Field(default="USD", validation_alias="CARD_CURRENCY")
    card_currency_decimals: int = Field(default=2, validation_alias="CARD_CURRENCY_DECIMALS")
    checkout_title: str = Field(default="Banter Vote Purchase", validation_alias="CHECKOUT_TITLE")
    customer_email_domain: str = Field(default="banter.app", validation_alias="CUSTOMER_EMAIL_DOMAIN")

    card_timeout_seconds: float = Field(
        default=15.0,
        validation_alias="FLUTTERWAVE_TIMEOUT_SECONDS",
        description="Timeout por llamada al procesador de tarjeta",
    )

    card_max_retries: int = Field(
        default=2,
        validation_alias="FLUTTERWAVE_MAX_RETRIES",
        description="Reintentos para GETs idempotentes al procesador",
    )

    # =========================================================================
    # SOLANA (ACCOUNT CHAIN)
    # =========================================================================

    solana_rpc_url: str = Field(
        default="https://api.mainnet-beta.solana.com",
        validation_alias="SOLANA_RPC_URL",
    )

    solana_rpc_fallback: Optional[str] = Field(
        default=None,
        validation_alias="SOLANA_RPC_FALLBACK",
        description="RPCs de respaldo separados por coma",
    )

    solana_commitment: str = Field(default="finalized", validation_alias="SOLANA_COMMITMENT")

    solana_usdc_mint: str = Field(
        default="EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
        validation_alias="SOLANA_USDC_MINT",
    )

    solana_usdc_receiver: Optional[str] = Field(
        default=None,
        validation_alias="SOLANA_USDC_RECEIVER",
        description="Owner de la token account receptora de la plataforma",
    )

    solana_usdc_decimals: int = Field(default=6, validation_alias="SOLANA_USDC_DECIMALS")

    solana_timeout_seconds: float = Field(default=10.0, validation_alias="SOLANA_TIMEOUT_SECONDS")

    # =========================================================================
    # MOVEMENT (MOVE CHAIN)
    # =========================================================================

    movement_rpc_url: str = Field(
        default="https://testnet.movementnetwork.xyz/v1",
        validation_alias="MOVEMENT_TESTNET_RPC",
    )

    movement_rpc_fallback: Optional[str] = Field(
        default=None,
        validation_alias="MOVEMENT_TESTNET_RPC_FALLBACK",
        description="RPCs de respaldo separados por coma",
    )

    movement_usdc_address: Optional[str] = Field(
        default=None,
        validation_alias="MOVEMENT_USDC_ADDRESS",
        description="Metadata object (FA) o tipo de coin (0x..::module::Struct)",
    )

    movement_usdc_receiver: Optional[str] = Field(
        default=None,
        validation_alias="MOVEMENT_USDC_RECEIVER",
    )

    movement_usdc_decimals: int = Field(default=6, validation_alias="MOVEMENT_USDC_DECIMALS")

    movement_timeout_seconds: float = Field(default=15.0, validation_alias="MOVEMENT_TIMEOUT_SECONDS")

    movement_retry_attempts: int = Field(
        default=5,
        validation_alias="MOVEMENT_RETRY_ATTEMPTS",
        description="Pasadas completas sobre la lista de endpoints",
    )

    movement_retry_step_seconds: float = Field(
        default=2.0,
        validation_alias="MOVEMENT_RETRY_STEP_SECONDS",
        description="Backoff lineal: step × intento",
    )

    movement_verify_deadline_seconds: float = Field(
        default=45.0,
        validation_alias="MOVEMENT_VERIFY_DEADLINE_SECONDS",
        description="Espera máxima de una verificación síncrona antes de responder PENDING",
    )

    movement_max_gas_amount: int = Field(default=10_000, validation_alias="MOVEMENT_MAX_GAS_AMOUNT")
    movement_gas_unit_price: int = Field(default=100, validation_alias="MOVEMENT_GAS_UNIT_PRICE")
    movement_tx_expiration_seconds: int = Field(default=600, validation_alias="MOVEMENT_TX_EXPIRATION_SECONDS")

    # =========================================================================
    # CUSTODIA (wallets administradas por el servidor)
    # =========================================================================

    custody_enabled: bool = Field(default=True, validation_alias="CUSTODY_ENABLED")

    custody_encryption_key: Optional[str] = Field(
        default=None,
        validation_alias="APTOS_WALLET_ENCRYPTION_KEY",
        description="Secreto para derivar (scrypt) la clave AES-256-GCM de las llaves custodiadas",
    )

    # =========================================================================
    # NOTIFICACIONES / SEGURIDAD
    # =========================================================================

    notification_timeout_seconds: float = Field(default=5.0, validation_alias="NOTIFICATION_TIMEOUT_SECONDS")

    allow_insecure_webhooks: bool = Field(
        default=False,
        validation_alias="PAYMENTS_ALLOW_INSECURE_WEBHOOKS",
        description="Permite webhooks sin validación de firma (SOLO DESARROLLO)",
    )

    python_env: str = Field(default="development", validation_alias="PYTHON_ENV")

    @field_validator(
        "solana_usdc_mint",
        "solana_usdc_receiver",
        "movement_usdc_address",
        "movement_usdc_receiver",
        mode="before",
    )
    @classmethod
    def _clean_identifier(cls, v: Optional[str]) -> Optional[str]:
        """Limpia espacios y el '>' residual que a veces arrastran los .env."""
        if v is None:
            return None
        cleaned = str(v).strip().rstrip(">").strip()
        return cleaned or None

    @model_validator(mode="after")
    def _refuse_insecure_webhooks_in_production(self) -> "PaymentsSettings":
        env = self.python_env.strip().strip("\"'").lower()
        if self.allow_insecure_webhooks and env == "production":
            raise ValueError("PAYMENTS_ALLOW_INSECURE_WEBHOOKS no está permitido en producción")
        return self

    # ===== Helpers =====

    def solana_endpoints(self) -> List[str]:
        return [self.solana_rpc_url, *_split_csv(self.solana_rpc_fallback)]

    def movement_endpoints(self) -> List[str]:
        return [self.movement_rpc_url, *_split_csv(self.movement_rpc_fallback)]

    def configuration_problems(self) -> List[str]:
        """Lista de inconsistencias para los rails habilitados (vacía si todo OK)."""
        problems: List[str] = []
        if not self.payments_enabled:
            return problems
        if self.card_rail_enabled:
            if not self.flutterwave_secret_key:
                problems.append("CARD_RAIL_ENABLED requiere FLUTTERWAVE_SECRET_KEY.")
            if not self.flutterwave_webhook_hash:
                problems.append("CARD_RAIL_ENABLED requiere FLUTTERWAVE_WEBHOOK_HASH.")
        if self.account_chain_enabled and not self.solana_usdc_receiver:
            problems.append("SOLANA_PAYMENTS_ENABLED requiere SOLANA_USDC_RECEIVER.")
        if self.move_chain_enabled and not self.movement_usdc_receiver:
            problems.append("MOVEMENT_PAYMENTS_ENABLED requiere MOVEMENT_USDC_RECEIVER.")
        return problems

    # =========================================================================
    # CONFIGURACIÓN DE PYDANTIC
    # =========================================================================

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )


def _split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


# Singleton global
_payments_settings: Optional[PaymentsSettings] = None


def get_payments_settings() -> PaymentsSettings:
    """
    Obtiene la instancia global de configuración de pagos.

    Returns:
        PaymentsSettings: Configuración de pagos
    """
    global _payments_settings
    if _payments_settings is None:
        _payments_settings = PaymentsSettings()
    return _payments_settings


def reset_payments_settings() -> None:
    """Descarta el singleton (tests que cambian variables de entorno)."""
    global _payments_settings
    _payments_settings = None


__all__ = [
    "PaymentsSettings",
    "get_payments_settings",
    "reset_payments_settings",
]
# Fin del archivo backend/app/shared/config/settings_payments.py
