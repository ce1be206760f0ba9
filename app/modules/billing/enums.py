# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/enums.py

Enums del motor de pagos de votos.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from enum import Enum


class PaymentRail(str, Enum):
    """Canales de pago independientes."""
    CARD = "CARD"                    # procesador de tarjetas (Flutterwave)
    ACCOUNT_CHAIN = "ACCOUNT_CHAIN"  # Solana (token accounts)
    MOVE_CHAIN = "MOVE_CHAIN"        # Movement / Aptos (Move)

    @property
    def chain_label(self) -> str:
        """Etiqueta usada en el ledger y en la UI."""
        return _CHAIN_LABELS[self]


_CHAIN_LABELS = {
    PaymentRail.CARD: "FLUTTERWAVE",
    PaymentRail.ACCOUNT_CHAIN: "SOLANA",
    PaymentRail.MOVE_CHAIN: "MOVEMENT",
}


class PaymentStatus(str, Enum):
    """
    Estados del intent. PENDING -> COMPLETED | FAILED; ambos terminales.
    """
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class RejectionReason(str, Enum):
    """Motivos tipados de rechazo de una verificación."""
    NOT_SUCCESSFUL = "NOT_SUCCESSFUL"
    ONCHAIN_ERROR = "ONCHAIN_ERROR"
    REFERENCE_MISMATCH = "REFERENCE_MISMATCH"
    CURRENCY_MISMATCH = "CURRENCY_MISMATCH"
    AMOUNT_TOO_LOW = "AMOUNT_TOO_LOW"
    SENDER_MISMATCH = "SENDER_MISMATCH"
    SIGNER_MISSING = "SIGNER_MISSING"
    RECEIVER_MISMATCH = "RECEIVER_MISMATCH"
    ASSET_MISMATCH = "ASSET_MISMATCH"
    UNSUPPORTED_PAYLOAD = "UNSUPPORTED_PAYLOAD"


class LedgerTxType(str, Enum):
    PAYMENT = "PAYMENT"


class LedgerDirection(str, Enum):
    IN = "IN"
    OUT = "OUT"


__all__ = [
    "PaymentRail",
    "PaymentStatus",
    "RejectionReason",
    "LedgerTxType",
    "LedgerDirection",
]
