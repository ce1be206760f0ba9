# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/models/payment_intent.py

Modelo ORM para la tabla payment_intents.

Un intent registra un intento de compra de votos de punta a punta.
Después de crearse solo cambian `status`, `external_reference`,
`completed_at`, `failure_reason` y `metadata`; el resto es snapshot.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    BigInteger,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base, JSONType
from app.modules.billing.enums import PaymentStatus


def _new_intent_id() -> str:
    return str(uuid.uuid4())


class PaymentIntent(Base):
    """
    Intent de pago de un bundle de votos.

    - `amount` es el precio en moneda de display; `amount_raw` el mismo
      monto como entero en la unidad mínima del rail (centavos, 10^-6 USDC).
    - `provider_reference` es el tx_ref del procesador de tarjetas.
    - `external_reference` es el id de transacción del rail (id de
      Flutterwave o hash on-chain); único una vez asignado.
    """

    __tablename__ = "payment_intents"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=_new_intent_id,
    )

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    rail: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        doc="CARD | ACCOUNT_CHAIN | MOVE_CHAIN",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING.value,
    )

    # Snapshot del bundle al momento de crear el intent
    bundle_id: Mapped[str] = mapped_column(String(50), nullable=False)
    credit_count: Mapped[int] = mapped_column(BigInteger, nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(20, 6), nullable=False)
    amount_raw: Mapped[str] = mapped_column(
        String(40),
        nullable=False,
        doc="Entero en base 10 (u64/u128), nunca float.",
    )
    currency: Mapped[str] = mapped_column(String(10), nullable=False, default="USD")
    asset_identifier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    from_address: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    to_address: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    provider_reference: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    external_reference: Mapped[Optional[str]] = mapped_column(String(160), nullable=True)

    failure_reason: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)

    intent_metadata: Mapped[Optional[dict[str, Any]]] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )
    # Se setea una sola vez, dentro de la transacción de liquidación
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        default=None,
    )

    __table_args__ = (
        UniqueConstraint("external_reference", name="uq_payment_intents_external_reference"),
        UniqueConstraint("provider_reference", name="uq_payment_intents_provider_reference"),
        Index("ix_payment_intents_user_status", "user_id", "status"),
    )
    # created_at/updated_at (server_default) se leen en el mismo INSERT
    __mapper_args__ = {"eager_defaults": True}

    def __repr__(self) -> str:
        return (
            f"<PaymentIntent id={self.id} user_id={self.user_id} rail={self.rail} "
            f"bundle={self.bundle_id} status={self.status}>"
        )


__all__ = ["PaymentIntent"]
