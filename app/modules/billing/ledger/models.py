# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/ledger/models.py

Modelo ORM del ledger de transferencias liquidadas (wallet_transactions).

Append-only: una fila por transferencia liquidada, con clave única en la
referencia externa del rail. Nunca se actualiza ni se borra.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base, BigIntPK, JSONType
from app.modules.billing.enums import LedgerDirection, LedgerTxType


class WalletTransaction(Base):
    """Entrada del ledger para una compra de votos liquidada."""

    __tablename__ = "wallet_transactions"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)

    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)

    # Id de transacción del rail (hash on-chain o id del procesador)
    external_reference: Mapped[str] = mapped_column(String(160), nullable=False)

    tx_type: Mapped[str] = mapped_column(String(20), nullable=False, default=LedgerTxType.PAYMENT.value)
    direction: Mapped[str] = mapped_column(String(5), nullable=False, default=LedgerDirection.IN.value)
    chain: Mapped[str] = mapped_column(String(20), nullable=False)

    amount_raw: Mapped[str] = mapped_column(String(40), nullable=False)
    asset_identifier: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_symbol: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    from_address: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    to_address: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="COMPLETED")
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    payment_intent_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    tx_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONType,
        nullable=False,
        default=dict,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        UniqueConstraint("external_reference", name="uq_wallet_transactions_external_reference"),
    )

    def __repr__(self) -> str:
        return (
            f"<WalletTransaction id={self.id} ref={self.external_reference[:16]}... "
            f"chain={self.chain} amount_raw={self.amount_raw}>"
        )


__all__ = ["WalletTransaction"]
