# -*- coding: utf-8 -*-
"""
backend/app/modules/accounts/models.py

Modelos ORM del store de usuarios consumido por billing:
- AppUser: perfil mínimo, wallets registradas y saldo de votos.
- CustodialWallet: llave privada cifrada de wallets administradas por el servidor.

El resto del perfil (posts, avatar, etc.) pertenece a otros servicios.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, String, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from app.shared.database.base import Base, BigIntPK


class AppUser(Base):
    """
    Usuario de la app. `vote_balance` solo se modifica con incrementos
    atómicos desde el repositorio (UPDATE ... SET vote_balance = vote_balance + n).
    """

    __tablename__ = "app_users"
    __mapper_args__ = {"eager_defaults": True}

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    username: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)

    # Wallets registradas por el usuario (payer esperado por rail)
    solana_address: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    movement_address: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)

    vote_balance: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
        server_default="0",
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<AppUser user_id={self.user_id} vote_balance={self.vote_balance}>"


class CustodialWallet(Base):
    """
    Wallet administrada por el servidor.

    `encrypted_private_key` usa el formato `ivHex:authTagHex:cipherHex`
    (AES-256-GCM, clave derivada con scrypt).
    """

    __tablename__ = "custodial_wallets"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    blockchain: Mapped[str] = mapped_column(String(20), nullable=False, default="MOVEMENT")
    address: Mapped[str] = mapped_column(String(80), nullable=False)
    public_key: Mapped[Optional[str]] = mapped_column(String(80), nullable=True)
    encrypted_private_key: Mapped[str] = mapped_column(Text, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "blockchain", name="uq_custodial_wallets_user_chain"),
    )

    def __repr__(self) -> str:
        return f"<CustodialWallet user_id={self.user_id} chain={self.blockchain} address={self.address[:10]}...>"


__all__ = ["AppUser", "CustodialWallet"]
