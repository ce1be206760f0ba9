# -*- coding: utf-8 -*-
"""
backend/app/modules/accounts/repository.py

Repositorios del store de usuarios usados por billing.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AppUser, CustodialWallet

logger = logging.getLogger(__name__)


class UserRepository:
    """Lecturas de perfil + incremento atómico del saldo de votos."""

    async def get_by_id(
        self,
        session: AsyncSession,
        user_id: str,
    ) -> Optional[AppUser]:
        return await session.get(AppUser, user_id)

    async def increment_vote_balance(
        self,
        session: AsyncSession,
        user_id: str,
        amount: int,
    ) -> int:
        """
        Suma `amount` votos al usuario con un UPDATE atómico en la BD
        (no lee-modifica-escribe en Python).

        Returns:
            Nuevo saldo.

        Raises:
            ValueError: si amount <= 0 o el usuario no existe
        """
        if amount <= 0:
            raise ValueError("amount must be positive")

        stmt = (
            update(AppUser)
            .where(AppUser.user_id == user_id)
            .values(vote_balance=AppUser.vote_balance + amount)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        if result.rowcount != 1:
            raise ValueError(f"User {user_id} not found")

        new_balance = await session.scalar(
            select(AppUser.vote_balance).where(AppUser.user_id == user_id)
        )
        logger.debug("vote_balance_incremented user=%s delta=%+d after=%s", user_id, amount, new_balance)
        return int(new_balance or 0)


class CustodialWalletRepository:
    """Lectura de wallets custodiadas por (usuario, blockchain)."""

    async def get_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        blockchain: str = "MOVEMENT",
    ) -> Optional[CustodialWallet]:
        stmt = select(CustodialWallet).where(
            CustodialWallet.user_id == user_id,
            CustodialWallet.blockchain == blockchain,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


__all__ = ["UserRepository", "CustodialWalletRepository"]
