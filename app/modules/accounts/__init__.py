# -*- coding: utf-8 -*-
"""
backend/app/modules/accounts/__init__.py

Store de usuarios (colaborador de billing): perfil, wallets y saldo de votos.
"""

from .models import AppUser, CustodialWallet
from .repository import UserRepository, CustodialWalletRepository

__all__ = [
    "AppUser",
    "CustodialWallet",
    "UserRepository",
    "CustodialWalletRepository",
]
