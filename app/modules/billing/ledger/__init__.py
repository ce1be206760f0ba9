# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/ledger/__init__.py

Ledger append-only de transferencias liquidadas.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from .models import WalletTransaction
from .repository import LedgerRepository

__all__ = ["WalletTransaction", "LedgerRepository"]
