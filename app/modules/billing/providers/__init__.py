# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/providers/__init__.py

Clientes HTTP de los rails de pago (procesador de tarjetas y nodos RPC).

Autor: Banter Backend
Fecha: 2026-02-18
"""

from .flutterwave_provider import CheckoutSession, FlutterwaveClient, FlutterwaveNotConfigured
from .movement_rpc import MovementRpcClient, TransactionNotVisible
from .solana_rpc import SolanaRpcClient, SolanaRpcError

__all__ = [
    "FlutterwaveClient",
    "FlutterwaveNotConfigured",
    "CheckoutSession",
    "SolanaRpcClient",
    "SolanaRpcError",
    "MovementRpcClient",
    "TransactionNotVisible",
]
