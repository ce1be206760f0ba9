# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/verifiers/__init__.py

Verificadores por rail. Todos exponen `verify(intent, external_reference)`.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from .base import RailVerifier, VerificationResult, normalize_move_address
from .card import CardVerifier, CustomerIdentity, evaluate_card_transaction
from .account_chain import AccountChainVerifier, evaluate_solana_transaction
from .move_chain import (
    CoinTransfer,
    FungibleAssetTransfer,
    MoveChainVerifier,
    decode_transfer_payload,
    evaluate_move_transaction,
)

__all__ = [
    "RailVerifier",
    "VerificationResult",
    "normalize_move_address",
    "CardVerifier",
    "CustomerIdentity",
    "evaluate_card_transaction",
    "AccountChainVerifier",
    "evaluate_solana_transaction",
    "MoveChainVerifier",
    "FungibleAssetTransfer",
    "CoinTransfer",
    "decode_transfer_payload",
    "evaluate_move_transaction",
]
