# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/services/__init__.py

Servicios del motor de pagos de votos.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from .settlement_service import SettlementOutcome, SettlementService
from .verification_service import VerificationService, VerifyOutcome
from .intent_service import CreateIntentResult, IntentService

__all__ = [
    "SettlementService",
    "SettlementOutcome",
    "VerificationService",
    "VerifyOutcome",
    "IntentService",
    "CreateIntentResult",
]
