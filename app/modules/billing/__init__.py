# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/__init__.py

Motor de compra de votos: intents, verificación por rail y liquidación.

Exporta un router unificado que incluye:
- /api/billing/votes/bundles
- /api/billing/votes/intents
- /api/billing/votes/verify
- /api/billing/webhooks/flutterwave

Autor: Banter Backend
Fecha: 2026-02-18
"""

from fastapi import APIRouter

from .routes import router as billing_router
from .webhook_routes import router as billing_webhook_router

router = APIRouter(tags=["billing"])
router.include_router(billing_router)
router.include_router(billing_webhook_router)

__all__ = ["router"]
