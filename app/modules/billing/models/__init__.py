# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/models/__init__.py

Modelos ORM de billing.
Este módulo NO importa services ni routers para evitar imports circulares.

Uso:
    from app.modules.billing.models import PaymentIntent

Autor: Banter Backend
Fecha: 2026-02-18
"""

from app.modules.billing.models.payment_intent import PaymentIntent

__all__ = ["PaymentIntent"]
