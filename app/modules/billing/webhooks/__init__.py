# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/webhooks/__init__.py

Webhooks de billing para procesar notificaciones de pago.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from .flutterwave_handler import (
    SIGNATURE_HEADER,
    WebhookNotConfigured,
    handle_flutterwave_event,
    verify_flutterwave_signature,
)

__all__ = [
    "SIGNATURE_HEADER",
    "WebhookNotConfigured",
    "handle_flutterwave_event",
    "verify_flutterwave_signature",
]
