# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/metrics.py

Coleccionistas Prometheus del motor de pagos de votos.

Define contadores para registrar:
- Intents creados por rail
- Resultados de verificación (accepted/rejected/transient/not_found)
- Liquidaciones y conflictos de replay
- Resultados de webhooks
- Latencia de verificación por rail

Autor: Banter Backend
Fecha: 2026-02-18
"""
from prometheus_client import Counter, Histogram

NAMESPACE = "banter"
SUBSYSTEM = "billing"

billing_intents_created_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_intents_created_total",
    "Intents de compra de votos creados",
    labelnames=("rail",),
)

billing_verifications_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_verifications_total",
    "Verificaciones por rail y resultado",
    labelnames=("rail", "outcome"),  # accepted|rejected|transient|not_found
)

billing_settlements_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_settlements_total",
    "Liquidaciones por rail y resultado",
    labelnames=("rail", "result"),  # completed|already_terminal|failed
)

billing_replay_conflicts_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_replay_conflicts_total",
    "Referencias externas reutilizadas entre intents",
    labelnames=("rail",),
)

billing_webhooks_total = Counter(
    f"{NAMESPACE}_{SUBSYSTEM}_webhooks_total",
    "Webhooks recibidos por resultado",
    labelnames=("provider", "result"),
)

billing_verification_latency_seconds = Histogram(
    f"{NAMESPACE}_{SUBSYSTEM}_verification_latency_seconds",
    "Latencia de verificación contra el rail (segundos)",
    labelnames=("rail",),
)

__all__ = [
    "billing_intents_created_total",
    "billing_verifications_total",
    "billing_settlements_total",
    "billing_replay_conflicts_total",
    "billing_webhooks_total",
    "billing_verification_latency_seconds",
]

# Fin del archivo backend/app/modules/billing/metrics.py
