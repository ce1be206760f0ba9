# -*- coding: utf-8 -*-
"""
backend/app/routes/master_routes.py

Router maestro: todo lo funcional vive bajo /api.

Autor: Banter Backend
Fecha: 2026-02-18
"""
from __future__ import annotations

import logging

from fastapi import APIRouter

from app.modules.billing import router as billing_router

logger = logging.getLogger(__name__)

api = APIRouter(prefix="/api")

_loaded: list[str] = []  # trazabilidad/debug


def _include(target: APIRouter, router: APIRouter, name: str) -> None:
    """Incluye un router en la capa dada y registra trazabilidad en logs."""
    target.include_router(router)
    _loaded.append(f"{target.prefix or '/'}:{name}")
    logger.debug(
        "router_mounted name=%s prefix=%s router_prefix=%s",
        name,
        target.prefix or "/",
        getattr(router, "prefix", ""),
    )


# ─────────────────────────────────────────
# BILLING — compra de votos + webhooks
# ─────────────────────────────────────────
_include(api, billing_router, "billing.votes")


@api.get("/_debug/loaded-routers", include_in_schema=False)
def loaded_routers():
    """Endpoint de debug para ver qué routers se montaron y en qué capa."""
    return {"loaded": _loaded}


__all__ = ["api"]

# Fin del archivo backend/app/routes/master_routes.py
