# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/vote_bundles.py

Catálogo de bundles de votos (source of truth).

Los bundles se definen aquí y son la única fuente de verdad para
precios y cantidades de votos. Pueden sobreescribirse con la variable
VOTE_BUNDLES_JSON (array JSON con la misma forma).

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import json
import logging
import os
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import BundleNotFound

logger = logging.getLogger(__name__)


class VoteBundle(BaseModel):
    """Bundle de votos disponible para compra."""
    id: str = Field(min_length=1, max_length=50)
    name: str
    credits: int = Field(gt=0, description="Votos acreditados al liquidar")
    price: Decimal = Field(gt=0, description="Precio en la moneda de display")
    currency: str = "USD"
    popular: bool = False


# Bundles por defecto (precio = votos, en USD)
DEFAULT_BUNDLES: List[dict] = [
    {"id": "b1", "name": "10 votes", "credits": 10, "price": "10", "currency": "USD", "popular": False},
    {"id": "b2", "name": "100 votes", "credits": 100, "price": "100", "currency": "USD", "popular": True},
    {"id": "b3", "name": "1,000 votes", "credits": 1000, "price": "1000", "currency": "USD", "popular": False},
    {"id": "b4", "name": "10,000 votes", "credits": 10000, "price": "10000", "currency": "USD", "popular": False},
]


def _validate_unique_ids(bundles: List[dict]) -> List[dict]:
    """
    Valida que los IDs de bundles sean únicos.

    Si hay duplicados, loggea warning y deduplica (mantiene el primero).
    """
    seen_ids: set[str] = set()
    unique_bundles: List[dict] = []

    for bundle in bundles:
        bundle_id = bundle.get("id")
        if bundle_id in seen_ids:
            logger.warning(
                "Duplicate bundle ID detected: '%s'. Keeping first occurrence.",
                bundle_id,
            )
            continue
        seen_ids.add(bundle_id)
        unique_bundles.append(bundle)

    return unique_bundles


def _load_bundle_dicts() -> List[dict]:
    bundles_json = os.getenv("VOTE_BUNDLES_JSON")
    if not bundles_json:
        return DEFAULT_BUNDLES

    try:
        data = json.loads(bundles_json)
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse VOTE_BUNDLES_JSON: %s. Using default bundles.", e)
        return DEFAULT_BUNDLES

    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        logger.warning("VOTE_BUNDLES_JSON must be a JSON array of objects. Using default bundles.")
        return DEFAULT_BUNDLES

    return data


def get_vote_bundles() -> List[VoteBundle]:
    """
    Obtiene la lista de bundles de votos.

    Primero intenta cargar desde VOTE_BUNDLES_JSON; si no existe o falla
    el parsing, usa los bundles por defecto. Entradas inválidas se omiten.
    """
    bundles: List[VoteBundle] = []
    for raw in _validate_unique_ids(_load_bundle_dicts()):
        try:
            bundles.append(VoteBundle(**raw))
        except ValidationError as e:
            logger.warning("Invalid bundle entry %r skipped: %s", raw.get("id"), e.errors())

    if not bundles:
        logger.warning("No valid bundles configured. Using default bundles.")
        bundles = [VoteBundle(**raw) for raw in DEFAULT_BUNDLES]
    return bundles


def get_bundle_by_id(bundle_id: str) -> Optional[VoteBundle]:
    """
    Obtiene un bundle específico por ID.

    Returns:
        VoteBundle si existe, None si no.
    """
    for bundle in get_vote_bundles():
        if bundle.id == bundle_id:
            return bundle
    return None


def resolve_bundle(bundle_id: str) -> VoteBundle:
    """
    Resuelve un bundle o lanza BundleNotFound (error de validación).
    Sin efectos secundarios.
    """
    bundle = get_bundle_by_id((bundle_id or "").strip())
    if bundle is None:
        raise BundleNotFound(bundle_id)
    return bundle


__all__ = [
    "VoteBundle",
    "DEFAULT_BUNDLES",
    "get_vote_bundles",
    "get_bundle_by_id",
    "resolve_bundle",
]
