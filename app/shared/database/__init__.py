# -*- coding: utf-8 -*-
"""
backend/app/shared/database/__init__.py

Re-exporta utilidades comunes de base de datos.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from .base import Base, NAMING_CONVENTION, BigIntPK, JSONType
from .database import (
    engine,
    SessionLocal,
    get_async_session,
    check_database_health,
)

__all__ = [
    "engine",
    "SessionLocal",
    "Base",
    "NAMING_CONVENTION",
    "BigIntPK",
    "JSONType",
    "get_async_session",
    "check_database_health",
]

# Fin del archivo backend/app/shared/database/__init__.py
