# -*- coding: utf-8 -*-
"""
backend/app/shared/database/base.py

Base declarativa y convención de nombres para modelos ORM.

Este módulo proporciona:
- Base: clase base declarativa de SQLAlchemy
- NAMING_CONVENTION: convención de nombres para constraints
- Tipos portables (PostgreSQL en producción, SQLite en tests/dev)

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

from sqlalchemy import JSON, BigInteger, Integer, MetaData
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase

# ===== NAMING CONVENTION =====
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


# ===== BASE DECLARATIVA =====
class Base(DeclarativeBase):
    """
    Base declarativa para todos los modelos ORM.
    Incluye convención de nombres para constraints.
    """
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


# ===== TIPOS PORTABLES =====
# BIGSERIAL en Postgres; INTEGER PRIMARY KEY (rowid) en SQLite
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# JSONB en Postgres; JSON genérico en el resto
JSONType = JSON().with_variant(JSONB(), "postgresql")


__all__ = ["Base", "NAMING_CONVENTION", "BigIntPK", "JSONType"]

# Fin del archivo backend/app/shared/database/base.py
