# -*- coding: utf-8 -*-
"""
backend/app/shared/__init__.py

Infraestructura compartida (config, base de datos, reintentos HTTP,
middleware). Sin efectos en import-time: los settings se resuelven al
primer `get_settings()`.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from app.shared.config.config_loader import get_settings

__all__ = ["get_settings"]
