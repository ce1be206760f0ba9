# -*- coding: utf-8 -*-
"""
backend/app/observability/__init__.py

Observabilidad Prometheus de la capa HTTP.
"""

from .prom import setup_observability

__all__ = ["setup_observability"]
