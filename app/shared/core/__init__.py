# -*- coding: utf-8 -*-
"""
backend/app/shared/core/__init__.py

Utilidades compartidas de resiliencia HTTP/RPC.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from .http_retry_utils import (
    RetryPolicy,
    RetryableError,
    EndpointsExhausted,
    build_endpoint_list,
    call_with_endpoint_fallback,
    wait_shielded,
    retry_with_backoff,
)

__all__ = [
    "RetryPolicy",
    "RetryableError",
    "EndpointsExhausted",
    "build_endpoint_list",
    "call_with_endpoint_fallback",
    "wait_shielded",
    "retry_with_backoff",
]
