# -*- coding: utf-8 -*-
"""
backend/app/modules/auth/dependencies.py

Dependencias de autenticación JWT para FastAPI.

Provee:
- validate_jwt_token: Core logic para validar token (única fuente de verdad)
- get_current_user_id: Dependencia FastAPI con oauth2_scheme

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, status

from .security import oauth2_scheme, decode_access_token, TokenDecodeError

logger = logging.getLogger(__name__)


def validate_jwt_token(token: str) -> str:
    """
    Valida un JWT y extrae el user_id (claim 'sub').

    Raises:
        HTTPException 401: Si el token es inválido o expirado.
    """
    try:
        payload = decode_access_token(token)
    except TokenDecodeError as e:
        logger.info("jwt_rejected reason=%s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "invalid_token",
                "message": str(e),
            },
            headers={"WWW-Authenticate": "Bearer"},
        ) from e

    return str(payload["sub"])


async def get_current_user_id(
    token: str = Depends(oauth2_scheme),
) -> str:
    """
    Dependencia de autenticación para endpoints protegidos.

    Extrae y valida el JWT del header Authorization: Bearer <token>.
    """
    return validate_jwt_token(token)


__all__ = [
    "get_current_user_id",
    "validate_jwt_token",
]
