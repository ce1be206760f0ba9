# -*- coding: utf-8 -*-
"""
backend/app/modules/auth/__init__.py

Auth package public API:

Expone:
- dependencies (get_current_user_id, validate_jwt_token)
- security (create_access_token, decode_access_token)
"""

from .dependencies import get_current_user_id, validate_jwt_token
from .security import create_access_token, decode_access_token, TokenDecodeError

__all__ = [
    "get_current_user_id",
    "validate_jwt_token",
    "create_access_token",
    "decode_access_token",
    "TokenDecodeError",
]
