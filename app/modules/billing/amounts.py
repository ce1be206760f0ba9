# -*- coding: utf-8 -*-
"""
backend/app/modules/billing/amounts.py

Conversión de montos a unidades mínimas enteras.

Todas las comparaciones de monto (tarjeta incluida) se hacen sobre enteros
en la unidad mínima del activo: centavos para USD, 10^-6 para USDC.
Nunca se compara con float.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from __future__ import annotations

import re
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

NumberLike = Union[Decimal, int, str]

_DIGITS = re.compile(r"[0-9]+")


def _to_decimal(value: object) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("bool no es un monto")
    if isinstance(value, float):
        # repr corto de float ("9.99"), nunca su expansión binaria
        value = repr(value)
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation as e:
        raise ValueError(f"Monto inválido: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Monto no finito: {value!r}")
    return result


def to_minor_units(value: object, decimals: int, *, rounding: str = ROUND_DOWN) -> int:
    """
    Convierte un monto decimal a entero en unidades mínimas.

    Por defecto trunca (ROUND_DOWN): un monto pagado nunca se redondea
    hacia arriba para alcanzar el requerido.

    >>> to_minor_units("10.00", 2)
    1000
    >>> to_minor_units("9.999", 2)
    999
    """
    scaled = _to_decimal(value) * (Decimal(10) ** decimals)
    return int(scaled.quantize(Decimal(1), rounding=rounding))


def price_to_raw(price: NumberLike, decimals: int) -> str:
    """Precio del catálogo -> amountRaw (string entero, redondeo half-up)."""
    return str(to_minor_units(price, decimals, rounding=ROUND_HALF_UP))


def parse_raw_amount(value: object) -> int:
    """
    Parsea un monto crudo on-chain (u64/u128 como string o int) sin pérdida.

    Raises:
        ValueError: si no es un entero no negativo en base 10
    """
    if isinstance(value, bool):
        raise ValueError("bool no es un monto crudo")
    if isinstance(value, int):
        amount = value
    elif isinstance(value, str) and _DIGITS.fullmatch(value.strip()):
        amount = int(value.strip())
    else:
        raise ValueError(f"Monto crudo inválido: {value!r}")
    if amount < 0:
        raise ValueError(f"Monto crudo negativo: {value!r}")
    return amount


__all__ = ["to_minor_units", "price_to_raw", "parse_raw_amount"]
