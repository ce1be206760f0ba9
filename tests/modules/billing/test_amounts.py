# -*- coding: utf-8 -*-
"""
backend/tests/modules/billing/test_amounts.py

Tests de conversión de montos a unidades mínimas enteras.

Autor: Banter Backend
Fecha: 2026-02-18
"""

from decimal import Decimal

import pytest

from app.modules.billing.amounts import parse_raw_amount, price_to_raw, to_minor_units


class TestToMinorUnits:

    @pytest.mark.parametrize(
        "value, decimals, expected",
        [
            ("10", 6, 10_000_000),
            ("10000", 6, 10_000_000_000),
            ("10.00", 2, 1000),
            (Decimal("9.99"), 2, 999),
            (100, 2, 10_000),
        ],
    )
    def test_exact_conversions(self, value, decimals, expected):
        assert to_minor_units(value, decimals) == expected

    def test_truncates_by_default(self):
        """Un monto pagado nunca se redondea hacia arriba."""
        assert to_minor_units("9.999", 2) == 999

    def test_float_uses_short_repr(self):
        # 9.99 como float binario es 9.9899999...; se usa "9.99"
        assert to_minor_units(9.99, 2) == 999

    def test_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_minor_units("abc", 2)

    def test_rejects_bool(self):
        with pytest.raises(ValueError):
            to_minor_units(True, 2)

    def test_rejects_non_finite(self):
        with pytest.raises(ValueError):
            to_minor_units("NaN", 2)


class TestPriceToRaw:

    def test_bundle_price_to_usdc_raw(self):
        assert price_to_raw(Decimal("10"), 6) == "10000000"

    def test_half_up_rounding(self):
        assert price_to_raw("0.0000005", 6) == "1"


class TestParseRawAmount:

    def test_large_u64_without_precision_loss(self):
        assert parse_raw_amount("123456789012345678") == 123456789012345678

    def test_u128_values(self):
        big = str(2**127 + 1)
        assert parse_raw_amount(big) == 2**127 + 1

    def test_accepts_int(self):
        assert parse_raw_amount(42) == 42

    @pytest.mark.parametrize("value", ["1.5", "-3", "", "0x10", 1.0, None, False])
    def test_rejects_non_integer_strings(self, value):
        with pytest.raises(ValueError):
            parse_raw_amount(value)

    def test_rejects_negative_int(self):
        with pytest.raises(ValueError):
            parse_raw_amount(-1)

# Fin del archivo backend/tests/modules/billing/test_amounts.py
