"""
Redondeo monetario.

Se redondea a 2 decimales (HALF_UP) sobre cada agregado, nunca por línea.
"""
from decimal import Decimal, ROUND_HALF_UP

CENT = Decimal("0.01")
TENTH = Decimal("0.1")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round2(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round1(value) -> Decimal:
    return to_decimal(value).quantize(TENTH, rounding=ROUND_HALF_UP)
