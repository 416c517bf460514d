"""Integer fixed-point arithmetic for the perp engine.

All prices, sizes, USD amounts, ratios and rates are int scaled by UNIT (1e18).
No float. Decimal is only used at the edges (settings, display).
Multiplication and division truncate toward zero for signed operands.
"""

from decimal import Decimal

UNIT = 10**18
MAX_UINT256 = 2**256 - 1


def _trunc_div(a: int, b: int) -> int:
    q = abs(a) // abs(b)
    return q if (a >= 0) == (b > 0) else -q


def mul_decimal(a: int, b: int) -> int:
    """a * b / UNIT, truncated toward zero."""
    return _trunc_div(a * b, UNIT)


def div_decimal(a: int, b: int) -> int:
    """a * UNIT / b, truncated toward zero. Raises ZeroDivisionError on b == 0."""
    if b == 0:
        raise ZeroDivisionError("div_decimal by zero")
    return _trunc_div(a * UNIT, b)


def ceil_div(a: int, b: int) -> int:
    """Ceiling division for non-negative ints: (a + b - 1) // b."""
    if a == 0:
        return 0
    return (a + b - 1) // b


def clamp(value: int, low: int, high: int) -> int:
    return max(low, min(value, high))


def same_side(a: int, b: int) -> bool:
    """True when a and b share a side; zero counts as the positive side."""
    return (a >= 0) == (b >= 0)


def sign(value: int) -> int:
    if value > 0:
        return 1
    if value < 0:
        return -1
    return 0


def to_fixed(value: Decimal | int | str) -> int:
    """Convert a human decimal ('0.0005', 12, Decimal('1.5')) to 1e18 fixed point."""
    return int(Decimal(value) * UNIT)


def to_display(value: int) -> str:
    """Render a fixed-point int as a plain decimal string: 1500000000000000000 -> '1.5'."""
    d = Decimal(value) / Decimal(UNIT)
    text = format(d.normalize(), "f")
    return text
