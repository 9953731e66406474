"""
Q64.64 fixed-point kernel.

Mirrors the unsigned 128-bit arithmetic of the ledger program:
- prices are `u128` values scaled by 2**64,
- token amounts are `u64`,
- every intermediate that the program would compute in 128 bits is width-checked
  and raises `MathOverflowError` instead of wrapping.

Python ints never overflow, so the width checks are explicit.
"""

from __future__ import annotations

from enum import Enum, unique

from ...core.errors import MathOverflowError


SCALE_OFFSET = 64
ONE = 1 << SCALE_OFFSET
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1

# Exponents at or above this are rejected by the program's `pow`.
MAX_EXPONENTIAL = 0x80000


@unique
class Rounding(Enum):
    UP = "up"
    DOWN = "down"


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def require_u64(name: str, value: int) -> int:
    _require_int(name, value)
    if value < 0 or value > U64_MAX:
        raise MathOverflowError(f"{name} does not fit in u64: {value}")
    return value


def require_u128(name: str, value: int) -> int:
    _require_int(name, value)
    if value < 0 or value > U128_MAX:
        raise MathOverflowError(f"{name} does not fit in u128: {value}")
    return value


def _checked_mul_u128(x: int, y: int) -> int:
    return require_u128("product", x * y)


def mul_div(x: int, y: int, denominator: int, rounding: Rounding) -> int:
    """`x * y / denominator` with explicit rounding; the quotient must fit in u128."""
    _require_int("x", x)
    _require_int("y", y)
    _require_int("denominator", denominator)
    if x < 0 or y < 0:
        raise ValueError("mul_div operands must be non-negative")
    if denominator <= 0:
        raise MathOverflowError("mul_div denominator must be positive")
    q, r = divmod(x * y, denominator)
    if rounding is Rounding.UP and r != 0:
        q += 1
    return require_u128("mul_div result", q)


def mul_shr(x: int, y: int, offset: int, rounding: Rounding) -> int:
    """`(x * y) >> offset`, i.e. multiply by a Q64.64 factor."""
    return mul_div(x, y, 1 << offset, rounding)


def shl_div(x: int, y: int, offset: int, rounding: Rounding) -> int:
    """`(x << offset) / y`, i.e. divide by a Q64.64 factor."""
    return mul_div(x, 1 << offset, y, rounding)


def pow_q64(base: int, exp: int) -> int:
    """
    Raise a Q64.64 `base` to a signed integer power.

    Binary exponentiation over at most 19 exponent bits. Bases >= 1.0 are
    inverted first (so every squaring stays below 1.0 and cannot overflow) and
    the result is inverted back at the end.
    """
    _require_int("base", base)
    _require_int("exp", exp)
    require_u128("base", base)
    if exp == 0:
        return ONE

    invert = exp < 0
    e = -exp if invert else exp
    if e >= MAX_EXPONENTIAL:
        raise MathOverflowError(f"exponent out of range: {exp}")

    squared_base = base
    result = ONE
    if squared_base >= result:
        squared_base = U128_MAX // squared_base
        invert = not invert

    for bit in range(19):
        if e & (1 << bit):
            result = _checked_mul_u128(result, squared_base) >> SCALE_OFFSET
        squared_base = _checked_mul_u128(squared_base, squared_base) >> SCALE_OFFSET

    if result == 0:
        raise MathOverflowError(f"pow underflow for exponent {exp}")
    if invert:
        result = U128_MAX // result
    return require_u128("pow result", result)


def get_price_from_id(bin_id: int, bin_step: int, *, basis_point_max: int = 10_000) -> int:
    """Q64.64 price of `bin_id`: `(1 + bin_step / basis_point_max) ** bin_id`."""
    _require_int("bin_id", bin_id)
    _require_int("bin_step", bin_step)
    if bin_step <= 0:
        raise ValueError(f"bin_step must be positive: {bin_step}")
    bps = (bin_step << SCALE_OFFSET) // basis_point_max
    base = require_u128("base", ONE + bps)
    return pow_q64(base, bin_id)
