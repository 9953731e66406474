"""
Bin pricing.

`price(id) = (1 + bin_step / 10_000) ** id`, expressed two ways:
- as a `Decimal` evaluated in an 80-digit context (for display, price impact and
  deposit planning),
- as the ledger program's Q64.64 integer (for anything that must match settlement).

Prices here are "per lamport": units of the smallest Y denomination per smallest
X denomination. `price_per_lamport` / `from_price_per_lamport` convert to and from
human (decimal-adjusted) prices.
"""

from __future__ import annotations

import decimal
import math
from decimal import Decimal
from typing import Union

from ..kernels.python.u64x64_math import get_price_from_id
from ..state.config import DEFAULT_CONFIG, ProgramConfig
from .errors import InvalidParameterError, MathOverflowError


DECIMAL_PRECISION = 80

Number = Union[Decimal, int, str]


def decimal_context() -> decimal.Context:
    """Fresh high-precision context; overflow and invalid operations trap."""
    return decimal.Context(
        prec=DECIMAL_PRECISION,
        rounding=decimal.ROUND_HALF_EVEN,
        traps=[decimal.Overflow, decimal.InvalidOperation, decimal.DivisionByZero],
    )


def to_decimal(value: Number, *, name: str = "value") -> Decimal:
    if isinstance(value, bool):
        raise TypeError(f"{name} must be a Decimal, int or str")
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)):
        try:
            return Decimal(value)
        except decimal.InvalidOperation as exc:
            raise InvalidParameterError(f"{name} is not a number: {value!r}") from exc
    raise TypeError(f"{name} must be a Decimal, int or str")


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _require_bin_step(bin_step: int) -> None:
    _require_int("bin_step", bin_step)
    if bin_step <= 0:
        raise InvalidParameterError(f"bin_step must be positive: {bin_step}")


def _require_bin_id(bin_id: int, config: ProgramConfig) -> None:
    _require_int("bin_id", bin_id)
    if not (config.min_bin_id <= bin_id <= config.max_bin_id):
        raise InvalidParameterError(f"bin_id out of bounds [{config.min_bin_id}, {config.max_bin_id}]: {bin_id}")


def price_of_bin(bin_id: int, bin_step: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> Decimal:
    """Decimal price of `bin_id`; `price_of_bin(0, s) == 1` for every step."""
    _require_bin_id(bin_id, config)
    _require_bin_step(bin_step)
    with decimal.localcontext(decimal_context()) as ctx:
        base = Decimal(1) + Decimal(bin_step) / Decimal(config.basis_point_max)
        try:
            return ctx.power(base, bin_id)
        except (decimal.Overflow, decimal.InvalidOperation) as exc:
            raise MathOverflowError(f"price overflow for bin {bin_id} at step {bin_step}") from exc


def q64_price_from_id(bin_id: int, bin_step: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> int:
    """Q64.64 price exactly as the ledger program computes it."""
    _require_bin_id(bin_id, config)
    _require_bin_step(bin_step)
    return get_price_from_id(bin_id, bin_step, basis_point_max=config.basis_point_max)


def q64_to_decimal(q64_price: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> Decimal:
    _require_int("q64_price", q64_price)
    if q64_price < 0:
        raise InvalidParameterError("q64_price must be non-negative")
    with decimal.localcontext(decimal_context()):
        return Decimal(q64_price) / Decimal(config.one)


def price_per_lamport(decimals_x: int, decimals_y: int, price: Number) -> Decimal:
    """Human price (Y per X) -> per-lamport price."""
    _require_int("decimals_x", decimals_x)
    _require_int("decimals_y", decimals_y)
    with decimal.localcontext(decimal_context()):
        return to_decimal(price, name="price") * Decimal(10) ** (decimals_y - decimals_x)


def from_price_per_lamport(decimals_x: int, decimals_y: int, lamport_price: Number) -> Decimal:
    """Per-lamport price -> human price (Y per X)."""
    _require_int("decimals_x", decimals_x)
    _require_int("decimals_y", decimals_y)
    with decimal.localcontext(decimal_context()):
        return to_decimal(lamport_price, name="lamport_price") / Decimal(10) ** (decimals_y - decimals_x)


def bin_id_from_price(price: Number, bin_step: int, round_down: bool) -> int:
    """
    Bin whose price is closest to `price` (per-lamport) from below (`round_down`)
    or above.
    """
    _require_bin_step(bin_step)
    p = to_decimal(price, name="price")
    if not p.is_finite() or p <= 0:
        raise InvalidParameterError(f"price must be positive: {price}")
    with decimal.localcontext(decimal_context()) as ctx:
        step = Decimal(bin_step) / Decimal(10_000)
        raw = ctx.divide(ctx.ln(p), ctx.ln(Decimal(1) + step))
        # ln/ln may land a hair off an exact integer; snap to the nearest integer within 1e-40.
        nearest = raw.to_integral_value(rounding=decimal.ROUND_HALF_EVEN)
        if abs(raw - nearest) < Decimal("1e-40"):
            return int(nearest)
        return math.floor(raw) if round_down else math.ceil(raw)
