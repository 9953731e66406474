"""
Single-bin swap kernel (exact-in).

Within one bin liquidity trades at a constant price, so a swap is a pure
price-conversion bounded by the bin's opposite-side reserve:
- Fee rates are in `fee_precision` units (1e9 = 100%).
- The fee is charged on the *gross* input; when the input exceeds what the bin
  can absorb, the bin is drained and the fee is sized on top of the maximum
  fee-exclusive input.
- Input-side quantities round up, output-side quantities round down.
"""

from __future__ import annotations

from dataclasses import dataclass

from .u64x64_math import SCALE_OFFSET, Rounding, mul_shr, require_u64, shl_div


FEE_PRECISION = 1_000_000_000
BPS_DENOM = 10_000


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _ceil_div_nonneg(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ValueError("denominator must be positive")
    if numerator < 0:
        raise ValueError("numerator must be non-negative")
    return (numerator + denominator - 1) // denominator


def _check_fee_rate(fee_rate: int, fee_precision: int) -> None:
    _require_int("fee_rate", fee_rate)
    _require_int("fee_precision", fee_precision)
    if not (0 <= fee_rate < fee_precision):
        raise ValueError(f"fee_rate must be in [0, {fee_precision}): {fee_rate}")


@dataclass(frozen=True)
class BinSwapResult:
    amount_in: int
    amount_out: int
    fee: int
    protocol_fee: int

    def __post_init__(self) -> None:
        for name, v in (
            ("amount_in", self.amount_in),
            ("amount_out", self.amount_out),
            ("fee", self.fee),
            ("protocol_fee", self.protocol_fee),
        ):
            _require_int(name, v)
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.protocol_fee > self.fee:
            raise ValueError("protocol_fee exceeds fee")
        if self.fee > self.amount_in:
            raise ValueError("fee exceeds amount_in")


ZERO_RESULT = BinSwapResult(amount_in=0, amount_out=0, fee=0, protocol_fee=0)


def compute_fee(*, amount: int, fee_rate: int, fee_precision: int = FEE_PRECISION) -> int:
    """
    Fee to add on top of a fee-exclusive `amount`:
    `ceil(amount * fee_rate / (fee_precision - fee_rate))`.
    """
    _require_int("amount", amount)
    _check_fee_rate(fee_rate, fee_precision)
    if amount < 0:
        raise ValueError("amount must be non-negative")
    return _ceil_div_nonneg(amount * fee_rate, fee_precision - fee_rate)


def compute_fee_from_amount(*, amount_with_fees: int, fee_rate: int, fee_precision: int = FEE_PRECISION) -> int:
    """
    Fee contained in a gross amount: `ceil(amount_with_fees * fee_rate / fee_precision)`.
    """
    _require_int("amount_with_fees", amount_with_fees)
    _check_fee_rate(fee_rate, fee_precision)
    if amount_with_fees < 0:
        raise ValueError("amount_with_fees must be non-negative")
    return _ceil_div_nonneg(amount_with_fees * fee_rate, fee_precision)


def compute_protocol_fee(*, fee_amount: int, protocol_share: int, basis_point_max: int = BPS_DENOM) -> int:
    """
    Compute `protocol_fee = floor(fee_amount * protocol_share / basis_point_max)`.
    """
    _require_int("fee_amount", fee_amount)
    _require_int("protocol_share", protocol_share)
    if fee_amount < 0:
        raise ValueError("fee_amount must be non-negative")
    if not (0 <= protocol_share <= basis_point_max):
        raise ValueError(f"protocol_share must be in [0, {basis_point_max}]")
    return (fee_amount * protocol_share) // basis_point_max


def get_out_amount(*, amount_in: int, price: int, swap_for_y: bool) -> int:
    """Output of a fee-exclusive `amount_in` at a Q64.64 `price`, rounded down."""
    _require_int("amount_in", amount_in)
    _require_int("price", price)
    if price <= 0:
        raise ValueError("price must be positive")
    if swap_for_y:
        out = mul_shr(amount_in, price, SCALE_OFFSET, Rounding.DOWN)
    else:
        out = shl_div(amount_in, price, SCALE_OFFSET, Rounding.DOWN)
    return require_u64("amount_out", out)


def swap_exact_in_quote_at_bin(
    *,
    amount_x: int,
    amount_y: int,
    price: int,
    in_amount: int,
    fee_rate: int,
    protocol_share: int,
    swap_for_y: bool,
    fee_precision: int = FEE_PRECISION,
    basis_point_max: int = BPS_DENOM,
) -> BinSwapResult:
    """
    Exact-in quote against one bin.

    `amount_in` of the result is the gross input the bin absorbs (fee included),
    which is at most `in_amount`. A bin with no opposite-side reserve absorbs
    nothing.
    """
    for name, v in (
        ("amount_x", amount_x),
        ("amount_y", amount_y),
        ("price", price),
        ("in_amount", in_amount),
    ):
        _require_int(name, v)
        if v < 0:
            raise ValueError(f"{name} must be non-negative")
    if not isinstance(swap_for_y, bool):
        raise TypeError("swap_for_y must be a bool")
    if price == 0:
        raise ValueError("price must be positive")

    max_amount_out = amount_y if swap_for_y else amount_x
    if max_amount_out == 0 or in_amount == 0:
        return ZERO_RESULT

    if swap_for_y:
        max_amount_in = shl_div(amount_y, price, SCALE_OFFSET, Rounding.UP)
    else:
        max_amount_in = mul_shr(amount_x, price, SCALE_OFFSET, Rounding.UP)
    max_fee = compute_fee(amount=max_amount_in, fee_rate=fee_rate, fee_precision=fee_precision)
    max_amount_in = require_u64("max_amount_in", max_amount_in + max_fee)

    if in_amount > max_amount_in:
        protocol_fee = compute_protocol_fee(
            fee_amount=max_fee, protocol_share=protocol_share, basis_point_max=basis_point_max
        )
        return BinSwapResult(
            amount_in=max_amount_in,
            amount_out=max_amount_out,
            fee=max_fee,
            protocol_fee=protocol_fee,
        )

    fee = compute_fee_from_amount(amount_with_fees=in_amount, fee_rate=fee_rate, fee_precision=fee_precision)
    amount_out = get_out_amount(amount_in=in_amount - fee, price=price, swap_for_y=swap_for_y)
    amount_out = min(amount_out, max_amount_out)
    protocol_fee = compute_protocol_fee(fee_amount=fee, protocol_share=protocol_share, basis_point_max=basis_point_max)
    return BinSwapResult(amount_in=in_amount, amount_out=amount_out, fee=fee, protocol_fee=protocol_fee)
