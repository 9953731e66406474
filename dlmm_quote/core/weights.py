"""
Distribution -> deposit amounts.

Two steps, mirroring how a deposit instruction is sized:
1. `to_weight_distribution`: value each bin's share of the deposit in quote
   (Y) terms and normalize to `0..65535` weights.
2. `weights_to_amounts`: turn weights back into concrete X/Y amounts. Bins above
   the active bin get X (weight divided by the bin price), bins below get Y, and
   the active bin is split according to its *current* reserve composition so a
   deposit does not move the pool price. One scale factor is used for both
   tokens so neither side is over-allocated.

All non-integer math uses `Decimal` in an 80-digit context and floors at the end.
"""

from __future__ import annotations

import decimal
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from ..state.config import BASIS_POINT_MAX, DEFAULT_CONFIG, ProgramConfig
from .distribution import DistributionEntry
from .errors import DivisionByZeroError, InvalidParameterError
from .pricing import decimal_context, price_of_bin
from .transfer_fee import NO_TRANSFER_FEE, TransferFeeTransform


MAX_WEIGHT = 65_535
_PRICE_PRECISION = 1_000_000_000_000


@dataclass(frozen=True)
class WeightEntry:
    bin_id: int
    weight: int

    def __post_init__(self) -> None:
        for name, v in (("bin_id", self.bin_id), ("weight", self.weight)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if not (0 <= self.weight <= MAX_WEIGHT):
            raise ValueError(f"weight must be in [0, {MAX_WEIGHT}]: {self.weight}")


@dataclass(frozen=True)
class BinAmounts:
    bin_id: int
    amount_x: int
    amount_y: int

    def __post_init__(self) -> None:
        for name, v in (("bin_id", self.bin_id), ("amount_x", self.amount_x), ("amount_y", self.amount_y)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.amount_x < 0 or self.amount_y < 0:
            raise ValueError("amounts must be non-negative")


def _require_amount(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")


def to_weight_distribution(
    amount_x: int,
    amount_y: int,
    distributions: Sequence[DistributionEntry],
    bin_step: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[WeightEntry]:
    """
    Quote-valued weights for a percentage distribution; bins whose weight rounds
    to zero are dropped. Returns `[]` when the deposit is worth nothing.
    """
    _require_amount("amount_x", amount_x)
    _require_amount("amount_y", amount_y)
    quotes: List[tuple[int, int]] = []
    total_quote = 0
    for entry in distributions:
        x_bps = entry.distribution_x * 100
        y_bps = entry.distribution_y * 100
        with decimal.localcontext(decimal_context()):
            scaled = price_of_bin(entry.bin_id, bin_step, config=config) * _PRICE_PRECISION
            price = int(scaled.to_integral_value(rounding=decimal.ROUND_FLOOR))
        quote_value = amount_x * x_bps * price // BASIS_POINT_MAX // _PRICE_PRECISION
        quote_amount = quote_value + amount_y * y_bps // BASIS_POINT_MAX
        total_quote += quote_amount
        quotes.append((entry.bin_id, quote_amount))

    if total_quote == 0:
        return []
    weights = [WeightEntry(bin_id, q * MAX_WEIGHT // total_quote) for bin_id, q in quotes]
    return [w for w in weights if w.weight > 0]


def _floor(value: Decimal) -> int:
    return int(value.to_integral_value(rounding=decimal.ROUND_FLOOR))


def _weight_per_price(weight: int, bin_id: int, bin_step: int, config: ProgramConfig) -> Decimal:
    return Decimal(weight) / price_of_bin(bin_id, bin_step, config=config)


def _bid_side(active_id: int, amount: int, weights: List[WeightEntry]) -> Dict[int, int]:
    total = sum(Decimal(w.weight) for w in weights if w.bin_id <= active_id)
    if total <= 0:
        raise DivisionByZeroError("no bid-side weight to distribute Y over")
    return {
        w.bin_id: (_floor(Decimal(w.weight) * Decimal(amount) / total) if w.bin_id <= active_id else 0)
        for w in weights
    }


def _ask_side(active_id: int, bin_step: int, amount: int, weights: List[WeightEntry], config: ProgramConfig) -> Dict[int, int]:
    per_price = {w.bin_id: _weight_per_price(w.weight, w.bin_id, bin_step, config) for w in weights if w.bin_id >= active_id}
    total = sum(per_price.values(), Decimal(0))
    if total <= 0:
        raise DivisionByZeroError("no ask-side weight to distribute X over")
    return {
        w.bin_id: (_floor(per_price[w.bin_id] * Decimal(amount) / total) if w.bin_id in per_price else 0)
        for w in weights
    }


def _both_sides(
    active_id: int,
    bin_step: int,
    amount_x: int,
    amount_y: int,
    active_amount_x: int,
    active_amount_y: int,
    weights: List[WeightEntry],
    config: ProgramConfig,
) -> List[BinAmounts]:
    wx0 = Decimal(0)
    wy0 = Decimal(0)
    active = [w for w in weights if w.bin_id == active_id]
    if active:
        weight = Decimal(active[0].weight)
        p0 = price_of_bin(active_id, bin_step, config=config)
        if active_amount_x == 0 and active_amount_y == 0:
            wx0 = weight / (p0 * 2)
            wy0 = weight / 2
        else:
            ax = Decimal(active_amount_x)
            ay = Decimal(active_amount_y)
            if active_amount_x != 0:
                wx0 = weight / (p0 + ay / ax)
            if active_amount_y != 0:
                wy0 = weight / (Decimal(1) + p0 * ax / ay)

    total_x = wx0
    total_y = wy0
    for w in weights:
        if w.bin_id < active_id:
            total_y += Decimal(w.weight)
        elif w.bin_id > active_id:
            total_x += _weight_per_price(w.weight, w.bin_id, bin_step, config)

    candidates = []
    if total_x > 0:
        candidates.append(Decimal(amount_x) / total_x)
    if total_y > 0:
        candidates.append(Decimal(amount_y) / total_y)
    if not candidates:
        raise DivisionByZeroError("distribution carries no weight on either side")
    k = min(candidates)

    out: List[BinAmounts] = []
    for w in weights:
        if w.bin_id < active_id:
            out.append(BinAmounts(w.bin_id, 0, _floor(k * Decimal(w.weight))))
        elif w.bin_id > active_id:
            out.append(BinAmounts(w.bin_id, _floor(k * _weight_per_price(w.weight, w.bin_id, bin_step, config)), 0))
        else:
            out.append(BinAmounts(w.bin_id, _floor(k * wx0), _floor(k * wy0)))
    return out


def weights_to_amounts(
    amount_x: int,
    amount_y: int,
    weights: Sequence[WeightEntry],
    bin_step: int,
    active_id: int,
    active_amount_x: int = 0,
    active_amount_y: int = 0,
    *,
    mint_x: str = "",
    mint_y: str = "",
    epoch: int = 0,
    transfer_fee: TransferFeeTransform = NO_TRANSFER_FEE,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[BinAmounts]:
    """
    Concrete per-bin amounts for a weight distribution, ascending by bin id.

    `active_amount_x` / `active_amount_y` are the active bin's current reserves.
    Each amount is reduced by the token's transfer fee, if any.
    """
    for name, v in (
        ("amount_x", amount_x),
        ("amount_y", amount_y),
        ("active_amount_x", active_amount_x),
        ("active_amount_y", active_amount_y),
    ):
        _require_amount(name, v)
    ordered = sorted(weights, key=lambda w: w.bin_id)
    if not ordered:
        return []

    with decimal.localcontext(decimal_context()):
        if active_id > ordered[-1].bin_id:
            ys = _bid_side(active_id, amount_y, ordered)
            raw = [BinAmounts(w.bin_id, 0, ys[w.bin_id]) for w in ordered]
        elif active_id < ordered[0].bin_id:
            xs = _ask_side(active_id, bin_step, amount_x, ordered, config)
            raw = [BinAmounts(w.bin_id, xs[w.bin_id], 0) for w in ordered]
        else:
            raw = _both_sides(
                active_id, bin_step, amount_x, amount_y, active_amount_x, active_amount_y, ordered, config
            )

    return [
        BinAmounts(
            a.bin_id,
            transfer_fee.exclude(a.amount_x, mint_x, epoch),
            transfer_fee.exclude(a.amount_y, mint_y, epoch),
        )
        for a in raw
    ]


def to_amounts(
    distributions: Sequence[DistributionEntry],
    amount_x: int,
    amount_y: int,
    active_id: int,
    bin_step: int,
    active_amount_x: int = 0,
    active_amount_y: int = 0,
    *,
    mint_x: str = "",
    mint_y: str = "",
    epoch: int = 0,
    transfer_fee: TransferFeeTransform = NO_TRANSFER_FEE,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[BinAmounts]:
    """
    Per-bin deposit amounts for a planned distribution, aligned 1:1 with
    `distributions`; bins that receive no weight get zero amounts.
    """
    if not distributions:
        raise InvalidParameterError("distributions must not be empty")
    weights = to_weight_distribution(amount_x, amount_y, distributions, bin_step, config=config)
    amounts = weights_to_amounts(
        amount_x,
        amount_y,
        weights,
        bin_step,
        active_id,
        active_amount_x,
        active_amount_y,
        mint_x=mint_x,
        mint_y=mint_y,
        epoch=epoch,
        transfer_fee=transfer_fee,
        config=config,
    )
    by_bin: Dict[int, BinAmounts] = {a.bin_id: a for a in amounts}
    result: List[BinAmounts] = []
    for entry in distributions:
        found: Optional[BinAmounts] = by_bin.get(entry.bin_id)
        result.append(found if found is not None else BinAmounts(entry.bin_id, 0, 0))
    return result
