"""
Liquidity distribution planner.

Splits a deposit across a contiguous bin range for one of three curve shapes:
- SPOT: flat, with the active bin holding half a bin's worth of each token,
- BID_ASK: inverted Gaussian, more liquidity at the edges of the range,
- NORMAL: Gaussian, more liquidity around the active bin.

Bins below the active bin hold Y only, bins above hold X only, the active bin
holds both. Output percentages are 0..100 integers per token side.

Percentages are derived from basis points by integer division by 100, which can
lose up to a few percent on a side (e.g. 3 bins below the active bin: 3333 bps
each -> 33% each -> 99% total). That loss is reproduced, not corrected, and is
logged at debug level.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum, unique
from typing import List, Sequence, Tuple

from scipy.stats import norm

from ..state.config import DEFAULT_CONFIG, ProgramConfig
from .errors import DivisionByZeroError, InvalidParameterError


logger = logging.getLogger(__name__)

BPS_TOTAL = 10_000
PERCENT_TOTAL = 100


@unique
class StrategyShape(Enum):
    SPOT = "spot"
    BID_ASK = "bid_ask"
    NORMAL = "normal"


@dataclass(frozen=True)
class DistributionEntry:
    bin_id: int
    distribution_x: int
    distribution_y: int

    def __post_init__(self) -> None:
        for name, v in (
            ("bin_id", self.bin_id),
            ("distribution_x", self.distribution_x),
            ("distribution_y", self.distribution_y),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        for name, v in (("distribution_x", self.distribution_x), ("distribution_y", self.distribution_y)):
            if not (0 <= v <= PERCENT_TOTAL):
                raise ValueError(f"{name} must be in [0, {PERCENT_TOTAL}]: {v}")


def validate_bin_ids(bin_ids: Sequence[int], *, config: ProgramConfig = DEFAULT_CONFIG) -> List[int]:
    """Non-empty, strictly contiguous ascending bin ids within the program bin bounds."""
    ids = list(bin_ids)
    if not ids:
        raise InvalidParameterError("bin_ids must not be empty")
    for b in ids:
        if not isinstance(b, int) or isinstance(b, bool):
            raise TypeError("bin_ids must contain ints")
    for prev, cur in zip(ids, ids[1:]):
        if cur != prev + 1:
            raise InvalidParameterError(f"bin_ids must be contiguous ascending: {prev} followed by {cur}")
    if ids[0] < config.min_bin_id or ids[-1] > config.max_bin_id:
        raise InvalidParameterError(
            f"bin_ids must lie in [{config.min_bin_id}, {config.max_bin_id}]: {ids[0]}..{ids[-1]}"
        )
    return ids


def side_sums(entries: Sequence[DistributionEntry]) -> Tuple[int, int]:
    return sum(e.distribution_x for e in entries), sum(e.distribution_y for e in entries)


def _log_lossy(shape: StrategyShape, entries: List[DistributionEntry]) -> List[DistributionEntry]:
    sum_x, sum_y = side_sums(entries)
    if sum_x not in (0, PERCENT_TOTAL) or sum_y not in (0, PERCENT_TOTAL):
        logger.debug(
            "%s distribution over %d bins lost precision: x=%d%% y=%d%%",
            shape.value,
            len(entries),
            sum_x,
            sum_y,
        )
    return entries


# ---------------------------------------------------------------------------
# Gaussian curve
# ---------------------------------------------------------------------------

def gaussian_allocations(active_bin: int, bin_ids: Sequence[int], *, invert: bool) -> List[float]:
    """
    Per-bin allocation in [0, 1] summing to 1.

    The curve is centred on the active bin when it is in range, otherwise on the
    range edge nearest to it; two standard deviations span half the range.
    `invert` weights each bin by `1 / pdf` (edges favoured) instead of `pdf`.
    """
    lo, hi = min(bin_ids), max(bin_ids)
    if active_bin in bin_ids:
        mean = active_bin
    elif active_bin < lo:
        mean = lo
    else:
        mean = hi
    std_dev = (hi - lo) / 4
    variance = max(std_dev**2, 1)

    densities = norm.pdf(bin_ids, loc=mean, scale=math.sqrt(variance))
    allocations: List[float] = []
    for bin_id, density in zip(bin_ids, densities):
        density = float(density)
        if invert:
            if density == 0.0:
                raise DivisionByZeroError(f"gaussian density underflows at bin {bin_id}")
            allocations.append(1.0 / density)
        else:
            allocations.append(density)
    total = math.fsum(allocations)
    if total == 0.0 or not math.isfinite(total):
        raise DivisionByZeroError("gaussian allocations cannot be normalized")
    return [a / total for a in allocations]


def _allocation_bps(allocations: Sequence[float]) -> Tuple[List[int], int]:
    bps = [int(a * BPS_TOTAL) for a in allocations]
    return bps, BPS_TOTAL - sum(bps)


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------

def calculate_spot_distribution(
    active_bin: int,
    bin_ids: Sequence[int],
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[DistributionEntry]:
    ids = validate_bin_ids(bin_ids, config=config)

    if active_bin not in ids:
        per_bin_bps, remainder = divmod(BPS_TOTAL, len(ids))
        per_bin = per_bin_bps // 100
        # The remainder is added in bps before truncating to percent.
        nearest = (per_bin_bps + remainder) // 100
        if ids[0] < active_bin:
            # Y only; the highest bin is nearest the active bin.
            ys = [per_bin] * len(ids)
            ys[-1] = nearest
            return _log_lossy(StrategyShape.SPOT, [DistributionEntry(b, 0, y) for b, y in zip(ids, ys)])
        xs = [per_bin] * len(ids)
        xs[0] = nearest
        return _log_lossy(StrategyShape.SPOT, [DistributionEntry(b, x, 0) for b, x in zip(ids, xs)])

    count_y = sum(1 for b in ids if b < active_bin)
    count_x = sum(1 for b in ids if b > active_bin)
    # floor(10000 / (n + 0.5)) in integers.
    y_bin_bps = (2 * BPS_TOTAL) // (2 * count_y + 1)
    x_bin_bps = (2 * BPS_TOTAL) // (2 * count_x + 1)
    y_active_bps = BPS_TOTAL - y_bin_bps * count_y
    x_active_bps = BPS_TOTAL - x_bin_bps * count_x

    entries = []
    for b in ids:
        if b < active_bin:
            entries.append(DistributionEntry(b, 0, y_bin_bps // 100))
        elif b > active_bin:
            entries.append(DistributionEntry(b, x_bin_bps // 100, 0))
        else:
            entries.append(DistributionEntry(b, x_active_bps // 100, y_active_bps // 100))
    return _log_lossy(StrategyShape.SPOT, entries)


def _one_sided(
    shape: StrategyShape,
    active_bin: int,
    ids: List[int],
    allocations: List[float],
) -> List[DistributionEntry]:
    bps, loss = _allocation_bps(allocations)
    percents = [v // 100 for v in bps]
    right_only = active_bin < ids[0]
    # The bin nearest the active bin absorbs the loss.
    nearest = 0 if right_only else len(ids) - 1
    percents[nearest] += loss // 100
    if right_only:
        entries = [DistributionEntry(b, p, 0) for b, p in zip(ids, percents)]
    else:
        entries = [DistributionEntry(b, 0, p) for b, p in zip(ids, percents)]
    return _log_lossy(shape, entries)


def _side_totals(active_bin: int, ids: List[int], allocations: List[float]) -> Tuple[float, float]:
    total_x = 0.0
    total_y = 0.0
    for b, a in zip(ids, allocations):
        if b > active_bin:
            total_x += a
        elif b < active_bin:
            total_y += a
        else:
            total_x += a / 2
            total_y += a / 2
    return total_x, total_y


def _side_percent(allocation: float, total: float) -> int:
    if total == 0.0:
        raise DivisionByZeroError("side allocation total is zero")
    return math.floor(allocation * PERCENT_TOTAL / total)


def calculate_bid_ask_distribution(
    active_bin: int,
    bin_ids: Sequence[int],
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[DistributionEntry]:
    ids = validate_bin_ids(bin_ids, config=config)
    allocations = gaussian_allocations(active_bin, ids, invert=True)
    if active_bin < ids[0] or active_bin > ids[-1]:
        return _one_sided(StrategyShape.BID_ASK, active_bin, ids, allocations)

    total_x, total_y = _side_totals(active_bin, ids, allocations)
    xs: List[int] = []
    ys: List[int] = []
    for b, a in zip(ids, allocations):
        if b > active_bin:
            xs.append(_side_percent(a, total_x))
            ys.append(0)
        elif b < active_bin:
            xs.append(0)
            ys.append(_side_percent(a, total_y))
        else:
            xs.append(_side_percent(a / 2, total_x))
            ys.append(_side_percent(a / 2, total_y))

    # Loss goes to the active bin, the bin nearest the price on both sides.
    active_idx = ids.index(active_bin)
    xs[active_idx] += PERCENT_TOTAL - sum(xs)
    ys[active_idx] += PERCENT_TOTAL - sum(ys)
    entries = [DistributionEntry(b, x, y) for b, x, y in zip(ids, xs, ys)]
    return _log_lossy(StrategyShape.BID_ASK, entries)


def calculate_normal_distribution(
    active_bin: int,
    bin_ids: Sequence[int],
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[DistributionEntry]:
    ids = validate_bin_ids(bin_ids, config=config)
    allocations = gaussian_allocations(active_bin, ids, invert=False)
    if active_bin < ids[0] or active_bin > ids[-1]:
        return _one_sided(StrategyShape.NORMAL, active_bin, ids, allocations)

    total_x, total_y = _side_totals(active_bin, ids, allocations)
    xs: List[int] = []
    ys: List[int] = []
    for b, a in zip(ids, allocations):
        if b > active_bin:
            xs.append(_side_percent(a, total_x))
            ys.append(0)
        elif b < active_bin:
            xs.append(0)
            ys.append(_side_percent(a, total_y))
        else:
            xs.append(0)
            ys.append(0)

    active_idx = ids.index(active_bin)
    xs[active_idx] = PERCENT_TOTAL - sum(xs)
    ys[active_idx] = PERCENT_TOTAL - sum(ys)
    entries = [DistributionEntry(b, x, y) for b, x, y in zip(ids, xs, ys)]
    return _log_lossy(StrategyShape.NORMAL, entries)


_SHAPES = {
    StrategyShape.SPOT: calculate_spot_distribution,
    StrategyShape.BID_ASK: calculate_bid_ask_distribution,
    StrategyShape.NORMAL: calculate_normal_distribution,
}


def plan(
    shape: StrategyShape,
    active_bin_id: int,
    bin_ids: Sequence[int],
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[DistributionEntry]:
    """Per-bin X/Y percentages for `shape`, aligned 1:1 with `bin_ids`."""
    if not isinstance(shape, StrategyShape):
        raise InvalidParameterError(f"unknown strategy shape: {shape!r}")
    if not isinstance(active_bin_id, int) or isinstance(active_bin_id, bool):
        raise TypeError("active_bin_id must be an int")
    if not (config.min_bin_id <= active_bin_id <= config.max_bin_id):
        raise InvalidParameterError(f"active_bin_id out of bounds: {active_bin_id}")
    return _SHAPES[shape](active_bin_id, bin_ids, config=config)
