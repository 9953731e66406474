"""
Dynamic swap fee model.

The fee rate of a pair is `min(base + variable, max_fee_rate)` in fee-precision
units (1e9 = 100%):
- `base = base_factor * bin_step * 10` is fixed per pair,
- `variable` grows quadratically with the volatility accumulator, which tracks how
  many bins the price has crossed relative to a reference bin and decays over time.

The volatility state is a value: every transition returns a new
`VariableParameters` and never touches its input.
"""

from __future__ import annotations

import decimal
from dataclasses import dataclass, replace
from decimal import Decimal

from ..kernels.python.bin_swap import compute_fee, compute_fee_from_amount, compute_protocol_fee
from ..kernels.python.u64x64_math import require_u128
from ..state.config import DEFAULT_CONFIG, ProgramConfig
from ..state.pair import PoolSnapshot, StaticParameters, VariableParameters
from .pricing import decimal_context


# ceil(v / 1e11) for the variable-fee scaling.
_VARIABLE_FEE_DENOM = 100_000_000_000


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def update_reference(
    active_id: int,
    v_params: VariableParameters,
    s_params: StaticParameters,
    now: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> VariableParameters:
    """
    Move the reference point once `filter_period` has elapsed since the last update.

    Inside the decay window the volatility reference keeps
    `reduction_factor / 10_000` of the accumulator; past it the reference resets to 0.
    """
    _require_int("active_id", active_id)
    _require_int("now", now)
    elapsed = now - v_params.last_update_timestamp
    if elapsed < s_params.filter_period:
        return v_params
    if elapsed < s_params.decay_period:
        reference = (v_params.volatility_accumulator * s_params.reduction_factor) // config.basis_point_max
    else:
        reference = 0
    return replace(v_params, index_reference=active_id, volatility_reference=reference)


def update_volatility_accumulator(
    v_params: VariableParameters,
    s_params: StaticParameters,
    active_id: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> VariableParameters:
    """`acc = min(reference + |index_reference - active_id| * 10_000, max_volatility_accumulator)`."""
    _require_int("active_id", active_id)
    delta_id = abs(v_params.index_reference - active_id)
    accumulator = v_params.volatility_reference + delta_id * config.basis_point_max
    accumulator = min(accumulator, s_params.max_volatility_accumulator)
    return replace(v_params, volatility_accumulator=accumulator)


def base_fee_rate(bin_step: int, s_params: StaticParameters) -> int:
    _require_int("bin_step", bin_step)
    return require_u128("base_fee_rate", s_params.base_factor * bin_step * 10)


def variable_fee_rate(bin_step: int, s_params: StaticParameters, v_params: VariableParameters) -> int:
    """`ceil(variable_fee_control * (volatility_accumulator * bin_step) ** 2 / 1e11)`, or 0 when disabled."""
    _require_int("bin_step", bin_step)
    if s_params.variable_fee_control == 0:
        return 0
    square = require_u128("volatility_square", (v_params.volatility_accumulator * bin_step) ** 2)
    v_fee = require_u128("variable_fee", s_params.variable_fee_control * square)
    return (v_fee + _VARIABLE_FEE_DENOM - 1) // _VARIABLE_FEE_DENOM


def total_fee_rate(
    bin_step: int,
    s_params: StaticParameters,
    v_params: VariableParameters,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> int:
    total = require_u128(
        "total_fee_rate", base_fee_rate(bin_step, s_params) + variable_fee_rate(bin_step, s_params, v_params)
    )
    return min(total, config.max_fee_rate)


def fee_rate_to_percent(rate: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> Decimal:
    with decimal.localcontext(decimal_context()):
        return Decimal(rate) * Decimal(100) / Decimal(config.fee_precision)


@dataclass(frozen=True)
class FeeSummary:
    base_fee_rate_percentage: Decimal
    max_fee_rate_percentage: Decimal
    protocol_fee_percentage: Decimal


def fee_info(
    base_factor: int,
    bin_step: int,
    protocol_share: int,
    *,
    base_fee_power_factor: int = 0,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> FeeSummary:
    """
    Static fee figures of a pair, all in percent.

    `base_fee_power_factor` scales the base fee by `10 ** factor`, letting a
    small bin step carry a larger fee.
    """
    for name, v in (
        ("base_factor", base_factor),
        ("bin_step", bin_step),
        ("protocol_share", protocol_share),
        ("base_fee_power_factor", base_fee_power_factor),
    ):
        _require_int(name, v)
        if v < 0:
            raise ValueError(f"{name} must be non-negative: {v}")
    if protocol_share > config.max_protocol_share:
        raise ValueError(f"protocol_share must not exceed {config.max_protocol_share}: {protocol_share}")
    base_rate = base_factor * bin_step * 10 * 10**base_fee_power_factor
    with decimal.localcontext(decimal_context()):
        protocol_pct = Decimal(protocol_share) / Decimal(config.basis_point_max) * Decimal(100)
    return FeeSummary(
        base_fee_rate_percentage=fee_rate_to_percent(base_rate, config=config),
        max_fee_rate_percentage=fee_rate_to_percent(config.max_fee_rate, config=config),
        protocol_fee_percentage=protocol_pct,
    )


def dynamic_fee(snapshot: PoolSnapshot, now: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> Decimal:
    """Fee (in percent) a swap at `now` would pay in the active bin."""
    sp = snapshot.static_parameters
    vp = update_reference(snapshot.active_id, snapshot.variable_parameters, sp, now, config=config)
    vp = update_volatility_accumulator(vp, sp, snapshot.active_id, config=config)
    return fee_rate_to_percent(total_fee_rate(snapshot.bin_step, sp, vp, config=config), config=config)


__all__ = [
    "FeeSummary",
    "base_fee_rate",
    "compute_fee",
    "compute_fee_from_amount",
    "compute_protocol_fee",
    "dynamic_fee",
    "fee_info",
    "fee_rate_to_percent",
    "total_fee_rate",
    "update_reference",
    "update_volatility_accumulator",
    "variable_fee_rate",
]
