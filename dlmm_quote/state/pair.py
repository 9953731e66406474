"""
Pair (pool) snapshot records.

A snapshot is everything the quoting core needs to know about one trading pair at
one instant: the active bin, the bin step and both fee-parameter groups. Snapshots
are owned by the caller and never mutated; fee-state transitions return a new
`VariableParameters` value.
"""

from __future__ import annotations

from dataclasses import dataclass

from .config import BASIS_POINT_MAX, MAX_BIN_ID, MAX_PROTOCOL_SHARE, MIN_BIN_ID


def _check_ints(fields: tuple[tuple[str, object], ...]) -> None:
    for name, v in fields:
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name} must be an int")


@dataclass(frozen=True)
class StaticParameters:
    """Fee configuration fixed at pair creation (changed only by an admin)."""

    base_factor: int
    filter_period: int
    decay_period: int
    reduction_factor: int
    variable_fee_control: int
    max_volatility_accumulator: int
    min_bin_id: int
    max_bin_id: int
    protocol_share: int

    def __post_init__(self) -> None:
        _check_ints(
            (
                ("base_factor", self.base_factor),
                ("filter_period", self.filter_period),
                ("decay_period", self.decay_period),
                ("reduction_factor", self.reduction_factor),
                ("variable_fee_control", self.variable_fee_control),
                ("max_volatility_accumulator", self.max_volatility_accumulator),
                ("min_bin_id", self.min_bin_id),
                ("max_bin_id", self.max_bin_id),
                ("protocol_share", self.protocol_share),
            )
        )
        for name, v in (
            ("base_factor", self.base_factor),
            ("filter_period", self.filter_period),
            ("decay_period", self.decay_period),
            ("variable_fee_control", self.variable_fee_control),
            ("max_volatility_accumulator", self.max_volatility_accumulator),
        ):
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.filter_period > self.decay_period:
            raise ValueError(
                f"filter_period ({self.filter_period}) must not exceed decay_period ({self.decay_period})"
            )
        if not (0 <= self.reduction_factor <= BASIS_POINT_MAX):
            raise ValueError(f"reduction_factor must be in [0, {BASIS_POINT_MAX}]: {self.reduction_factor}")
        if not (0 <= self.protocol_share <= MAX_PROTOCOL_SHARE):
            raise ValueError(f"protocol_share must be in [0, {MAX_PROTOCOL_SHARE}]: {self.protocol_share}")
        if self.min_bin_id > self.max_bin_id:
            raise ValueError(f"min_bin_id ({self.min_bin_id}) > max_bin_id ({self.max_bin_id})")
        if self.min_bin_id < MIN_BIN_ID or self.max_bin_id > MAX_BIN_ID:
            raise ValueError(f"bin id bounds must lie in [{MIN_BIN_ID}, {MAX_BIN_ID}]")


@dataclass(frozen=True)
class VariableParameters:
    """Decaying volatility state; updated on every swap by the ledger program."""

    volatility_accumulator: int = 0
    volatility_reference: int = 0
    index_reference: int = 0
    last_update_timestamp: int = 0

    def __post_init__(self) -> None:
        _check_ints(
            (
                ("volatility_accumulator", self.volatility_accumulator),
                ("volatility_reference", self.volatility_reference),
                ("index_reference", self.index_reference),
                ("last_update_timestamp", self.last_update_timestamp),
            )
        )
        if self.volatility_accumulator < 0:
            raise ValueError(f"volatility_accumulator must be non-negative: {self.volatility_accumulator}")
        if self.volatility_reference < 0:
            raise ValueError(f"volatility_reference must be non-negative: {self.volatility_reference}")
        if self.last_update_timestamp < 0:
            raise ValueError(f"last_update_timestamp must be non-negative: {self.last_update_timestamp}")


@dataclass(frozen=True)
class PoolSnapshot:
    active_id: int
    bin_step: int
    static_parameters: StaticParameters
    variable_parameters: VariableParameters = VariableParameters()
    mint_x: str = ""
    mint_y: str = ""
    # Ledger epoch the transfer-fee transform is evaluated at.
    epoch: int = 0

    def __post_init__(self) -> None:
        _check_ints(
            (
                ("active_id", self.active_id),
                ("bin_step", self.bin_step),
                ("epoch", self.epoch),
            )
        )
        if self.bin_step <= 0:
            raise ValueError(f"bin_step must be positive: {self.bin_step}")
        if self.epoch < 0:
            raise ValueError(f"epoch must be non-negative: {self.epoch}")
        if not isinstance(self.static_parameters, StaticParameters):
            raise TypeError("static_parameters must be StaticParameters")
        if not isinstance(self.variable_parameters, VariableParameters):
            raise TypeError("variable_parameters must be VariableParameters")
        if not isinstance(self.mint_x, str) or not isinstance(self.mint_y, str):
            raise TypeError("mint_x and mint_y must be strings")
        sp = self.static_parameters
        if not (sp.min_bin_id <= self.active_id <= sp.max_bin_id):
            raise ValueError(f"active_id {self.active_id} outside [{sp.min_bin_id}, {sp.max_bin_id}]")
