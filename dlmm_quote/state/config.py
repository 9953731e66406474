"""
Program-level constants as one immutable value.

The ledger program hard-codes these; here they travel with each call so a
different deployment (or a test) can swap them without touching module state.
"""

from __future__ import annotations

from dataclasses import dataclass


BASIS_POINT_MAX = 10_000
MAX_PROTOCOL_SHARE = 2_500
MIN_BIN_ID = -443_636
MAX_BIN_ID = 443_636


@dataclass(frozen=True)
class ProgramConfig:
    basis_point_max: int = BASIS_POINT_MAX
    fee_precision: int = 1_000_000_000
    max_fee_rate: int = 100_000_000
    max_protocol_share: int = MAX_PROTOCOL_SHARE
    scale_offset: int = 64
    max_bin_per_array: int = 70
    bin_array_bitmap_size: int = 512
    extension_bitmap_size: int = 12
    max_extra_bin_arrays: int = 3
    min_bin_id: int = MIN_BIN_ID
    max_bin_id: int = MAX_BIN_ID

    def __post_init__(self) -> None:
        for name in (
            "basis_point_max",
            "fee_precision",
            "max_fee_rate",
            "max_protocol_share",
            "scale_offset",
            "max_bin_per_array",
            "bin_array_bitmap_size",
            "extension_bitmap_size",
            "max_extra_bin_arrays",
            "min_bin_id",
            "max_bin_id",
        ):
            v = getattr(self, name)
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        for name in (
            "basis_point_max",
            "fee_precision",
            "scale_offset",
            "max_bin_per_array",
            "bin_array_bitmap_size",
            "extension_bitmap_size",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive: {getattr(self, name)}")
        if not (0 < self.max_fee_rate < self.fee_precision):
            raise ValueError(f"max_fee_rate must be in (0, {self.fee_precision}): {self.max_fee_rate}")
        if not (0 <= self.max_protocol_share <= self.basis_point_max):
            raise ValueError(f"max_protocol_share must be in [0, {self.basis_point_max}]")
        if self.max_extra_bin_arrays < 0:
            raise ValueError(f"max_extra_bin_arrays must be non-negative: {self.max_extra_bin_arrays}")
        if self.min_bin_id > self.max_bin_id:
            raise ValueError(f"min_bin_id ({self.min_bin_id}) > max_bin_id ({self.max_bin_id})")

    @property
    def one(self) -> int:
        """1.0 in the Q64.64 price representation."""
        return 1 << self.scale_offset


DEFAULT_CONFIG = ProgramConfig()
