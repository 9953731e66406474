"""
Liquidity position record.

One concrete position layout: a contiguous bin range with one liquidity-share
entry (and one fee checkpoint) per bin.
"""

from __future__ import annotations

from dataclasses import dataclass

from .bins import DEFAULT_BINS_PER_PAGE


@dataclass(frozen=True)
class FeeInfo:
    fee_x_per_token_complete: int = 0
    fee_y_per_token_complete: int = 0
    fee_x_pending: int = 0
    fee_y_pending: int = 0

    def __post_init__(self) -> None:
        for name, v in (
            ("fee_x_per_token_complete", self.fee_x_per_token_complete),
            ("fee_y_per_token_complete", self.fee_y_per_token_complete),
            ("fee_x_pending", self.fee_x_pending),
            ("fee_y_pending", self.fee_y_pending),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")


@dataclass(frozen=True)
class Position:
    address: str
    lower_bin_id: int
    upper_bin_id: int
    liquidity_shares: tuple[int, ...]
    fee_infos: tuple[FeeInfo, ...] = ()
    last_updated_at: int = 0
    owner: str = ""
    fee_owner: str = ""
    total_claimed_fee_x: int = 0
    total_claimed_fee_y: int = 0

    def __post_init__(self) -> None:
        if not isinstance(self.address, str) or not self.address:
            raise TypeError("address must be a non-empty string")
        if not isinstance(self.owner, str) or not isinstance(self.fee_owner, str):
            raise TypeError("owner and fee_owner must be strings")
        for name, v in (
            ("lower_bin_id", self.lower_bin_id),
            ("upper_bin_id", self.upper_bin_id),
            ("last_updated_at", self.last_updated_at),
            ("total_claimed_fee_x", self.total_claimed_fee_x),
            ("total_claimed_fee_y", self.total_claimed_fee_y),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.lower_bin_id > self.upper_bin_id:
            raise ValueError(f"lower_bin_id ({self.lower_bin_id}) > upper_bin_id ({self.upper_bin_id})")
        for name, v in (
            ("last_updated_at", self.last_updated_at),
            ("total_claimed_fee_x", self.total_claimed_fee_x),
            ("total_claimed_fee_y", self.total_claimed_fee_y),
        ):
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if not isinstance(self.liquidity_shares, tuple):
            raise TypeError("liquidity_shares must be a tuple")
        if len(self.liquidity_shares) != self.width():
            raise ValueError(f"expected {self.width()} liquidity_shares, got {len(self.liquidity_shares)}")
        for share in self.liquidity_shares:
            if not isinstance(share, int) or isinstance(share, bool) or share < 0:
                raise ValueError("liquidity_shares must be non-negative ints")
        if not isinstance(self.fee_infos, tuple):
            raise TypeError("fee_infos must be a tuple")
        if self.fee_infos and len(self.fee_infos) != self.width():
            raise ValueError(f"expected {self.width()} fee_infos, got {len(self.fee_infos)}")
        for info in self.fee_infos:
            if not isinstance(info, FeeInfo):
                raise TypeError("fee_infos must contain FeeInfo values")

    def width(self) -> int:
        return self.upper_bin_id - self.lower_bin_id + 1

    def share_of(self, bin_id: int) -> int:
        if not (self.lower_bin_id <= bin_id <= self.upper_bin_id):
            raise ValueError(f"bin {bin_id} is outside position [{self.lower_bin_id}, {self.upper_bin_id}]")
        return self.liquidity_shares[bin_id - self.lower_bin_id]

    def page_indexes_coverage(self, bins_per_page: int = DEFAULT_BINS_PER_PAGE) -> list[int]:
        """Every page index the position's bin range touches, ascending."""
        lower = self.lower_bin_id // bins_per_page
        upper = self.upper_bin_id // bins_per_page
        return list(range(lower, upper + 1))
