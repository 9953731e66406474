"""
Token transfer-fee transforms.

Some mints withhold a fee on every transfer. The quoting core treats this as an
opaque pair of amount transforms, keyed by mint and ledger epoch:
- `exclude(amount)`: what arrives after the transfer fee is withheld,
- `include(amount)`: what must be sent so that `amount` arrives.

`NoTransferFee` is the identity. `TransferFeeSchedule` implements the
basis-point-with-cap fee used by the token-extension program, where a newer fee
configuration takes over from a given epoch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Optional, Protocol

from ..state.config import BASIS_POINT_MAX


def _require_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError("amount must be an int")
    if amount < 0:
        raise ValueError("amount must be non-negative")


class TransferFeeTransform(Protocol):
    def exclude(self, amount: int, mint: str, epoch: int) -> int:
        ...

    def include(self, amount: int, mint: str, epoch: int) -> int:
        ...


class NoTransferFee:
    """Identity transform for mints without a transfer fee."""

    def exclude(self, amount: int, mint: str, epoch: int) -> int:
        _require_amount(amount)
        return amount

    def include(self, amount: int, mint: str, epoch: int) -> int:
        _require_amount(amount)
        return amount


NO_TRANSFER_FEE = NoTransferFee()


@dataclass(frozen=True)
class TransferFeeConfig:
    epoch: int
    basis_points: int
    maximum_fee: int

    def __post_init__(self) -> None:
        for name, v in (("epoch", self.epoch), ("basis_points", self.basis_points), ("maximum_fee", self.maximum_fee)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.basis_points > BASIS_POINT_MAX:
            raise ValueError(f"basis_points must be in [0, {BASIS_POINT_MAX}]: {self.basis_points}")

    def fee(self, pre_fee_amount: int) -> int:
        """`min(ceil(amount * bps / 10_000), maximum_fee)`."""
        _require_amount(pre_fee_amount)
        if self.basis_points == 0 or pre_fee_amount == 0:
            return 0
        raw = (pre_fee_amount * self.basis_points + BASIS_POINT_MAX - 1) // BASIS_POINT_MAX
        return min(raw, self.maximum_fee)

    def inverse_fee(self, post_fee_amount: int) -> int:
        """Fee withheld from the smallest pre-fee amount that nets `post_fee_amount`."""
        _require_amount(post_fee_amount)
        if self.basis_points == 0:
            return 0
        if self.basis_points == BASIS_POINT_MAX:
            return self.maximum_fee
        denominator = BASIS_POINT_MAX - self.basis_points
        pre_fee = (post_fee_amount * BASIS_POINT_MAX + denominator - 1) // denominator
        return min(pre_fee - post_fee_amount, self.maximum_fee)


@dataclass(frozen=True)
class MintTransferFee:
    older: TransferFeeConfig
    newer: TransferFeeConfig

    def at_epoch(self, epoch: int) -> TransferFeeConfig:
        return self.newer if epoch >= self.newer.epoch else self.older


@dataclass(frozen=True)
class TransferFeeSchedule:
    """Per-mint transfer fees; mints not listed transfer without a fee."""

    mints: Mapping[str, MintTransferFee] = field(default_factory=dict)

    def _config(self, mint: str, epoch: int) -> Optional[TransferFeeConfig]:
        entry = self.mints.get(mint)
        if entry is None:
            return None
        return entry.at_epoch(epoch)

    def exclude(self, amount: int, mint: str, epoch: int) -> int:
        _require_amount(amount)
        cfg = self._config(mint, epoch)
        if cfg is None:
            return amount
        return amount - cfg.fee(amount)

    def include(self, amount: int, mint: str, epoch: int) -> int:
        _require_amount(amount)
        cfg = self._config(mint, epoch)
        if cfg is None or amount == 0:
            return amount
        return amount + cfg.inverse_fee(amount)
