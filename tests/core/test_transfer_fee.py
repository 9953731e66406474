from __future__ import annotations

import pytest

from dlmm_quote.core.transfer_fee import (
    NO_TRANSFER_FEE,
    MintTransferFee,
    TransferFeeConfig,
    TransferFeeSchedule,
)


def _schedule() -> TransferFeeSchedule:
    return TransferFeeSchedule(
        {
            "FEE": MintTransferFee(
                older=TransferFeeConfig(epoch=0, basis_points=100, maximum_fee=1_000),
                newer=TransferFeeConfig(epoch=10, basis_points=200, maximum_fee=1_000),
            )
        }
    )


def test_no_transfer_fee_is_identity() -> None:
    assert NO_TRANSFER_FEE.exclude(123, "ANY", 0) == 123
    assert NO_TRANSFER_FEE.include(123, "ANY", 0) == 123
    with pytest.raises(ValueError):
        NO_TRANSFER_FEE.exclude(-1, "ANY", 0)


def test_fee_rounds_up_and_caps() -> None:
    cfg = TransferFeeConfig(epoch=0, basis_points=100, maximum_fee=5)
    assert cfg.fee(1) == 1
    assert cfg.fee(300) == 3
    assert cfg.fee(10_000) == 5
    assert cfg.fee(0) == 0


def test_inverse_fee() -> None:
    cfg = TransferFeeConfig(epoch=0, basis_points=100, maximum_fee=10**9)
    assert cfg.inverse_fee(990) == 10
    full = TransferFeeConfig(epoch=0, basis_points=10_000, maximum_fee=42)
    assert full.inverse_fee(1) == 42


def test_config_validation() -> None:
    with pytest.raises(ValueError):
        TransferFeeConfig(epoch=0, basis_points=10_001, maximum_fee=0)
    with pytest.raises(TypeError):
        TransferFeeConfig(epoch=0, basis_points=True, maximum_fee=0)  # type: ignore[arg-type]


def test_schedule_switches_at_newer_epoch() -> None:
    schedule = _schedule()
    assert schedule.exclude(1_000, "FEE", 9) == 990
    assert schedule.exclude(1_000, "FEE", 10) == 980


def test_schedule_include_covers_fee() -> None:
    schedule = _schedule()
    gross = schedule.include(990, "FEE", 0)
    assert gross == 1_000
    assert schedule.exclude(gross, "FEE", 0) == 990
    assert schedule.include(0, "FEE", 0) == 0


def test_schedule_unlisted_mint_is_free() -> None:
    schedule = _schedule()
    assert schedule.exclude(1_000, "OTHER", 50) == 1_000
    assert schedule.include(1_000, "OTHER", 50) == 1_000
