"""Tests for exact-in swap quoting."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal
from typing import Dict

import pytest

from dlmm_quote.core.bitmap import BinArrayBitmap
from dlmm_quote.core.errors import InsufficientLiquidityError, InvalidParameterError
from dlmm_quote.core.pricing import price_of_bin
from dlmm_quote.core.swap_quote import QuoteResult, quote
from dlmm_quote.core.transfer_fee import MintTransferFee, TransferFeeConfig, TransferFeeSchedule
from dlmm_quote.kernels.python.u64x64_math import ONE
from dlmm_quote.state.bins import Bin, BinPage, PageArena
from dlmm_quote.state.config import ProgramConfig
from dlmm_quote.state.pair import PoolSnapshot, StaticParameters, VariableParameters


def _static(base_factor: int = 0, protocol_share: int = 0) -> StaticParameters:
    return StaticParameters(
        base_factor=base_factor,
        filter_period=30,
        decay_period=600,
        reduction_factor=5_000,
        variable_fee_control=0,
        max_volatility_accumulator=350_000,
        min_bin_id=-443_636,
        max_bin_id=443_636,
        protocol_share=protocol_share,
    )


def _snapshot(active_id: int = 0, static: StaticParameters | None = None, **kwargs: object) -> PoolSnapshot:
    return PoolSnapshot(
        active_id=active_id,
        bin_step=10,
        static_parameters=static or _static(),
        **kwargs,  # type: ignore[arg-type]
    )


def _pages(bins: Dict[int, Bin]) -> PageArena:
    """Arena holding `bins` keyed by absolute bin id; other bins are empty."""
    by_page: Dict[int, list] = {}
    for bin_id, b in bins.items():
        slots = by_page.setdefault(bin_id // 70, [Bin()] * 70)
        slots[bin_id % 70] = b
    return PageArena([BinPage(index=i, bins=tuple(s)) for i, s in by_page.items()])


def _y(amount: int) -> Bin:
    return Bin(amount_y=amount, price=ONE, liquidity_supply=amount)


def _x(amount: int) -> Bin:
    return Bin(amount_x=amount, price=ONE, liquidity_supply=amount)


def _market(bins: Dict[int, Bin]) -> tuple[PageArena, BinArrayBitmap]:
    arena = _pages(bins)
    return arena, BinArrayBitmap.from_arena(arena)


# ---------------------------------------------------------------------------
# Fills
# ---------------------------------------------------------------------------

def test_quote_crosses_pages_at_unit_price() -> None:
    arena, bitmap = _market({0: _y(600), -1: _y(1_000)})
    result = quote(1_000, True, 100, arena, bitmap, _snapshot(), 0)
    assert result.consumed_in_amount == 1_000
    assert result.out_amount == 1_000
    assert result.fee == 0
    assert result.min_out_amount == 990
    assert result.touched_pages == (0, -1)
    assert result.price_impact == 0


def test_quote_y_for_x_walks_up() -> None:
    arena, bitmap = _market({0: _x(500), 75: _x(500)})
    result = quote(800, False, 0, arena, bitmap, _snapshot(), 0)
    assert result.out_amount == 800
    assert result.touched_pages == (0, 1)
    assert result.min_out_amount == 800


def test_quote_charges_fee_and_protocol_share() -> None:
    arena, bitmap = _market({0: _y(10**9)})
    snapshot = _snapshot(static=_static(base_factor=10_000, protocol_share=2_000))
    result = quote(1_000_000, True, 0, arena, bitmap, snapshot, 0)
    assert result.fee == 1_000
    assert result.protocol_fee == 200
    assert result.out_amount == 999_000
    assert result.consumed_in_amount == 1_000_000
    assert result.price_impact == 0


def test_quote_price_impact_across_prices() -> None:
    half = Bin(amount_y=1_000, price=ONE // 2, liquidity_supply=1_000)
    arena, bitmap = _market({0: _y(100), -1: half})
    result = quote(300, True, 0, arena, bitmap, _snapshot(), 0)
    # 100 at 1.0 then 200 at 0.5.
    assert result.out_amount == 200
    assert abs(result.price_impact - Decimal(100) / Decimal(3)) < Decimal("1e-20")


def test_quote_end_price_is_last_filled_bin() -> None:
    arena, bitmap = _market({0: _y(100), -3: _y(100)})
    result = quote(150, True, 0, arena, bitmap, _snapshot(), 0)
    assert result.out_amount == 150
    assert result.end_bin_price == price_of_bin(-3, 10)


def test_quote_active_bin_without_liquidity_page_is_skipped() -> None:
    arena, bitmap = _market({-200: _y(1_000)})
    result = quote(10, True, 0, arena, bitmap, _snapshot(active_id=5), 0)
    assert result.out_amount == 10
    assert result.touched_pages == (-3,)


# ---------------------------------------------------------------------------
# Liquidity exhaustion
# ---------------------------------------------------------------------------

def test_quote_no_liquidity_fails() -> None:
    arena = PageArena()
    with pytest.raises(InsufficientLiquidityError):
        quote(1_000, True, 0, arena, BinArrayBitmap(), _snapshot(), 0)


def test_quote_no_liquidity_partial_fill_is_empty() -> None:
    arena = PageArena()
    result = quote(1_000, True, 0, arena, BinArrayBitmap(), _snapshot(), 0, partial_fill_allowed=True)
    assert result.consumed_in_amount == 0
    assert result.out_amount == 0
    assert result.fee == 0
    assert result.touched_pages == ()
    assert result.end_bin_price == 1


def test_quote_runs_out_without_partial_fill() -> None:
    arena, bitmap = _market({0: _y(600)})
    with pytest.raises(InsufficientLiquidityError):
        quote(1_000, True, 0, arena, bitmap, _snapshot(), 0)


def test_quote_partial_fill_reports_consumed() -> None:
    arena, bitmap = _market({0: _y(600)})
    result = quote(1_000, True, 0, arena, bitmap, _snapshot(), 0, partial_fill_allowed=True)
    assert result.consumed_in_amount == 600
    assert result.out_amount == 600
    assert result.touched_pages == (0,)


def test_quote_marked_but_missing_page_stops() -> None:
    arena = _pages({0: _y(600)})
    bitmap = BinArrayBitmap.from_page_indexes([0, -1])
    with pytest.raises(InsufficientLiquidityError):
        quote(1_000, True, 0, arena, bitmap, _snapshot(), 0)


def test_quote_stops_at_pair_max_bin_id() -> None:
    arena, bitmap = _market({b: _x(100) for b in range(10)})
    snapshot = _snapshot(static=replace(_static(), max_bin_id=5))
    result = quote(1_000, False, 0, arena, bitmap, snapshot, 0, partial_fill_allowed=True)
    assert result.consumed_in_amount == 600
    assert result.out_amount == 600
    with pytest.raises(InsufficientLiquidityError):
        quote(1_000, False, 0, arena, bitmap, snapshot, 0)


def test_quote_does_not_jump_past_pair_min_bin_id() -> None:
    arena, bitmap = _market({0: _y(100), -140: _y(100)})
    snapshot = _snapshot(static=replace(_static(), min_bin_id=-50))
    result = quote(500, True, 0, arena, bitmap, snapshot, 0, partial_fill_allowed=True)
    assert result.consumed_in_amount == 100
    assert result.touched_pages == (0,)


def test_quote_rejects_protocol_share_above_program_max() -> None:
    arena, bitmap = _market({0: _y(100)})
    snapshot = _snapshot(static=_static(protocol_share=2_000))
    with pytest.raises(InvalidParameterError):
        quote(10, True, 0, arena, bitmap, snapshot, 0, config=ProgramConfig(max_protocol_share=1_000))


# ---------------------------------------------------------------------------
# Purity and prefetch
# ---------------------------------------------------------------------------

def test_quote_is_repeatable_and_leaves_snapshot_alone() -> None:
    arena, bitmap = _market({0: _y(600), -1: _y(1_000)})
    variable = VariableParameters(volatility_accumulator=5, volatility_reference=3, index_reference=2)
    snapshot = _snapshot(static=_static(base_factor=10_000), variable_parameters=variable)
    first = quote(700, True, 50, arena, bitmap, snapshot, 1_000)
    second = quote(700, True, 50, arena, bitmap, snapshot, 1_000)
    assert first == second
    assert snapshot.variable_parameters == variable


def test_quote_out_bounded_by_liquidity() -> None:
    arena, bitmap = _market({0: _y(600), -1: _y(1_000)})
    result = quote(10**6, True, 0, arena, bitmap, _snapshot(), 0, partial_fill_allowed=True)
    assert result.out_amount == 1_600
    assert result.consumed_in_amount == 1_600
    assert isinstance(result, QuoteResult)


def test_quote_touched_pages_grow_with_input() -> None:
    arena, bitmap = _market({0: _y(100), -70: _y(100), -140: _y(100)})
    counts = []
    for amount in (1, 100, 101, 200, 250, 300, 10_000):
        result = quote(amount, True, 0, arena, bitmap, _snapshot(), 0, partial_fill_allowed=True)
        assert result.consumed_in_amount <= amount
        assert result.protocol_fee <= result.fee
        counts.append(len(result.touched_pages))
    assert counts == sorted(counts)
    assert counts[-1] == 3


def test_quote_extra_pages_are_prefetched() -> None:
    arena, bitmap = _market({0: _y(100), -70: _y(100), -140: _y(100), -210: _y(100)})
    result = quote(50, True, 0, arena, bitmap, _snapshot(), 0, extra_page_count=2)
    assert result.touched_pages == (0, -1, -2)
    assert result.out_amount == 50


def test_quote_extra_pages_stop_at_end_of_liquidity() -> None:
    arena, bitmap = _market({0: _y(100), -70: _y(100)})
    result = quote(50, True, 0, arena, bitmap, _snapshot(), 0, extra_page_count=3)
    assert result.touched_pages == (0, -1)


def test_quote_rejects_bad_arguments() -> None:
    arena, bitmap = _market({0: _y(100)})
    with pytest.raises(InvalidParameterError):
        quote(0, True, 0, arena, bitmap, _snapshot(), 0)
    with pytest.raises(InvalidParameterError):
        quote(10, True, 10_001, arena, bitmap, _snapshot(), 0)
    with pytest.raises(InvalidParameterError):
        quote(10, True, 0, arena, bitmap, _snapshot(), 0, extra_page_count=4)
    with pytest.raises(TypeError):
        quote(10, 1, 0, arena, bitmap, _snapshot(), 0)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Transfer fees
# ---------------------------------------------------------------------------

def test_quote_applies_input_transfer_fee() -> None:
    arena, bitmap = _market({0: _y(10_000)})
    one_percent = TransferFeeConfig(epoch=0, basis_points=100, maximum_fee=10**9)
    schedule = TransferFeeSchedule({"MINT_X": MintTransferFee(older=one_percent, newer=one_percent)})
    snapshot = _snapshot(mint_x="MINT_X", mint_y="MINT_Y")
    result = quote(1_000, True, 0, arena, bitmap, snapshot, 0, transfer_fee=schedule)
    assert result.out_amount == 990
    assert result.consumed_in_amount == 1_000


def test_quote_applies_output_transfer_fee() -> None:
    arena, bitmap = _market({0: _y(10_000)})
    one_percent = TransferFeeConfig(epoch=0, basis_points=100, maximum_fee=10**9)
    schedule = TransferFeeSchedule({"MINT_Y": MintTransferFee(older=one_percent, newer=one_percent)})
    snapshot = _snapshot(mint_x="MINT_X", mint_y="MINT_Y")
    result = quote(1_000, True, 500, arena, bitmap, snapshot, 0, transfer_fee=schedule)
    assert result.out_amount == 990
    assert result.min_out_amount == 940
