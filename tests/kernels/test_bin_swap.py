from __future__ import annotations

import pytest

from dlmm_quote.kernels.python.bin_swap import (
    ZERO_RESULT,
    BinSwapResult,
    compute_fee,
    compute_fee_from_amount,
    compute_protocol_fee,
    get_out_amount,
    swap_exact_in_quote_at_bin,
)
from dlmm_quote.kernels.python.u64x64_math import ONE


RATE = 1_000_000  # 0.1%


def _swap(**overrides: object) -> BinSwapResult:
    params: dict = dict(
        amount_x=0,
        amount_y=1_000,
        price=ONE,
        in_amount=500,
        fee_rate=RATE,
        protocol_share=0,
        swap_for_y=True,
    )
    params.update(overrides)
    return swap_exact_in_quote_at_bin(**params)


# ---------------------------------------------------------------------------
# Fee helpers
# ---------------------------------------------------------------------------

def test_compute_fee_on_net_amount() -> None:
    # ceil(1000 * 1e6 / 999e6) = 2
    assert compute_fee(amount=1_000, fee_rate=RATE) == 2
    assert compute_fee(amount=0, fee_rate=RATE) == 0


def test_compute_fee_from_gross_amount() -> None:
    assert compute_fee_from_amount(amount_with_fees=1_000_000, fee_rate=RATE) == 1_000
    assert compute_fee_from_amount(amount_with_fees=1, fee_rate=RATE) == 1
    assert compute_fee_from_amount(amount_with_fees=1, fee_rate=0) == 0


def test_fee_rate_must_be_below_precision() -> None:
    with pytest.raises(ValueError):
        compute_fee(amount=1, fee_rate=1_000_000_000)


def test_compute_protocol_fee_floors() -> None:
    assert compute_protocol_fee(fee_amount=1_001, protocol_share=2_000) == 200
    with pytest.raises(ValueError):
        compute_protocol_fee(fee_amount=1, protocol_share=10_001)


def test_get_out_amount_directions() -> None:
    two = 2 * ONE
    assert get_out_amount(amount_in=100, price=two, swap_for_y=True) == 200
    assert get_out_amount(amount_in=100, price=two, swap_for_y=False) == 50
    assert get_out_amount(amount_in=3, price=two, swap_for_y=False) == 1


# ---------------------------------------------------------------------------
# Single-bin swap
# ---------------------------------------------------------------------------

def test_swap_within_bin() -> None:
    r = _swap(in_amount=500)
    assert r.amount_in == 500
    assert r.fee == 1
    assert r.amount_out == 499


def test_swap_drains_bin_and_adds_fee_on_top() -> None:
    r = _swap(in_amount=5_000, protocol_share=5_000)
    assert r.amount_in == 1_002
    assert r.fee == 2
    assert r.protocol_fee == 1
    assert r.amount_out == 1_000


def test_swap_exact_max_input_is_not_drained_branch() -> None:
    r = _swap(in_amount=1_002)
    assert r.amount_in == 1_002
    assert r.fee == 2
    assert r.amount_out == 1_000


def test_swap_empty_side_absorbs_nothing() -> None:
    assert _swap(amount_y=0, amount_x=10_000) == ZERO_RESULT
    assert _swap(in_amount=0) == ZERO_RESULT


def test_swap_y_for_x_at_price_two() -> None:
    r = _swap(amount_x=1_000, amount_y=0, price=2 * ONE, in_amount=400, fee_rate=0, swap_for_y=False)
    assert r.amount_out == 200
    assert r.amount_in == 400


def test_swap_rejects_bad_inputs() -> None:
    with pytest.raises(ValueError):
        _swap(price=0)
    with pytest.raises(ValueError):
        _swap(in_amount=-1)
    with pytest.raises(TypeError):
        _swap(swap_for_y=1)


def test_result_invariants() -> None:
    with pytest.raises(ValueError):
        BinSwapResult(amount_in=10, amount_out=1, fee=2, protocol_fee=3)
    with pytest.raises(ValueError):
        BinSwapResult(amount_in=1, amount_out=1, fee=2, protocol_fee=0)
