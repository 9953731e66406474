"""
Exact-in swap quoting.

Walks bins from the active bin in price order (down for X -> Y, up for Y -> X),
trading against each bin's opposite-side reserve until the input is spent or the
supplied pages run out. Nothing is mutated: the variable fee parameters are
advanced on a private copy, so repeated quotes on one snapshot are identical.
"""

from __future__ import annotations

import decimal
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Tuple

from ..kernels.python.bin_swap import compute_fee_from_amount, get_out_amount, swap_exact_in_quote_at_bin
from ..kernels.python.u64x64_math import require_u64
from ..state.bins import Bin, PageArena
from ..state.config import DEFAULT_CONFIG, ProgramConfig
from ..state.pair import PoolSnapshot
from .bitmap import BinArrayBitmap, is_bin_id_within_page, next_page_with_liquidity, page_range
from .errors import InsufficientLiquidityError, InvalidParameterError
from .fees import total_fee_rate, update_reference, update_volatility_accumulator
from .pricing import decimal_context, price_of_bin, q64_price_from_id
from .transfer_fee import NO_TRANSFER_FEE, TransferFeeTransform


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteResult:
    consumed_in_amount: int
    out_amount: int
    fee: int
    protocol_fee: int
    min_out_amount: int
    price_impact: Decimal
    end_bin_price: Decimal
    touched_pages: Tuple[int, ...]

    def __post_init__(self) -> None:
        for name, v in (
            ("consumed_in_amount", self.consumed_in_amount),
            ("out_amount", self.out_amount),
            ("fee", self.fee),
            ("protocol_fee", self.protocol_fee),
            ("min_out_amount", self.min_out_amount),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.protocol_fee > self.fee:
            raise ValueError("protocol_fee exceeds fee")
        if self.min_out_amount > self.out_amount:
            raise ValueError("min_out_amount exceeds out_amount")


def _bin_price(bin_: Bin, bin_id: int, bin_step: int, config: ProgramConfig) -> int:
    if bin_.price != 0:
        return bin_.price
    return q64_price_from_id(bin_id, bin_step, config=config)


def _price_impact(out_amount: int, ideal_out_amount: int) -> Decimal:
    if ideal_out_amount == 0:
        return Decimal(0)
    with decimal.localcontext(decimal_context()):
        return abs((Decimal(out_amount) - Decimal(ideal_out_amount)) / Decimal(ideal_out_amount) * Decimal(100))


def quote(
    in_amount: int,
    swap_for_y: bool,
    slippage_bps: int,
    pages: PageArena,
    bitmap: BinArrayBitmap,
    snapshot: PoolSnapshot,
    now: int,
    *,
    partial_fill_allowed: bool = False,
    extra_page_count: int = 0,
    transfer_fee: TransferFeeTransform = NO_TRANSFER_FEE,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> QuoteResult:
    """
    Quote an exact-in swap of `in_amount` against `snapshot` at time `now`.

    Raises:
    - `InvalidParameterError` for a malformed argument (including
      `extra_page_count` outside `[0, max_extra_bin_arrays]`),
    - `InsufficientLiquidityError` when the pages run out before `in_amount` is
      spent, unless `partial_fill_allowed`; a partial fill reports
      `consumed_in_amount < in_amount` instead.
    """
    if not isinstance(in_amount, int) or isinstance(in_amount, bool):
        raise TypeError("in_amount must be an int")
    if in_amount <= 0:
        raise InvalidParameterError(f"in_amount must be positive: {in_amount}")
    require_u64("in_amount", in_amount)
    if not isinstance(swap_for_y, bool) or not isinstance(partial_fill_allowed, bool):
        raise TypeError("swap_for_y and partial_fill_allowed must be bools")
    if not isinstance(slippage_bps, int) or isinstance(slippage_bps, bool):
        raise TypeError("slippage_bps must be an int")
    if not (0 <= slippage_bps <= config.basis_point_max):
        raise InvalidParameterError(f"slippage_bps must be in [0, {config.basis_point_max}]: {slippage_bps}")
    if not isinstance(extra_page_count, int) or isinstance(extra_page_count, bool):
        raise TypeError("extra_page_count must be an int")
    if not (0 <= extra_page_count <= config.max_extra_bin_arrays):
        raise InvalidParameterError(
            f"extra_page_count must be in [0, {config.max_extra_bin_arrays}]: {extra_page_count}"
        )
    if pages.bins_per_page != config.max_bin_per_array:
        raise InvalidParameterError(
            f"pages hold {pages.bins_per_page} bins, expected {config.max_bin_per_array}"
        )
    if snapshot.static_parameters.protocol_share > config.max_protocol_share:
        raise InvalidParameterError(
            f"protocol_share exceeds {config.max_protocol_share}: {snapshot.static_parameters.protocol_share}"
        )

    in_mint, out_mint = (snapshot.mint_x, snapshot.mint_y) if swap_for_y else (snapshot.mint_y, snapshot.mint_x)
    excluded_in_amount = transfer_fee.exclude(in_amount, in_mint, snapshot.epoch)
    remaining = excluded_in_amount

    sp = snapshot.static_parameters
    vp = update_volatility_accumulator(snapshot.variable_parameters, sp, snapshot.active_id, config=config)
    vp = update_reference(snapshot.active_id, vp, sp, now, config=config)

    min_id = max(sp.min_bin_id, config.min_bin_id)
    max_id = min(sp.max_bin_id, config.max_bin_id)
    active_id = snapshot.active_id
    last_filled_id = active_id
    start_price = None
    touched: Dict[int, None] = {}
    total_out = 0
    total_fee = 0
    total_protocol_fee = 0
    bins_filled = 0

    while remaining > 0:
        page = None
        entry_id = active_id
        if min_id <= active_id <= max_id:
            page = next_page_with_liquidity(swap_for_y, active_id, bitmap, pages)
        if page is not None and not is_bin_id_within_page(active_id, page.index, config=config):
            # Skip the empty gap in one step; bins in between hold nothing.
            lower, upper = page_range(page.index, config=config)
            entry_id = upper if swap_for_y else lower
            if not (min_id <= entry_id <= max_id):
                page = None
        if page is None:
            if partial_fill_allowed:
                logger.debug("partial fill: no liquid bin beyond %d, %d left", active_id, remaining)
                break
            raise InsufficientLiquidityError(
                f"no liquid bin beyond {active_id} with {remaining} of {excluded_in_amount} left"
            )
        if page.index not in touched:
            logger.debug("page %d touched at bin %d", page.index, active_id)
        touched[page.index] = None
        if entry_id != active_id:
            active_id = entry_id
            continue

        bin_ = page.bin_at(active_id)
        price = _bin_price(bin_, active_id, snapshot.bin_step, config)
        fee_rate = total_fee_rate(snapshot.bin_step, sp, vp, config=config)
        step = swap_exact_in_quote_at_bin(
            amount_x=bin_.amount_x,
            amount_y=bin_.amount_y,
            price=price,
            in_amount=remaining,
            fee_rate=fee_rate,
            protocol_share=sp.protocol_share,
            swap_for_y=swap_for_y,
            fee_precision=config.fee_precision,
            basis_point_max=config.basis_point_max,
        )
        if step.amount_in != 0:
            remaining -= step.amount_in
            total_out += step.amount_out
            total_fee += step.fee
            total_protocol_fee += step.protocol_fee
            if start_price is None:
                start_price = price
            last_filled_id = active_id
            bins_filled += 1

        if remaining > 0:
            active_id = active_id - 1 if swap_for_y else active_id + 1

    if start_price is None:
        if not partial_fill_allowed:
            raise InsufficientLiquidityError(f"no bin could fill the swap from bin {snapshot.active_id}")
        logger.debug("partial fill with no liquidity: empty quote")
        return QuoteResult(
            consumed_in_amount=0,
            out_amount=0,
            fee=0,
            protocol_fee=0,
            min_out_amount=0,
            price_impact=Decimal(0),
            end_bin_price=price_of_bin(snapshot.active_id, snapshot.bin_step, config=config),
            touched_pages=tuple(touched),
        )

    actual_in = excluded_in_amount - remaining
    consumed_in = min(transfer_fee.include(actual_in, in_mint, snapshot.epoch), in_amount)

    fee_rate = total_fee_rate(snapshot.bin_step, sp, vp, config=config)
    ideal_fee = compute_fee_from_amount(amount_with_fees=actual_in, fee_rate=fee_rate, fee_precision=config.fee_precision)
    ideal_out = get_out_amount(amount_in=actual_in - ideal_fee, price=start_price, swap_for_y=swap_for_y)
    price_impact = _price_impact(total_out, ideal_out)
    end_price = price_of_bin(last_filled_id, snapshot.bin_step, config=config)

    if extra_page_count > 0:
        extra = 0
        while extra < extra_page_count and min_id <= active_id <= max_id:
            page = next_page_with_liquidity(swap_for_y, active_id, bitmap, pages)
            if page is None:
                break
            if page.index in touched:
                active_id = active_id - 1 if swap_for_y else active_id + 1
                continue
            touched[page.index] = None
            extra += 1
            lower, upper = page_range(page.index, config=config)
            active_id = lower - 1 if swap_for_y else upper + 1
        logger.debug("prefetch added %d extra page(s)", extra)

    out_amount = transfer_fee.exclude(total_out, out_mint, snapshot.epoch)
    min_out_amount = out_amount * (config.basis_point_max - slippage_bps) // config.basis_point_max

    logger.debug(
        "quote in=%d consumed=%d out=%d fee=%d bins=%d pages=%s",
        in_amount,
        consumed_in,
        out_amount,
        total_fee,
        bins_filled,
        list(touched),
    )
    return QuoteResult(
        consumed_in_amount=consumed_in,
        out_amount=out_amount,
        fee=total_fee,
        protocol_fee=total_protocol_fee,
        min_out_amount=min_out_amount,
        price_impact=price_impact,
        end_bin_price=end_price,
        touched_pages=tuple(touched),
    )
