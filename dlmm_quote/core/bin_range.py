"""
Bin range queries over a page arena.

Absent pages read as all-zero bins, so a range query always returns one row per
bin id in the range, whatever the caller managed to load.
"""

from __future__ import annotations

import decimal
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional, Tuple

from ..state.bins import BinPage, PageArena
from ..state.config import DEFAULT_CONFIG, ProgramConfig
from ..state.pair import PoolSnapshot
from ..state.position import Position
from .bitmap import bin_id_to_page_index
from .errors import InvalidParameterError
from .pricing import decimal_context, from_price_per_lamport, price_of_bin, q64_price_from_id


@dataclass(frozen=True)
class BinLiquidity:
    bin_id: int
    amount_x: int
    amount_y: int
    supply: int
    fee_amount_x_per_token_stored: int
    fee_amount_y_per_token_stored: int
    # Per-lamport price and the decimal-adjusted (human) price.
    price: Decimal
    price_per_token: Decimal


@dataclass(frozen=True)
class PositionBinData:
    bin_id: int
    price_per_token: Decimal
    bin_amount_x: int
    bin_amount_y: int
    bin_liquidity: int
    position_liquidity: int
    position_amount_x: int
    position_amount_y: int


def bins_between(
    lower_bin_id: int,
    upper_bin_id: int,
    pages: PageArena,
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[BinLiquidity]:
    """Every bin in `[lower_bin_id, upper_bin_id]`, ascending."""
    for name, v in (("lower_bin_id", lower_bin_id), ("upper_bin_id", upper_bin_id)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name} must be an int")
    if lower_bin_id > upper_bin_id:
        raise InvalidParameterError(f"lower_bin_id ({lower_bin_id}) > upper_bin_id ({upper_bin_id})")
    if lower_bin_id < config.min_bin_id or upper_bin_id > config.max_bin_id:
        raise InvalidParameterError(
            f"bin range [{lower_bin_id}, {upper_bin_id}] exceeds [{config.min_bin_id}, {config.max_bin_id}]"
        )
    if pages.bins_per_page != config.max_bin_per_array:
        raise InvalidParameterError(f"pages hold {pages.bins_per_page} bins, expected {config.max_bin_per_array}")

    rows: List[BinLiquidity] = []
    first_page = bin_id_to_page_index(lower_bin_id, config=config)
    last_page = bin_id_to_page_index(upper_bin_id, config=config)
    for page_index in range(first_page, last_page + 1):
        page = pages.page_or_empty(page_index)
        lo = max(lower_bin_id, page.lower_bin_id)
        hi = min(upper_bin_id, page.upper_bin_id)
        for bin_id in range(lo, hi + 1):
            b = page.bin_at(bin_id)
            price = price_of_bin(bin_id, bin_step, config=config)
            rows.append(
                BinLiquidity(
                    bin_id=bin_id,
                    amount_x=b.amount_x,
                    amount_y=b.amount_y,
                    supply=b.liquidity_supply,
                    fee_amount_x_per_token_stored=b.fee_amount_x_per_token_stored,
                    fee_amount_y_per_token_stored=b.fee_amount_y_per_token_stored,
                    price=price,
                    price_per_token=from_price_per_lamport(decimals_x, decimals_y, price),
                )
            )
    return rows


def bins_around_active_bin(
    snapshot: PoolSnapshot,
    left: int,
    right: int,
    pages: PageArena,
    decimals_x: int,
    decimals_y: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> Tuple[int, List[BinLiquidity]]:
    """
    `left` bins below and `right` bins above the active bin, plus one margin bin
    on each side, clipped to the program bin bounds. Returns `(active_id, bins)`.
    """
    for name, v in (("left", left), ("right", right)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise TypeError(f"{name} must be an int")
        if v < 0:
            raise InvalidParameterError(f"{name} must be non-negative: {v}")
    lower = max(snapshot.active_id - left - 1, config.min_bin_id)
    upper = min(snapshot.active_id + right + 1, config.max_bin_id)
    bins = bins_between(lower, upper, pages, snapshot.bin_step, decimals_x, decimals_y, config=config)
    return snapshot.active_id, bins


def active_bin(
    snapshot: PoolSnapshot,
    pages: PageArena,
    decimals_x: int,
    decimals_y: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> BinLiquidity:
    (row,) = bins_between(
        snapshot.active_id, snapshot.active_id, pages, snapshot.bin_step, decimals_x, decimals_y, config=config
    )
    return row


def max_price_in_pages(
    pages: Iterable[BinPage],
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> Optional[Decimal]:
    """Human price of the highest bin still holding X, or `None` if no bin does."""
    for page in sorted(pages, key=lambda p: p.index, reverse=True):
        for offset in range(page.size - 1, -1, -1):
            b = page.bins[offset]
            if b.amount_x == 0:
                continue
            bin_id = page.lower_bin_id + offset
            q64 = b.price if b.price != 0 else q64_price_from_id(bin_id, bin_step, config=config)
            # Scaled by the largest u64 (2**64 - 1), not 2**64.
            with decimal.localcontext(decimal_context()):
                lamport_price = Decimal(q64) / Decimal(config.one - 1)
            return from_price_per_lamport(decimals_x, decimals_y, lamport_price)
    return None


def position_bin_data(
    position: Position,
    pages: PageArena,
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> List[PositionBinData]:
    """Pro-rata share of each bin's reserves owned by `position`."""
    rows = bins_between(
        position.lower_bin_id, position.upper_bin_id, pages, bin_step, decimals_x, decimals_y, config=config
    )
    out: List[PositionBinData] = []
    for row in rows:
        share = position.share_of(row.bin_id)
        if row.supply == 0:
            pos_x = 0
            pos_y = 0
        else:
            pos_x = share * row.amount_x // row.supply
            pos_y = share * row.amount_y // row.supply
        out.append(
            PositionBinData(
                bin_id=row.bin_id,
                price_per_token=row.price_per_token,
                bin_amount_x=row.amount_x,
                bin_amount_y=row.amount_y,
                bin_liquidity=row.supply,
                position_liquidity=share,
                position_amount_x=pos_x,
                position_amount_y=pos_y,
            )
        )
    return out
