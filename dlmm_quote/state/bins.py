"""
Bins, pages and the sparse page arena.

Bins are stored in fixed-capacity pages ("bin arrays"). Page `p` holds bin ids
`[p * size, p * size + size - 1]`. Pages are sparse: an index with no page means
every bin in that range is empty.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Dict, Iterable, Iterator, Union


DEFAULT_BINS_PER_PAGE = 70


@dataclass(frozen=True)
class Bin:
    amount_x: int = 0
    amount_y: int = 0
    # Cached Q64.64 price; 0 means "not stored, derive from the bin id".
    price: int = 0
    liquidity_supply: int = 0
    fee_amount_x_per_token_stored: int = 0
    fee_amount_y_per_token_stored: int = 0

    def __post_init__(self) -> None:
        for name, v in (
            ("amount_x", self.amount_x),
            ("amount_y", self.amount_y),
            ("price", self.price),
            ("liquidity_supply", self.liquidity_supply),
            ("fee_amount_x_per_token_stored", self.fee_amount_x_per_token_stored),
            ("fee_amount_y_per_token_stored", self.fee_amount_y_per_token_stored),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
            if v < 0:
                raise ValueError(f"{name} must be non-negative: {v}")
        if self.liquidity_supply == 0 and (self.amount_x != 0 or self.amount_y != 0):
            raise ValueError("bin with zero liquidity_supply must hold no reserves")

    @property
    def is_empty(self) -> bool:
        return self.amount_x == 0 and self.amount_y == 0


EMPTY_BIN = Bin()


@dataclass(frozen=True)
class BinPage:
    index: int
    bins: tuple[Bin, ...]

    def __post_init__(self) -> None:
        if not isinstance(self.index, int) or isinstance(self.index, bool):
            raise TypeError("index must be an int")
        if not isinstance(self.bins, tuple):
            raise TypeError("bins must be a tuple")
        if not self.bins:
            raise ValueError("page must hold at least one bin")
        for b in self.bins:
            if not isinstance(b, Bin):
                raise TypeError("bins must contain Bin values")

    @classmethod
    def empty(cls, index: int, size: int = DEFAULT_BINS_PER_PAGE) -> "BinPage":
        return cls(index=index, bins=(EMPTY_BIN,) * size)

    @property
    def size(self) -> int:
        return len(self.bins)

    @property
    def lower_bin_id(self) -> int:
        return self.index * self.size

    @property
    def upper_bin_id(self) -> int:
        return self.lower_bin_id + self.size - 1

    @property
    def has_liquidity(self) -> bool:
        return any(not b.is_empty for b in self.bins)

    def bin_at(self, bin_id: int) -> Bin:
        """Bin for an absolute `bin_id`; raises if the id is outside this page."""
        offset = bin_id - self.lower_bin_id
        if not (0 <= offset < self.size):
            raise ValueError(f"bin {bin_id} is outside page {self.index}")
        return self.bins[offset]


@unique
class Missing(Enum):
    """Explicit "no page stored at this index" marker returned by `PageArena.get`."""

    PAGE = "missing"


MISSING = Missing.PAGE

PageOrMissing = Union[BinPage, Missing]


class PageArena:
    """
    Read-only mapping of page index -> `BinPage`.

    `get` distinguishes a stored page from an absent one; `page_or_empty` folds
    absence into an all-zero page for callers that do not care.
    """

    def __init__(self, pages: Iterable[BinPage] = (), *, bins_per_page: int = DEFAULT_BINS_PER_PAGE) -> None:
        if not isinstance(bins_per_page, int) or isinstance(bins_per_page, bool) or bins_per_page <= 0:
            raise ValueError("bins_per_page must be a positive int")
        self._bins_per_page = bins_per_page
        self._pages: Dict[int, BinPage] = {}
        for page in pages:
            if not isinstance(page, BinPage):
                raise TypeError("pages must contain BinPage values")
            if page.size != bins_per_page:
                raise ValueError(f"page {page.index} has {page.size} bins, expected {bins_per_page}")
            if page.index in self._pages:
                raise ValueError(f"duplicate page index: {page.index}")
            self._pages[page.index] = page

    @property
    def bins_per_page(self) -> int:
        return self._bins_per_page

    def get(self, index: int) -> PageOrMissing:
        return self._pages.get(index, MISSING)

    def page_or_empty(self, index: int) -> BinPage:
        page = self._pages.get(index)
        if page is None:
            return BinPage.empty(index, self._bins_per_page)
        return page

    def indexes(self) -> list[int]:
        return sorted(self._pages)

    def __contains__(self, index: object) -> bool:
        return index in self._pages

    def __len__(self) -> int:
        return len(self._pages)

    def __iter__(self) -> Iterator[BinPage]:
        for index in sorted(self._pages):
            yield self._pages[index]
