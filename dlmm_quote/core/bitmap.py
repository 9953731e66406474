"""
Bin-array (page) index.

Bins are grouped into pages of `max_bin_per_array` bins; page `p` covers bin ids
`[p * 70, p * 70 + 69]`. A two-level bitmap marks which pages hold liquidity:
- the base bitmap has one bit per page index in `[-512, 511]` (bit `p + 512`),
- the extension covers the overflow ranges `[512, 6655]` and `[-6656, -513]`,
  as 12 chunks of 512 bits per sign.

Bitmaps are immutable values; they are built from decoded u64 words or from an
explicit set of page indexes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from ..state.bins import BinPage, Missing, PageArena
from ..state.config import DEFAULT_CONFIG, ProgramConfig
from .errors import InvalidParameterError
from .pricing import bin_id_from_price, price_per_lamport


_U64_MAX = (1 << 64) - 1
_WORDS_PER_CHUNK = 8


def _require_int(name: str, value: int) -> None:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")


def _words_to_int(words: Sequence[int], expected: int, *, name: str) -> int:
    if len(words) != expected:
        raise InvalidParameterError(f"{name} must hold {expected} u64 words, got {len(words)}")
    value = 0
    for i, w in enumerate(words):
        _require_int(f"{name}[{i}]", w)
        if not (0 <= w <= _U64_MAX):
            raise InvalidParameterError(f"{name}[{i}] is not a u64: {w}")
        value |= w << (64 * i)
    return value


def _int_to_words(value: int, count: int) -> list[int]:
    return [(value >> (64 * i)) & _U64_MAX for i in range(count)]


# ---------------------------------------------------------------------------
# Page arithmetic
# ---------------------------------------------------------------------------

def bin_id_to_page_index(bin_id: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> int:
    _require_int("bin_id", bin_id)
    return bin_id // config.max_bin_per_array


def page_range(page_index: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> Tuple[int, int]:
    """Inclusive `(lower_bin_id, upper_bin_id)` of a page."""
    _require_int("page_index", page_index)
    lower = page_index * config.max_bin_per_array
    return lower, lower + config.max_bin_per_array - 1


def is_bin_id_within_page(bin_id: int, page_index: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> bool:
    lower, upper = page_range(page_index, config=config)
    return lower <= bin_id <= upper


def bin_index_in_page(bin_id: int, page_index: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> int:
    if not is_bin_id_within_page(bin_id, page_index, config=config):
        raise InvalidParameterError(f"bin {bin_id} is not in page {page_index}")
    return bin_id - page_index * config.max_bin_per_array


def internal_bitmap_range(*, config: ProgramConfig = DEFAULT_CONFIG) -> Tuple[int, int]:
    return -config.bin_array_bitmap_size, config.bin_array_bitmap_size - 1


def extension_bitmap_range(*, config: ProgramConfig = DEFAULT_CONFIG) -> Tuple[int, int]:
    span = config.bin_array_bitmap_size * (config.extension_bitmap_size + 1)
    return -span, span - 1


def is_overflow_default_bitmap(page_index: int, *, config: ProgramConfig = DEFAULT_CONFIG) -> bool:
    lower, upper = internal_bitmap_range(config=config)
    return page_index < lower or page_index > upper


def _extension_offsets(page_index: int, config: ProgramConfig) -> Tuple[int, int]:
    """`(chunk, bit)` of an overflow page index inside its sign's extension."""
    size = config.bin_array_bitmap_size
    if page_index > 0:
        return page_index // size - 1, page_index % size
    k = -page_index - 1
    return k // size - 1, k % size


# ---------------------------------------------------------------------------
# Bitmap values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BitmapExtension:
    """Overflow bitmap: one 512-bit chunk per 512 page indexes, per sign."""

    positive: Tuple[int, ...]
    negative: Tuple[int, ...]
    config: ProgramConfig = field(default=DEFAULT_CONFIG, compare=False)

    def __post_init__(self) -> None:
        bits = self.config.bin_array_bitmap_size
        for name, chunks in (("positive", self.positive), ("negative", self.negative)):
            if not isinstance(chunks, tuple):
                raise TypeError(f"{name} must be a tuple")
            if len(chunks) != self.config.extension_bitmap_size:
                raise ValueError(f"{name} must hold {self.config.extension_bitmap_size} chunks")
            for c in chunks:
                _require_int(f"{name} chunk", c)
                if c < 0 or c.bit_length() > bits:
                    raise ValueError(f"{name} chunk does not fit in {bits} bits")

    @classmethod
    def empty(cls, *, config: ProgramConfig = DEFAULT_CONFIG) -> "BitmapExtension":
        zeros = (0,) * config.extension_bitmap_size
        return cls(positive=zeros, negative=zeros, config=config)

    @classmethod
    def from_words(
        cls,
        positive: Sequence[Sequence[int]],
        negative: Sequence[Sequence[int]],
        *,
        config: ProgramConfig = DEFAULT_CONFIG,
    ) -> "BitmapExtension":
        words = config.bin_array_bitmap_size // 64
        return cls(
            positive=tuple(_words_to_int(c, words, name="positive chunk") for c in positive),
            negative=tuple(_words_to_int(c, words, name="negative chunk") for c in negative),
            config=config,
        )

    def to_words(self) -> Tuple[List[List[int]], List[List[int]]]:
        words = self.config.bin_array_bitmap_size // 64
        return (
            [_int_to_words(c, words) for c in self.positive],
            [_int_to_words(c, words) for c in self.negative],
        )

    def has_bit(self, page_index: int) -> bool:
        lower, upper = extension_bitmap_range(config=self.config)
        if not (lower <= page_index <= upper) or not is_overflow_default_bitmap(page_index, config=self.config):
            return False
        chunk, bit = _extension_offsets(page_index, self.config)
        chunks = self.positive if page_index > 0 else self.negative
        return bool((chunks[chunk] >> bit) & 1)

    def find_set_bit(self, start: int, end: int) -> Optional[int]:
        """First page index with its bit set walking from `start` to `end` inclusive."""
        step = 1 if start <= end else -1
        for i in range(start, end + step, step):
            if self.has_bit(i):
                return i
        return None


@dataclass(frozen=True)
class BinArrayBitmap:
    base: int = 0
    extension: Optional[BitmapExtension] = None
    config: ProgramConfig = field(default=DEFAULT_CONFIG, compare=False)

    def __post_init__(self) -> None:
        _require_int("base", self.base)
        bits = 2 * self.config.bin_array_bitmap_size
        if self.base < 0 or self.base.bit_length() > bits:
            raise ValueError(f"base bitmap does not fit in {bits} bits")
        if self.extension is not None and not isinstance(self.extension, BitmapExtension):
            raise TypeError("extension must be a BitmapExtension or None")

    @classmethod
    def from_words(
        cls,
        words: Sequence[int],
        extension: Optional[BitmapExtension] = None,
        *,
        config: ProgramConfig = DEFAULT_CONFIG,
    ) -> "BinArrayBitmap":
        base = _words_to_int(words, 2 * config.bin_array_bitmap_size // 64, name="bin_array_bitmap")
        return cls(base=base, extension=extension, config=config)

    @classmethod
    def from_page_indexes(
        cls,
        indexes: Iterable[int],
        *,
        with_extension: bool = False,
        config: ProgramConfig = DEFAULT_CONFIG,
    ) -> "BinArrayBitmap":
        """
        Mark every page in `indexes`. An extension is attached when requested or
        when any index overflows the base range.
        """
        base = 0
        offset = config.bin_array_bitmap_size
        positive = [0] * config.extension_bitmap_size
        negative = [0] * config.extension_bitmap_size
        ext_lower, ext_upper = extension_bitmap_range(config=config)
        needs_extension = with_extension
        for idx in indexes:
            _require_int("page index", idx)
            if not is_overflow_default_bitmap(idx, config=config):
                base |= 1 << (idx + offset)
                continue
            if not (ext_lower <= idx <= ext_upper):
                raise InvalidParameterError(f"page index {idx} outside bitmap range [{ext_lower}, {ext_upper}]")
            chunk, bit = _extension_offsets(idx, config)
            if idx > 0:
                positive[chunk] |= 1 << bit
            else:
                negative[chunk] |= 1 << bit
            needs_extension = True
        extension = None
        if needs_extension:
            extension = BitmapExtension(positive=tuple(positive), negative=tuple(negative), config=config)
        return cls(base=base, extension=extension, config=config)

    @classmethod
    def from_arena(
        cls,
        arena: PageArena,
        *,
        with_extension: bool = False,
        config: ProgramConfig = DEFAULT_CONFIG,
    ) -> "BinArrayBitmap":
        """Bitmap of every stored page that holds a non-empty bin."""
        return cls.from_page_indexes(
            (page.index for page in arena if page.has_liquidity),
            with_extension=with_extension,
            config=config,
        )

    def to_words(self) -> List[int]:
        return _int_to_words(self.base, 2 * self.config.bin_array_bitmap_size // 64)

    def has_liquidity(self, page_index: int) -> bool:
        _require_int("page_index", page_index)
        if is_overflow_default_bitmap(page_index, config=self.config):
            return self.extension is not None and self.extension.has_bit(page_index)
        return bool((self.base >> (page_index + self.config.bin_array_bitmap_size)) & 1)


# ---------------------------------------------------------------------------
# Directional lookup
# ---------------------------------------------------------------------------

def next_non_empty_page(swap_for_y: bool, from_bin_id: int, bitmap: BinArrayBitmap) -> Optional[int]:
    """
    Nearest page index with liquidity, starting at the page of `from_bin_id`.

    `swap_for_y` walks towards lower bin ids, otherwise towards higher ones.
    Crossing out of the base range continues in the extension; crossing back in
    (when walking towards zero from an overflow page) resumes in the base bitmap.
    Returns `None` when no page is found before the end of the addressable range,
    or when the walk leaves the base range and there is no extension.
    """
    config = bitmap.config
    size = config.bin_array_bitmap_size
    internal_lower, internal_upper = internal_bitmap_range(config=config)
    ext_lower, ext_upper = extension_bitmap_range(config=config)
    start = bin_id_to_page_index(from_bin_id, config=config)

    while True:
        if is_overflow_default_bitmap(start, config=config):
            if bitmap.extension is None or not (ext_lower <= start <= ext_upper):
                return None
            if start < 0:
                if swap_for_y:
                    return bitmap.extension.find_set_bit(start, ext_lower)
                found = bitmap.extension.find_set_bit(start, internal_lower - 1)
                if found is not None:
                    return found
                start = internal_lower
            else:
                if swap_for_y:
                    found = bitmap.extension.find_set_bit(start, internal_upper + 1)
                    if found is not None:
                        return found
                    start = internal_upper
                else:
                    return bitmap.extension.find_set_bit(start, ext_upper)
        else:
            offset = start + size
            if swap_for_y:
                cropped = bitmap.base & ((1 << (offset + 1)) - 1)
                if cropped:
                    return cropped.bit_length() - 1 - size
                start = internal_lower - 1
            else:
                cropped = bitmap.base >> offset
                if cropped:
                    return start + (cropped & -cropped).bit_length() - 1
                start = internal_upper + 1


def next_page_with_liquidity(
    swap_for_y: bool,
    from_bin_id: int,
    bitmap: BinArrayBitmap,
    arena: PageArena,
) -> Optional[BinPage]:
    """
    Like `next_non_empty_page` but resolved against the supplied pages.

    A marked page the caller did not supply also yields `None`: the walk cannot
    see past it.
    """
    index = next_non_empty_page(swap_for_y, from_bin_id, bitmap)
    if index is None:
        return None
    page = arena.get(index)
    if isinstance(page, Missing):
        return None
    return page


def page_indexes_for_swap(
    swap_for_y: bool,
    active_id: int,
    bitmap: BinArrayBitmap,
    count: int = 4,
) -> List[int]:
    """Up to `count` distinct non-empty pages a swap from `active_id` would walk, in order."""
    _require_int("count", count)
    if count <= 0:
        raise InvalidParameterError(f"count must be positive: {count}")
    found: List[int] = []
    cursor = active_id
    while len(found) < count:
        index = next_non_empty_page(swap_for_y, cursor, bitmap)
        if index is None:
            break
        found.append(index)
        lower, upper = page_range(index, config=bitmap.config)
        cursor = lower - 1 if swap_for_y else upper + 1
    return found


def can_sync_with_market_price(
    market_price: Union[Decimal, int, str],
    active_id: int,
    bin_step: int,
    decimals_x: int,
    decimals_y: int,
    bitmap: BinArrayBitmap,
) -> bool:
    """
    Whether the active bin could be moved to the bin of `market_price` (a human
    Y-per-X price) without skipping over a page that still holds liquidity.
    """
    lamport_price = price_per_lamport(decimals_x, decimals_y, market_price)
    market_bin_id = bin_id_from_price(lamport_price, bin_step, False)
    market_page = bin_id_to_page_index(market_bin_id, config=bitmap.config)

    swap_for_y = market_bin_id < active_id
    to_page = next_non_empty_page(swap_for_y, active_id, bitmap)
    if to_page is None:
        return True
    return market_page > to_page if swap_for_y else market_page < to_page
