"""
Market snapshot loading and canonical export.

A market snapshot bundles what a quote needs: the pool record, the loaded pages
and the liquidity bitmap. Upstream account decoders hand it over as plain
mappings (or JSON / YAML documents):

    pool:
      active_id: 0
      bin_step: 25
      static_parameters: {base_factor: 10000, filter_period: 30, ...}
      variable_parameters: {volatility_accumulator: 0, ...}
    pages:
      - index: 0
        bins:
          - {offset: 0, amount_x: 1000, amount_y: 0, liquidity_supply: 1000}
    bitmap:
      words: [...16 u64...]            # or: pages: [0, -1]
      extension: {positive: [[...8 u64...] x 12], negative: [...]}

Page bins are sparse (`offset` within the page); unlisted bins are empty. When
`bitmap` is omitted it is derived from the supplied pages.

Goals:
- Strict validation: malformed fields fail with `InvalidParameterError`.
- Deterministic JSON export (sorted keys, no whitespace) for hashing and diffing.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from ..core.bitmap import BinArrayBitmap, BitmapExtension
from ..core.errors import InvalidParameterError
from ..state.bins import EMPTY_BIN, Bin, BinPage, PageArena
from ..state.config import DEFAULT_CONFIG, ProgramConfig
from ..state.pair import PoolSnapshot, StaticParameters, VariableParameters


logger = logging.getLogger(__name__)

MARKET_SNAPSHOT_VERSION = 1

_STATIC_FIELDS = (
    "base_factor",
    "filter_period",
    "decay_period",
    "reduction_factor",
    "variable_fee_control",
    "max_volatility_accumulator",
    "min_bin_id",
    "max_bin_id",
    "protocol_share",
)
_VARIABLE_FIELDS = ("volatility_accumulator", "volatility_reference", "index_reference", "last_update_timestamp")
_BIN_FIELDS = (
    "amount_x",
    "amount_y",
    "price",
    "liquidity_supply",
    "fee_amount_x_per_token_stored",
    "fee_amount_y_per_token_stored",
)


@dataclass(frozen=True)
class MarketSnapshot:
    pool: PoolSnapshot
    pages: PageArena
    bitmap: BinArrayBitmap


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise InvalidParameterError(f"{name} must be an object")
    return value


def _require_list(value: Any, *, name: str) -> List[Any]:
    if not isinstance(value, list):
        raise InvalidParameterError(f"{name} must be a list")
    return value


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise InvalidParameterError(f"{name} must be an int")
    return value


def _pick_ints(obj: Mapping[str, Any], fields: tuple[str, ...], *, name: str, required: bool) -> Dict[str, int]:
    unknown = set(obj) - set(fields)
    if unknown:
        raise InvalidParameterError(f"{name} has unknown fields: {sorted(unknown)}")
    out: Dict[str, int] = {}
    for f in fields:
        if f not in obj:
            if required:
                raise InvalidParameterError(f"{name}.{f} is required")
            continue
        out[f] = _require_int(obj[f], name=f"{name}.{f}")
    return out


def _build(factory: Any, *, name: str, **kwargs: Any) -> Any:
    try:
        return factory(**kwargs)
    except (TypeError, ValueError) as exc:
        if isinstance(exc, InvalidParameterError):
            raise
        raise InvalidParameterError(f"invalid {name}: {exc}") from exc


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def pool_from_dict(data: Mapping[str, Any]) -> PoolSnapshot:
    data = _require_mapping(data, name="pool")
    static = _pick_ints(
        _require_mapping(data.get("static_parameters"), name="pool.static_parameters"),
        _STATIC_FIELDS,
        name="static_parameters",
        required=True,
    )
    variable = _pick_ints(
        _require_mapping(data.get("variable_parameters", {}), name="pool.variable_parameters"),
        _VARIABLE_FIELDS,
        name="variable_parameters",
        required=False,
    )
    mint_x = data.get("mint_x", "")
    mint_y = data.get("mint_y", "")
    if not isinstance(mint_x, str) or not isinstance(mint_y, str):
        raise InvalidParameterError("pool.mint_x and pool.mint_y must be strings")
    return _build(
        PoolSnapshot,
        name="pool",
        active_id=_require_int(data.get("active_id"), name="pool.active_id"),
        bin_step=_require_int(data.get("bin_step"), name="pool.bin_step"),
        static_parameters=_build(StaticParameters, name="static_parameters", **static),
        variable_parameters=_build(VariableParameters, name="variable_parameters", **variable),
        mint_x=mint_x,
        mint_y=mint_y,
        epoch=_require_int(data.get("epoch", 0), name="pool.epoch"),
    )


def page_from_dict(data: Mapping[str, Any], *, config: ProgramConfig = DEFAULT_CONFIG) -> BinPage:
    data = _require_mapping(data, name="page")
    index = _require_int(data.get("index"), name="page.index")
    bins: List[Bin] = [EMPTY_BIN] * config.max_bin_per_array
    seen: set[int] = set()
    for entry in _require_list(data.get("bins", []), name=f"page[{index}].bins"):
        entry = _require_mapping(entry, name=f"page[{index}].bins entry")
        fields = dict(entry)
        offset = _require_int(fields.pop("offset", None), name=f"page[{index}].bins.offset")
        if not (0 <= offset < config.max_bin_per_array):
            raise InvalidParameterError(f"page[{index}] bin offset out of range: {offset}")
        if offset in seen:
            raise InvalidParameterError(f"page[{index}] has duplicate bin offset {offset}")
        seen.add(offset)
        values = _pick_ints(fields, _BIN_FIELDS, name=f"page[{index}].bins[{offset}]", required=False)
        bins[offset] = _build(Bin, name=f"bin {offset} of page {index}", **values)
    return BinPage(index=index, bins=tuple(bins))


def bitmap_from_dict(
    data: Mapping[str, Any],
    *,
    config: ProgramConfig = DEFAULT_CONFIG,
) -> BinArrayBitmap:
    data = _require_mapping(data, name="bitmap")
    if "pages" in data:
        indexes = [_require_int(i, name="bitmap.pages[]") for i in _require_list(data["pages"], name="bitmap.pages")]
        with_extension = data.get("with_extension", False)
        if not isinstance(with_extension, bool):
            raise InvalidParameterError("bitmap.with_extension must be a bool")
        return BinArrayBitmap.from_page_indexes(indexes, with_extension=with_extension, config=config)

    extension: Optional[BitmapExtension] = None
    ext = data.get("extension")
    if ext is not None:
        ext = _require_mapping(ext, name="bitmap.extension")
        extension = _build(
            BitmapExtension.from_words,
            name="bitmap.extension",
            positive=_require_list(ext.get("positive"), name="bitmap.extension.positive"),
            negative=_require_list(ext.get("negative"), name="bitmap.extension.negative"),
            config=config,
        )
    words = _require_list(data.get("words"), name="bitmap.words")
    return _build(BinArrayBitmap.from_words, name="bitmap", words=words, extension=extension, config=config)


def market_from_dict(data: Mapping[str, Any], *, config: ProgramConfig = DEFAULT_CONFIG) -> MarketSnapshot:
    data = _require_mapping(data, name="snapshot")
    version = data.get("version", MARKET_SNAPSHOT_VERSION)
    if version != MARKET_SNAPSHOT_VERSION:
        raise InvalidParameterError(f"unsupported snapshot version: {version!r}")
    pool = pool_from_dict(data.get("pool"))
    page_list = [page_from_dict(p, config=config) for p in _require_list(data.get("pages", []), name="pages")]
    pages = _build(PageArena, name="pages", pages=page_list, bins_per_page=config.max_bin_per_array)
    if data.get("bitmap") is None:
        bitmap = BinArrayBitmap.from_arena(pages, config=config)
    else:
        bitmap = bitmap_from_dict(data["bitmap"], config=config)
    logger.debug("loaded market snapshot: active_id=%d pages=%s", pool.active_id, pages.indexes())
    return MarketSnapshot(pool=pool, pages=pages, bitmap=bitmap)


def load_market_json(text: str, *, config: ProgramConfig = DEFAULT_CONFIG) -> MarketSnapshot:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidParameterError(f"snapshot is not valid JSON: {exc}") from exc
    return market_from_dict(obj, config=config)


def load_market_yaml(path: Union[str, Path], *, config: ProgramConfig = DEFAULT_CONFIG) -> MarketSnapshot:
    try:
        obj = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except yaml.YAMLError as exc:
        raise InvalidParameterError(f"snapshot is not valid YAML: {exc}") from exc
    if not isinstance(obj, Mapping):
        raise InvalidParameterError("snapshot YAML must be a mapping")
    return market_from_dict(obj, config=config)


# ---------------------------------------------------------------------------
# Canonical export
# ---------------------------------------------------------------------------

def snapshot_to_dict(pool: PoolSnapshot) -> Dict[str, Any]:
    sp = pool.static_parameters
    vp = pool.variable_parameters
    return {
        "active_id": pool.active_id,
        "bin_step": pool.bin_step,
        "epoch": pool.epoch,
        "mint_x": pool.mint_x,
        "mint_y": pool.mint_y,
        "static_parameters": {f: getattr(sp, f) for f in _STATIC_FIELDS},
        "variable_parameters": {f: getattr(vp, f) for f in _VARIABLE_FIELDS},
    }


def page_to_dict(page: BinPage) -> Dict[str, Any]:
    bins = []
    for offset, b in enumerate(page.bins):
        if b == EMPTY_BIN:
            continue
        entry: Dict[str, Any] = {"offset": offset}
        entry.update({f: getattr(b, f) for f in _BIN_FIELDS})
        bins.append(entry)
    return {"index": page.index, "bins": bins}


def market_to_dict(market: MarketSnapshot) -> Dict[str, Any]:
    bitmap: Dict[str, Any] = {"words": market.bitmap.to_words()}
    if market.bitmap.extension is not None:
        positive, negative = market.bitmap.extension.to_words()
        bitmap["extension"] = {"positive": positive, "negative": negative}
    return {
        "version": MARKET_SNAPSHOT_VERSION,
        "pool": snapshot_to_dict(market.pool),
        "pages": [page_to_dict(p) for p in market.pages],
        "bitmap": bitmap,
    }


def canonical_json_bytes(value: Any) -> bytes:
    """UTF-8 JSON with sorted keys and no whitespace."""
    text = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
    return text.encode("utf-8")


def market_digest(market: MarketSnapshot) -> str:
    """SHA-256 hex of the canonical encoding; equal snapshots hash equal."""
    return hashlib.sha256(canonical_json_bytes(market_to_dict(market))).hexdigest()
