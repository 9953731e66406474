"""Tests for market snapshot loading and canonical export."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

import pytest
import yaml

from dlmm_quote.core.errors import InvalidParameterError
from dlmm_quote.core.swap_quote import quote
from dlmm_quote.integration.snapshot_io import (
    canonical_json_bytes,
    load_market_json,
    load_market_yaml,
    market_digest,
    market_from_dict,
    market_to_dict,
)


def _doc() -> Dict[str, Any]:
    return {
        "version": 1,
        "pool": {
            "active_id": 0,
            "bin_step": 10,
            "mint_x": "MINT_X",
            "mint_y": "MINT_Y",
            "static_parameters": {
                "base_factor": 0,
                "filter_period": 30,
                "decay_period": 600,
                "reduction_factor": 5000,
                "variable_fee_control": 0,
                "max_volatility_accumulator": 350000,
                "min_bin_id": -443636,
                "max_bin_id": 443636,
                "protocol_share": 0,
            },
            "variable_parameters": {"last_update_timestamp": 100},
        },
        "pages": [
            {"index": 0, "bins": [{"offset": 0, "amount_y": 600, "price": 1 << 64, "liquidity_supply": 600}]},
            {"index": -1, "bins": [{"offset": 69, "amount_y": 1000, "price": 1 << 64, "liquidity_supply": 1000}]},
        ],
    }


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def test_market_from_dict_derives_bitmap() -> None:
    market = market_from_dict(_doc())
    assert market.pool.active_id == 0
    assert market.pool.variable_parameters.last_update_timestamp == 100
    assert market.pages.indexes() == [-1, 0]
    assert market.pages.page_or_empty(-1).bin_at(-1).amount_y == 1_000
    assert market.bitmap.has_liquidity(0)
    assert market.bitmap.has_liquidity(-1)


def test_loaded_market_quotes() -> None:
    market = market_from_dict(_doc())
    result = quote(1_000, True, 100, market.pages, market.bitmap, market.pool, 200)
    assert result.out_amount == 1_000
    assert result.touched_pages == (0, -1)


def test_bitmap_from_page_list() -> None:
    doc = _doc()
    doc["bitmap"] = {"pages": [0]}
    market = market_from_dict(doc)
    assert market.bitmap.has_liquidity(0)
    assert not market.bitmap.has_liquidity(-1)
    assert market.bitmap.extension is None


def test_load_market_json() -> None:
    market = load_market_json(json.dumps(_doc()))
    assert market.pool == market_from_dict(_doc()).pool
    assert market_digest(market) == market_digest(market_from_dict(_doc()))


def test_load_market_yaml(tmp_path: Path) -> None:
    path = tmp_path / "market.yaml"
    path.write_text(yaml.safe_dump(_doc()), encoding="utf-8")
    market = load_market_yaml(path)
    assert market.pool.mint_x == "MINT_X"
    assert market_digest(market) == market_digest(market_from_dict(_doc()))


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d.update(version=2),
        lambda d: d["pool"].update(active_id="0"),
        lambda d: d["pool"]["static_parameters"].pop("base_factor"),
        lambda d: d["pool"]["static_parameters"].update(extra=1),
        lambda d: d["pool"]["static_parameters"].update(filter_period=601),
        lambda d: d["pages"][0]["bins"][0].update(offset=70),
        lambda d: d["pages"][0]["bins"][0].update(liquidity_supply=0),
        lambda d: d["pages"].append({"index": 0, "bins": []}),
        lambda d: d.update(bitmap={"words": [0] * 3}),
    ],
)
def test_invalid_documents_rejected(mutate: Any) -> None:
    doc = _doc()
    mutate(doc)
    with pytest.raises(InvalidParameterError):
        market_from_dict(doc)


def test_invalid_json_rejected() -> None:
    with pytest.raises(InvalidParameterError):
        load_market_json("{not json")


def test_yaml_must_be_mapping(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(InvalidParameterError):
        load_market_yaml(path)


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def test_export_round_trip() -> None:
    market = market_from_dict(_doc())
    exported = market_to_dict(market)
    again = market_from_dict(exported)
    assert market_to_dict(again) == exported
    assert len(exported["bitmap"]["words"]) == 16


def test_canonical_json_is_compact_and_sorted() -> None:
    assert canonical_json_bytes({"b": 1, "a": [1, 2]}) == b'{"a":[1,2],"b":1}'


def test_digest_tracks_content() -> None:
    base = market_digest(market_from_dict(_doc()))
    assert base == market_digest(market_from_dict(_doc()))
    doc = _doc()
    doc["pages"][0]["bins"][0]["amount_y"] = 601
    doc["pages"][0]["bins"][0]["liquidity_supply"] = 601
    assert market_digest(market_from_dict(doc)) != base
