import pytest

from datamarket.errors import ValidationError
from datamarket.schemas.common import format_errors, paginate_meta, parse_model
from datamarket.schemas.datasets import DatasetCreateIn


def test_paginate_meta_middle_page():
    meta = paginate_meta(current=2, total=25, limit=10)
    assert meta.pages == 3
    assert meta.hasNext is True
    assert meta.hasPrev is True


def test_paginate_meta_empty():
    meta = paginate_meta(current=1, total=0, limit=10)
    assert meta.pages == 0
    assert meta.hasNext is False
    assert meta.hasPrev is False


def test_format_errors_drops_location_roots_and_prefix():
    errs = [
        {"loc": ("body", "walletAddress"), "msg": "Value error, Please provide a valid address"},
        {"loc": ("query", "limit"), "msg": "Input should be less than or equal to 100"},
        {"loc": (), "msg": "Something else"},
    ]
    assert format_errors(errs) == [
        "walletAddress: Please provide a valid address",
        "limit: Input should be less than or equal to 100",
        "Something else",
    ]


def test_parse_model_collects_every_field_error():
    with pytest.raises(ValidationError) as exc:
        parse_model(DatasetCreateIn, {"title": "x", "description": "short", "category": "Nope", "price": "-1"})
    fields = {e.split(":", 1)[0] for e in exc.value.errors or []}
    assert {"title", "description", "category", "price"} <= fields
    assert exc.value.status_code == 400


def test_parse_model_normalizes_tags():
    payload = parse_model(
        DatasetCreateIn,
        {
            "title": "Weather",
            "description": "Ten years of hourly readings",
            "category": "Other",
            "price": "1.25",
            "tags": "rain, wind,rain",
        },
    )
    assert payload.tags == ["rain", "wind"]
    assert payload.currency == "ETH"
