import asyncio
from datetime import date

from reviewlens.services.review_source import JsonFileReviewSource

Q4 = (date(2025, 10, 1), date(2025, 12, 31))


def _fetch(path, target="unitA", limit=10):
    return asyncio.run(JsonFileReviewSource(path).fetch(target, *Q4, limit))


def test_limit_keeps_earliest_parsed_dates(reviews_file):
    path = reviews_file(
        [
            {"id": "us", "product_id": "unitA", "body": "x", "review_date": "12/01/2025 09:15:00"},
            {"id": "iso", "product_id": "unitA", "body": "y", "review_date": "2025-11-20"},
        ]
    )

    assert [record["id"] for record in _fetch(path, limit=1)] == ["iso"]
    assert [record["id"] for record in _fetch(path)] == ["iso", "us"]


def test_filters_product_and_window(reviews_file):
    path = reviews_file(
        [
            {"id": "a", "product_id": "unitA", "body": "x", "review_date": "2025-10-03"},
            {"id": "b", "product_id": "unitB", "body": "x", "review_date": "2025-10-03"},
            {"id": "c", "product_id": "unitA", "body": "x", "review_date": "2025-09-30"},
            {"id": "d", "product_id": "unitA", "body": "x", "review_date": "2026-01-01"},
        ]
    )

    assert [record["id"] for record in _fetch(path)] == ["a"]


def test_unparseable_dates_are_kept(reviews_file):
    path = reviews_file(
        [
            {"id": "a", "product_id": "unitA", "body": "x", "review_date": "2025-10-03"},
            {"id": "b", "product_id": "unitA", "body": "x", "review_date": "sometime"},
            {"id": "c", "product_id": "unitA", "body": "x"},
        ]
    )

    assert sorted(record["id"] for record in _fetch(path)) == ["a", "b", "c"]


def test_missing_file_yields_nothing(tmp_path):
    assert _fetch(str(tmp_path / "absent.json")) == []
