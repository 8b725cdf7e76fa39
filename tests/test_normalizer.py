import hashlib
from datetime import date, datetime

import pytest

from reviewlens.core.errors import InvalidInputError
from reviewlens.services.normalizer import (
    body_sha,
    canonical_sort,
    normalize_body,
    normalize_review,
    parse_review_date,
    severity_from_rating,
)


def test_whitespace_and_compatibility_forms_share_hash():
    first = normalize_review("Great  ﬁx,\n\tthanks ", "unitA", "2025-10-01", review_id="a")
    second = normalize_review("Great fix, thanks", "unitA", "2025-10-02", review_id="b")

    assert first.normalized_body == "Great fix, thanks"
    assert first.body_sha == second.body_sha
    assert first.body_sha == hashlib.sha256("Great fix, thanks".encode("utf-8")).hexdigest()


def test_case_is_preserved_in_hash():
    assert normalize_body("Slow Dashboard") == "Slow Dashboard"
    assert body_sha("Slow Dashboard") != body_sha("slow dashboard")


def test_non_string_body_is_rejected():
    with pytest.raises(InvalidInputError):
        normalize_body(None)
    with pytest.raises(InvalidInputError):
        normalize_review(42, "unitA", "2025-10-01")


def test_missing_product_is_rejected():
    with pytest.raises(InvalidInputError):
        normalize_review("text", "", "2025-10-01")


def test_default_id_is_hash_of_product_and_body():
    review = normalize_review("Nice tool", "unitA", "2025-10-01")
    assert review.id == hashlib.sha256(b"unitA:Nice tool").hexdigest()


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2025-11-03", "2025-11-03"),
        ("2025-11-03T10:00:00Z", "2025-11-03"),
        ("11/03/2025 10:15:00", "2025-11-03"),
        (date(2025, 11, 3), "2025-11-03"),
        (datetime(2025, 11, 3, 23, 59), "2025-11-03"),
        (1762128000, "2025-11-03"),
        (1762128000000, "2025-11-03"),
        ("1762128000", "2025-11-03"),
        ("yesterday", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_review_date(value, expected):
    assert parse_review_date(value) == expected


def test_unparseable_date_is_kept_verbatim():
    review = normalize_review("text", "unitA", "sometime last week", review_id="x")
    assert review.review_date == "sometime last week"


def test_severity_from_rating():
    assert severity_from_rating(1) == "high"
    assert severity_from_rating(2) == "high"
    assert severity_from_rating(3) == "medium"
    assert severity_from_rating(5) == "low"
    assert severity_from_rating(None) is None
    assert normalize_review("x", "unitA", "2025-10-01", rating=4).severity == "low"


def test_canonical_sort_orders_by_product_date_id():
    reviews = [
        normalize_review("c", "unitB", "2025-10-01", review_id="1"),
        normalize_review("b", "unitA", "2025-10-02", review_id="1"),
        normalize_review("a", "unitA", "2025-10-01", review_id="2"),
        normalize_review("d", "unitA", "2025-10-01", review_id="1"),
    ]
    ordered = canonical_sort(reversed(reviews))
    assert [(r.product_id, r.review_date, r.id) for r in ordered] == [
        ("unitA", "2025-10-01", "1"),
        ("unitA", "2025-10-01", "2"),
        ("unitA", "2025-10-02", "1"),
        ("unitB", "2025-10-01", "1"),
    ]
