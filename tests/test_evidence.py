import math
from datetime import date

import pytest

from reviewlens.services.evidence import (
    RECENCY_FLOOR,
    cluster_end_date,
    explain_evidence,
    pick_evidence,
    recency_weight,
    score_evidence,
    tfidf_sums,
    tokenize,
)
from reviewlens.services.normalizer import normalize_review


def _member(rid, body, review_date, rating=None):
    return normalize_review(body, "unitA", review_date, review_id=rid, rating=rating)


@pytest.fixture()
def cluster():
    return [
        _member("r2", "Pricing is high and pricing changes often.", "2025-10-02", rating=4),
        _member("r3", "The pricing page is confusing.", "2025-10-20", rating=3),
        _member("r1", "Invoice duplicated after migration, finance escalated.", "2025-12-20", rating=1),
        _member("r4", "Pricing is high for small teams.", "2025-11-01", rating=5),
        _member("r5", "Pricing changes often.", "2025-11-15", rating=4),
    ]


def test_severe_recent_distinctive_review_ranks_first(cluster):
    picked = pick_evidence(cluster, k=3)

    assert len(picked) == 3
    assert picked[0].id == "r1"
    assert len({review.id for review in picked}) == 3


def test_pick_is_independent_of_input_order(cluster):
    forward = [review.id for review in pick_evidence(cluster, k=3)]
    backward = [review.id for review in pick_evidence(list(reversed(cluster)), k=3)]
    assert forward == backward


def test_equal_scores_are_ordered_by_date_then_id():
    members = [
        _member("a", "Same complaint about exports", "2020-01-03", rating=2),
        _member("c", "Same complaint about exports", "2020-01-02", rating=2),
        _member("b", "Same complaint about exports", "2020-01-02", rating=2),
    ]

    picked = pick_evidence(members, k=3, cluster_end=date(2025, 1, 1))

    assert [review.id for review in picked] == ["b", "c", "a"]


def test_k_is_clamped(cluster):
    assert len(pick_evidence(cluster, k=10)) == 5
    assert pick_evidence(cluster, k=0) == []
    assert pick_evidence([], k=3) == []


@pytest.mark.parametrize(
    "review_date, expected",
    [
        ("2025-12-31", 1.0),
        ("2025-11-16", 0.5),
        ("2024-01-01", RECENCY_FLOOR),
        ("not a date", RECENCY_FLOOR),
        ("2026-01-15", 1.0),
    ],
)
def test_recency_weight(review_date, expected):
    assert recency_weight(review_date, date(2025, 12, 31), period_days=90) == pytest.approx(expected)


def test_cluster_end_ignores_unparseable_dates():
    members = [_member("a", "x", "2025-10-01"), _member("b", "y", "whenever")]
    assert cluster_end_date(members) == date(2025, 10, 1)
    assert cluster_end_date([_member("c", "z", "whenever")]) is None


def test_tokenize_folds_case_and_drops_stopwords():
    assert tokenize("The Pricing, pricing_tiers & a UI!") == ["pricing", "pricing", "tiers", "ui"]
    assert tokenize("") == []


def test_missing_severity_counts_as_medium():
    members = [_member("a", "slow sync", "2025-10-01"), _member("b", "slow sync", "2025-10-01", rating=1)]
    scores = score_evidence(members)
    assert scores["a"].severity_weight == 2
    assert scores["b"].severity_weight == 3
    assert scores["b"].score > scores["a"].score


def test_explain_evidence_matches_pick_order(cluster):
    explained = explain_evidence(cluster, k=3)

    assert [row["review_id"] for row in explained] == [r.id for r in pick_evidence(cluster, k=3)]
    top = explained[0]
    assert top["severity"] == "high"
    assert top["severity_weight"] == 3
    assert top["recency"] == 1.0
    assert top["review_date"] == "2025-12-20"
    assert top["score"] == pytest.approx(top["tfidf_sum"] * 3)


def test_tfidf_sum_is_mean_smoothed_weight():
    members = [
        _member("a", "alpha beta", "2025-10-01"),
        _member("b", "alpha gamma", "2025-10-01"),
        _member("c", "the and", "2025-10-01"),
    ]

    sums = tfidf_sums(members)

    rare = math.log(4 / 2) + 1
    common = math.log(4 / 3) + 1
    assert sums["a"] == pytest.approx((common + rare) / 2)
    assert sums["b"] == pytest.approx(sums["a"])
    assert sums["c"] == 0.0


def test_tfidf_sums_without_tokens_are_zero():
    members = [_member("a", "the", "2025-10-01"), _member("b", "a an", "2025-10-01")]
    assert tfidf_sums(members) == {"a": 0.0, "b": 0.0}
