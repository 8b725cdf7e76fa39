"""Deterministic evidence ranking: TF-IDF x severity x recency.

Document frequency is computed over one cluster's members only. Equal scores
are ordered by ``review_date`` then ``id`` so the same evidence set comes out
regardless of input order.
"""

import re
import unicodedata
from dataclasses import asdict, dataclass
from datetime import date
from typing import Dict, List, Optional, Sequence

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer

from reviewlens.core.config import settings
from reviewlens.services.normalizer import NormalizedReview, parse_review_date

SEVERITY_WEIGHTS: Dict[str, int] = {"low": 1, "medium": 2, "high": 3}
DEFAULT_SEVERITY = "medium"
RECENCY_FLOOR = 0.1
SCORE_PLACES = 12

STOPWORDS = frozenset(
    """
    a an and are as at be but by for if in into is it no not of on or such that
    the their then there these they this to was will with we you your our from
    have has had
    """.split()
)

_TOKEN_RE = re.compile(r"[^\W_]+")


@dataclass(frozen=True)
class EvidenceScore:
    review_id: str
    score: float
    tfidf_sum: float
    recency: float
    severity_weight: int


def tokenize(text: str) -> List[str]:
    folded = unicodedata.normalize("NFKC", text or "").casefold()
    return [tok for tok in _TOKEN_RE.findall(folded) if len(tok) >= 2 and tok not in STOPWORDS]


def _as_date(value: str) -> Optional[date]:
    iso = parse_review_date(value)
    return date.fromisoformat(iso) if iso else None


def cluster_end_date(members: Sequence[NormalizedReview]) -> Optional[date]:
    parsed = [d for d in (_as_date(m.review_date) for m in members) if d is not None]
    return max(parsed) if parsed else None


def recency_weight(
    review_date: str, cluster_end: Optional[date], period_days: Optional[int] = None
) -> float:
    """Linear decay from 1.0 at ``cluster_end`` to the floor after ``period_days``."""

    parsed = _as_date(review_date)
    if parsed is None or cluster_end is None:
        return RECENCY_FLOOR
    period = period_days or settings.RECENCY_PERIOD_DAYS
    days_since = (cluster_end - parsed).days
    return max(RECENCY_FLOOR, min(1.0, 1 - days_since / period))


def tfidf_sums(members: Sequence[NormalizedReview]) -> Dict[str, float]:
    """Mean smoothed TF-IDF weight per member, document frequency taken over ``members``."""

    docs = [m.body for m in members]
    token_counts = [len(tokenize(doc)) for doc in docs]
    sums: Dict[str, float] = {m.id: 0.0 for m in members}
    if not any(token_counts):
        return sums

    vectorizer = TfidfVectorizer(
        tokenizer=tokenize, lowercase=False, token_pattern=None, norm=None, smooth_idf=True
    )
    matrix = vectorizer.fit_transform(docs)
    row_sums = np.asarray(matrix.sum(axis=1)).ravel()
    for member, total, count in zip(members, row_sums, token_counts):
        if count:
            sums[member.id] = round(float(total) / count, SCORE_PLACES)
    return sums


def score_evidence(
    members: Sequence[NormalizedReview], cluster_end: Optional[date] = None
) -> Dict[str, EvidenceScore]:
    end = cluster_end or cluster_end_date(members)
    tfidf = tfidf_sums(members)
    scores: Dict[str, EvidenceScore] = {}
    for member in members:
        weight = SEVERITY_WEIGHTS.get(member.severity or DEFAULT_SEVERITY, SEVERITY_WEIGHTS[DEFAULT_SEVERITY])
        recency = recency_weight(member.review_date, end)
        base = tfidf.get(member.id, 0.0)
        scores[member.id] = EvidenceScore(
            review_id=member.id,
            score=round(max(0.0, base * weight * recency), SCORE_PLACES),
            tfidf_sum=base,
            recency=recency,
            severity_weight=weight,
        )
    return scores


def pick_evidence(
    members: Sequence[NormalizedReview],
    k: Optional[int] = None,
    cluster_end: Optional[date] = None,
) -> List[NormalizedReview]:
    if not members:
        return []
    k = settings.EVIDENCE_K if k is None else k
    scores = score_evidence(members, cluster_end)
    ranked = sorted(members, key=lambda m: (-scores[m.id].score, m.review_date, m.id))
    return ranked[: min(max(0, k), len(ranked))]


def explain_evidence(
    members: Sequence[NormalizedReview],
    k: Optional[int] = None,
    cluster_end: Optional[date] = None,
) -> List[dict]:
    """Score breakdown for the picked evidence, in pick order."""

    end = cluster_end or cluster_end_date(members)
    scores = score_evidence(members, end)
    out = []
    for member in pick_evidence(members, k, end):
        row = asdict(scores[member.id])
        row.update(review_date=member.review_date, severity=member.severity or DEFAULT_SEVERITY)
        out.append(row)
    return out
