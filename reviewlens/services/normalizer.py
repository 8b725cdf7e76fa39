"""Review text canonicalization and content hashing.

``body_sha`` is the identity key for the embedding cache and the tie-breaker
for every ordering downstream, so everything here is a pure function.
"""

import hashlib
import re
import unicodedata
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional

from reviewlens.core.errors import InvalidInputError

_WHITESPACE_RE = re.compile(r"\s+")
_US_DATETIME_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})[ T](\d{2}):(\d{2}):(\d{2})$")

SEVERITIES = ("low", "medium", "high")


@dataclass(frozen=True)
class NormalizedReview:
    id: str
    product_id: str
    body: str
    review_date: str
    normalized_body: str
    body_sha: str
    rating: Optional[int] = None
    severity: Optional[str] = None
    source_url: Optional[str] = None


def normalize_body(text: str) -> str:
    if not isinstance(text, str):
        raise InvalidInputError(f"Review body must be a string, got {type(text).__name__}")
    text = unicodedata.normalize("NFKC", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def body_sha(text: str) -> str:
    return sha256_hex(normalize_body(text))


def _from_epoch(value: float) -> Optional[datetime]:
    # Milliseconds above 1e12, seconds above 1e9.
    seconds = value / 1000 if value > 1e12 else value
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def parse_review_date(value: Any) -> Optional[str]:
    """Return ``value`` as an ISO ``YYYY-MM-DD`` string, or ``None`` when unparseable."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (int, float)):
        parsed = _from_epoch(float(value))
        return parsed.date().isoformat() if parsed else None
    if not isinstance(value, str):
        return None

    raw = value.strip()
    if not raw:
        return None
    if raw.isdigit():
        return parse_review_date(int(raw))

    match = _US_DATETIME_RE.match(raw)
    if match:
        month, day, year, hour, minute, second = (int(part) for part in match.groups())
        try:
            return datetime(year, month, day, hour, minute, second).date().isoformat()
        except ValueError:
            return None

    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return None


def severity_from_rating(rating: Optional[int]) -> Optional[str]:
    if rating is None:
        return None
    if rating <= 2:
        return "high"
    if rating == 3:
        return "medium"
    return "low"


def normalize_review(
    body: Any,
    product_id: str,
    review_date: Any,
    review_id: Optional[str] = None,
    rating: Optional[int] = None,
    severity: Optional[str] = None,
    source_url: Optional[str] = None,
) -> NormalizedReview:
    if not isinstance(body, str):
        raise InvalidInputError(f"Review body must be a string, got {type(body).__name__}")
    if not isinstance(product_id, str) or not product_id.strip():
        raise InvalidInputError("Review product_id must be a non-empty string")
    if review_id is not None and not isinstance(review_id, str):
        raise InvalidInputError(f"Review id must be a string, got {type(review_id).__name__}")
    if severity is not None and severity not in SEVERITIES:
        raise InvalidInputError(f"Unknown severity: {severity!r}")

    normalized = normalize_body(body)
    iso_date = parse_review_date(review_date)
    return NormalizedReview(
        id=review_id or sha256_hex(f"{product_id}:{body}"),
        product_id=product_id,
        body=body,
        # Unparseable dates are kept verbatim; evidence ranking gives them the floor weight.
        review_date=iso_date or (str(review_date) if review_date is not None else ""),
        normalized_body=normalized,
        body_sha=sha256_hex(normalized),
        rating=rating,
        severity=severity or severity_from_rating(rating),
        source_url=source_url,
    )


def canonical_sort(reviews: Iterable[NormalizedReview]) -> List[NormalizedReview]:
    return sorted(reviews, key=lambda r: (r.product_id, r.review_date, r.id))
