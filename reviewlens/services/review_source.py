import json
import logging
from datetime import date
from pathlib import Path
from typing import List, Optional, Protocol

from reviewlens.core.config import settings
from reviewlens.services.normalizer import parse_review_date

logger = logging.getLogger(__name__)


class ReviewSource(Protocol):
    async def fetch(self, target: str, start: date, end: date, limit: int) -> List[dict]:
        """Raw review records for ``target`` dated within ``[start, end]``."""
        ...


class JsonFileReviewSource:
    """Reads review records from a JSON array on disk.

    Records carry ``product_id``, ``body`` and ``review_date`` plus optional
    ``id``, ``rating`` and ``source_url``. Records with a parseable date
    outside the window are skipped; undated ones are kept.
    """

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = Path(path or settings.REVIEW_SOURCE_PATH)

    def _load(self) -> List[dict]:
        if not self.path.exists():
            logger.warning("Review source %s does not exist", self.path)
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if isinstance(data, dict):
            data = data.get("reviews", [])
        return [record for record in data if isinstance(record, dict)]

    async def fetch(self, target: str, start: date, end: date, limit: int) -> List[dict]:
        window = (start.isoformat(), end.isoformat())
        selected = []
        for record in self._load():
            if record.get("product_id") != target:
                continue
            raw = record.get("review_date")
            iso = parse_review_date(raw)
            if iso is not None and not (window[0] <= iso <= window[1]):
                continue
            # Keyed on the parsed date, matching canonical_sort.
            selected.append((iso or str(raw or ""), str(record.get("id") or ""), record))
        selected.sort(key=lambda item: item[:2])
        logger.info(
            "Fetched %s/%s reviews for %s between %s and %s",
            min(limit, len(selected)),
            len(selected),
            target,
            *window,
        )
        return [record for _, _, record in selected[:limit]]
