import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from openai import APIStatusError
from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.core.errors import GenerationSchemaError, ProviderUnavailableError
from reviewlens.models.theme import Theme
from reviewlens.schemas.theme import ThemeLabel
from reviewlens.services.aspects import majority_severity, tag_aspects, title_from_aspects, top_aspects
from reviewlens.services.llm_payload import parse_payload
from reviewlens.services.normalizer import NormalizedReview
from reviewlens.services.openai_client import ChatProvider
from reviewlens.services.retry import with_transport_retry

logger = logging.getLogger(__name__)

THEME_SYSTEM_PROMPT = (
    "You are a concise product ops assistant. Given sample quotes and top aspects, "
    "return a short theme name, a one or two sentence summary, and a severity. "
    'Respond with strict JSON: {"name": string, "summary": string, '
    '"severity": "low" | "medium" | "high"}.'
)
MAX_QUOTES = 6
QUOTE_CHARS = 180
FALLBACK_NAME = "Customer Theme"


@dataclass(frozen=True)
class LabeledTheme:
    name: str
    summary: str
    severity: str
    cached: bool = False
    fallback: bool = False


class ThemeLabeler:
    """Names a cluster from its evidence.

    A Theme row already stored for ``(cluster_id, prompt_version)`` is reused
    verbatim, whichever manifest wrote it. Otherwise the chat model is asked
    once at temperature 0; a response that fails validation, or a provider
    without credentials, yields a deterministic label built from aspect tags.
    """

    def __init__(self, db: Session, chat: ChatProvider, prompt_version: Optional[int] = None) -> None:
        self.db = db
        self.chat = chat
        self.prompt_version = prompt_version or settings.PROMPT_VERSION

    def cached(self, cluster_id: str) -> Optional[Theme]:
        return self.db.execute(
            select(Theme)
            .where(Theme.cluster_id == cluster_id, Theme.prompt_version == self.prompt_version)
            .order_by(Theme.id)
            .limit(1)
        ).scalars().first()

    def build_payload(
        self,
        product_id: str,
        cluster_id: str,
        evidence: Sequence[NormalizedReview],
        review_count: int,
    ) -> dict:
        aspects: List[str] = []
        quotes = []
        for review in evidence:
            tags = tag_aspects(review.normalized_body)
            aspects.extend(tags)
            snippet = review.normalized_body[:QUOTE_CHARS]
            if len(quotes) < MAX_QUOTES and snippet:
                quotes.append({"id": review.id, "quote": snippet})
        return {
            "product_id": product_id,
            "cluster_id": cluster_id,
            "top_aspects": top_aspects(aspects, 5),
            "example_quotes": quotes,
            "counts": {"reviews_in_cluster": review_count, "evidence": len(evidence)},
        }

    def fallback(self, evidence: Sequence[NormalizedReview]) -> LabeledTheme:
        aspects: List[str] = []
        severities: List[str] = []
        for review in evidence:
            tags = tag_aspects(review.normalized_body)
            aspects.extend(tags)
            severities.extend([review.severity or "medium"] * len(tags))
        top = top_aspects(aspects, 5)
        return LabeledTheme(
            name=title_from_aspects(top) or FALLBACK_NAME,
            summary=f"Theme derived from {len(evidence)} reviews focusing on {', '.join(top)}.",
            severity=majority_severity(severities),
            fallback=True,
        )

    async def label(
        self,
        product_id: str,
        cluster_id: str,
        evidence: Sequence[NormalizedReview],
        review_count: Optional[int] = None,
    ) -> LabeledTheme:
        existing = self.cached(cluster_id)
        if existing is not None:
            logger.info("Theme cache hit for %s (prompt v%s)", cluster_id, self.prompt_version)
            return LabeledTheme(
                name=existing.name,
                summary=existing.summary,
                severity=existing.severity,
                cached=True,
            )

        if not self.chat.available:
            logger.info("No chat credentials; using fallback label for %s", cluster_id)
            return self.fallback(evidence)

        payload = self.build_payload(
            product_id, cluster_id, evidence, review_count if review_count is not None else len(evidence)
        )
        user = json.dumps(payload, ensure_ascii=False)
        try:
            content = await with_transport_retry(
                lambda: self.chat.complete(system=THEME_SYSTEM_PROMPT, user=user)
            )
            parsed = parse_payload(content, ThemeLabel)
        except (GenerationSchemaError, ProviderUnavailableError) as exc:
            logger.warning("Theme label for %s fell back: %s", cluster_id, exc)
            return self.fallback(evidence)
        except APIStatusError as exc:
            if exc.status_code >= 500:
                raise
            logger.warning("Theme label for %s rejected by provider (%s); using fallback", cluster_id, exc.status_code)
            return self.fallback(evidence)

        return LabeledTheme(name=parsed.name, summary=parsed.summary, severity=parsed.severity)
