import json
import logging
import re
import unicodedata
from typing import Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.core.errors import ConsistencyError
from reviewlens.db.upsert import upsert_rows
from reviewlens.models.action import Action, SynthesisCache
from reviewlens.models.review import Review
from reviewlens.models.theme import Theme
from reviewlens.schemas.action import SynthesisPayload, SynthesisResult
from reviewlens.services.llm_payload import parse_payload
from reviewlens.services.openai_client import ChatProvider
from reviewlens.services.retry import with_transport_retry

logger = logging.getLogger(__name__)

SYNTHESIS_SYSTEM_PROMPT = """You are a product strategy analyst. Given a customer theme with
example review snippets, propose why the theme occurs and what to do about it.

Respond with JSON only:
{
  "root_causes": ["1 to 6 short hypotheses"],
  "actions": [
    {
      "kind": "product" | "gtm",
      "description": "specific, testable recommendation",
      "impact": 1-5,
      "effort": 1-5,
      "evidence": ["ids of the supporting examples"]
    }
  ]
}
Return between 3 and 5 actions. impact and effort are integers."""

SNIPPET_CHARS = 180
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_description(text: str) -> str:
    folded = unicodedata.normalize("NFKC", text).casefold()
    return _WHITESPACE_RE.sub(" ", folded).strip()


class ActionSynthesizer:
    """Root causes and actions for a stored theme.

    Full payloads live in ``synthesis_cache`` keyed by ``(theme_id,
    prompt_version)``. Actions are inserted even on a cache hit; the unique
    ``(theme_id, normalized_description)`` key keeps repeats out.
    """

    def __init__(self, db: Session, chat: ChatProvider, prompt_version: Optional[int] = None) -> None:
        self.db = db
        self.chat = chat
        self.prompt_version = prompt_version or settings.PROMPT_VERSION

    def _cache_row(self, theme_id: int) -> Optional[SynthesisCache]:
        return self.db.execute(
            select(SynthesisCache).where(
                SynthesisCache.entity_id == str(theme_id),
                SynthesisCache.prompt_version == self.prompt_version,
            )
        ).scalars().first()

    def _examples(self, theme: Theme) -> List[Dict]:
        ids = list(theme.evidence_ids or [])
        if not ids:
            return []
        rows = {
            review.id: review
            for review in self.db.execute(select(Review).where(Review.id.in_(ids))).scalars()
        }
        return [
            {
                "snippet": rows[review_id].normalized_body[:SNIPPET_CHARS],
                "evidence": {"type": "review", "id": review_id},
            }
            for review_id in ids
            if review_id in rows
        ]

    def build_input(self, theme: Theme) -> Dict:
        return {
            "theme_id": theme.id,
            "theme": theme.name,
            "summary": theme.summary,
            "severity": theme.severity,
            "examples": self._examples(theme),
        }

    async def _generate(self, theme: Theme) -> SynthesisPayload:
        user = "THEME INPUT:\n" + json.dumps(self.build_input(theme), ensure_ascii=False, indent=2)
        content = await with_transport_retry(
            lambda: self.chat.complete(system=SYNTHESIS_SYSTEM_PROMPT, user=user)
        )
        return parse_payload(content, SynthesisPayload)

    def store_actions(self, theme_id: int, payload: SynthesisPayload) -> Tuple[int, int]:
        """Insert unseen actions. Returns ``(inserted, skipped)`` counts."""

        existing = set(
            self.db.execute(
                select(Action.normalized_description).where(Action.theme_id == theme_id)
            ).scalars()
        )
        rows = []
        for action in payload.actions:
            key = normalize_description(action.description)
            if key in existing:
                continue
            existing.add(key)
            rows.append(
                {
                    "theme_id": theme_id,
                    "kind": action.kind,
                    "description": action.description,
                    "normalized_description": key,
                    "impact": action.impact,
                    "effort": action.effort,
                    "evidence": list(action.evidence),
                }
            )
        upsert_rows(self.db, Action, rows, conflict_columns=("theme_id", "normalized_description"))
        self.db.commit()
        return len(rows), len(payload.actions) - len(rows)

    async def synthesize(self, theme_id: int) -> SynthesisResult:
        theme = self.db.get(Theme, theme_id)
        if theme is None:
            raise ConsistencyError(f"Theme {theme_id} does not exist")

        cached_row = self._cache_row(theme_id)
        if cached_row is not None:
            logger.info("Synthesis cache hit for theme %s (prompt v%s)", theme_id, self.prompt_version)
            payload = SynthesisPayload.model_validate(cached_row.payload)
            cached = True
        else:
            payload = await self._generate(theme)
            upsert_rows(
                self.db,
                SynthesisCache,
                [
                    {
                        "entity_id": str(theme_id),
                        "prompt_version": self.prompt_version,
                        "payload": payload.model_dump(),
                    }
                ],
                conflict_columns=("entity_id", "prompt_version"),
                update_columns=("payload",),
            )
            self.db.commit()
            cached = False

        inserted, skipped = self.store_actions(theme_id, payload)
        logger.info(
            "Theme %s actions: %s inserted, %s already present (cached=%s)",
            theme_id,
            inserted,
            skipped,
            cached,
        )
        return SynthesisResult(
            theme_id=theme_id, cached=cached, inserted=inserted, skipped=skipped, payload=payload
        )
