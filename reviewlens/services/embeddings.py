import logging
import math
from typing import Dict, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.core.errors import ConsistencyError
from reviewlens.db.upsert import chunked, upsert_rows
from reviewlens.models.embedding import EmbeddingRecord
from reviewlens.services.openai_client import EmbeddingProvider
from reviewlens.services.retry import with_transport_retry

logger = logging.getLogger(__name__)

VECTOR_PLACES = 6


def l2_normalize(vector: Sequence[float]) -> List[float]:
    norm = math.sqrt(sum(x * x for x in vector)) or 1.0
    return [x / norm for x in vector]


def round_vector(vector: Sequence[float], places: int = VECTOR_PLACES) -> List[float]:
    return [round(float(x), places) for x in vector]


class EmbeddingCacheManager:
    """Content-addressed embedding cache in front of an embedding provider.

    Vectors are keyed by ``(body_sha, model)`` and shared by every review whose
    normalized text hashes the same. Returned vectors are L2-normalized and
    rounded to six places, so a populated cache yields bit-identical vectors
    across runs.
    """

    def __init__(
        self,
        db: Session,
        provider: EmbeddingProvider,
        batch_size: Optional[int] = None,
    ) -> None:
        self.db = db
        self.provider = provider
        self.model = provider.model
        self.batch_size = max(1, batch_size or settings.EMBEDDING_BATCH_SIZE)

    def lookup(self, hashes: Sequence[str]) -> Dict[str, List[float]]:
        """Batch-read cached vectors. Database errors propagate and abort the batch."""

        unique = sorted(set(hashes))
        if not unique:
            return {}
        found: Dict[str, List[float]] = {}
        for chunk in chunked(unique, 500):
            rows = self.db.execute(
                select(EmbeddingRecord.body_sha, EmbeddingRecord.vector).where(
                    EmbeddingRecord.model == self.model,
                    EmbeddingRecord.body_sha.in_(list(chunk)),
                )
            ).all()
            for sha, vector in rows:
                if vector:
                    found[sha] = round_vector(vector)
        return found

    def store(self, vectors_by_sha: Dict[str, List[float]]) -> None:
        rows = [
            {"body_sha": sha, "model": self.model, "vector": vector}
            for sha, vector in sorted(vectors_by_sha.items())
        ]
        upsert_rows(
            self.db,
            EmbeddingRecord,
            rows,
            conflict_columns=("body_sha", "model"),
            update_columns=("vector",),
        )
        self.db.commit()

    async def _embed_missing(self, texts_by_sha: Dict[str, str]) -> Dict[str, List[float]]:
        fresh: Dict[str, List[float]] = {}
        ordered = list(texts_by_sha.items())
        for batch in chunked(ordered, self.batch_size):
            batch_texts = [text for _, text in batch]
            logger.info("Requesting %s embeddings from %s", len(batch_texts), self.model)
            vectors = await with_transport_retry(lambda: self.provider.embed(batch_texts))
            if len(vectors) != len(batch):
                raise ConsistencyError(
                    f"Embedding provider returned {len(vectors)} vectors for {len(batch)} texts"
                )
            computed = {
                sha: round_vector(l2_normalize(vector)) for (sha, _), vector in zip(batch, vectors)
            }
            self.store(computed)
            fresh.update(computed)
        return fresh

    async def embed(self, texts: Sequence[str], hashes: Sequence[str]) -> List[List[float]]:
        if len(texts) != len(hashes):
            raise ConsistencyError(
                f"texts.length ({len(texts)}) != hashes.length ({len(hashes)})"
            )
        if not texts:
            return []

        cached = self.lookup(hashes)
        logger.info(
            "Embedding cache: %s requested, %s unique, %s hits (model=%s)",
            len(hashes),
            len(set(hashes)),
            len(cached),
            self.model,
        )

        missing: Dict[str, str] = {}
        for text, sha in zip(texts, hashes):
            if sha not in cached and sha not in missing:
                missing[sha] = text

        vectors_by_sha = dict(cached)
        if missing:
            vectors_by_sha.update(await self._embed_missing(missing))

        out = [vectors_by_sha[sha] for sha in hashes]
        dimensions = {len(vector) for vector in out}
        if len(dimensions) > 1:
            raise ConsistencyError(
                f"Mixed embedding dimensions for model {self.model}: {sorted(dimensions)}"
            )
        return out
