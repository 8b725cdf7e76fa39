"""Review-to-theme ingestion run.

normalize -> embed (cached) -> cluster -> pick evidence -> label -> synthesize,
gated by the manifest for ``(business_unit_id, quarter)``.
"""

import logging
from typing import Callable, Dict, List, Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.core.errors import GenerationSchemaError, InvalidInputError, ProviderUnavailableError
from reviewlens.db.upsert import upsert_rows
from reviewlens.models.manifest import Manifest
from reviewlens.models.review import Review
from reviewlens.models.theme import Theme
from reviewlens.realtime import publish_event_sync
from reviewlens.schemas.ingest import AlreadyProcessed, DebugResult, IngestRequest, IngestResult, RunError
from reviewlens.schemas.theme import ThemeDraft
from reviewlens.services import insights, manifests
from reviewlens.services.clustering import Cluster, cluster_reviews, vector_hash
from reviewlens.services.embeddings import EmbeddingCacheManager
from reviewlens.services.evidence import explain_evidence, pick_evidence
from reviewlens.services.normalizer import NormalizedReview, canonical_sort, normalize_review
from reviewlens.services.openai_client import ChatProvider, EmbeddingProvider
from reviewlens.services.periods import quarter_range
from reviewlens.services.review_source import ReviewSource
from reviewlens.services.synthesis import ActionSynthesizer
from reviewlens.services.themes import ThemeLabeler

logger = logging.getLogger(__name__)

PREVIEW_DIMS = 8
DEBUG_STEPS = ("emb", "clu", "ev")
RunOutcome = Union[IngestResult, AlreadyProcessed, DebugResult]
THEME_UPDATE_COLUMNS = (
    "product_id",
    "topic_key",
    "prompt_version",
    "name",
    "summary",
    "severity",
    "evidence_ids",
    "evidence_count",
    "review_count",
)


def normalize_records(
    records: Sequence[dict], default_product_id: Optional[str] = None
) -> List[NormalizedReview]:
    """Normalize raw source records, keep the first of any repeated id, sort canonically."""

    seen: Dict[str, NormalizedReview] = {}
    for record in records:
        review = normalize_review(
            record.get("body"),
            product_id=record.get("product_id") or default_product_id,
            review_date=record.get("review_date"),
            review_id=record.get("id"),
            rating=record.get("rating"),
            severity=record.get("severity"),
            source_url=record.get("source_url"),
        )
        seen.setdefault(review.id, review)
    return canonical_sort(seen.values())


def topic_key(cluster_id: str) -> str:
    return cluster_id[3:] if cluster_id.startswith("cl_") else cluster_id


class IngestionPipeline:
    """One ingestion run per call to :meth:`run`.

    Providers and the review source are injected so runs never reach the
    network in tests. ``debug`` short-circuits after embedding (``emb``),
    clustering (``clu``) or evidence selection (``ev``); debug runs create no
    manifest, theme or action rows.
    """

    def __init__(
        self,
        db: Session,
        source: ReviewSource,
        embedder: EmbeddingProvider,
        theme_chat: ChatProvider,
        actions_chat: ChatProvider,
        publish: Callable[[dict], None] = publish_event_sync,
    ) -> None:
        self.db = db
        self.source = source
        self.embeddings = EmbeddingCacheManager(db, embedder)
        self.labeler = ThemeLabeler(db, theme_chat)
        self.synthesizer = ActionSynthesizer(db, actions_chat)
        self.publish = publish

    async def run(self, request: IngestRequest, debug: Optional[str] = None) -> RunOutcome:
        if debug is not None:
            if debug not in DEBUG_STEPS:
                raise InvalidInputError(f"Unknown debug step: {debug!r}")
            return await self._run_debug(request, debug)

        manifest = manifests.find_manifest(self.db, request.business_unit_id, request.quarter)
        if manifest is not None:
            if manifest.status != manifests.STATUS_FAILED or not manifests.reopen_manifest(self.db, manifest):
                logger.info(
                    "Manifest %s already covers %s %s (%s); skipping",
                    manifest.id,
                    request.business_unit_id,
                    request.quarter,
                    manifest.status,
                )
                return AlreadyProcessed(manifest_id=manifest.id)
            logger.info("Resuming failed manifest %s", manifest.id)
        else:
            manifest = manifests.create_manifest(self.db, request.business_unit_id, request.quarter)
            if manifest is None:
                raced = manifests.find_manifest(self.db, request.business_unit_id, request.quarter)
                return AlreadyProcessed(manifest_id=raced.id)

        self.publish(
            {
                "type": "ingest_started",
                "manifest_id": manifest.id,
                "business_unit_id": request.business_unit_id,
                "quarter": request.quarter,
            }
        )
        try:
            result = await self._run_manifest(manifest, request)
        except Exception as exc:
            logger.exception("Ingestion run for manifest %s failed", manifest.id)
            manifests.fail_manifest(self.db, manifest, exc)
            self.publish(
                {
                    "type": "ingest_failed",
                    "manifest_id": manifest.id,
                    "error": getattr(exc, "kind", "internal"),
                    "message": str(exc),
                }
            )
            raise

        self.publish(
            {
                "type": "ingest_completed",
                "manifest_id": manifest.id,
                "processed_count": result.processed_count,
                "themes": len(result.themes),
                "errors": len(result.errors),
            }
        )
        return result

    async def _prepare(self, request: IngestRequest):
        start, end = quarter_range(request.quarter)
        records = await self.source.fetch(request.business_unit_id, start, end, request.limit)
        reviews = normalize_records(records, default_product_id=request.business_unit_id)
        logger.info("Normalized %s reviews (%s raw records)", len(reviews), len(records))
        vectors = await self.embeddings.embed(
            [review.normalized_body for review in reviews],
            [review.body_sha for review in reviews],
        )
        return reviews, vectors

    def _store_reviews(self, reviews: Sequence[NormalizedReview]) -> None:
        rows = [
            {
                "id": review.id,
                "product_id": review.product_id,
                "body": review.body,
                "normalized_body": review.normalized_body,
                "body_sha": review.body_sha,
                "review_date": review.review_date,
                "rating": review.rating,
                "severity": review.severity,
                "source_url": review.source_url,
            }
            for review in reviews
        ]
        upsert_rows(self.db, Review, rows, conflict_columns=("id",))
        self.db.commit()

    async def _run_manifest(self, manifest: Manifest, request: IngestRequest) -> IngestResult:
        reviews, vectors = await self._prepare(request)
        self._store_reviews(reviews)
        clustering = cluster_reviews(reviews, vectors)
        by_id = {review.id: review for review in reviews}

        drafts: List[ThemeDraft] = []
        for cluster in clustering.clusters:
            members = [by_id[review_id] for review_id in cluster.member_review_ids]
            evidence = pick_evidence(members, settings.EVIDENCE_K)
            label = await self.labeler.label(
                request.business_unit_id, cluster.id, evidence, review_count=cluster.size
            )
            row = {
                "manifest_id": manifest.id,
                "product_id": request.business_unit_id,
                "cluster_id": cluster.id,
                "topic_key": topic_key(cluster.id),
                "prompt_version": self.labeler.prompt_version,
                "name": label.name,
                "summary": label.summary,
                "severity": label.severity,
                "evidence_ids": [review.id for review in evidence],
                "evidence_count": len(evidence),
                "review_count": cluster.size,
            }
            # A resumed manifest may already hold this cluster's theme.
            upsert_rows(
                self.db,
                Theme,
                [row],
                conflict_columns=("manifest_id", "cluster_id"),
                update_columns=THEME_UPDATE_COLUMNS,
            )
            self.db.commit()
            theme = self.db.execute(
                select(Theme).where(Theme.manifest_id == manifest.id, Theme.cluster_id == cluster.id)
            ).scalars().one()
            self.db.refresh(theme)
            drafts.append(
                ThemeDraft(
                    cluster_id=cluster.id,
                    topic_key=theme.topic_key,
                    evidence_ids=list(theme.evidence_ids),
                    name=theme.name,
                    summary=theme.summary,
                    severity=theme.severity,
                    theme_id=theme.id,
                )
            )

        errors: List[RunError] = []
        for draft in drafts:
            try:
                await self.synthesizer.synthesize(draft.theme_id)
            except (GenerationSchemaError, ProviderUnavailableError) as exc:
                logger.warning("Action synthesis for %s skipped: %s", draft.cluster_id, exc)
                errors.append(RunError(kind=exc.kind, message=str(exc), cluster_id=draft.cluster_id))

        manifests.complete_manifest(self.db, manifest, processed_count=len(reviews))
        insights.compute_theme_metrics(self.db, manifest.id)
        insights.compute_trends_qoq(self.db, manifest.id)
        logger.info(
            "Manifest %s completed: %s reviews, %s themes, %s synthesis errors",
            manifest.id,
            len(reviews),
            len(drafts),
            len(errors),
        )
        return IngestResult(
            manifest_id=manifest.id,
            business_unit_id=request.business_unit_id,
            quarter=request.quarter,
            processed_count=len(reviews),
            themes=drafts,
            errors=errors,
        )

    async def _run_debug(self, request: IngestRequest, step: str) -> DebugResult:
        reviews, vectors = await self._prepare(request)
        if step == "emb":
            sample = vectors[0] if vectors else []
            return DebugResult(
                step="emb",
                data={
                    "model": self.embeddings.model,
                    "count": len(vectors),
                    "dim": len(sample),
                    "sample_preview": sample[:PREVIEW_DIMS],
                    "sample_hash": vector_hash(sample) if sample else None,
                },
            )

        clustering = cluster_reviews(reviews, vectors)
        if step == "clu":
            return DebugResult(
                step="clu",
                data={
                    "algorithm": clustering.algorithm,
                    "clusters": [self._cluster_preview(cluster) for cluster in clustering.clusters],
                    "noise_ids": clustering.noise_ids,
                },
            )

        by_id = {review.id: review for review in reviews}
        clusters = []
        for cluster in clustering.clusters:
            members = [by_id[review_id] for review_id in cluster.member_review_ids]
            preview = self._cluster_preview(cluster)
            preview["evidence"] = explain_evidence(members, settings.EVIDENCE_K)
            clusters.append(preview)
        return DebugResult(step="ev", data={"clusters": clusters})

    @staticmethod
    def _cluster_preview(cluster: Cluster) -> dict:
        return {
            "id": cluster.id,
            "size": cluster.size,
            "centroid_preview": cluster.centroid[:PREVIEW_DIMS],
            "member_ids": cluster.member_review_ids[:10],
        }
