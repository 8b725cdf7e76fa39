"""Per-manifest theme metrics and quarter-over-quarter trends."""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.core.errors import InvalidInputError
from reviewlens.db.upsert import upsert_rows
from reviewlens.models.action import Action
from reviewlens.models.insight import ThemeMetric, ThemeTrend
from reviewlens.models.manifest import Manifest
from reviewlens.models.theme import Theme
from reviewlens.services.periods import previous_quarter

logger = logging.getLogger(__name__)

SEVERITY_RANK = {"low": 1, "medium": 2, "high": 3}

_METRIC_FIELDS = ("name", "severity", "evidence_count", "review_count", "actions_count")


def _manifest_or_raise(db: Session, manifest_id: int) -> Manifest:
    manifest = db.get(Manifest, manifest_id)
    if manifest is None:
        raise InvalidInputError(f"Manifest {manifest_id} does not exist")
    return manifest


def compute_theme_metrics(db: Session, manifest_id: int) -> int:
    _manifest_or_raise(db, manifest_id)
    themes = list(
        db.execute(
            select(Theme).where(Theme.manifest_id == manifest_id).order_by(Theme.topic_key)
        ).scalars()
    )
    if not themes:
        return 0

    counts: Dict[int, int] = dict(
        db.execute(
            select(Action.theme_id, func.count(Action.id))
            .where(Action.theme_id.in_([theme.id for theme in themes]))
            .group_by(Action.theme_id)
        ).all()
    )
    now = datetime.utcnow()
    rows = [
        {
            "manifest_id": manifest_id,
            "topic_key": theme.topic_key,
            "cluster_id": theme.cluster_id,
            "name": theme.name,
            "severity": theme.severity,
            "evidence_count": theme.evidence_count or 0,
            "review_count": theme.review_count or 0,
            "actions_count": counts.get(theme.id, 0),
            "computed_version": settings.PIPELINE_VERSION,
            "computed_at": now,
        }
        for theme in themes
    ]
    upsert_rows(
        db,
        ThemeMetric,
        rows,
        conflict_columns=("manifest_id", "topic_key"),
        update_columns=("cluster_id",) + _METRIC_FIELDS + ("computed_version", "computed_at"),
    )
    db.commit()
    logger.info("Computed %s theme metrics for manifest %s", len(rows), manifest_id)
    return len(rows)


def _previous_manifest(db: Session, manifest: Manifest) -> Optional[Manifest]:
    return db.execute(
        select(Manifest)
        .where(
            Manifest.business_unit_id == manifest.business_unit_id,
            Manifest.period == previous_quarter(manifest.period),
        )
        .order_by(Manifest.created_at.desc())
        .limit(1)
    ).scalars().first()


def _delta(current: Optional[int], previous: Optional[int]) -> int:
    return (current or 0) - (previous or 0)


def compute_trends_qoq(db: Session, manifest_id: int) -> int:
    manifest = _manifest_or_raise(db, manifest_id)
    previous = _previous_manifest(db, manifest)

    current_metrics = get_metrics(db, manifest_id)
    prev_by_topic: Dict[str, ThemeMetric] = {}
    if previous is not None:
        prev_by_topic = {metric.topic_key: metric for metric in get_metrics(db, previous.id)}

    now = datetime.utcnow()
    rows = []
    for metric in current_metrics:
        prev = prev_by_topic.get(metric.topic_key)
        rows.append(
            {
                "current_manifest_id": manifest.id,
                "prev_manifest_id": previous.id if previous is not None else None,
                "business_unit_id": manifest.business_unit_id,
                "topic_key": metric.topic_key,
                "current_name": metric.name,
                "current_severity": metric.severity,
                "current_evidence_count": metric.evidence_count or 0,
                "current_review_count": metric.review_count or 0,
                "current_actions_count": metric.actions_count or 0,
                "prev_name": prev.name if prev else None,
                "prev_severity": prev.severity if prev else None,
                "prev_evidence_count": prev.evidence_count if prev else None,
                "prev_review_count": prev.review_count if prev else None,
                "prev_actions_count": prev.actions_count if prev else None,
                "delta_reviews": _delta(metric.review_count, prev.review_count) if prev else None,
                "delta_evidence": _delta(metric.evidence_count, prev.evidence_count) if prev else None,
                "delta_actions": _delta(metric.actions_count, prev.actions_count) if prev else None,
                "severity_change": (
                    SEVERITY_RANK[metric.severity] - SEVERITY_RANK[prev.severity] if prev else None
                ),
                "computed_version": settings.PIPELINE_VERSION,
                "computed_at": now,
            }
        )

    if rows:
        update_columns = tuple(
            key for key in rows[0] if key not in ("current_manifest_id", "topic_key")
        )
        upsert_rows(
            db,
            ThemeTrend,
            rows,
            conflict_columns=("current_manifest_id", "topic_key"),
            update_columns=update_columns,
        )
        db.commit()
    logger.info(
        "Computed %s QoQ trends for manifest %s (previous=%s)",
        len(rows),
        manifest_id,
        previous.id if previous is not None else None,
    )
    return len(rows)


def get_metrics(db: Session, manifest_id: int) -> List[ThemeMetric]:
    return list(
        db.execute(
            select(ThemeMetric)
            .where(ThemeMetric.manifest_id == manifest_id)
            .order_by(ThemeMetric.topic_key)
        ).scalars()
    )


def get_trends(db: Session, manifest_id: int) -> List[ThemeTrend]:
    return list(
        db.execute(
            select(ThemeTrend)
            .where(ThemeTrend.current_manifest_id == manifest_id)
            .order_by(ThemeTrend.topic_key)
        ).scalars()
    )
