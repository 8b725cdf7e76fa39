from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from reviewlens.api.dependencies import get_db
from reviewlens.models.manifest import Manifest
from reviewlens.schemas.insight import (
    ManifestOut,
    MetricOut,
    RecomputeRequest,
    RecomputeResult,
    TrendDelta,
    TrendOut,
    TrendSide,
)
from reviewlens.services import insights
from reviewlens.services.manifests import list_manifests

router = APIRouter(prefix="/insights", tags=["insights"])


def _require_manifest(db: Session, manifest_id: int) -> Manifest:
    manifest = db.get(Manifest, manifest_id)
    if manifest is None:
        raise HTTPException(status_code=404, detail="Manifest not found")
    return manifest


@router.get("/manifests", response_model=List[ManifestOut])
def get_manifests(
    business_unit_id: Optional[str] = None,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    return list_manifests(db, business_unit_id=business_unit_id, limit=max(1, min(limit, 200)))


@router.get("/metrics", response_model=List[MetricOut])
def get_metrics(manifest_id: int, db: Session = Depends(get_db)):
    _require_manifest(db, manifest_id)
    return insights.get_metrics(db, manifest_id)


@router.get("/trends", response_model=List[TrendOut])
def get_trends(manifest_id: int, db: Session = Depends(get_db)):
    _require_manifest(db, manifest_id)
    out = []
    for row in insights.get_trends(db, manifest_id):
        current = TrendSide(
            name=row.current_name,
            severity=row.current_severity,
            evidence_count=row.current_evidence_count,
            review_count=row.current_review_count,
            actions_count=row.current_actions_count,
        )
        prev = deltas = None
        if row.prev_name is not None:
            prev = TrendSide(
                name=row.prev_name,
                severity=row.prev_severity,
                evidence_count=row.prev_evidence_count or 0,
                review_count=row.prev_review_count or 0,
                actions_count=row.prev_actions_count or 0,
            )
            deltas = TrendDelta(
                reviews=row.delta_reviews or 0,
                evidence=row.delta_evidence or 0,
                actions=row.delta_actions or 0,
                severity_change=row.severity_change or 0,
            )
        out.append(TrendOut(topic_key=row.topic_key, current=current, prev=prev, deltas=deltas))
    return out


@router.post("/recompute", response_model=RecomputeResult)
def recompute(payload: RecomputeRequest, db: Session = Depends(get_db)):
    _require_manifest(db, payload.manifest_id)
    metrics = insights.compute_theme_metrics(db, payload.manifest_id)
    trends = insights.compute_trends_qoq(db, payload.manifest_id)
    return RecomputeResult(manifest_id=payload.manifest_id, metrics=metrics, trends=trends)
