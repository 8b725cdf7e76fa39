"""One manifest per ``(business_unit_id, period)``; its existence gates re-ingestion."""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.models.manifest import Manifest
from reviewlens.services.periods import normalize_quarter, quarter_range

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def find_manifest(db: Session, business_unit_id: str, period: str) -> Optional[Manifest]:
    return db.execute(
        select(Manifest).where(
            Manifest.business_unit_id == business_unit_id,
            Manifest.period == normalize_quarter(period),
        )
    ).scalars().first()


def create_manifest(db: Session, business_unit_id: str, period: str) -> Optional[Manifest]:
    """Insert a running manifest, or return ``None`` if another run got there first."""

    quarter = normalize_quarter(period)
    start, end = quarter_range(quarter)
    manifest = Manifest(
        business_unit_id=business_unit_id,
        period=quarter,
        start_date=start.isoformat(),
        end_date=end.isoformat(),
        pipeline_version=settings.PIPELINE_VERSION,
        status=STATUS_RUNNING,
    )
    db.add(manifest)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Manifest for %s %s created concurrently", business_unit_id, quarter)
        return None
    db.refresh(manifest)
    logger.info("Created manifest %s for %s %s", manifest.id, business_unit_id, quarter)
    return manifest


def complete_manifest(db: Session, manifest: Manifest, processed_count: int) -> Manifest:
    manifest.status = STATUS_COMPLETED
    manifest.processed_count = processed_count
    manifest.completed_at = datetime.utcnow()
    manifest.error = None
    db.commit()
    db.refresh(manifest)
    return manifest


def reopen_manifest(db: Session, manifest: Manifest) -> bool:
    """Flip a failed manifest back to running. ``False`` if another run reopened it first."""

    result = db.execute(
        update(Manifest)
        .where(Manifest.id == manifest.id, Manifest.status == STATUS_FAILED)
        .values(status=STATUS_RUNNING, error=None, completed_at=None)
    )
    db.commit()
    db.refresh(manifest)
    if result.rowcount != 1:
        return False
    logger.info("Reopened failed manifest %s", manifest.id)
    return True


def fail_manifest(db: Session, manifest: Manifest, error: BaseException) -> Manifest:
    db.rollback()
    manifest.status = STATUS_FAILED
    manifest.error = f"{error.__class__.__name__}: {error}"
    manifest.completed_at = datetime.utcnow()
    db.commit()
    db.refresh(manifest)
    return manifest


def list_manifests(
    db: Session, business_unit_id: Optional[str] = None, limit: int = 50
) -> List[Manifest]:
    stmt = select(Manifest).order_by(Manifest.created_at.desc(), Manifest.id.desc()).limit(limit)
    if business_unit_id:
        stmt = stmt.where(Manifest.business_unit_id == business_unit_id)
    return list(db.execute(stmt).scalars())
