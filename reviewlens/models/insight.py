from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from datetime import datetime

from reviewlens.db.base import Base


class ThemeMetric(Base):
    __tablename__ = "theme_metrics"

    id = Column(Integer, primary_key=True)
    manifest_id = Column(Integer, ForeignKey("manifests.id", ondelete="CASCADE"), nullable=False)
    topic_key = Column(String(32), nullable=False)
    cluster_id = Column(String(32), nullable=False)
    name = Column(String, nullable=False)
    severity = Column(String(16), nullable=False)
    evidence_count = Column(Integer, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    actions_count = Column(Integer, nullable=False, default=0)
    computed_version = Column(String(32), nullable=False)
    computed_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("manifest_id", "topic_key", name="uq_metric_manifest_topic"),
    )


class ThemeTrend(Base):
    """Quarter-over-quarter comparison of one topic between two manifests."""

    __tablename__ = "theme_trends_qoq"

    id = Column(Integer, primary_key=True)
    current_manifest_id = Column(
        Integer, ForeignKey("manifests.id", ondelete="CASCADE"), nullable=False
    )
    prev_manifest_id = Column(Integer, ForeignKey("manifests.id", ondelete="SET NULL"))
    business_unit_id = Column(String, nullable=False, index=True)
    topic_key = Column(String(32), nullable=False)

    current_name = Column(String, nullable=False)
    current_severity = Column(String(16), nullable=False)
    current_evidence_count = Column(Integer, nullable=False, default=0)
    current_review_count = Column(Integer, nullable=False, default=0)
    current_actions_count = Column(Integer, nullable=False, default=0)

    prev_name = Column(String)
    prev_severity = Column(String(16))
    prev_evidence_count = Column(Integer)
    prev_review_count = Column(Integer)
    prev_actions_count = Column(Integer)

    delta_reviews = Column(Integer)
    delta_evidence = Column(Integer)
    delta_actions = Column(Integer)
    severity_change = Column(Integer)

    computed_version = Column(String(32), nullable=False)
    computed_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("current_manifest_id", "topic_key", name="uq_trend_manifest_topic"),
    )
