from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from datetime import datetime

from reviewlens.db.base import Base


class Theme(Base):
    __tablename__ = "themes"

    id = Column(Integer, primary_key=True, index=True)
    manifest_id = Column(Integer, ForeignKey("manifests.id", ondelete="CASCADE"), nullable=False)
    product_id = Column(String, nullable=False, index=True)
    cluster_id = Column(String(32), nullable=False)
    topic_key = Column(String(32), nullable=False)
    prompt_version = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    summary = Column(Text, nullable=False)
    severity = Column(String(16), nullable=False)
    evidence_ids = Column(JSON, nullable=False, default=list)
    evidence_count = Column(Integer, nullable=False, default=0)
    review_count = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("manifest_id", "cluster_id", name="uq_theme_manifest_cluster"),
        Index("ix_themes_cluster_prompt", "cluster_id", "prompt_version"),
    )
