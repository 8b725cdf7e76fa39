from sqlalchemy import Column, DateTime, Integer, String, Text, UniqueConstraint
from datetime import datetime

from reviewlens.db.base import Base


class Manifest(Base):
    __tablename__ = "manifests"

    id = Column(Integer, primary_key=True, index=True)
    business_unit_id = Column(String, nullable=False, index=True)
    period = Column(String(16), nullable=False)
    start_date = Column(String(10), nullable=False)
    end_date = Column(String(10), nullable=False)
    pipeline_version = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="running")
    error = Column(Text)
    processed_count = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)
    completed_at = Column(DateTime)

    __table_args__ = (
        UniqueConstraint("business_unit_id", "period", name="uq_manifest_unit_period"),
    )
