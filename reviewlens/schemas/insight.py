from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ManifestOut(BaseModel):
    id: int
    business_unit_id: str
    period: str
    start_date: str
    end_date: str
    pipeline_version: str
    status: str
    processed_count: Optional[int] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MetricOut(BaseModel):
    topic_key: str
    cluster_id: str
    name: str
    severity: str
    evidence_count: int
    review_count: int
    actions_count: int

    model_config = ConfigDict(from_attributes=True)


class TrendSide(BaseModel):
    name: str
    severity: str
    evidence_count: int
    review_count: int
    actions_count: int


class TrendDelta(BaseModel):
    reviews: int
    evidence: int
    actions: int
    severity_change: int


class TrendOut(BaseModel):
    topic_key: str
    current: TrendSide
    prev: Optional[TrendSide] = None
    deltas: Optional[TrendDelta] = None


class RecomputeRequest(BaseModel):
    manifest_id: int


class RecomputeResult(BaseModel):
    manifest_id: int
    metrics: int
    trends: int
