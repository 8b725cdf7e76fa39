from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Severity = Literal["low", "medium", "high"]


class ThemeLabel(BaseModel):
    name: str = Field(min_length=2, max_length=80)
    summary: str = Field(min_length=5, max_length=400)
    severity: Severity


class ThemeDraft(BaseModel):
    cluster_id: str
    topic_key: str
    evidence_ids: List[str]
    name: str
    summary: str
    severity: Severity
    theme_id: Optional[int] = None


class ThemeOut(BaseModel):
    id: int
    manifest_id: int
    product_id: str
    cluster_id: str
    topic_key: str
    name: str
    summary: str
    severity: Severity
    evidence_count: int
    review_count: int

    model_config = ConfigDict(from_attributes=True)
