from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from reviewlens.core.config import settings
from reviewlens.schemas.theme import ThemeDraft
from reviewlens.services.periods import normalize_quarter

DebugStep = Literal["emb", "clu", "ev"]


class IngestRequest(BaseModel):
    business_unit_id: str = Field(alias="businessUnitId", min_length=1)
    quarter: str
    limit: int = Field(default_factory=lambda: settings.DEFAULT_INGEST_LIMIT, gt=0, strict=True)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("business_unit_id")
    @classmethod
    def _non_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("businessUnitId is required (non-empty string)")
        return value

    @field_validator("quarter")
    @classmethod
    def _valid_quarter(cls, value: str) -> str:
        return normalize_quarter(value)


class RunError(BaseModel):
    kind: str
    message: str
    cluster_id: Optional[str] = None


class IngestResult(BaseModel):
    ok: Literal[True] = True
    manifest_id: int
    business_unit_id: str
    quarter: str
    processed_count: int
    themes: List[ThemeDraft]
    errors: List[RunError] = Field(default_factory=list)


class AlreadyProcessed(BaseModel):
    ok: Literal[False] = False
    message: str = "already processed"
    manifest_id: int


class DebugResult(BaseModel):
    step: DebugStep
    data: Dict[str, Any]


class ErrorOut(BaseModel):
    ok: Literal[False] = False
    error: str
    message: str
    stack: Optional[str] = None
