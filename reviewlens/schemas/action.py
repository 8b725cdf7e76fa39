from typing import List, Literal

from pydantic import BaseModel, Field, field_validator


class ActionItem(BaseModel):
    kind: Literal["product", "gtm"]
    description: str = Field(min_length=1)
    impact: int = Field(ge=1, le=5, strict=True)
    effort: int = Field(ge=1, le=5, strict=True)
    evidence: List[str] = Field(min_length=1)

    @field_validator("description")
    @classmethod
    def _strip_description(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("description must not be blank")
        return value


class SynthesisPayload(BaseModel):
    root_causes: List[str] = Field(min_length=1, max_length=6)
    actions: List[ActionItem] = Field(min_length=3, max_length=5)


class SynthesisResult(BaseModel):
    theme_id: int
    cached: bool
    inserted: int
    skipped: int
    payload: SynthesisPayload


class SynthesizeRequest(BaseModel):
    theme_id: int
