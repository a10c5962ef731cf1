# FILE: memoire/generation/schemas.py
"""Request, plan and result models for batch generation."""
from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

ResponseLength = Literal["short", "standard", "detailed"]


class BatchGenerationRequest(BaseModel):
    """Generate answers for a group of questions of one version."""
    version_id: str
    question_ids: List[str] = Field(default_factory=list)
    group_title: Optional[str] = Field(None, description="Chapter the questions belong to, used in planning")
    response_length: ResponseLength = "standard"

    @field_validator("question_ids")
    @classmethod
    def dedupe_question_ids(cls, v: List[str]) -> List[str]:
        # Keep first occurrence, request order is the output order
        seen = set()
        out = []
        for qid in v:
            if qid not in seen:
                seen.add(qid)
                out.append(qid)
        return out


class SingleGenerationRequest(BaseModel):
    version_id: str
    question_id: str
    response_length: ResponseLength = "standard"
    instructions: Optional[str] = Field(None, description="Extra guidance from the user")


class SectionPlan(BaseModel):
    """Planning output for one question."""
    focus_points: List[str] = Field(default_factory=list)
    avoid_topics: List[str] = Field(default_factory=list)
    suggested_length: Optional[ResponseLength] = None

    @field_validator("suggested_length", mode="before")
    @classmethod
    def drop_unknown_length(cls, v):
        return v if v in ("short", "standard", "detailed") else None


class GenerationItemResult(BaseModel):
    question_id: str
    artifact_id: Optional[str] = None
    text: Optional[str] = None
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None


class BatchResult(BaseModel):
    results: List[GenerationItemResult] = Field(default_factory=list)
    plan_summary: str = ""
    plan: Dict[str, SectionPlan] = Field(default_factory=dict)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)
