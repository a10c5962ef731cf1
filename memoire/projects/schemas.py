# FILE: memoire/projects/schemas.py
"""Plain value objects handed from storage to the engine."""
from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field


class QuestionDescriptor(BaseModel):
    """One question of the live template, detached from the session."""
    id: str
    title: str
    question: Optional[str] = None
    required: bool = False
    order_index: int = 0
    parent_id: Optional[str] = None


class RequirementInput(BaseModel):
    id: str
    title: Optional[str] = None
    content: Optional[str] = None


class ReferenceDocInput(BaseModel):
    id: str
    name: str = ""
    extracted_text: Optional[str] = None


class GenerationInputs(BaseModel):
    """
    Everything a generation run reads besides the question itself.

    profile is None when the project has no company profile row at all.
    """
    project_id: str
    profile: Optional[Dict[str, Optional[str]]] = None
    requirements: List[RequirementInput] = Field(default_factory=list)
    reference_docs: List[ReferenceDocInput] = Field(default_factory=list)

    def has_source_material(self) -> bool:
        """True when at least one input category carries usable content."""
        if self.profile and any((v or "").strip() for v in self.profile.values()):
            return True
        if any((r.content or r.title or "").strip() for r in self.requirements):
            return True
        return any((d.extracted_text or "").strip() for d in self.reference_docs)
