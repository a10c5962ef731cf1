# FILE: memoire/context/schemas.py
"""
Generation context value objects.

A GenerationContext is the fingerprint of every input category at the
instant an artifact was generated. It is attached once and never edited;
regenerating an artifact attaches a new one.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Category(str, Enum):
    """The four input categories an artifact depends on."""
    COMPANY_PROFILE = "company_profile"
    REQUIREMENTS = "requirements"
    REFERENCE_DOCS = "reference_docs"
    QUESTION = "question"


# Human-readable labels shown next to a stale artifact
CHANGE_LABELS: Dict[Category, str] = {
    Category.COMPANY_PROFILE: "Company profile changed",
    Category.REQUIREMENTS: "Requirements changed",
    Category.REFERENCE_DOCS: "Reference documents changed",
    Category.QUESTION: "Question changed",
}


class SourceCounts(BaseModel):
    """Diagnostic only, never compared."""
    model_config = ConfigDict(frozen=True)

    requirements: int = 0
    reference_docs: int = 0


class GenerationContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    company_profile_hash: str = ""
    requirements_hash: str = ""
    reference_docs_hash: str = ""
    question_hash: str = ""
    generated_at: datetime
    source_counts: SourceCounts = Field(default_factory=SourceCounts)

    def hash_for(self, category: Category) -> str:
        return getattr(self, f"{category.value}_hash")


class CurrentDigests(BaseModel):
    """
    Digests of the inputs as they are now.

    A field left as None means "not supplied" and the category is skipped
    during comparison. An empty string means the input was supplied and is
    empty, which is compared like any other digest.
    """
    company_profile_hash: Optional[str] = None
    requirements_hash: Optional[str] = None
    reference_docs_hash: Optional[str] = None
    question_hash: Optional[str] = None

    def hash_for(self, category: Category) -> Optional[str]:
        return getattr(self, f"{category.value}_hash")


class StalenessResult(BaseModel):
    is_stale: bool = False
    changed_categories: List[Category] = Field(default_factory=list)

    @property
    def labels(self) -> List[str]:
        return [CHANGE_LABELS[c] for c in self.changed_categories]
