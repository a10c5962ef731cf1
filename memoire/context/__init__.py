# FILE: memoire/context/__init__.py
"""Generation context: fingerprints, storage and staleness detection."""

from memoire.context.fingerprint import (
    build_generation_context,
    fingerprint_profile,
    fingerprint_question,
    fingerprint_reference_docs,
    fingerprint_requirements,
)
from memoire.context.schemas import (
    CHANGE_LABELS,
    Category,
    CurrentDigests,
    GenerationContext,
    SourceCounts,
    StalenessResult,
)

__all__ = [
    "build_generation_context",
    "fingerprint_profile",
    "fingerprint_question",
    "fingerprint_reference_docs",
    "fingerprint_requirements",
    "CHANGE_LABELS",
    "Category",
    "CurrentDigests",
    "GenerationContext",
    "SourceCounts",
    "StalenessResult",
]
