# FILE: memoire/context/staleness.py
"""
Staleness detection.

compare() is the pure detector: it never raises and treats a missing stored
context as "not AI-generated, therefore not stale". The check_* functions
compute current digests from storage and build per-artifact reports.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from memoire.context.fingerprint import (
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
    StalenessResult,
)
from memoire.context.store import deserialize_context
from memoire.projects.service import load_generation_inputs, load_live_template
from memoire.versions.models import Artifact
from memoire.versions.service import VersionLifecycleManager

logger = logging.getLogger(__name__)


def compare(stored: Optional[GenerationContext], current: CurrentDigests) -> StalenessResult:
    """
    Compare a stored context with current digests.

    Only categories supplied in current (not None) are checked, in the fixed
    Category order. Equality of digests is the only criterion.
    """
    if stored is None:
        return StalenessResult(is_stale=False, changed_categories=[])

    changed: List[Category] = []
    for category in Category:
        now = current.hash_for(category)
        if now is None:
            continue
        if stored.hash_for(category) != now:
            changed.append(category)

    return StalenessResult(is_stale=bool(changed), changed_categories=changed)


# =============================================================================
# REPORTS
# =============================================================================

class ChangeEntry(BaseModel):
    category: Category
    label: str


class ArtifactStaleness(BaseModel):
    artifact_id: str
    question_id: Optional[str] = None
    is_stale: bool = False
    was_generated: bool = False
    generated_at: Optional[datetime] = None
    changes: List[ChangeEntry] = Field(default_factory=list)


class VersionStaleness(BaseModel):
    version_id: str
    artifacts: List[ArtifactStaleness] = Field(default_factory=list)
    stale_count: int = 0
    generated_count: int = 0


def _project_digests(db: Session, project_id: str) -> CurrentDigests:
    inputs = load_generation_inputs(db, project_id)
    return CurrentDigests(
        company_profile_hash=fingerprint_profile(inputs.profile),
        requirements_hash=fingerprint_requirements(inputs.requirements),
        reference_docs_hash=fingerprint_reference_docs(inputs.reference_docs),
    )


def _live_question_texts(db: Session, project_id: str) -> Dict[str, Optional[str]]:
    return {q.id: q.question for q in load_live_template(db, project_id)}


def _artifact_report(
    artifact: Artifact,
    project_digests: CurrentDigests,
    live_questions: Dict[str, Optional[str]],
) -> ArtifactStaleness:
    stored = deserialize_context(artifact.generation_context)
    if stored is None:
        return ArtifactStaleness(artifact_id=artifact.id, question_id=artifact.question_id)

    # Orphaned artifacts have no live question to compare against
    question_hash = None
    if artifact.question_id in live_questions:
        question_hash = fingerprint_question(live_questions[artifact.question_id])

    current = project_digests.model_copy(update={"question_hash": question_hash})
    result = compare(stored, current)

    return ArtifactStaleness(
        artifact_id=artifact.id,
        question_id=artifact.question_id,
        is_stale=result.is_stale,
        was_generated=True,
        generated_at=stored.generated_at,
        changes=[ChangeEntry(category=c, label=CHANGE_LABELS[c]) for c in result.changed_categories],
    )


def check_version_staleness(db: Session, version_id: str, user_id: str) -> VersionStaleness:
    """Staleness of every artifact in a version."""
    version = VersionLifecycleManager.get_version(db, version_id, user_id)
    digests = _project_digests(db, version.project_id)
    live = _live_question_texts(db, version.project_id)

    reports = [_artifact_report(a, digests, live) for a in version.artifacts]
    stale = sum(1 for r in reports if r.is_stale)
    generated = sum(1 for r in reports if r.was_generated)

    logger.info(f"[staleness] version={version_id} stale={stale}/{generated} generated")
    return VersionStaleness(
        version_id=version.id,
        artifacts=reports,
        stale_count=stale,
        generated_count=generated,
    )


def check_artifact_staleness(db: Session, artifact_id: str, user_id: str) -> ArtifactStaleness:
    artifact = VersionLifecycleManager.get_artifact(db, artifact_id, user_id)
    project_id = artifact.version.project_id
    return _artifact_report(artifact, _project_digests(db, project_id), _live_question_texts(db, project_id))
