# FILE: memoire/sync/analyzer.py
"""
Template synchronisation analysis.

Compares the artifacts of a version against the live template and reports
what a clone would change. Pure read: no writes, never raises.

Matching is by stable question id. Artifacts created before question ids
existed are matched on their normalized title as a fallback and reported
separately so callers can surface the weaker match. match_to_template() is
shared with the clone in memoire.versions.service, so an artifact reported
as matched here is exactly one a clone carries over.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, Field, computed_field

from memoire.projects.schemas import QuestionDescriptor
from memoire.versions.models import Artifact, Version

logger = logging.getLogger(__name__)


class SyncStatus(BaseModel):
    """
    Drift of a version from the live template.

    Orphans are dropped by the next clone, missing questions get an empty
    artifact, title-matched artifacts are carried over like id matches.
    """
    template_question_count: int = 0
    version_artifact_count: int = 0
    orphan_artifact_count: int = 0
    orphan_artifact_ids: List[str] = Field(default_factory=list)
    missing_question_ids: List[str] = Field(default_factory=list)
    renumbered_question_ids: List[str] = Field(default_factory=list)
    title_matched_artifact_ids: List[str] = Field(default_factory=list)

    @computed_field
    @property
    def is_in_sync(self) -> bool:
        return not (self.orphan_artifact_ids or self.missing_question_ids or self.renumbered_question_ids)


@dataclass
class TemplateMatch:
    # question id -> artifact, in artifact order
    matched: Dict[str, Artifact] = field(default_factory=dict)
    orphans: List[Artifact] = field(default_factory=list)
    title_matched: List[Artifact] = field(default_factory=list)


def _normalize_title(title: Optional[str]) -> str:
    return (title or "").strip().lower()


def match_to_template(
    artifacts: Sequence[Artifact], live_template_questions: Sequence[QuestionDescriptor]
) -> TemplateMatch:
    """Pair artifacts with live questions; each question takes at most one artifact."""
    questions_by_id = {q.id: q for q in live_template_questions}
    questions_by_title: Dict[str, QuestionDescriptor] = {}
    for q in live_template_questions:
        questions_by_title.setdefault(_normalize_title(q.title), q)

    result = TemplateMatch()
    for artifact in artifacts:
        by_title = False
        if artifact.question_id:
            question = questions_by_id.get(artifact.question_id)
        else:
            question = questions_by_title.get(_normalize_title(artifact.title))
            by_title = question is not None

        if question is None or question.id in result.matched:
            result.orphans.append(artifact)
            continue

        result.matched[question.id] = artifact
        if by_title:
            result.title_matched.append(artifact)
    return result


def analyze(version: Version, live_template_questions: Sequence[QuestionDescriptor]) -> SyncStatus:
    """Diff a version's artifacts against the live template."""
    artifacts = list(version.artifacts)
    match = match_to_template(artifacts, live_template_questions)

    order_by_id = {q.id: q.order_index for q in live_template_questions}
    renumbered = [
        qid for qid, artifact in match.matched.items() if artifact.order_index != order_by_id[qid]
    ]

    if match.title_matched:
        logger.warning(
            f"[sync] version={version.id} matched {len(match.title_matched)} artifact(s) by title, "
            f"no question id stored"
        )

    return SyncStatus(
        template_question_count=len(live_template_questions),
        version_artifact_count=len(artifacts),
        orphan_artifact_count=len(match.orphans),
        orphan_artifact_ids=[a.id for a in match.orphans],
        missing_question_ids=[q.id for q in live_template_questions if q.id not in match.matched],
        renumbered_question_ids=renumbered,
        title_matched_artifact_ids=[a.id for a in match.title_matched],
    )
