# FILE: memoire/versions/service.py
"""
Version lifecycle for memoires.

Manages answer-set versions with:
- Initial creation from the live template (one empty artifact per question)
- Freezing (one-way, idempotent)
- Clone-as-next-version reconciled against the live template
- Mutation guard used by every artifact write
- Lineage history and side-by-side comparison

Clone protocol:
1. Freeze the source and commit (a frozen source stays frozen even if the
   rest fails).
2. Build the new version and all of its artifacts, then commit once. On
   failure the transaction is rolled back so no half-populated version is
   ever visible.

Version numbers are max(existing numbers in the project) + 1. For the usual
linear history that equals source + 1; it also keeps numbers unique when
an older version is cloned a second time.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from memoire.errors import FrozenVersionError, NotFoundError, UnauthorizedError, ValidationError
from memoire.projects.schemas import QuestionDescriptor
from memoire.sync.analyzer import match_to_template
from memoire.versions.models import ARTIFACT_STATUSES, Artifact, Version

logger = logging.getLogger(__name__)

_UNSET = object()


class VersionLifecycleManager:
    """Stateless service, every method takes the session explicitly."""

    # -------------------------------------------------------------------------
    # Guards and lookups
    # -------------------------------------------------------------------------

    @staticmethod
    def assert_mutable(version: Version) -> None:
        """Raise FrozenVersionError if the version no longer accepts writes."""
        if version.is_frozen:
            raise FrozenVersionError(version.id)

    @staticmethod
    def get_version(db: Session, version_id: str, user_id: str) -> Version:
        version = db.query(Version).filter(Version.id == version_id).first()
        if not version:
            raise NotFoundError("Version", version_id)
        if version.user_id != user_id:
            raise UnauthorizedError("You do not have access to this version")
        return version

    @staticmethod
    def get_artifact(db: Session, artifact_id: str, user_id: str) -> Artifact:
        artifact = db.query(Artifact).filter(Artifact.id == artifact_id).first()
        if not artifact:
            raise NotFoundError("Artifact", artifact_id)
        if artifact.version.user_id != user_id:
            raise UnauthorizedError("You do not have access to this artifact")
        return artifact

    @staticmethod
    def _next_number(db: Session, project_id: str, floor: int = 0) -> int:
        current_max = (
            db.query(func.max(Version.version_number))
            .filter(Version.project_id == project_id)
            .scalar()
        )
        return max(current_max or 0, floor) + 1

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @staticmethod
    def create_initial(
        db: Session,
        project_id: str,
        user_id: str,
        template_questions: Sequence[QuestionDescriptor],
        title: str = "Memoire",
    ) -> Version:
        """
        Create a fresh, unfrozen version with one empty artifact per question.

        Normally version 1; if the project already has versions the next free
        number is used.
        """
        version = Version(
            id=str(uuid4()),
            project_id=project_id,
            user_id=user_id,
            title=title,
            version_number=VersionLifecycleManager._next_number(db, project_id),
            is_frozen=False,
        )
        for question in template_questions:
            version.artifacts.append(_empty_artifact(question))

        try:
            db.add(version)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"[versions] Failed to create initial version for project {project_id}")
            raise
        db.refresh(version)

        logger.info(
            f"[versions] Created v{version.version_number} id={version.id} "
            f"project={project_id} artifacts={len(version.artifacts)}"
        )
        return version

    @staticmethod
    def freeze(db: Session, version: Version) -> Version:
        """Mark a version immutable. Freezing a frozen version is a no-op."""
        if version.is_frozen:
            return version
        version.is_frozen = True
        db.add(version)
        db.commit()
        db.refresh(version)
        logger.info(f"[versions] Frozen v{version.version_number} id={version.id}")
        return version

    @staticmethod
    def clone_as_next_version(
        db: Session,
        source: Version,
        live_template_questions: Sequence[QuestionDescriptor],
    ) -> Version:
        """
        Freeze source and create its successor reconciled with the template.

        For each live question the matching source artifact (by question id,
        or by title for legacy artifacts without one) is copied verbatim: text, status and generation context. Questions
        without a source artifact get an empty one. Source artifacts whose
        question left the template are not carried over.
        """
        VersionLifecycleManager.freeze(db, source)

        match = match_to_template(source.artifacts, live_template_questions)
        by_question: Dict[str, Artifact] = match.matched

        new_version = Version(
            id=str(uuid4()),
            project_id=source.project_id,
            user_id=source.user_id,
            title=source.title,
            version_number=VersionLifecycleManager._next_number(
                db, source.project_id, floor=source.version_number
            ),
            is_frozen=False,
            parent_version_id=source.id,
        )

        copied = 0
        for question in live_template_questions:
            previous = by_question.get(question.id)
            if previous is None:
                new_version.artifacts.append(_empty_artifact(question))
                continue
            new_version.artifacts.append(
                Artifact(
                    id=str(uuid4()),
                    question_id=question.id,
                    parent_question_id=question.parent_id,
                    title=question.title,
                    question=question.question,
                    order_index=question.order_index,
                    text=previous.text,
                    status=previous.status,
                    generation_context=previous.generation_context,
                    generated_at=previous.generated_at,
                )
            )
            copied += 1

        try:
            db.add(new_version)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            logger.exception(f"[versions] Clone of {source.id} failed, rolled back")
            raise
        db.refresh(new_version)

        dropped = len(match.orphans)
        logger.info(
            f"[versions] Cloned v{source.version_number} -> v{new_version.version_number} "
            f"id={new_version.id} copied={copied} "
            f"new={len(new_version.artifacts) - copied} dropped={dropped}"
        )
        return new_version

    @staticmethod
    def update_artifact(
        db: Session,
        artifact: Artifact,
        text=_UNSET,
        status: Optional[str] = None,
    ) -> Artifact:
        """Manual edit of an artifact. Generation context is left untouched."""
        if status is not None and status not in ARTIFACT_STATUSES:
            raise ValidationError(
                f"Invalid status {status!r}, expected one of {', '.join(ARTIFACT_STATUSES)}"
            )
        VersionLifecycleManager.assert_mutable(artifact.version)

        if text is not _UNSET:
            artifact.text = text
        if status is not None:
            artifact.status = status
        artifact.updated_at = datetime.utcnow()

        db.add(artifact)
        db.commit()
        db.refresh(artifact)
        return artifact

    # -------------------------------------------------------------------------
    # History and comparison
    # -------------------------------------------------------------------------

    @staticmethod
    def get_version_history(db: Session, version_id: str, user_id: str) -> List[Version]:
        """
        Every version of the lineage the given version belongs to, oldest first.

        Walks parents up to the root, then collects all descendants of the root
        (redundant clones included).
        """
        version = VersionLifecycleManager.get_version(db, version_id, user_id)

        root = version
        seen = {root.id}
        while root.parent_version_id:
            parent = db.query(Version).filter(Version.id == root.parent_version_id).first()
            if parent is None or parent.id in seen:
                break
            seen.add(parent.id)
            root = parent

        lineage = [root]
        frontier = [root.id]
        visited = {root.id}
        while frontier:
            children = (
                db.query(Version)
                .filter(Version.parent_version_id.in_(frontier))
                .all()
            )
            frontier = []
            for child in children:
                if child.id in visited:
                    continue
                visited.add(child.id)
                lineage.append(child)
                frontier.append(child.id)

        return sorted(lineage, key=lambda v: v.version_number)

    @staticmethod
    def compare_versions(db: Session, version_id_a: str, version_id_b: str, user_id: str) -> dict:
        """
        Question-by-question comparison of two versions.

        Artifacts are paired by question id (by order_index when an artifact
        has no question id). Texts are compared after trimming.
        """
        version_a = VersionLifecycleManager.get_version(db, version_id_a, user_id)
        version_b = VersionLifecycleManager.get_version(db, version_id_b, user_id)

        def key(artifact: Artifact) -> str:
            return artifact.question_id or f"order:{artifact.order_index}"

        map_a = {key(a): a for a in version_a.artifacts}
        map_b = {key(a): a for a in version_b.artifacts}

        ordered_keys: List[str] = []
        for artifact in list(version_b.artifacts) + list(version_a.artifacts):
            k = key(artifact)
            if k not in ordered_keys:
                ordered_keys.append(k)

        entries = []
        for k in ordered_keys:
            left = map_a.get(k)
            right = map_b.get(k)
            if left is None:
                state = "added"
            elif right is None:
                state = "removed"
            elif (left.text or "").strip() != (right.text or "").strip():
                state = "modified"
            else:
                state = "unchanged"

            reference = right or left
            entries.append({
                "question_id": reference.question_id,
                "title": reference.title,
                "order_index": reference.order_index,
                "status": state,
                "a": _side(left),
                "b": _side(right),
            })

        return {
            "version_a": _summary(version_a),
            "version_b": _summary(version_b),
            "artifacts": entries,
            "modified_count": sum(1 for e in entries if e["status"] == "modified"),
        }


def _empty_artifact(question: QuestionDescriptor) -> Artifact:
    return Artifact(
        id=str(uuid4()),
        question_id=question.id,
        parent_question_id=question.parent_id,
        title=question.title,
        question=question.question,
        order_index=question.order_index,
        text=None,
        status="empty",
    )


def _side(artifact: Optional[Artifact]) -> Optional[dict]:
    if artifact is None:
        return None
    return {"artifact_id": artifact.id, "text": artifact.text or "", "status": artifact.status}


def _summary(version: Version) -> dict:
    return {
        "id": version.id,
        "version_number": version.version_number,
        "title": version.title,
        "is_frozen": version.is_frozen,
    }
