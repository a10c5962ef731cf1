# FILE: memoire/context/store.py
"""Persist and read the generation context attached to an artifact."""

import logging
from typing import Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from memoire.context.schemas import GenerationContext
from memoire.errors import NotFoundError
from memoire.versions.models import Artifact
from memoire.versions.service import VersionLifecycleManager

logger = logging.getLogger(__name__)


def serialize_context(context: GenerationContext) -> dict:
    return context.model_dump(mode="json")


def deserialize_context(raw: Optional[dict]) -> Optional[GenerationContext]:
    """Parse a stored context. Unreadable payloads are treated as absent."""
    if not raw:
        return None
    try:
        return GenerationContext.model_validate(raw)
    except PydanticValidationError as e:
        logger.warning(f"[context] Ignoring unreadable generation context: {e}")
        return None


def apply_context(artifact: Artifact, context: GenerationContext) -> None:
    """
    Set context fields on an artifact without committing.

    Callers must have checked the owning version with assert_mutable.
    """
    artifact.generation_context = serialize_context(context)
    artifact.generated_at = context.generated_at


def attach(db: Session, artifact_id: str, context: GenerationContext) -> Artifact:
    """
    Replace the stored context of an artifact.

    Raises:
        NotFoundError: unknown artifact
        FrozenVersionError: artifact belongs to a frozen version
    """
    artifact = db.query(Artifact).filter(Artifact.id == artifact_id).first()
    if artifact is None:
        raise NotFoundError("Artifact", artifact_id)

    VersionLifecycleManager.assert_mutable(artifact.version)
    apply_context(artifact, context)
    db.add(artifact)
    db.commit()
    db.refresh(artifact)
    return artifact


def read(db: Session, artifact_id: str) -> Optional[GenerationContext]:
    """Stored context, or None when the artifact was never AI-generated."""
    artifact = db.query(Artifact).filter(Artifact.id == artifact_id).first()
    if artifact is None:
        raise NotFoundError("Artifact", artifact_id)
    return deserialize_context(artifact.generation_context)
