# FILE: memoire/versions/router.py
"""
Versions Router - HTTP API Endpoints

- POST  /versions                          - Create the first version from the live template
- GET   /versions/compare                  - Compare two versions question by question
- GET   /versions/{version_id}             - Read a version with its artifacts
- POST  /versions/{version_id}/clone       - Freeze and clone as next version
- GET   /versions/{version_id}/history     - Lineage, oldest first
- GET   /versions/{version_id}/sync        - Template sync status
- GET   /versions/{version_id}/staleness   - Staleness of every artifact
- GET   /versions/artifacts/{artifact_id}/staleness
- PATCH /versions/artifacts/{artifact_id}  - Manual edit
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from memoire.auth import require_user
from memoire.context.staleness import (
    ArtifactStaleness,
    VersionStaleness,
    check_artifact_staleness,
    check_version_staleness,
)
from memoire.db import get_db
from memoire.errors import MemoireError, to_http_exception
from memoire.projects.service import get_owned_project, load_live_template
from memoire.sync.analyzer import SyncStatus, analyze
from memoire.versions.models import Artifact, Version
from memoire.versions.service import VersionLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter()


# =============================================================================
# REQUEST/RESPONSE MODELS
# =============================================================================

class CreateVersionRequest(BaseModel):
    project_id: str
    title: str = Field("Memoire", min_length=1, max_length=255)


class UpdateArtifactRequest(BaseModel):
    """Fields left out of the body are not touched."""
    text: Optional[str] = None
    status: Optional[str] = Field(None, description="empty, draft or final")


class ArtifactResponse(BaseModel):
    artifact_id: str
    question_id: Optional[str] = None
    parent_question_id: Optional[str] = None
    title: str
    question: Optional[str] = None
    order_index: int
    text: Optional[str] = None
    status: str
    generated_at: Optional[datetime] = None
    has_generation_context: bool = False


class VersionResponse(BaseModel):
    version_id: str
    project_id: str
    title: str
    version_number: int
    is_frozen: bool
    parent_version_id: Optional[str] = None
    created_at: datetime
    artifacts: List[ArtifactResponse] = []


class VersionSummary(BaseModel):
    version_id: str
    version_number: int
    title: str
    is_frozen: bool
    parent_version_id: Optional[str] = None
    artifact_count: int
    created_at: datetime


class HistoryResponse(BaseModel):
    versions: List[VersionSummary]


def _artifact_response(a: Artifact) -> ArtifactResponse:
    return ArtifactResponse(
        artifact_id=a.id,
        question_id=a.question_id,
        parent_question_id=a.parent_question_id,
        title=a.title,
        question=a.question,
        order_index=a.order_index,
        text=a.text,
        status=a.status,
        generated_at=a.generated_at,
        has_generation_context=a.generation_context is not None,
    )


def _version_response(v: Version) -> VersionResponse:
    return VersionResponse(
        version_id=v.id,
        project_id=v.project_id,
        title=v.title,
        version_number=v.version_number,
        is_frozen=v.is_frozen,
        parent_version_id=v.parent_version_id,
        created_at=v.created_at,
        artifacts=[_artifact_response(a) for a in v.artifacts],
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("", response_model=VersionResponse, status_code=201)
async def create_version(
    request: CreateVersionRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    """Create a version with one empty artifact per live template question."""
    try:
        get_owned_project(db, request.project_id, user_id)
        questions = load_live_template(db, request.project_id)
        version = VersionLifecycleManager.create_initial(
            db, request.project_id, user_id, questions, title=request.title
        )
    except MemoireError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[versions] Error creating version")
        raise HTTPException(status_code=500, detail=f"Internal error: {e}")

    return _version_response(version)


@router.get("/compare")
async def compare_versions(
    a: str = Query(..., description="First version id"),
    b: str = Query(..., description="Second version id"),
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    """
    Compare two versions.

    Each entry has status modified, unchanged, added (only in b) or
    removed (only in a).
    """
    try:
        return VersionLifecycleManager.compare_versions(db, a, b, user_id)
    except MemoireError as e:
        raise to_http_exception(e)


@router.get("/{version_id}", response_model=VersionResponse)
async def get_version(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    try:
        version = VersionLifecycleManager.get_version(db, version_id, user_id)
    except MemoireError as e:
        raise to_http_exception(e)
    return _version_response(version)


@router.post("/{version_id}/clone", response_model=VersionResponse, status_code=201)
async def clone_version(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    """
    Freeze the version and create its successor against the live template.

    Answers are carried over for questions still in the template; removed
    questions are dropped and new ones start empty.
    """
    try:
        source = VersionLifecycleManager.get_version(db, version_id, user_id)
        questions = load_live_template(db, source.project_id)
        new_version = VersionLifecycleManager.clone_as_next_version(db, source, questions)
    except MemoireError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception(f"[versions] Error cloning version {version_id}")
        raise HTTPException(status_code=500, detail=f"Internal error: {e}")

    return _version_response(new_version)


@router.get("/{version_id}/history", response_model=HistoryResponse)
async def version_history(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    try:
        versions = VersionLifecycleManager.get_version_history(db, version_id, user_id)
    except MemoireError as e:
        raise to_http_exception(e)

    return HistoryResponse(
        versions=[
            VersionSummary(
                version_id=v.id,
                version_number=v.version_number,
                title=v.title,
                is_frozen=v.is_frozen,
                parent_version_id=v.parent_version_id,
                artifact_count=len(v.artifacts),
                created_at=v.created_at,
            )
            for v in versions
        ]
    )


@router.get("/{version_id}/sync", response_model=SyncStatus)
async def version_sync(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    """How far the version has drifted from the live template."""
    try:
        version = VersionLifecycleManager.get_version(db, version_id, user_id)
    except MemoireError as e:
        raise to_http_exception(e)
    return analyze(version, load_live_template(db, version.project_id))


@router.get("/{version_id}/staleness", response_model=VersionStaleness)
async def version_staleness(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    try:
        return check_version_staleness(db, version_id, user_id)
    except MemoireError as e:
        raise to_http_exception(e)


@router.get("/artifacts/{artifact_id}/staleness", response_model=ArtifactStaleness)
async def artifact_staleness(
    artifact_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    try:
        return check_artifact_staleness(db, artifact_id, user_id)
    except MemoireError as e:
        raise to_http_exception(e)


@router.patch("/artifacts/{artifact_id}", response_model=ArtifactResponse)
async def update_artifact(
    artifact_id: str,
    request: UpdateArtifactRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    """Manual edit. Rejected with 409 when the version is frozen."""
    changes = request.model_dump(exclude_unset=True)
    try:
        artifact = VersionLifecycleManager.get_artifact(db, artifact_id, user_id)
        if "text" in changes:
            artifact = VersionLifecycleManager.update_artifact(
                db, artifact, text=changes["text"], status=changes.get("status")
            )
        else:
            artifact = VersionLifecycleManager.update_artifact(db, artifact, status=changes.get("status"))
    except MemoireError as e:
        raise to_http_exception(e)

    logger.info(f"[versions] Artifact {artifact_id} edited fields={sorted(changes)}")
    return _artifact_response(artifact)
