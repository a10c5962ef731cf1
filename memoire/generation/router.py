# FILE: memoire/generation/router.py
"""
Generation Router - HTTP API Endpoints

- POST /generation/batch             - Plan and generate a group of questions
- POST /generation/single            - Generate one question without planning
- POST /generation/batch/background  - Same as batch, run after the response (202)
- GET  /generation/jobs/{job_key}    - Background job status
- GET  /generation/usage             - Token consumption of the caller
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from memoire.auth import require_user
from memoire.db import SessionLocal, get_db
from memoire.errors import JobInFlightError, MemoireError, NotFoundError, ValidationError, to_http_exception
from memoire.generation.planner import BatchPlanner
from memoire.generation.schemas import (
    BatchGenerationRequest,
    BatchResult,
    GenerationItemResult,
    SingleGenerationRequest,
)
from memoire.jobs import queue
from memoire.usage.service import UsageStats, get_usage_stats
from memoire.versions.service import VersionLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter()

_planner: Optional[BatchPlanner] = None


def get_planner() -> BatchPlanner:
    global _planner
    if _planner is None:
        _planner = BatchPlanner()
    return _planner


def get_session_factory() -> Callable[[], Session]:
    """Session factory for work that outlives the request."""
    return SessionLocal


class JobResponse(BaseModel):
    job_key: str
    status: str
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


def batch_job_key(version_id: str) -> str:
    return f"batch:{version_id}"


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/batch", response_model=BatchResult)
async def generate_batch(
    request: BatchGenerationRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
    planner: BatchPlanner = Depends(get_planner),
):
    """
    Two-phase generation for questions of the same chapter.

    Per-question failures are reported in results[].error; the request
    itself only fails when nothing could be attempted.
    """
    try:
        return await planner.generate_batch(db, user_id, request)
    except MemoireError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[generation] Batch generation failed")
        raise HTTPException(status_code=500, detail=f"Internal error: {e}")


@router.post("/single", response_model=GenerationItemResult)
async def generate_single(
    request: SingleGenerationRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
    planner: BatchPlanner = Depends(get_planner),
):
    try:
        return await planner.generate_single(db, user_id, request)
    except MemoireError as e:
        raise to_http_exception(e)
    except Exception as e:
        logger.exception("[generation] Single generation failed")
        raise HTTPException(status_code=500, detail=f"Internal error: {e}")


async def _run_batch_job(
    job_key: str,
    user_id: str,
    request: BatchGenerationRequest,
    planner: BatchPlanner,
    session_factory: Callable[[], Session],
) -> None:
    db = session_factory()
    try:
        result = await planner.generate_batch(db, user_id, request)
        failed = [r for r in result.results if not r.success]
        if failed:
            queue.fail(db, job_key, f"{len(failed)}/{len(result.results)} question(s) failed")
        else:
            queue.complete(db, job_key)
    except MemoireError as e:
        db.rollback()
        queue.fail(db, job_key, str(e))
    except Exception as e:
        db.rollback()
        logger.exception(f"[generation] Background job {job_key} crashed")
        queue.fail(db, job_key, f"Internal error: {e}")
    finally:
        db.close()


@router.post("/batch/background", response_model=JobResponse, status_code=202)
async def generate_batch_background(
    request: BatchGenerationRequest,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
    planner: BatchPlanner = Depends(get_planner),
    session_factory: Callable[[], Session] = Depends(get_session_factory),
):
    """
    Accept a batch and run it after responding.

    Returns 409 while a job for the same version is being processed. Poll
    GET /generation/jobs/{job_key} for the outcome.
    """
    job_key = batch_job_key(request.version_id)
    try:
        if not request.question_ids:
            raise ValidationError("question_ids must not be empty")
        version = VersionLifecycleManager.get_version(db, request.version_id, user_id)
        VersionLifecycleManager.assert_mutable(version)

        queue.enqueue(db, job_key, user_id, force=True)
        if not queue.claim(db, job_key):
            raise JobInFlightError(job_key)
    except MemoireError as e:
        raise to_http_exception(e)

    queue.run_in_background(
        _run_batch_job(job_key, user_id, request, planner, session_factory),
        name=job_key,
    )

    job = queue.get_job(db, job_key)
    db.refresh(job)
    return JobResponse(
        job_key=job.job_key,
        status=job.status,
        error_message=job.error_message,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )


@router.get("/jobs/{job_key}", response_model=JobResponse)
async def get_job_status(
    job_key: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    job = queue.get_job(db, job_key)
    if job is None or job.user_id != user_id:
        raise to_http_exception(NotFoundError("Job", job_key))
    return JobResponse(
        job_key=job.job_key,
        status=job.status,
        error_message=job.error_message,
        started_at=job.started_at,
        finished_at=job.finished_at,
    )


@router.get("/usage", response_model=UsageStats)
async def usage_stats(
    db: Session = Depends(get_db),
    user_id: str = Depends(require_user),
):
    """Token and cost totals of the caller, broken down by model and operation."""
    return get_usage_stats(db, user_id)
