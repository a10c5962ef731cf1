# FILE: memoire/jobs/queue.py
"""
Best-effort background job coordination.

Status flow: waiting -> processing -> done | error.

- enqueue() creates the row or resets it to waiting. A done job is only
  re-enqueued with force=True; a processing job is left untouched.
- claim() is an atomic compare-and-set, so at most one worker holds a key.
- run_in_background() schedules a coroutine on the running loop and keeps a
  strong reference until it finishes.

There is no durability: work in flight when the process stops is lost.
recover_interrupted() runs at startup and moves such rows to error so the
caller can enqueue them again.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Optional, Set

from sqlalchemy.orm import Session

from memoire.jobs.models import GenerationJob, JobStatus

logger = logging.getLogger(__name__)

_background_tasks: Set[asyncio.Task] = set()


def get_job(db: Session, job_key: str) -> Optional[GenerationJob]:
    return db.query(GenerationJob).filter(GenerationJob.job_key == job_key).first()


def enqueue(db: Session, job_key: str, user_id: str, force: bool = False) -> GenerationJob:
    """Create or reset a job to waiting. Returns the row in its current state."""
    job = get_job(db, job_key)
    if job is None:
        job = GenerationJob(job_key=job_key, user_id=user_id, status=JobStatus.WAITING.value)
        db.add(job)
        db.commit()
        db.refresh(job)
        logger.info(f"[jobs] Enqueued {job_key}")
        return job

    if job.status == JobStatus.PROCESSING.value:
        return job
    if job.status == JobStatus.DONE.value and not force:
        logger.info(f"[jobs] {job_key} already done, not re-enqueued")
        return job

    job.status = JobStatus.WAITING.value
    job.user_id = user_id
    job.error_message = None
    job.started_at = None
    job.finished_at = None
    db.commit()
    db.refresh(job)
    logger.info(f"[jobs] Re-enqueued {job_key}")
    return job


def claim(db: Session, job_key: str) -> bool:
    """Move waiting -> processing. True only for the caller that won the race."""
    updated = (
        db.query(GenerationJob)
        .filter(
            GenerationJob.job_key == job_key,
            GenerationJob.status == JobStatus.WAITING.value,
        )
        .update(
            {
                GenerationJob.status: JobStatus.PROCESSING.value,
                GenerationJob.started_at: datetime.utcnow(),
                GenerationJob.updated_at: datetime.utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if updated:
        logger.info(f"[jobs] Claimed {job_key}")
    return updated == 1


def _finish(db: Session, job_key: str, status: JobStatus, error_message: Optional[str] = None) -> None:
    job = get_job(db, job_key)
    if job is None:
        logger.warning(f"[jobs] Cannot mark unknown job {job_key} as {status.value}")
        return
    job.status = status.value
    job.error_message = error_message
    job.finished_at = datetime.utcnow()
    db.commit()


def complete(db: Session, job_key: str) -> None:
    _finish(db, job_key, JobStatus.DONE)
    logger.info(f"[jobs] Done {job_key}")


def fail(db: Session, job_key: str, error_message: str) -> None:
    _finish(db, job_key, JobStatus.ERROR, error_message[:2000])
    logger.warning(f"[jobs] Failed {job_key}: {error_message}")


INTERRUPTED_MESSAGE = "Interrupted by restart"


def recover_interrupted(db: Session) -> int:
    """Fail every job left in processing by a previous process. Returns the count."""
    now = datetime.utcnow()
    updated = (
        db.query(GenerationJob)
        .filter(GenerationJob.status == JobStatus.PROCESSING.value)
        .update(
            {
                GenerationJob.status: JobStatus.ERROR.value,
                GenerationJob.error_message: INTERRUPTED_MESSAGE,
                GenerationJob.finished_at: now,
                GenerationJob.updated_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    if updated:
        logger.warning(f"[jobs] Marked {updated} interrupted job(s) as error")
    return updated


def _on_task_done(task: asyncio.Task) -> None:
    _background_tasks.discard(task)
    if task.cancelled():
        logger.warning(f"[jobs] Background task {task.get_name()} cancelled")
        return
    exc = task.exception()
    if exc is not None:
        logger.error(f"[jobs] Background task {task.get_name()} crashed", exc_info=exc)


def run_in_background(coro: Awaitable, name: Optional[str] = None) -> asyncio.Task:
    """Fire and forget. Must be called from inside a running event loop."""
    task = asyncio.create_task(coro, name=name)
    _background_tasks.add(task)
    task.add_done_callback(_on_task_done)
    return task
