# FILE: memoire/jobs/models.py
"""
Background generation jobs.

One row per job key (e.g. "batch:<version_id>"). The row is the only
coordination point between requests: a job is claimed by flipping its
status from waiting to processing in a single conditional UPDATE.
"""
from datetime import datetime
from enum import Enum

from sqlalchemy import Column, DateTime, String, Text

from memoire.db import Base


class JobStatus(str, Enum):
    WAITING = "waiting"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"


class GenerationJob(Base):
    __tablename__ = "generation_jobs"

    job_key = Column(String(128), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=JobStatus.WAITING.value, index=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    started_at = Column(DateTime, nullable=True)
    finished_at = Column(DateTime, nullable=True)
