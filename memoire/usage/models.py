# FILE: memoire/usage/models.py
"""
One row per generation call that reached a provider and came back.

Failed calls are not recorded: the registry has no usage figures for them.
"""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import Column, DateTime, Float, Integer, String

from memoire.db import Base


def _uuid() -> str:
    return str(uuid4())


class UsageRecord(Base):
    __tablename__ = "usage_records"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), nullable=False, index=True)
    project_id = Column(String(36), nullable=True, index=True)
    operation = Column(String(64), nullable=False)  # batch_planning, batch_answer, single_answer
    stage = Column(String(32), nullable=False)
    provider = Column(String(32), nullable=False)
    model = Column(String(128), nullable=False)
    input_tokens = Column(Integer, nullable=False, default=0)
    output_tokens = Column(Integer, nullable=False, default=0)
    total_tokens = Column(Integer, nullable=False, default=0)
    cost = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
