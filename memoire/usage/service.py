# FILE: memoire/usage/service.py
"""
Usage tracking service.

record_usage() is called by the planner after every generation call that
returned; get_usage_stats() backs GET /generation/usage.

Recording is best effort: a failed insert is rolled back and logged, the
generated answer is still returned to the caller.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from memoire.generation.client import GenerationReply
from memoire.usage.models import UsageRecord

logger = logging.getLogger(__name__)

# USD per 1M tokens (input, output). Unknown models are recorded at zero cost.
PRICING: Dict[str, tuple] = {
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4o": (5.00, 15.00),
    "gpt-4-turbo": (10.00, 30.00),
    "gpt-3.5-turbo": (0.50, 1.50),
}


def calculate_cost(model: str, input_tokens: int, output_tokens: int) -> float:
    """Longest matching price prefix wins, so gpt-4o-mini-2024-07-18 is priced as gpt-4o-mini."""
    model = (model or "").lower()
    for prefix in sorted(PRICING, key=len, reverse=True):
        if model.startswith(prefix):
            input_price, output_price = PRICING[prefix]
            return (input_tokens * input_price + output_tokens * output_price) / 1_000_000
    return 0.0


# =============================================================================
# REPORT MODELS
# =============================================================================

class UsageBucket(BaseModel):
    requests: int = 0
    tokens: int = 0
    cost: float = 0.0


class RecentUsage(BaseModel):
    operation: str
    stage: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost: float
    project_id: Optional[str] = None
    created_at: datetime


class UsageStats(BaseModel):
    total_requests: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    by_model: Dict[str, UsageBucket] = Field(default_factory=dict)
    by_operation: Dict[str, UsageBucket] = Field(default_factory=dict)
    recent: List[RecentUsage] = Field(default_factory=list)


# =============================================================================
# SERVICE
# =============================================================================

def record_usage(
    db: Session,
    user_id: str,
    reply: GenerationReply,
    operation: str,
    stage: str,
    project_id: Optional[str] = None,
) -> Optional[UsageRecord]:
    usage = reply.usage
    record = UsageRecord(
        user_id=user_id,
        project_id=project_id,
        operation=operation,
        stage=stage,
        provider=reply.provider_id,
        model=reply.model_id,
        input_tokens=usage.prompt_tokens,
        output_tokens=usage.completion_tokens,
        total_tokens=usage.total_tokens,
        cost=calculate_cost(reply.model_id, usage.prompt_tokens, usage.completion_tokens),
    )
    try:
        db.add(record)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.warning(f"[usage] Could not record {operation} usage for user={user_id}: {e}")
        return None
    return record


def _buckets(db: Session, user_id: str, column) -> Dict[str, UsageBucket]:
    rows = (
        db.query(
            column,
            func.count(UsageRecord.id),
            func.coalesce(func.sum(UsageRecord.total_tokens), 0),
            func.coalesce(func.sum(UsageRecord.cost), 0.0),
        )
        .filter(UsageRecord.user_id == user_id)
        .group_by(column)
        .all()
    )
    return {key: UsageBucket(requests=n, tokens=int(tokens), cost=float(cost)) for key, n, tokens, cost in rows}


def get_usage_stats(db: Session, user_id: str, recent_limit: int = 20) -> UsageStats:
    """Totals, per-model and per-operation breakdowns and the latest calls of one user."""
    by_model = _buckets(db, user_id, UsageRecord.model)
    recent = (
        db.query(UsageRecord)
        .filter(UsageRecord.user_id == user_id)
        .order_by(UsageRecord.created_at.desc())
        .limit(recent_limit)
        .all()
    )
    return UsageStats(
        total_requests=sum(b.requests for b in by_model.values()),
        total_tokens=sum(b.tokens for b in by_model.values()),
        total_cost=sum(b.cost for b in by_model.values()),
        by_model=by_model,
        by_operation=_buckets(db, user_id, UsageRecord.operation),
        recent=[
            RecentUsage(
                operation=r.operation,
                stage=r.stage,
                model=r.model,
                input_tokens=r.input_tokens,
                output_tokens=r.output_tokens,
                total_tokens=r.total_tokens,
                cost=r.cost,
                project_id=r.project_id,
                created_at=r.created_at,
            )
            for r in recent
        ],
    )
