# FILE: config/__init__.py
"""Configuration package for the memoire engine.

Contains:
- settings.py: env-driven runtime settings and generation stage lookup
"""

from config.settings import (
    DATABASE_URL,
    LOG_LEVEL,
    API_TOKENS,
    RATE_LIMIT_WINDOW_MS,
    BATCH_MAX_REQUESTS,
    SINGLE_MAX_REQUESTS,
    GENERATION_CONCURRENCY,
    ANSWER_LENGTH_MAX_TOKENS,
    StageConfig,
    get_stage_config,
)

__all__ = [
    "DATABASE_URL",
    "LOG_LEVEL",
    "API_TOKENS",
    "RATE_LIMIT_WINDOW_MS",
    "BATCH_MAX_REQUESTS",
    "SINGLE_MAX_REQUESTS",
    "GENERATION_CONCURRENCY",
    "ANSWER_LENGTH_MAX_TOKENS",
    "StageConfig",
    "get_stage_config",
]
