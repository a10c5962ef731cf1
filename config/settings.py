# FILE: config/settings.py
"""
Centralized runtime configuration for the memoire engine.

Every value is read from the environment (a .env file is loaded by main.py
before this module is imported). Defaults are safe for a single-instance
deployment backed by SQLite.

Generation stages follow the same pattern as other stage-based settings:
    {STAGE}_PROVIDER           - provider name (openai, anthropic)
    {STAGE}_MODEL              - model ID
    {STAGE}_MAX_OUTPUT_TOKENS  - token limit for this stage
    {STAGE}_TIMEOUT_SECONDS    - timeout for this stage
    {STAGE}_TEMPERATURE        - sampling temperature

Example .env:
    PLANNING_PROVIDER=openai
    PLANNING_MODEL=gpt-4o-mini
    ANSWER_PROVIDER=anthropic
    ANSWER_MODEL=claude-sonnet-4-20250514
"""

import logging
import os
from dataclasses import dataclass
from typing import Dict, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# STORAGE / SERVER
# =============================================================================

DATABASE_URL = os.getenv("MEMOIRE_DATABASE_URL", "sqlite:///./data/memoire.db")
LOG_LEVEL = os.getenv("MEMOIRE_LOG_LEVEL", "INFO").upper()

# "token:user_id,token2:user_id2" - see memoire/auth.py
API_TOKENS = os.getenv("MEMOIRE_API_TOKENS", "")


# =============================================================================
# ADMISSION CONTROL
# =============================================================================

def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"[settings] Invalid integer for {name}={raw!r}, using {default}")
        return default


RATE_LIMIT_WINDOW_MS = _int_env("MEMOIRE_RATE_LIMIT_WINDOW_MS", 60_000)
BATCH_MAX_REQUESTS = _int_env("MEMOIRE_BATCH_MAX_REQUESTS", 5)
SINGLE_MAX_REQUESTS = _int_env("MEMOIRE_SINGLE_MAX_REQUESTS", 10)

# Max concurrent per-question calls during phase 2 of a batch
GENERATION_CONCURRENCY = max(1, _int_env("MEMOIRE_GENERATION_CONCURRENCY", 3))


# =============================================================================
# STAGE CONFIGURATION
# =============================================================================

@dataclass
class StageConfig:
    """Configuration for a generation stage."""
    provider: str
    model: str
    stage_name: str
    max_output_tokens: int = 2000
    timeout_seconds: int = 60
    temperature: float = 0.7

    def __str__(self) -> str:
        return f"{self.stage_name}: {self.provider}/{self.model}"

    def to_dict(self) -> dict:
        return {
            "stage": self.stage_name,
            "provider": self.provider,
            "model": self.model,
            "max_output_tokens": self.max_output_tokens,
            "timeout_seconds": self.timeout_seconds,
            "temperature": self.temperature,
        }


# Default (provider, model, max_tokens, timeout, temperature) per stage
STAGE_DEFAULTS: Dict[str, Tuple[str, str, int, int, float]] = {
    # Phase 1: one call per question group, JSON only
    "PLANNING": ("openai", "gpt-4o-mini", 1500, 60, 0.3),
    # Phase 2: one call per question
    "ANSWER":   ("openai", "gpt-4o-mini", 2000, 90, 0.7),
}


def get_stage_config(stage: str) -> StageConfig:
    """
    Get provider/model configuration for a generation stage.

    Env vars win over STAGE_DEFAULTS. Unknown stages fall back to the
    ANSWER defaults.
    """
    stage_upper = stage.upper().replace("-", "_").replace(" ", "_")
    default_provider, default_model, default_tokens, default_timeout, default_temp = (
        STAGE_DEFAULTS.get(stage_upper, STAGE_DEFAULTS["ANSWER"])
    )

    provider = os.getenv(f"{stage_upper}_PROVIDER", "").strip() or default_provider
    model = os.getenv(f"{stage_upper}_MODEL", "").strip() or default_model
    max_tokens = _int_env(f"{stage_upper}_MAX_OUTPUT_TOKENS", default_tokens)
    timeout = _int_env(f"{stage_upper}_TIMEOUT_SECONDS", default_timeout)

    temperature = default_temp
    raw_temp = os.getenv(f"{stage_upper}_TEMPERATURE", "").strip()
    if raw_temp:
        try:
            temperature = float(raw_temp)
        except ValueError:
            logger.warning(f"[settings] Invalid {stage_upper}_TEMPERATURE={raw_temp!r}, using {default_temp}")

    return StageConfig(
        provider=provider,
        model=model,
        stage_name=stage_upper,
        max_output_tokens=max_tokens,
        timeout_seconds=timeout,
        temperature=temperature,
    )


# Token budget per requested answer length (phase 2)
ANSWER_LENGTH_MAX_TOKENS: Dict[str, int] = {
    "short": 1000,
    "standard": 2000,
    "detailed": 3000,
}
