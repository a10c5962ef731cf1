# FILE: memoire/generation/client.py
"""
Text-generation collaborator used by the batch planner.

The planner needs "prompt in, text out" plus the token usage of the call so
it can be recorded. RegistryGenerationClient resolves the stage model from
config and turns any non-success registry result into ServiceUnavailable.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from config.settings import get_stage_config
from memoire.errors import ServiceUnavailable
from memoire.generation import registry
from memoire.generation.registry import LlmRequest, LlmUsage

logger = logging.getLogger(__name__)


@dataclass
class GenerationReply:
    text: str
    provider_id: str
    model_id: str
    usage: LlmUsage = field(default_factory=LlmUsage)


class GenerationClient(Protocol):
    async def generate(
        self,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> GenerationReply:
        ...


class RegistryGenerationClient:
    """GenerationClient backed by the provider registry."""

    async def generate(
        self,
        stage: str,
        system_prompt: str,
        user_prompt: str,
        max_tokens: Optional[int] = None,
    ) -> GenerationReply:
        cfg = get_stage_config(stage)
        result = await registry.llm_call(
            cfg.provider,
            LlmRequest(
                model_id=cfg.model,
                system_prompt=system_prompt,
                user_prompt=user_prompt,
                temperature=cfg.temperature,
                max_tokens=max_tokens or cfg.max_output_tokens,
                timeout_seconds=cfg.timeout_seconds,
            ),
        )

        if not result.is_success():
            logger.warning(
                f"[generation] {cfg} failed status={result.status.value} error={result.error_message}"
            )
            raise ServiceUnavailable(
                f"Generation provider {result.provider_id} unavailable: {result.error_message or result.status.value}"
            )

        logger.debug(f"[generation] {cfg} ok tokens={result.usage.total_tokens}")
        return GenerationReply(
            text=result.content,
            provider_id=result.provider_id,
            model_id=result.model_id,
            usage=result.usage,
        )
