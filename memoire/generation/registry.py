# FILE: memoire/generation/registry.py
"""
Provider registry for answer generation.

One call shape: a system prompt and a user prompt sent to an explicit
provider/model pair (resolved from the stage config by the caller).
llm_call() never raises; failures come back as an LlmCallResult with a
non-success status.

Supported when the API key is set and the SDK is installed:
- openai     (AsyncOpenAI chat completions)
- anthropic  (AsyncAnthropic messages)

OpenAI reasoning models (gpt-5.*, o-series) take `max_completion_tokens`
instead of `max_tokens` and only the default temperature.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Dict

logger = logging.getLogger(__name__)


class LlmCallStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    INVALID_REQUEST = "invalid_request"


@dataclass
class LlmUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class LlmCallResult:
    status: LlmCallStatus
    provider_id: str
    model_id: str
    content: str = ""
    usage: LlmUsage = field(default_factory=LlmUsage)
    error_message: str = ""

    def is_success(self) -> bool:
        return self.status == LlmCallStatus.SUCCESS


@dataclass
class LlmRequest:
    model_id: str
    system_prompt: str
    user_prompt: str
    temperature: float = 0.7
    max_tokens: int = 2000
    timeout_seconds: int = 60


# provider id -> env var holding its API key
API_KEY_ENV: Dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
}

_REASONING_PREFIXES = ("gpt-5", "o1", "o3", "o4")


def _is_reasoning_model(model_id: str) -> bool:
    return (model_id or "").strip().lower().startswith(_REASONING_PREFIXES)


def _usage(raw_usage, input_attr: str, output_attr: str) -> LlmUsage:
    if raw_usage is None:
        return LlmUsage()
    prompt = getattr(raw_usage, input_attr, 0) or 0
    completion = getattr(raw_usage, output_attr, 0) or 0
    return LlmUsage(prompt_tokens=prompt, completion_tokens=completion, total_tokens=prompt + completion)


# =============================================================================
# BACKENDS
# =============================================================================

async def _openai_complete(api_key: str, req: LlmRequest) -> LlmCallResult:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key, timeout=req.timeout_seconds)
    params = {
        "model": req.model_id,
        "messages": [
            {"role": "system", "content": req.system_prompt},
            {"role": "user", "content": req.user_prompt},
        ],
    }
    if _is_reasoning_model(req.model_id):
        params["max_completion_tokens"] = req.max_tokens
    else:
        params["max_tokens"] = req.max_tokens
        params["temperature"] = req.temperature

    try:
        resp = await client.chat.completions.create(**params)
    except Exception as e:
        # Model families drift; honour the server when it rejects max_tokens
        if "max_tokens" not in params or "Unsupported parameter: 'max_tokens'" not in str(e):
            raise
        logger.info(f"[registry] {req.model_id} rejected max_tokens, retrying with max_completion_tokens")
        params["max_completion_tokens"] = params.pop("max_tokens")
        resp = await client.chat.completions.create(**params)

    return LlmCallResult(
        status=LlmCallStatus.SUCCESS,
        provider_id="openai",
        model_id=req.model_id,
        content=resp.choices[0].message.content or "",
        usage=_usage(getattr(resp, "usage", None), "prompt_tokens", "completion_tokens"),
    )


async def _anthropic_complete(api_key: str, req: LlmRequest) -> LlmCallResult:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key, timeout=req.timeout_seconds)
    resp = await client.messages.create(
        model=req.model_id,
        system=req.system_prompt,
        messages=[{"role": "user", "content": req.user_prompt}],
        temperature=req.temperature,
        max_tokens=req.max_tokens,
    )

    text = "\n".join(
        block.text for block in (resp.content or []) if getattr(block, "type", None) == "text" and block.text
    )
    return LlmCallResult(
        status=LlmCallStatus.SUCCESS,
        provider_id="anthropic",
        model_id=req.model_id,
        content=text.strip(),
        usage=_usage(getattr(resp, "usage", None), "input_tokens", "output_tokens"),
    )


_BACKENDS: Dict[str, Callable[[str, LlmRequest], Awaitable[LlmCallResult]]] = {
    "openai": _openai_complete,
    "anthropic": _anthropic_complete,
}


# =============================================================================
# PUBLIC API
# =============================================================================

def is_provider_available(provider_id: str) -> bool:
    """True when the provider is known, its key is set and its SDK imports."""
    env_key = API_KEY_ENV.get(provider_id)
    if not env_key or not os.getenv(env_key, "").strip():
        return False
    try:
        if provider_id == "openai":
            import openai  # noqa: F401
        else:
            import anthropic  # noqa: F401
    except ImportError:
        return False
    return True


async def llm_call(provider_id: str, req: LlmRequest) -> LlmCallResult:
    """Send one system + user prompt pair to provider_id."""
    if provider_id not in _BACKENDS:
        return LlmCallResult(
            status=LlmCallStatus.INVALID_REQUEST,
            provider_id=provider_id,
            model_id=req.model_id,
            error_message=f"Unknown provider: {provider_id}",
        )

    if not is_provider_available(provider_id):
        return LlmCallResult(
            status=LlmCallStatus.PROVIDER_UNAVAILABLE,
            provider_id=provider_id,
            model_id=req.model_id,
            error_message=f"{provider_id} unavailable (set {API_KEY_ENV[provider_id]} and install the SDK)",
        )

    try:
        return await _BACKENDS[provider_id](os.environ[API_KEY_ENV[provider_id]], req)
    except Exception as exc:
        logger.exception(f"[registry] {provider_id}/{req.model_id} call failed")
        return LlmCallResult(
            status=LlmCallStatus.ERROR,
            provider_id=provider_id,
            model_id=req.model_id,
            error_message=str(exc),
        )
