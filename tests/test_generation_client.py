# FILE: tests/test_generation_client.py
"""
Tests for memoire/generation/client.py and memoire/generation/registry.py
No network: SDK backends are replaced or never reached.
"""

import sys
from pathlib import Path

_project_root = Path(__file__).parent.parent
if str(_project_root) not in sys.path:
    sys.path.insert(0, str(_project_root))

import pytest

from memoire.generation import registry
from memoire.generation.registry import LlmCallResult, LlmCallStatus, LlmRequest, LlmUsage


def _request(model_id="gpt-4o-mini"):
    return LlmRequest(model_id=model_id, system_prompt="sys", user_prompt="hi")


class TestRegistry:

    def test_unavailable_without_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        assert registry.is_provider_available("openai") is False

    def test_unknown_provider_unavailable(self):
        assert registry.is_provider_available("mistral") is False

    @pytest.mark.asyncio
    async def test_call_without_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        result = await registry.llm_call("anthropic", _request("claude-sonnet-4-20250514"))
        assert result.status == LlmCallStatus.PROVIDER_UNAVAILABLE
        assert "ANTHROPIC_API_KEY" in result.error_message
        assert not result.is_success()

    @pytest.mark.asyncio
    async def test_unknown_provider_is_invalid(self):
        result = await registry.llm_call("mistral", _request("large"))
        assert result.status == LlmCallStatus.INVALID_REQUEST

    @pytest.mark.asyncio
    async def test_backend_exception_becomes_error_result(self, monkeypatch):
        async def broken(api_key, req):
            raise RuntimeError("connection reset")

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr(registry, "is_provider_available", lambda provider_id: True)
        monkeypatch.setitem(registry._BACKENDS, "openai", broken)

        result = await registry.llm_call("openai", _request())
        assert result.status == LlmCallStatus.ERROR
        assert result.error_message == "connection reset"

    @pytest.mark.asyncio
    async def test_backend_receives_key_and_request(self, monkeypatch):
        seen = {}

        async def backend(api_key, req):
            seen["key"] = api_key
            seen["req"] = req
            return LlmCallResult(status=LlmCallStatus.SUCCESS, provider_id="openai", model_id=req.model_id, content="ok")

        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setattr(registry, "is_provider_available", lambda provider_id: True)
        monkeypatch.setitem(registry._BACKENDS, "openai", backend)

        result = await registry.llm_call("openai", _request())
        assert result.content == "ok"
        assert seen["key"] == "sk-test"
        assert seen["req"].user_prompt == "hi"

    def test_reasoning_models(self):
        assert registry._is_reasoning_model("gpt-4o-mini") is False
        assert registry._is_reasoning_model("o3-mini") is True
        assert registry._is_reasoning_model("GPT-5.1") is True

    def test_usage_from_sdk_object(self):
        from types import SimpleNamespace

        usage = registry._usage(SimpleNamespace(input_tokens=12, output_tokens=30), "input_tokens", "output_tokens")
        assert usage == LlmUsage(prompt_tokens=12, completion_tokens=30, total_tokens=42)
        assert registry._usage(None, "input_tokens", "output_tokens") == LlmUsage()


class TestRegistryGenerationClient:

    @pytest.mark.asyncio
    async def test_success_returns_reply_with_usage(self, monkeypatch):
        from memoire.generation.client import RegistryGenerationClient

        seen = {}

        async def fake_llm_call(provider_id, req):
            seen["provider"] = provider_id
            seen["req"] = req
            return LlmCallResult(
                status=LlmCallStatus.SUCCESS, provider_id=provider_id, model_id=req.model_id,
                content="Our team has 12 people.", usage=LlmUsage(10, 5, 15),
            )

        monkeypatch.setattr(registry, "llm_call", fake_llm_call)
        monkeypatch.setenv("ANSWER_PROVIDER", "anthropic")
        monkeypatch.setenv("ANSWER_MODEL", "claude-sonnet-4-20250514")

        reply = await RegistryGenerationClient().generate("ANSWER", "sys", "prompt", max_tokens=1000)
        assert reply.text == "Our team has 12 people."
        assert reply.provider_id == "anthropic"
        assert reply.model_id == "claude-sonnet-4-20250514"
        assert reply.usage.total_tokens == 15
        assert seen["provider"] == "anthropic"
        assert seen["req"].max_tokens == 1000
        assert seen["req"].system_prompt == "sys"
        assert seen["req"].user_prompt == "prompt"

    @pytest.mark.asyncio
    async def test_stage_token_limit_is_default(self, monkeypatch):
        from memoire.generation.client import RegistryGenerationClient

        seen = {}

        async def fake_llm_call(provider_id, req):
            seen["req"] = req
            return LlmCallResult(status=LlmCallStatus.SUCCESS, provider_id=provider_id, model_id=req.model_id, content="{}")

        monkeypatch.setattr(registry, "llm_call", fake_llm_call)
        monkeypatch.delenv("PLANNING_MAX_OUTPUT_TOKENS", raising=False)

        await RegistryGenerationClient().generate("PLANNING", "sys", "prompt")
        assert seen["req"].max_tokens == 1500

    @pytest.mark.asyncio
    async def test_failure_raises_service_unavailable(self, monkeypatch):
        from memoire.errors import ServiceUnavailable
        from memoire.generation.client import RegistryGenerationClient

        async def fake_llm_call(provider_id, req):
            return LlmCallResult(
                status=LlmCallStatus.ERROR, provider_id="openai", model_id="gpt-4o-mini",
                error_message="quota exceeded",
            )

        monkeypatch.setattr(registry, "llm_call", fake_llm_call)

        with pytest.raises(ServiceUnavailable, match="quota exceeded"):
            await RegistryGenerationClient().generate("PLANNING", "sys", "prompt")
