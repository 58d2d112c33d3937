"""
Unit tests for the LLM gateway and its providers.

HTTP providers run against httpx.MockTransport; the OpenAI SDK client is
patched out.
"""

import json
import os
import tempfile
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from focus_coach.config.loader import BudgetConfig, ProviderConfig
from focus_coach.core.budget import BudgetAccountant
from focus_coach.core.coaching import CoachContext
from focus_coach.core.token_counter import TokenUsage
from focus_coach.llm.base import FailureReason, LLMProvider, ProviderError, ProviderResponse
from focus_coach.llm.gateway import FALLBACK_MESSAGE, GenerateOptions, LLMGateway
from focus_coach.llm.prompts import PERSONALITIES, build_prompt, get_personality_prompt
from focus_coach.llm.providers import ClaudeProvider, OllamaProvider, OpenAIProvider, build_providers
from focus_coach.storage.models import HabitStatus, Task
from focus_coach.storage.repository import CoachRepository


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _openai_response(content="Nice work today.", prompt_tokens=1000, completion_tokens=500):
    response = MagicMock()
    response.usage = MagicMock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


class FailingProvider(LLMProvider):
    """Provider that raises whatever it was given."""

    name = "failing"

    def __init__(self, error: Exception):
        self.error = error

    @property
    def default_model(self) -> str:
        return "m"

    async def complete(self, prompt: str, model: str) -> ProviderResponse:
        raise self.error

    def cost(self, model: str, usage: TokenUsage) -> float:
        return usage.total_tokens / 1000


class TestPrompts:
    """Test personality selection and prompt assembly."""

    def test_unknown_personality_falls_back_to_coach(self):
        """Unknown or missing personalities use the coach."""
        assert get_personality_prompt("Pirate") == PERSONALITIES["Coach"]
        assert get_personality_prompt(None) == PERSONALITIES["Coach"]

    def test_context_sections(self):
        """Context sections render between system prompt and request."""
        context = CoachContext(
            tasks=[Task(title="Write report", priority="high")],
            habits=[HabitStatus(name="Meditate", streak=4, completed_today=True)],
            recent_activity="Top apps today: Code (2.0h)",
        )
        prompt = build_prompt("SYSTEM", "How am I doing?", context)
        assert prompt.startswith("SYSTEM\n\n")
        assert "- Write report (pending, priority: high)" in prompt
        assert "✓ Meditate (4 day streak)" in prompt
        assert "Recent activity:\nTop apps today: Code (2.0h)" in prompt
        assert prompt.endswith("User request: How am I doing?")
        assert "Current goals:" not in prompt

    def test_without_context(self):
        """Without context only the system prompt and request remain."""
        assert build_prompt("S", "hi", None) == "S\n\nUser request: hi"


class TestProviders:
    """Test provider request shapes and error mapping."""

    @pytest.mark.asyncio
    async def test_ollama_success(self):
        """Local completions estimate tokens and cost nothing."""
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"response": "abcdefgh"})

        async with _client(handler) as client:
            provider = OllamaProvider("http://localhost:11434/", "mistral", client=client)
            response = await provider.complete("abcd", "mistral")

        assert seen["url"] == "http://localhost:11434/api/generate"
        assert seen["body"]["stream"] is False
        assert seen["body"]["options"]["num_predict"] == 2000
        assert response.text == "abcdefgh"
        assert response.usage == TokenUsage(input_tokens=1, output_tokens=2)
        assert provider.cost("mistral", response.usage) == 0.0

    @pytest.mark.asyncio
    async def test_ollama_not_running(self):
        """Connection refused means the local server is down."""
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with _client(handler) as client:
            provider = OllamaProvider(client=client)
            with pytest.raises(ProviderError) as exc_info:
                await provider.complete("hi", "mistral")

        assert exc_info.value.reason is FailureReason.LOCAL_SERVER_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_ollama_list_models(self):
        """Installed models come from /api/tags."""
        def handler(request):
            assert request.url.path == "/api/tags"
            return httpx.Response(200, json={"models": [{"name": "mistral"}]})

        async with _client(handler) as client:
            assert await OllamaProvider(client=client).available_models() == [{"name": "mistral"}]

    @pytest.mark.asyncio
    async def test_ollama_list_models_when_down(self):
        """Listing models degrades to an empty list."""
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with _client(handler) as client:
            assert await OllamaProvider(client=client).available_models() == []

    @pytest.mark.asyncio
    async def test_claude_success(self):
        """Claude sends its auth headers and reports usage."""
        def handler(request):
            assert request.headers["x-api-key"] == "key"
            assert request.headers["anthropic-version"] == "2023-06-01"
            return httpx.Response(200, json={
                "content": [{"type": "text", "text": "Keep it up."}],
                "usage": {"input_tokens": 2000, "output_tokens": 1000},
            })

        async with _client(handler) as client:
            provider = ClaudeProvider("key", client=client)
            response = await provider.complete("hi", provider.default_model)

        assert response.text == "Keep it up."
        assert provider.cost(response.model, response.usage) == pytest.approx(0.021)

    @pytest.mark.asyncio
    async def test_claude_http_error(self):
        """Non-2xx responses keep the status and body."""
        def handler(request):
            return httpx.Response(529, text="overloaded")

        async with _client(handler) as client:
            with pytest.raises(ProviderError) as exc_info:
                await ClaudeProvider("key", client=client).complete("hi", "claude-3-haiku-20240307")

        assert exc_info.value.reason is FailureReason.UPSTREAM_HTTP
        assert exc_info.value.status_code == 529
        assert "overloaded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_claude_timeout(self):
        """Read timeouts map to the timeout reason."""
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(ProviderError) as exc_info:
                await ClaudeProvider("key", client=client).complete("hi", "m")

        assert exc_info.value.reason is FailureReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_claude_missing_text_keeps_usage(self):
        """A body without text is malformed but still carries billed usage."""
        def handler(request):
            return httpx.Response(200, json={"content": [], "usage": {"input_tokens": 5, "output_tokens": 7}})

        async with _client(handler) as client:
            with pytest.raises(ProviderError) as exc_info:
                await ClaudeProvider("key", client=client).complete("hi", "m")

        assert exc_info.value.reason is FailureReason.MALFORMED_RESPONSE
        assert exc_info.value.usage == TokenUsage(input_tokens=5, output_tokens=7)

    @pytest.mark.asyncio
    async def test_claude_without_key(self):
        """Missing key fails before any request."""
        with pytest.raises(ProviderError) as exc_info:
            await ClaudeProvider(None).complete("hi", "m")
        assert exc_info.value.reason is FailureReason.MISSING_CREDENTIAL

    @pytest.mark.asyncio
    async def test_openai_without_key_never_builds_client(self):
        """Missing key fails without constructing the SDK client."""
        with patch("focus_coach.llm.providers.AsyncOpenAI") as mock_openai:
            with pytest.raises(ProviderError) as exc_info:
                await OpenAIProvider("").complete("hi", "gpt-4")
        assert exc_info.value.reason is FailureReason.MISSING_CREDENTIAL
        mock_openai.assert_not_called()

    @pytest.mark.asyncio
    async def test_openai_success(self):
        """SDK client runs without retries and usage is priced."""
        with patch("focus_coach.llm.providers.AsyncOpenAI") as mock_openai:
            create = mock_openai.return_value.chat.completions.create = AsyncMock(
                return_value=_openai_response()
            )
            provider = OpenAIProvider("sk-test")
            response = await provider.complete("hi", "gpt-4")

        mock_openai.assert_called_once_with(api_key="sk-test", timeout=30.0, max_retries=0)
        assert create.call_args.kwargs["max_tokens"] == 2000
        assert response.usage == TokenUsage(input_tokens=1000, output_tokens=500)
        assert provider.cost("gpt-4", response.usage) == pytest.approx(0.06)

    def test_build_providers(self):
        """All three providers are keyed by id."""
        providers = build_providers(ProviderConfig(openai_api_key="sk"))
        assert set(providers) == {"ollama", "openai", "claude"}


class TestGateway:
    """Test generation results and usage accounting."""

    def setup_method(self):
        """Set up a fresh database and a one-dollar budget."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.repository = CoachRepository(os.path.join(self.temp_dir.name, "test.db"))
        self.repository.initialize()
        self.accountant = BudgetAccountant(self.repository, BudgetConfig(monthly_limit=1))

    def teardown_method(self):
        """Clean up test environment."""
        self.temp_dir.cleanup()

    def _gateway(self, providers, default_provider="ollama") -> LLMGateway:
        return LLMGateway(providers, self.repository, self.accountant, default_provider=default_provider)

    @pytest.mark.asyncio
    async def test_local_server_down(self):
        """A failed local call gives the fallback text and writes no record."""
        def handler(request):
            raise httpx.ConnectError("Connection refused", request=request)

        async with _client(handler) as client:
            gateway = self._gateway({"ollama": OllamaProvider(client=client)})
            result = await gateway.generate("How am I doing?")

        assert result.success is False
        assert result.reason is FailureReason.LOCAL_SERVER_UNAVAILABLE
        assert result.text == FALLBACK_MESSAGE
        assert result.usage is None
        assert self.repository.fetch_usage_records() == []

    @pytest.mark.asyncio
    async def test_missing_credential(self):
        """Missing API key is reported and nothing is billed."""
        gateway = self._gateway({"openai": OpenAIProvider(None)}, default_provider="openai")
        result = await gateway.generate("hi")

        assert result.success is False
        assert result.reason is FailureReason.MISSING_CREDENTIAL
        assert "API key not configured" in result.error
        assert self.repository.fetch_usage_records() == []

    @pytest.mark.asyncio
    async def test_upstream_status_is_reported(self):
        """Upstream HTTP status reaches the caller."""
        def handler(request):
            return httpx.Response(401, json={"error": "invalid x-api-key"})

        async with _client(handler) as client:
            gateway = self._gateway({"claude": ClaudeProvider("bad", client=client)})
            result = await gateway.generate("hi", options=GenerateOptions(provider="claude"))

        assert result.reason is FailureReason.UPSTREAM_HTTP
        assert result.status_code == 401

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        """Unknown provider ids fail without raising."""
        gateway = self._gateway({})
        result = await gateway.generate("hi", options=GenerateOptions(provider="gemini"))
        assert result.success is False
        assert result.reason is FailureReason.UNKNOWN_PROVIDER
        assert result.provider == "gemini"

    @pytest.mark.asyncio
    async def test_openai_success_is_recorded(self):
        """Successful metered calls write one priced usage record."""
        with patch("focus_coach.llm.providers.AsyncOpenAI") as mock_openai:
            mock_openai.return_value.chat.completions.create = AsyncMock(return_value=_openai_response())
            gateway = self._gateway({"openai": OpenAIProvider("sk-test")}, default_provider="openai")
            result = await gateway.generate(
                "hi", options=GenerateOptions(model="gpt-4", request_kind="feedback")
            )

        assert result.success is True
        assert result.text == "Nice work today."
        assert result.usage.cost == pytest.approx(0.06)
        assert result.usage.latency_ms >= 0

        records = self.repository.fetch_usage_records()
        assert len(records) == 1
        assert records[0].provider == "openai"
        assert records[0].model == "gpt-4"
        assert records[0].input_tokens == 1000
        assert records[0].output_tokens == 500
        assert records[0].request_kind == "feedback"
        assert records[0].cost == pytest.approx(0.06)

    @pytest.mark.asyncio
    async def test_local_calls_are_free(self):
        """Successful local calls are recorded at zero cost."""
        def handler(request):
            return httpx.Response(200, json={"response": "ok"})

        async with _client(handler) as client:
            gateway = self._gateway({"ollama": OllamaProvider(client=client)})
            result = await gateway.generate("hi")

        assert result.success is True
        assert self.repository.fetch_usage_records()[0].cost == 0.0

    @pytest.mark.asyncio
    async def test_billed_failure_is_recorded(self):
        """Usage carried by a failure is still written to the ledger."""
        error = ProviderError(
            FailureReason.MALFORMED_RESPONSE, "no content",
            usage=TokenUsage(input_tokens=300, output_tokens=200),
        )
        gateway = self._gateway({"failing": FailingProvider(error)}, default_provider="failing")
        result = await gateway.generate("hi")

        assert result.success is False
        assert result.reason is FailureReason.MALFORMED_RESPONSE
        assert result.usage.cost == 0.5
        assert self.repository.total_cost_since(result.usage.timestamp.replace(hour=0)) == 0.5

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_internal(self):
        """Any other provider exception becomes an internal failure."""
        gateway = self._gateway({"failing": FailingProvider(RuntimeError("boom"))}, default_provider="failing")
        result = await gateway.generate("hi")
        assert result.success is False
        assert result.reason is FailureReason.INTERNAL
        assert result.error == "boom"

    @pytest.mark.asyncio
    async def test_malformed_context_does_not_raise(self):
        """A context that cannot be serialized fails the call instead of raising."""
        provider = MagicMock(spec=LLMProvider)
        provider.default_model = "m"
        provider.complete = AsyncMock()
        gateway = self._gateway({"ollama": provider})

        result = await gateway.generate("hi", context=object())

        assert result.success is False
        assert result.reason is FailureReason.INTERNAL
        assert result.text == FALLBACK_MESSAGE
        provider.complete.assert_not_awaited()
        assert self.repository.fetch_usage_records() == []

    @pytest.mark.asyncio
    async def test_budget_is_advisory(self):
        """Calls keep succeeding after the budget is exceeded."""
        def handler(request):
            return httpx.Response(200, json={
                "content": [{"text": "ok"}],
                "usage": {"input_tokens": 100000, "output_tokens": 100000},
            })

        async with _client(handler) as client:
            gateway = self._gateway({"claude": ClaudeProvider("key", client=client)}, default_provider="claude")
            first = await gateway.generate("hi")
            snapshot = await gateway.check_budget()
            second = await gateway.generate("hi again")

        assert snapshot.over_budget is True
        assert first.success and second.success
        assert len(self.repository.fetch_usage_records()) == 2

    @pytest.mark.asyncio
    async def test_list_local_models_without_ollama(self):
        """No local provider means no local models."""
        assert await self._gateway({}).list_local_models() == []
