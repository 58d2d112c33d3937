"""
Concrete LLM providers.

- ``OllamaProvider``: free local inference server over loopback HTTP
- ``OpenAIProvider``: OpenAI chat completions through the official SDK
- ``ClaudeProvider``: Anthropic messages API over HTTPS
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from focus_coach.config.loader import ProviderConfig
from focus_coach.core.pricing import CLAUDE_PRICING, OPENAI_PRICING, PricingTable, calculate_cost
from focus_coach.core.token_counter import TokenUsage, estimate_tokens

from .base import (
    MAX_OUTPUT_TOKENS,
    REQUEST_TIMEOUT_SECONDS,
    TEMPERATURE,
    FailureReason,
    LLMProvider,
    ProviderError,
    ProviderResponse,
)

logger = logging.getLogger(__name__)

CLAUDE_API_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"


class HTTPProvider(LLMProvider):
    """Shared httpx plumbing and error mapping."""

    # reason used when the TCP connection cannot be opened
    connect_failure = FailureReason.NETWORK

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    @asynccontextmanager
    async def _client_scope(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
                yield client

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """POST ``payload`` and decode the JSON body.

        Raises:
            ProviderError: For connection, timeout, HTTP status and decoding failures
        """
        async with self._client_scope() as client:
            try:
                response = await client.post(
                    url, json=payload, headers=headers, timeout=REQUEST_TIMEOUT_SECONDS
                )
                response.raise_for_status()
            except httpx.ConnectError as e:
                raise ProviderError(self.connect_failure, f"{self.name}: {self.connect_failure.value} ({e})")
            except httpx.TimeoutException:
                raise ProviderError(
                    FailureReason.TIMEOUT,
                    f"{self.name}: no response within {REQUEST_TIMEOUT_SECONDS:.0f}s"
                )
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                raise ProviderError(
                    FailureReason.UPSTREAM_HTTP,
                    f"{self.name} returned HTTP {status}: {e.response.text[:500]}",
                    status_code=status,
                )
            except httpx.HTTPError as e:
                raise ProviderError(FailureReason.NETWORK, f"{self.name}: {e}")

        try:
            data = response.json()
        except ValueError:
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, f"{self.name} returned non-JSON body")
        if not isinstance(data, dict):
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, f"{self.name} returned unexpected JSON")
        return data


class OllamaProvider(HTTPProvider):
    """Local Ollama server. Free, token counts are estimated."""

    name = "ollama"
    connect_failure = FailureReason.LOCAL_SERVER_UNAVAILABLE

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "mistral",
        client: Optional[httpx.AsyncClient] = None
    ):
        super().__init__(client)
        self.base_url = base_url.rstrip("/")
        self.model = model

    @property
    def default_model(self) -> str:
        return self.model

    async def complete(self, prompt: str, model: str) -> ProviderResponse:
        data = await self._post_json(f"{self.base_url}/api/generate", {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {
                "temperature": TEMPERATURE,
                "top_p": 0.9,
                "num_predict": MAX_OUTPUT_TOKENS,
            },
        })

        text = data.get("response")
        if not isinstance(text, str):
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, "ollama response missing 'response' field")

        usage = TokenUsage(input_tokens=estimate_tokens(prompt), output_tokens=estimate_tokens(text))
        return ProviderResponse(text=text, usage=usage, model=model)

    def cost(self, model: str, usage: TokenUsage) -> float:
        return 0.0

    async def available_models(self) -> List[Dict[str, Any]]:
        """Models installed on the local server; empty if it can't be reached."""
        async with self._client_scope() as client:
            try:
                response = await client.get(f"{self.base_url}/api/tags", timeout=REQUEST_TIMEOUT_SECONDS)
                response.raise_for_status()
                return response.json().get("models") or []
            except (httpx.HTTPError, ValueError, AttributeError) as e:
                logger.warning("Could not list local models: %s", e)
                return []


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions. Token counts come from the response."""

    name = "openai"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gpt-4",
        pricing: PricingTable = OPENAI_PRICING
    ):
        self.api_key = api_key
        self.model = model
        self.pricing = pricing
        self._client: Optional[AsyncOpenAI] = None

    @property
    def default_model(self) -> str:
        return self.model

    def _get_client(self) -> AsyncOpenAI:
        if not self.api_key:
            raise ProviderError(
                FailureReason.MISSING_CREDENTIAL,
                "OpenAI API key not configured. Please add it in Settings."
            )
        if self._client is None:
            # No automatic retries: every attempt must be visible in the ledger
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                timeout=REQUEST_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    async def complete(self, prompt: str, model: str) -> ProviderResponse:
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                temperature=TEMPERATURE,
                max_tokens=MAX_OUTPUT_TOKENS,
            )
        except APITimeoutError:
            raise ProviderError(FailureReason.TIMEOUT, f"openai: no response within {REQUEST_TIMEOUT_SECONDS:.0f}s")
        except APIConnectionError as e:
            raise ProviderError(FailureReason.NETWORK, f"openai: {e}")
        except APIStatusError as e:
            raise ProviderError(
                FailureReason.UPSTREAM_HTTP,
                f"openai returned HTTP {e.status_code}: {e.message}",
                status_code=e.status_code,
            )

        if not response.usage:
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, "OpenAI response missing usage information")
        usage = TokenUsage(
            input_tokens=response.usage.prompt_tokens,
            output_tokens=response.usage.completion_tokens,
        )

        try:
            text = response.choices[0].message.content
        except (IndexError, AttributeError, TypeError):
            text = None
        if text is None:
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, "OpenAI response has no message content", usage=usage)

        return ProviderResponse(text=text, usage=usage, model=model)

    def cost(self, model: str, usage: TokenUsage) -> float:
        return calculate_cost(self.pricing, model, usage)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


class ClaudeProvider(HTTPProvider):
    """Anthropic messages API. Token counts come from the response."""

    name = "claude"

    def __init__(
        self,
        api_key: Optional[str],
        model: str = "claude-3-sonnet-20240229",
        pricing: PricingTable = CLAUDE_PRICING,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = CLAUDE_API_URL
    ):
        super().__init__(client)
        self.api_key = api_key
        self.model = model
        self.pricing = pricing
        self.api_url = api_url

    @property
    def default_model(self) -> str:
        return self.model

    async def complete(self, prompt: str, model: str) -> ProviderResponse:
        if not self.api_key:
            raise ProviderError(
                FailureReason.MISSING_CREDENTIAL,
                "Claude API key not configured. Please add it in Settings."
            )

        data = await self._post_json(
            self.api_url,
            {
                "model": model,
                "max_tokens": MAX_OUTPUT_TOKENS,
                "messages": [{"role": "user", "content": prompt}],
            },
            headers={
                "x-api-key": self.api_key,
                "anthropic-version": ANTHROPIC_VERSION,
                "content-type": "application/json",
            },
        )

        raw_usage = data.get("usage")
        if not isinstance(raw_usage, dict):
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, "Claude response missing usage information")
        usage = TokenUsage(
            input_tokens=int(raw_usage.get("input_tokens") or 0),
            output_tokens=int(raw_usage.get("output_tokens") or 0),
        )

        try:
            text = data["content"][0]["text"]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(FailureReason.MALFORMED_RESPONSE, "Claude response has no text content", usage=usage)

        return ProviderResponse(text=text, usage=usage, model=model)

    def cost(self, model: str, usage: TokenUsage) -> float:
        return calculate_cost(self.pricing, model, usage)


def build_providers(
    config: ProviderConfig,
    client: Optional[httpx.AsyncClient] = None
) -> Dict[str, LLMProvider]:
    """Provider lookup table keyed by provider id."""
    providers: List[LLMProvider] = [
        OllamaProvider(base_url=config.ollama_base_url, model=config.ollama_model, client=client),
        OpenAIProvider(api_key=config.openai_api_key, model=config.openai_model),
        ClaudeProvider(api_key=config.claude_api_key, model=config.claude_model, client=client),
    ]
    return {provider.name: provider for provider in providers}
