"""
LLM gateway.

One ``generate(prompt, context, options)`` contract over every provider.
Calls are timed and accounted in the usage ledger, and failures come back as
a structured ``GenerationResult`` instead of an exception.

Budget checks are advisory only: the gateway reports the spend picture but
never refuses a call because the monthly budget is exhausted.
"""

import asyncio
import logging
import sqlite3
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from focus_coach.core.budget import BudgetAccountant, BudgetSnapshot
from focus_coach.core.coaching import CoachContext
from focus_coach.core.token_counter import TokenUsage
from focus_coach.storage.models import UsageRecord
from focus_coach.storage.repository import CoachRepository

from .base import FailureReason, LLMProvider, ProviderError
from .prompts import build_prompt, get_personality_prompt
from .providers import OllamaProvider

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = (
    "I'm sorry, I'm having trouble processing your request right now. "
    "Please try again later."
)


@dataclass(frozen=True)
class GenerateOptions:
    provider: Optional[str] = None
    model: Optional[str] = None
    personality: Optional[str] = None
    request_kind: str = "chat"


@dataclass(frozen=True)
class GenerationResult:
    """Outcome of a gateway call.

    On failure ``text`` holds a safe fallback sentence for the user, while
    ``error``, ``reason`` and ``status_code`` carry the diagnostic detail.
    """
    success: bool
    text: str
    provider: str
    usage: Optional[UsageRecord] = None
    error: Optional[str] = None
    reason: Optional[FailureReason] = None
    status_code: Optional[int] = None


class LLMGateway:
    """Routes generation requests to providers and records their usage."""

    def __init__(
        self,
        providers: Mapping[str, LLMProvider],
        repository: CoachRepository,
        accountant: BudgetAccountant,
        default_provider: str = "ollama"
    ):
        self.providers: Dict[str, LLMProvider] = dict(providers)
        self.repository = repository
        self.accountant = accountant
        self.default_provider = default_provider

    async def generate(
        self,
        prompt: str,
        context: Optional[CoachContext] = None,
        options: Optional[GenerateOptions] = None
    ) -> GenerationResult:
        """Generate text with the selected provider.

        Args:
            prompt: Free-text user request
            context: Optional snapshot of tasks, goals, habits and activity
            options: Provider/model override, personality and request kind

        Returns:
            GenerationResult; never raises
        """
        options = options or GenerateOptions()
        provider_id = options.provider or self.default_provider
        provider = self.providers.get(provider_id)
        if provider is None:
            return self._failure(
                provider_id,
                ProviderError(FailureReason.UNKNOWN_PROVIDER, f"Unknown provider: {provider_id}")
            )

        model = options.model or provider.default_model

        started = time.perf_counter()
        try:
            request = build_prompt(get_personality_prompt(options.personality), prompt, context)
            started = time.perf_counter()
            response = await provider.complete(request, model)
        except ProviderError as e:
            latency_ms = int((time.perf_counter() - started) * 1000)
            logger.warning(
                "LLM request to %s/%s failed (%s): %s", provider_id, model, e.reason.value, e
            )
            record = None
            if e.usage is not None and e.usage.total_tokens > 0:
                # the provider billed the call even though it failed
                record = self._usage_record(provider, model, e.usage, options.request_kind, latency_ms)
                await self._record_usage(record)
            return self._failure(provider_id, e, record)
        except Exception as e:
            logger.exception("Unexpected error generating with %s", provider_id)
            return self._failure(provider_id, ProviderError(FailureReason.INTERNAL, str(e)))

        latency_ms = int((time.perf_counter() - started) * 1000)
        record = self._usage_record(provider, model, response.usage, options.request_kind, latency_ms)
        await self._record_usage(record)

        return GenerationResult(
            success=True,
            text=response.text,
            provider=provider_id,
            usage=record,
        )

    async def check_budget(self) -> BudgetSnapshot:
        """Current spend picture. Advisory: never blocks generate()."""
        return await self.accountant.snapshot()

    async def list_local_models(self) -> List[Dict[str, Any]]:
        provider = self.providers.get(OllamaProvider.name)
        if not isinstance(provider, OllamaProvider):
            return []
        return await provider.available_models()

    async def aclose(self) -> None:
        for provider in self.providers.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()

    @staticmethod
    def _usage_record(
        provider: LLMProvider,
        model: str,
        usage: TokenUsage,
        request_kind: str,
        latency_ms: int
    ) -> UsageRecord:
        return UsageRecord(
            timestamp=datetime.now(),
            provider=provider.name,
            model=model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            cost=provider.cost(model, usage),
            request_kind=request_kind,
            latency_ms=latency_ms,
        )

    async def _record_usage(self, record: UsageRecord) -> None:
        # Ledger writes are best-effort; a lost row must not fail the call
        try:
            await asyncio.to_thread(self.repository.insert_usage_record, record)
        except sqlite3.Error:
            logger.exception("Failed to record LLM usage for %s/%s", record.provider, record.model)

    @staticmethod
    def _failure(
        provider_id: str,
        error: ProviderError,
        usage: Optional[UsageRecord] = None
    ) -> GenerationResult:
        return GenerationResult(
            success=False,
            text=FALLBACK_MESSAGE,
            provider=provider_id,
            usage=usage,
            error=str(error),
            reason=error.reason,
            status_code=error.status_code,
        )
