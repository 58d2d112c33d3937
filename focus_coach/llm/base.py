"""
Provider interface for the LLM gateway.

Each backend (local inference server, cloud vendors) implements
``LLMProvider`` and hides its request shape, token accounting and pricing
behind it.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from focus_coach.core.token_counter import TokenUsage

REQUEST_TIMEOUT_SECONDS = 30.0
MAX_OUTPUT_TOKENS = 2000
TEMPERATURE = 0.7


class FailureReason(Enum):
    """Why a provider call failed. Values are user-actionable messages."""
    LOCAL_SERVER_UNAVAILABLE = "local inference server not running"
    MISSING_CREDENTIAL = "credential not configured"
    UPSTREAM_HTTP = "upstream provider error"
    NETWORK = "provider unreachable"
    TIMEOUT = "request timed out"
    MALFORMED_RESPONSE = "malformed provider response"
    UNKNOWN_PROVIDER = "unknown provider"
    INTERNAL = "internal error"


class ProviderError(Exception):
    """Raised by providers for any failed call.

    ``usage`` is set when the provider reported token usage before the
    failure, so the call can still be billed.
    """

    def __init__(
        self,
        reason: FailureReason,
        message: str,
        status_code: Optional[int] = None,
        usage: Optional[TokenUsage] = None
    ):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code
        self.usage = usage


@dataclass(frozen=True)
class ProviderResponse:
    text: str
    usage: TokenUsage
    model: str


class LLMProvider(ABC):
    """One text-generation backend."""

    name: str = ""

    @property
    @abstractmethod
    def default_model(self) -> str:
        """Model used when the caller doesn't override it."""

    @abstractmethod
    async def complete(self, prompt: str, model: str) -> ProviderResponse:
        """Send ``prompt`` and return the completion with token usage.

        Raises:
            ProviderError: On any failure
        """

    @abstractmethod
    def cost(self, model: str, usage: TokenUsage) -> float:
        """Monetary cost of ``usage`` on ``model``."""
