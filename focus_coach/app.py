"""
Application wiring.

Builds every component explicitly at process start and owns their
lifecycle. Nothing in the package is a module-level singleton.
"""

import asyncio
import logging
from typing import Optional

import httpx

from focus_coach.config.loader import AppConfig
from focus_coach.core.activity import ActivityClassifier
from focus_coach.core.budget import BudgetAccountant
from focus_coach.feedback.scheduler import FeedbackScheduler
from focus_coach.llm.base import REQUEST_TIMEOUT_SECONDS
from focus_coach.llm.gateway import LLMGateway
from focus_coach.llm.providers import build_providers
from focus_coach.monitor.focus import query_focused_window
from focus_coach.monitor.sampler import ActivitySampler
from focus_coach.storage.db import DEFAULT_DB_PATH
from focus_coach.storage.repository import CoachRepository

logger = logging.getLogger(__name__)


class CoachApp:
    """All core components wired together around one database."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        config: Optional[AppConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None
    ):
        self.repository = CoachRepository(db_path)
        self.repository.initialize()
        self.config = config or AppConfig.from_settings(self.repository.get_settings())

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS)

        self.classifier = ActivityClassifier()
        self.sampler = ActivitySampler(self.repository, self.classifier, focus_query=query_focused_window)
        self.accountant = BudgetAccountant(self.repository, self.config.budget)
        self.gateway = LLMGateway(
            build_providers(self.config.providers, client=self.http_client),
            self.repository,
            self.accountant,
            default_provider=self.config.providers.default_provider,
        )
        self.scheduler = FeedbackScheduler(
            self.repository,
            self.gateway,
            self.sampler,
            self.config.feedback,
        )

    async def start(self) -> None:
        await self.sampler.start()
        await self.scheduler.initialize()
        logger.info("Focus coach started")

    async def stop(self) -> None:
        """Join all periodic work and release network resources."""
        await self.scheduler.stop()
        await self.sampler.stop()
        await self.gateway.aclose()
        if self._owns_client:
            await self.http_client.aclose()
        logger.info("Focus coach stopped")

    async def run(self) -> None:
        """Start, then wait until cancelled."""
        await self.start()
        try:
            await asyncio.Event().wait()
        finally:
            await self.stop()
