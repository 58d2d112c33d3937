"""
Activity sampler.

Polls the focused application and turns continuous focus time into
``ActivitySample`` rows. Sampling is best-effort telemetry: a failed poll or
a failed write is logged and skipped, never raised into the event loop.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, List, Optional

from focus_coach.core.activity import ActivityClassifier, ActivityStats, summarize_samples
from focus_coach.storage.models import ActivitySample
from focus_coach.storage.repository import CoachRepository

from .focus import UNKNOWN_FOCUS, FocusInfo, query_focused_window

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 10
FLUSH_INTERVAL_SECONDS = 5 * 60
MIN_SESSION_SECONDS = 5

FocusQuery = Callable[[], Awaitable[FocusInfo]]


@dataclass
class _OpenSession:
    app_name: str
    window_title: str
    started_at: datetime


class ActivitySampler:
    """Tracks focus sessions and aggregates today's activity."""

    def __init__(
        self,
        repository: CoachRepository,
        classifier: ActivityClassifier,
        focus_query: FocusQuery = query_focused_window,
        clock: Callable[[], datetime] = datetime.now,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        flush_interval: float = FLUSH_INTERVAL_SECONDS,
        min_session_seconds: int = MIN_SESSION_SECONDS
    ):
        self.repository = repository
        self.classifier = classifier
        self.focus_query = focus_query
        self.clock = clock
        self.poll_interval = poll_interval
        self.flush_interval = flush_interval
        self.min_session_seconds = min_session_seconds
        self._session: Optional[_OpenSession] = None
        self._tasks: List[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    @property
    def current_app(self) -> Optional[str]:
        return self._session.app_name if self._session else None

    async def poll(self) -> None:
        """Check focus once; switch sessions when the app changed."""
        try:
            focus = await self.focus_query()
        except Exception:
            logger.exception("Focus query raised; treating as unknown")
            focus = UNKNOWN_FOCUS

        if focus.is_unknown:
            return
        if self._session is not None and self._session.app_name == focus.app_name:
            return

        await self.close_session()
        self._open_session(focus.app_name, focus.window_title)

    async def flush(self) -> None:
        """Persist a long-running session without ending it."""
        session = self._session
        if session is None:
            return
        if (self.clock() - session.started_at).total_seconds() < self.min_session_seconds:
            return
        await self.close_session()
        self._open_session(session.app_name, session.window_title)

    async def close_session(self) -> Optional[ActivitySample]:
        """Close the open session and write it, unless it was too short.

        Returns:
            The written sample, or None if there was nothing worth recording
        """
        session = self._session
        if session is None:
            return None
        self._session = None

        now = self.clock()
        duration = round((now - session.started_at).total_seconds())
        if duration < self.min_session_seconds:
            return None

        profile = self.classifier.lookup(session.app_name)
        sample = ActivitySample(
            timestamp=now,
            app_name=session.app_name,
            window_title=session.window_title or None,
            duration=duration,
            category=profile.category,
            productivity_score=profile.weight,
        )

        try:
            await asyncio.to_thread(self.repository.insert_activity_sample, sample)
        except sqlite3.Error:
            logger.exception("Failed to record activity for %s", sample.app_name)
            return None

        logger.debug(
            "Logged session: %s (%ss, %s%% productive)",
            sample.app_name, duration, sample.productivity_score
        )
        return sample

    async def get_today_stats(self) -> ActivityStats:
        """Aggregate samples since local midnight. Empty stats on store errors."""
        midnight = self.clock().replace(hour=0, minute=0, second=0, microsecond=0)
        try:
            samples = await asyncio.to_thread(self.repository.fetch_activity_samples, midnight)
        except sqlite3.Error:
            logger.exception("Failed to read today's activity")
            return ActivityStats()
        return summarize_samples(samples)

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._run_every(self.poll_interval, self.poll, "poll")),
            asyncio.create_task(self._run_every(self.flush_interval, self.flush, "flush")),
        ]
        logger.info("Activity monitoring started")

    async def stop(self) -> None:
        """Cancel and join both loops, then record the final session."""
        tasks, self._tasks = self._tasks, []
        if not tasks:
            return
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.close_session()
        logger.info("Activity monitoring stopped")

    def _open_session(self, app_name: str, window_title: str) -> None:
        self._session = _OpenSession(
            app_name=app_name,
            window_title=window_title,
            started_at=self.clock(),
        )

    async def _run_every(
        self,
        interval: float,
        action: Callable[[], Awaitable[None]],
        label: str
    ) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await action()
            except Exception:
                logger.exception("Activity %s tick failed", label)
