"""
Feedback scheduler.

Runs the daily schedule of coaching check-ins and generates feedback on
demand.

State machine::

    UNINITIALIZED --initialize()--> SCHEDULED <--> GENERATING
                                        |
                                     stop()
                                        v
                                     STOPPED

Each slot triggers at most once. It is marked triggered before its
feedback is generated, so a failed generation is not retried for that slot.
"""

import asyncio
import logging
import sqlite3
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Callable, List, Optional

from focus_coach.config.loader import FeedbackConfig
from focus_coach.core.activity import ActivityStats
from focus_coach.core.coaching import (
    MANUAL,
    SCHEDULED,
    TRIGGER_KINDS,
    CoachContext,
    build_coach_context,
    build_feedback_prompt,
)
from focus_coach.core.schedule import ScheduleSlot, build_schedule
from focus_coach.llm.gateway import GenerateOptions, LLMGateway
from focus_coach.monitor.sampler import ActivitySampler
from focus_coach.storage.models import FeedbackEntry, UsageRecord
from focus_coach.storage.repository import CoachRepository

logger = logging.getLogger(__name__)

CHECK_INTERVAL_SECONDS = 30 * 60
FEEDBACK_REQUEST_KIND = "feedback"
MIN_RATING = 1
MAX_RATING = 5


class SchedulerState(Enum):
    UNINITIALIZED = "uninitialized"
    SCHEDULED = "scheduled"
    GENERATING = "generating"
    STOPPED = "stopped"


@dataclass(frozen=True)
class FeedbackResult:
    success: bool
    entry: Optional[FeedbackEntry] = None
    usage: Optional[UsageRecord] = None
    error: Optional[str] = None


class FeedbackScheduler:
    """Schedules, generates and stores coaching feedback."""

    def __init__(
        self,
        repository: CoachRepository,
        gateway: LLMGateway,
        sampler: ActivitySampler,
        config: FeedbackConfig,
        clock: Callable[[], datetime] = datetime.now,
        check_interval: float = CHECK_INTERVAL_SECONDS
    ):
        self.repository = repository
        self.gateway = gateway
        self.sampler = sampler
        self.config = config
        self.clock = clock
        self.check_interval = check_interval

        self.state = SchedulerState.UNINITIALIZED
        self.schedule: List[ScheduleSlot] = []
        self.last_feedback_time: Optional[datetime] = None
        self._schedule_day: Optional[date] = None
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

    @property
    def frequency(self) -> int:
        if not self.config.enabled:
            return 0
        return max(0, self.config.frequency)

    async def initialize(self) -> None:
        """Build today's schedule and start the check loop if enabled."""
        if self.state is not SchedulerState.UNINITIALIZED:
            return

        self._rebuild_schedule(self.clock())
        self.state = SchedulerState.SCHEDULED

        if self.schedule:
            self._task = asyncio.create_task(self._run_check_loop())
            logger.info("Scheduled %d feedback sessions", len(self.schedule))
        else:
            logger.info("Automatic feedback disabled; no sessions scheduled")

    async def check_due_slots(self, now: Optional[datetime] = None) -> int:
        """Trigger every due, untriggered slot.

        Returns:
            Number of slots triggered by this check
        """
        now = now or self.clock()
        triggered = 0
        for slot in list(self.schedule):
            if slot.is_due(now):
                slot.triggered = True
                triggered += 1
                await self.generate_feedback(SCHEDULED)

        if self._schedule_day != now.date():
            self._rebuild_schedule(now)
        return triggered

    async def generate_feedback(
        self,
        trigger_kind: str = MANUAL,
        context: Optional[CoachContext] = None
    ) -> FeedbackResult:
        """Generate and persist one feedback entry.

        Args:
            trigger_kind: ``scheduled`` or ``manual``
            context: Pre-built snapshot; built from the store when omitted

        Returns:
            FeedbackResult; never raises
        """
        if trigger_kind not in TRIGGER_KINDS:
            return FeedbackResult(success=False, error=f"Unknown trigger kind: {trigger_kind}")

        async with self._lock:
            previous_state = self.state
            self.state = SchedulerState.GENERATING
            try:
                return await self._generate(trigger_kind, context)
            except Exception as e:
                logger.exception("Error generating %s feedback", trigger_kind)
                return FeedbackResult(success=False, error=str(e))
            finally:
                if self.state is SchedulerState.GENERATING:
                    self.state = previous_state

    async def build_context(self) -> CoachContext:
        """Snapshot of the user's day, degrading to defaults on store errors."""
        now = self.clock()
        activity: Optional[ActivityStats] = await self.sampler.get_today_stats()
        try:
            tasks = await asyncio.to_thread(self.repository.fetch_tasks)
            goals = await asyncio.to_thread(self.repository.fetch_goals)
            habits = await asyncio.to_thread(self.repository.fetch_habits_for_day, now.date())
        except sqlite3.Error:
            logger.exception("Error building feedback context")
            tasks, goals, habits = [], [], []
        return build_coach_context(tasks, goals, habits, activity, now)

    async def get_recent_feedback(self, limit: int = 10) -> List[FeedbackEntry]:
        try:
            return await asyncio.to_thread(self.repository.fetch_recent_feedback, limit)
        except sqlite3.Error:
            logger.exception("Error getting recent feedback")
            return []

    async def rate_feedback(self, feedback_id: int, rating: int) -> bool:
        """Attach (or overwrite) a 1-5 user rating. False if nothing was rated."""
        if not MIN_RATING <= rating <= MAX_RATING:
            return False
        try:
            return await asyncio.to_thread(self.repository.set_feedback_rating, feedback_id, rating)
        except sqlite3.Error:
            logger.exception("Error rating feedback %s", feedback_id)
            return False

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        if self.state is not SchedulerState.STOPPED:
            self.state = SchedulerState.STOPPED
            logger.info("Feedback scheduler stopped")

    async def _generate(self, trigger_kind: str, context: Optional[CoachContext]) -> FeedbackResult:
        context = context or await self.build_context()
        prompt = build_feedback_prompt(trigger_kind, self.config.tone, context)

        result = await self.gateway.generate(prompt, context, GenerateOptions(
            personality=self.config.personality,
            request_kind=FEEDBACK_REQUEST_KIND,
        ))
        if not result.success:
            return FeedbackResult(success=False, usage=result.usage, error=result.error)

        entry = FeedbackEntry(
            id=None,
            timestamp=self.clock(),
            trigger_kind=trigger_kind,
            content=result.text,
            mood_score=context.mood_score,
            productivity_score=context.productivity_score,
        )
        try:
            entry_id = await asyncio.to_thread(self.repository.insert_feedback_entry, entry)
        except sqlite3.Error as e:
            logger.exception("Failed to store feedback")
            return FeedbackResult(success=False, usage=result.usage, error=str(e))

        self.last_feedback_time = entry.timestamp
        stored = FeedbackEntry(
            id=entry_id,
            timestamp=entry.timestamp,
            trigger_kind=entry.trigger_kind,
            content=entry.content,
            mood_score=entry.mood_score,
            productivity_score=entry.productivity_score,
        )
        return FeedbackResult(success=True, entry=stored, usage=result.usage)

    def _rebuild_schedule(self, now: datetime) -> None:
        self.schedule = build_schedule(self.frequency, now)
        self._schedule_day = now.date()

    async def _run_check_loop(self) -> None:
        while True:
            await asyncio.sleep(self.check_interval)
            try:
                await self.check_due_slots()
            except Exception:
                logger.exception("Scheduled feedback check failed")
