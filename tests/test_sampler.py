"""
Unit tests for the activity sampler.

Focus queries and the clock are faked so sessions can be driven tick by tick.
"""

import os
import tempfile
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from focus_coach.core.activity import ActivityClassifier
from focus_coach.monitor.focus import UNKNOWN_FOCUS, FocusInfo, query_focused_window
from focus_coach.monitor.sampler import ActivitySampler
from focus_coach.storage.repository import CoachRepository


class FakeClock:
    """Clock advanced by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class FakeFocus:
    """Focus query returning whatever was last set."""

    def __init__(self):
        self.current = UNKNOWN_FOCUS

    def set(self, app_name: str, title: str = "") -> None:
        self.current = FocusInfo(app_name, title)

    async def __call__(self) -> FocusInfo:
        return self.current


class TestActivitySampler:
    """Test session tracking and persistence."""

    def setup_method(self):
        """Set up a fresh database with a fake clock and focus query."""
        self.temp_dir = tempfile.TemporaryDirectory()
        self.repository = CoachRepository(os.path.join(self.temp_dir.name, "test.db"))
        self.repository.initialize()
        self.clock = FakeClock(datetime.now().replace(hour=10, minute=0, second=0, microsecond=0))
        self.focus = FakeFocus()
        self.sampler = ActivitySampler(
            self.repository,
            ActivityClassifier(),
            focus_query=self.focus,
            clock=self.clock,
        )

    def teardown_method(self):
        """Clean up test environment."""
        self.temp_dir.cleanup()

    def _samples(self):
        return self.repository.fetch_activity_samples(self.clock.now.replace(hour=0))

    @pytest.mark.asyncio
    async def test_focus_change_writes_session(self):
        """Switching apps closes the previous session."""
        self.focus.set("Chrome", "Docs")
        await self.sampler.poll()
        assert self.sampler.current_app == "Chrome"

        self.clock.advance(600)
        self.focus.set("Visual Studio Code")
        await self.sampler.poll()

        samples = self._samples()
        assert len(samples) == 1
        sample = samples[0]
        assert sample.app_name == "Chrome"
        assert sample.window_title == "Docs"
        assert sample.duration == 600
        assert sample.category == "browsing"
        assert sample.productivity_score == 60
        assert sample.timestamp == self.clock.now
        assert self.sampler.current_app == "Visual Studio Code"

    @pytest.mark.asyncio
    async def test_same_app_keeps_session(self):
        """Staying in one app keeps a single open session."""
        self.focus.set("Slack")
        await self.sampler.poll()
        self.clock.advance(10)
        self.focus.set("Slack", "another channel")
        await self.sampler.poll()

        assert self._samples() == []

    @pytest.mark.asyncio
    async def test_short_sessions_are_dropped(self):
        """Sessions shorter than the minimum are not stored."""
        self.focus.set("Chrome")
        await self.sampler.poll()
        self.clock.advance(4)
        self.focus.set("Slack")
        await self.sampler.poll()

        assert self._samples() == []
        assert self.sampler.current_app == "Slack"

    @pytest.mark.asyncio
    async def test_unknown_focus_skips_tick(self):
        """Unknown focus leaves the current session untouched."""
        self.focus.set("Chrome")
        await self.sampler.poll()
        self.clock.advance(30)
        self.focus.current = UNKNOWN_FOCUS
        await self.sampler.poll()

        assert self.sampler.current_app == "Chrome"
        assert self._samples() == []

    @pytest.mark.asyncio
    async def test_failing_focus_query_is_swallowed(self):
        """A raising focus query does not stop sampling."""
        async def broken():
            raise RuntimeError("no display")

        self.sampler.focus_query = broken
        await self.sampler.poll()
        assert self.sampler.current_app is None

    @pytest.mark.asyncio
    async def test_flush_splits_long_session(self):
        """Flushing stores elapsed time and keeps the session open."""
        self.focus.set("Visual Studio Code")
        await self.sampler.poll()
        self.clock.advance(300)
        await self.sampler.flush()

        assert self.sampler.current_app == "Visual Studio Code"
        self.clock.advance(120)
        await self.sampler.close_session()

        assert [s.duration for s in self._samples()] == [300, 120]

    @pytest.mark.asyncio
    async def test_flush_without_session(self):
        """Flushing with no session writes nothing."""
        await self.sampler.flush()
        assert self._samples() == []

    @pytest.mark.asyncio
    async def test_today_stats(self):
        """Today's stats aggregate stored samples."""
        for app, seconds in [("Chrome", 600), ("VS Code", 1800), ("Chrome", 300)]:
            self.focus.set(app)
            await self.sampler.poll()
            self.clock.advance(seconds)
        await self.sampler.close_session()

        stats = await self.sampler.get_today_stats()
        assert stats.total_time == 2700
        assert stats.sessions == 3
        assert stats.avg_productivity == pytest.approx(71.67, abs=0.01)
        assert stats.app_breakdown["Chrome"].time == 900

    @pytest.mark.asyncio
    async def test_start_and_stop_record_final_session(self):
        """Stopping records the session still in progress."""
        sampler = ActivitySampler(
            self.repository,
            ActivityClassifier(),
            focus_query=self.focus,
            clock=self.clock,
            poll_interval=3600,
            flush_interval=3600,
        )
        await sampler.start()
        assert sampler.is_running
        self.focus.set("Notion")
        await sampler.poll()
        self.clock.advance(60)

        await sampler.stop()
        assert not sampler.is_running
        assert [s.app_name for s in self._samples()] == ["Notion"]

        await sampler.stop()
        assert len(self._samples()) == 1


class TestFocusQuery:
    """Test per-platform focus lookups."""

    @pytest.mark.asyncio
    async def test_missing_tool_is_unknown(self):
        """A missing helper binary yields unknown focus."""
        with patch("focus_coach.monitor.focus.asyncio.create_subprocess_exec",
                   AsyncMock(side_effect=FileNotFoundError("xdotool"))):
            assert await query_focused_window(platform="linux") == UNKNOWN_FOCUS

    @pytest.mark.asyncio
    async def test_macos_output_is_split(self):
        """AppleScript output splits into app and title."""
        with patch("focus_coach.monitor.focus._run", AsyncMock(return_value="Safari|Inbox")):
            focus = await query_focused_window(platform="darwin")
        assert focus == FocusInfo("Safari", "Inbox")

    @pytest.mark.asyncio
    async def test_windows_bad_json_is_unknown(self):
        """Unparseable PowerShell output yields unknown focus."""
        with patch("focus_coach.monitor.focus._run", AsyncMock(return_value="not json")):
            assert await query_focused_window(platform="win32") == UNKNOWN_FOCUS
