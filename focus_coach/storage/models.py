"""
Data models for storage layer.

Defines database entities and data structures.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ActivitySample:
    """Immutable record of time spent in one focused application.

    Written by the activity sampler when focus changes or on a periodic
    flush. Once written, these records are never modified.
    """
    timestamp: datetime
    app_name: str
    window_title: Optional[str]
    duration: int  # seconds
    category: str
    productivity_score: float


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one LLM call for cost tracking.

    Append-only events that create an auditable ledger of AI spend,
    including failed calls that were still billed.
    """
    timestamp: datetime
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    cost: float
    request_kind: str = "chat"
    latency_ms: Optional[int] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class FeedbackEntry:
    """Generated coaching feedback. Only ``user_rating`` may change later."""
    id: Optional[int]
    timestamp: datetime
    trigger_kind: str
    content: str
    mood_score: float
    productivity_score: float
    user_rating: Optional[int] = None


@dataclass(frozen=True)
class Task:
    title: str
    status: str = "pending"
    priority: str = "medium"
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class Goal:
    title: str
    target_value: Optional[float] = None
    current_value: float = 0.0
    status: str = "active"
    deadline: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[int] = None

    @property
    def progress_percent(self) -> float:
        """Percent complete, 0 when the goal has no usable target."""
        if not self.target_value:
            return 0.0
        return (self.current_value / self.target_value) * 100


@dataclass(frozen=True)
class HabitStatus:
    """A habit together with today's completion state."""
    name: str
    streak: int = 0
    completed_today: bool = False
    id: Optional[int] = None
