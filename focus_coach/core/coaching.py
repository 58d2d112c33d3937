"""
Coaching context and feedback prompt construction.

Builds the snapshot of tasks, goals, habits and activity that feedback is
generated from, and renders it into a prompt.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from focus_coach.storage.models import Goal, HabitStatus, Task

from .activity import ActivityStats

SCHEDULED = "scheduled"
MANUAL = "manual"
TRIGGER_KINDS = (SCHEDULED, MANUAL)

# Used when there is no activity data for today yet
DEFAULT_PRODUCTIVITY = 75.0

ON_TRACK_RATIO = 0.8

MAX_TASKS = 5
MAX_GOALS = 3
MAX_HABITS = 5


@dataclass(frozen=True)
class ContextStats:
    completed_tasks: int = 0
    pending_tasks: int = 0
    open_tasks: int = 0
    overdue_tasks: int = 0
    habit_completion_rate: float = 0.0
    goals_on_track: int = 0
    productivity_score: float = DEFAULT_PRODUCTIVITY
    active_hours: float = 0.0


@dataclass(frozen=True)
class CoachContext:
    """Everything the LLM is told about the user's day."""
    tasks: List[Task] = field(default_factory=list)
    goals: List[Goal] = field(default_factory=list)
    habits: List[HabitStatus] = field(default_factory=list)
    recent_activity: str = ""
    stats: ContextStats = field(default_factory=ContextStats)
    mood_score: float = 75.0

    @property
    def productivity_score(self) -> float:
        return self.stats.productivity_score


def estimate_mood_score(habit_completion: float, productivity: float) -> float:
    """Rough mood estimate from habit completion and productivity.

    50 baseline, up to +25 from habit completion and +/-25 from productivity
    relative to 50, clamped to [10, 100].

    Args:
        habit_completion: Percentage of today's habits completed (0-100)
        productivity: Productivity score (0-100)
    """
    base = 50.0
    habit_bonus = (habit_completion / 100) * 25
    productivity_bonus = ((productivity - 50) / 50) * 25
    return max(10.0, min(100.0, base + habit_bonus + productivity_bonus))


def is_goal_on_track(goal: Goal, now: datetime) -> bool:
    """A goal is on track if its progress is at least 80% of the elapsed time.

    Only active goals with a positive target, a deadline and a creation
    time can be judged; anything else is not on track.
    """
    if goal.status != "active" or not goal.target_value or goal.target_value <= 0:
        return False
    if goal.deadline is None or goal.created_at is None:
        return False

    total = (goal.deadline - goal.created_at).total_seconds()
    if total <= 0:
        expected = 100.0
    else:
        elapsed = (now - goal.created_at).total_seconds()
        expected = (elapsed / total) * 100

    return goal.progress_percent >= expected * ON_TRACK_RATIO


def summarize_recent_activity(stats: Optional[ActivityStats]) -> str:
    """One-line summary of today's top three apps by time."""
    if stats is None:
        return "No activity data available for today."

    top_apps = stats.top_apps(3)
    if not top_apps:
        return "No significant app usage detected today."

    summary = ", ".join(f"{app} ({totals.time / 3600:.1f}h)" for app, totals in top_apps)
    return f"Top apps today: {summary}"


def build_coach_context(
    tasks: List[Task],
    goals: List[Goal],
    habits: List[HabitStatus],
    activity: Optional[ActivityStats],
    now: datetime
) -> CoachContext:
    """Derive the feedback snapshot from raw store data.

    Args:
        tasks: All tasks, newest first
        goals: All goals, newest first
        habits: Active habits with today's completion state
        activity: Today's activity stats, or None if unavailable
        now: Current local time

    Returns:
        CoachContext with counts, rates and a mood estimate
    """
    completed = sum(1 for t in tasks if t.status == "completed")
    pending = sum(1 for t in tasks if t.status == "pending")
    overdue = sum(
        1 for t in tasks
        if t.status != "completed" and t.due_date is not None and t.due_date < now
    )

    habits_done = sum(1 for h in habits if h.completed_today)
    habit_rate = (habits_done / len(habits)) * 100 if habits else 0.0

    goals_on_track = sum(1 for g in goals if is_goal_on_track(g, now))

    if activity is not None and activity.sessions:
        productivity = activity.avg_productivity
        active_hours = activity.active_hours
    else:
        productivity = DEFAULT_PRODUCTIVITY
        active_hours = 0.0

    stats = ContextStats(
        completed_tasks=completed,
        pending_tasks=pending,
        open_tasks=len(tasks) - completed,
        overdue_tasks=overdue,
        habit_completion_rate=habit_rate,
        goals_on_track=goals_on_track,
        productivity_score=productivity,
        active_hours=active_hours,
    )

    return CoachContext(
        tasks=tasks[:MAX_TASKS],
        goals=goals[:MAX_GOALS],
        habits=habits[:MAX_HABITS],
        recent_activity=summarize_recent_activity(activity),
        stats=stats,
        mood_score=estimate_mood_score(habit_rate, productivity),
    )


def build_feedback_prompt(trigger_kind: str, tone: str, context: CoachContext) -> str:
    """Render the natural-language feedback request."""
    stats = context.stats
    lines = ["Provide personalized feedback based on today's progress."]

    if trigger_kind == SCHEDULED:
        lines[0] += " This is a scheduled check-in."
    else:
        lines[0] += " The user requested feedback."
    lines[0] += f" Use a {tone} tone. Today's performance:"

    task_line = (
        f"- Completed {stats.completed_tasks} tasks, {stats.open_tasks} still open"
        f" ({stats.pending_tasks} not started)"
    )
    if stats.overdue_tasks > 0:
        task_line += f", {stats.overdue_tasks} overdue"
    lines.append(task_line)
    lines.append(f"- Habit completion: {stats.habit_completion_rate:.0f}%")
    lines.append(f"- Productivity score: {stats.productivity_score:.0f}%")
    lines.append(f"- Active time: {stats.active_hours:.1f} hours")
    if stats.goals_on_track > 0:
        lines.append(f"- {stats.goals_on_track} goals on track")

    closing = (
        "\nProvide specific, actionable feedback. Keep it concise (2-3 sentences). "
        "Focus on what's going well and one area for improvement."
    )
    if trigger_kind == SCHEDULED:
        closing += " Include motivation for the rest of the day."
    lines.append(closing)

    return "\n".join(lines)
