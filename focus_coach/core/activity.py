"""
Application classification and activity aggregation.

Maps focused application names to an activity category and a productivity
weight, and folds activity samples into daily statistics.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from focus_coach.storage.models import ActivitySample

DEVELOPMENT = "development"
BROWSING = "browsing"
COMMUNICATION = "communication"
DOCUMENTATION = "documentation"
ENTERTAINMENT = "entertainment"
OTHER = "other"

CATEGORIES = (DEVELOPMENT, BROWSING, COMMUNICATION, DOCUMENTATION, ENTERTAINMENT, OTHER)

DEFAULT_WEIGHT = 60.0


@dataclass(frozen=True)
class AppProfile:
    """Category and productivity weight for a known application."""
    category: str
    weight: float

    def __post_init__(self):
        if self.category not in CATEGORIES:
            raise ValueError(f"Unknown activity category: {self.category}")
        if not 0 <= self.weight <= 100:
            raise ValueError("weight must be between 0 and 100")


UNKNOWN_PROFILE = AppProfile(category=OTHER, weight=DEFAULT_WEIGHT)

# Order matters: substring matches are tried top to bottom.
DEFAULT_APP_PROFILES: List[Tuple[str, AppProfile]] = [
    ("code", AppProfile(DEVELOPMENT, 95)),
    ("vs code", AppProfile(DEVELOPMENT, 95)),
    ("visual studio code", AppProfile(DEVELOPMENT, 95)),
    ("intellij", AppProfile(DEVELOPMENT, 95)),
    ("pycharm", AppProfile(DEVELOPMENT, 95)),
    ("sublime", AppProfile(DEVELOPMENT, 90)),
    ("atom", AppProfile(DEVELOPMENT, 90)),
    ("notepad++", AppProfile(DEVELOPMENT, 85)),
    ("notion", AppProfile(DOCUMENTATION, 85)),
    ("obsidian", AppProfile(DOCUMENTATION, 85)),
    ("word", AppProfile(DOCUMENTATION, 75)),
    ("excel", AppProfile(DOCUMENTATION, 80)),
    ("powerpoint", AppProfile(DOCUMENTATION, 70)),
    ("chrome", AppProfile(BROWSING, 60)),
    ("firefox", AppProfile(BROWSING, 60)),
    ("edge", AppProfile(BROWSING, 60)),
    ("safari", AppProfile(BROWSING, 60)),
    ("slack", AppProfile(COMMUNICATION, 70)),
    ("teams", AppProfile(COMMUNICATION, 70)),
    ("zoom", AppProfile(COMMUNICATION, 65)),
    ("discord", AppProfile(COMMUNICATION, 40)),
    ("steam", AppProfile(ENTERTAINMENT, 20)),
    ("netflix", AppProfile(ENTERTAINMENT, 10)),
    ("youtube", AppProfile(ENTERTAINMENT, 30)),
    ("twitter", AppProfile(ENTERTAINMENT, 25)),
    ("facebook", AppProfile(ENTERTAINMENT, 25)),
    ("instagram", AppProfile(ENTERTAINMENT, 20)),
    ("reddit", AppProfile(ENTERTAINMENT, 30)),
    ("spotify", AppProfile(ENTERTAINMENT, 50)),
    ("music", AppProfile(ENTERTAINMENT, 50)),
]


class ActivityClassifier:
    """Name-based lookup of category and productivity weight.

    Matching is case-insensitive: an exact name match wins, otherwise the
    first table entry where either name contains the other.
    """

    def __init__(self, profiles: Optional[Iterable[Tuple[str, AppProfile]]] = None):
        entries = DEFAULT_APP_PROFILES if profiles is None else profiles
        self._profiles: Dict[str, AppProfile] = {name.lower(): p for name, p in entries}

    def lookup(self, app_name: Optional[str]) -> AppProfile:
        if not app_name or not app_name.strip():
            return UNKNOWN_PROFILE
        name = app_name.strip().lower()

        if name in self._profiles:
            return self._profiles[name]

        for key, profile in self._profiles.items():
            if key in name or name in key:
                return profile

        return UNKNOWN_PROFILE

    def categorize(self, app_name: Optional[str]) -> str:
        return self.lookup(app_name).category

    def productivity_weight(self, app_name: Optional[str]) -> float:
        return self.lookup(app_name).weight

    def set_productivity_weight(self, app_name: str, weight: float) -> None:
        """Add or update a table entry, clamping the weight to 0-100."""
        key = app_name.strip().lower()
        current = self._profiles.get(key, UNKNOWN_PROFILE)
        self._profiles[key] = AppProfile(current.category, max(0.0, min(100.0, float(weight))))


@dataclass
class UsageTotals:
    """Time, session count and mean productivity for one app or category."""
    time: int = 0
    sessions: int = 0
    productivity: float = 0.0

    def add(self, duration: int, score: float) -> None:
        # running mean over sessions
        self.productivity = (self.productivity * self.sessions + score) / (self.sessions + 1)
        self.sessions += 1
        self.time += duration


@dataclass
class ActivityStats:
    total_time: int = 0
    avg_productivity: float = 0.0
    sessions: int = 0
    app_breakdown: Dict[str, UsageTotals] = field(default_factory=dict)
    category_breakdown: Dict[str, UsageTotals] = field(default_factory=dict)

    @property
    def active_hours(self) -> float:
        return self.total_time / 3600

    def top_apps(self, limit: int = 3) -> List[Tuple[str, UsageTotals]]:
        """Apps with the most time, largest first."""
        ranked = sorted(self.app_breakdown.items(), key=lambda item: item[1].time, reverse=True)
        return ranked[:limit]


def summarize_samples(samples: Iterable[ActivitySample]) -> ActivityStats:
    """Aggregate activity samples into totals and per-app/category breakdowns.

    ``avg_productivity`` is the unweighted mean across sessions, matching how
    sessions are presented to the user.
    """
    stats = ActivityStats()
    score_sum = 0.0

    for sample in samples:
        stats.total_time += sample.duration
        stats.sessions += 1
        score_sum += sample.productivity_score
        stats.app_breakdown.setdefault(sample.app_name, UsageTotals()).add(
            sample.duration, sample.productivity_score
        )
        stats.category_breakdown.setdefault(sample.category, UsageTotals()).add(
            sample.duration, sample.productivity_score
        )

    if stats.sessions:
        stats.avg_productivity = score_sum / stats.sessions
    return stats
