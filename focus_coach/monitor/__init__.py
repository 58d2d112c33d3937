"""
Activity monitoring for Focus Coach.

Detects the focused application and records focus sessions.
"""

from .focus import UNKNOWN_FOCUS, FocusInfo, query_focused_window
from .sampler import ActivitySampler

__all__ = ["ActivitySampler", "FocusInfo", "UNKNOWN_FOCUS", "query_focused_window"]
