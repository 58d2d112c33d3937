"""
Coaching feedback for Focus Coach.
"""

from .scheduler import FeedbackResult, FeedbackScheduler, SchedulerState

__all__ = ["FeedbackResult", "FeedbackScheduler", "SchedulerState"]
