"""
Focus Coach.

Activity monitoring, LLM usage accounting and scheduled coaching feedback.
"""

__version__ = "0.1.0"
