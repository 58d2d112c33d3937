"""
Personality presets and request prompt assembly.
"""

from typing import Optional

from focus_coach.core.coaching import CoachContext

DEFAULT_PERSONALITY = "Coach"

PERSONALITIES = {
    "Coach": (
        "You are a supportive and motivating productivity coach. Be encouraging, "
        "direct, and focus on helping the user achieve their goals. Use motivational "
        "language and provide actionable advice. Keep responses concise and practical."
    ),
    "Jean-Luc Picard": (
        "You are Captain Jean-Luc Picard from Star Trek: The Next Generation. Speak "
        "with wisdom, diplomacy, and occasionally reference your experiences as a "
        "starship captain. Use phrases like \"Make it so\" when appropriate. Be "
        "thoughtful and philosophical in your responses."
    ),
    "Therapist": (
        "You are a calm, understanding, and empathetic therapist. Focus on emotional "
        "well-being, mindfulness, and mental health. Ask thoughtful questions and "
        "provide gentle guidance. Use therapeutic language and techniques."
    ),
}


def get_personality_prompt(personality: Optional[str]) -> str:
    """System prompt for ``personality``; unknown ids get the coach."""
    return PERSONALITIES.get(personality or DEFAULT_PERSONALITY, PERSONALITIES[DEFAULT_PERSONALITY])


def build_prompt(system_prompt: str, user_prompt: str, context: Optional[CoachContext]) -> str:
    """Concatenate system prompt, serialized context and the user request."""
    parts = [f"{system_prompt}\n\n"]

    if context is not None:
        if context.tasks:
            parts.append("Current tasks:\n")
            for task in context.tasks:
                parts.append(f"- {task.title} ({task.status}, priority: {task.priority})\n")
            parts.append("\n")

        if context.goals:
            parts.append("Current goals:\n")
            for goal in context.goals:
                parts.append(f"- {goal.title}: {goal.progress_percent:.1f}% complete\n")
            parts.append("\n")

        if context.habits:
            parts.append("Today's habits:\n")
            for habit in context.habits:
                glyph = "✓" if habit.completed_today else "○"
                parts.append(f"{glyph} {habit.name} ({habit.streak} day streak)\n")
            parts.append("\n")

        if context.recent_activity:
            parts.append(f"Recent activity:\n{context.recent_activity}\n\n")

    parts.append(f"User request: {user_prompt}")
    return "".join(parts)
