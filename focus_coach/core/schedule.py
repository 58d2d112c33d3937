"""
Daily feedback schedule.

Slots are spread evenly across the working day and regenerated each day.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List

START_HOUR = 9
END_HOUR = 21


@dataclass
class ScheduleSlot:
    """One planned feedback time. Lives only for the current process."""
    time: datetime
    triggered: bool = False

    def is_due(self, now: datetime) -> bool:
        return not self.triggered and now >= self.time


def build_schedule(
    frequency: int,
    now: datetime,
    start_hour: int = START_HOUR,
    end_hour: int = END_HOUR
) -> List[ScheduleSlot]:
    """Compute ``frequency`` slots evenly spaced from ``start_hour``.

    Slot i falls at start_hour + i * (end_hour - start_hour) / frequency.
    Slots already in the past roll over to the same time tomorrow.

    Args:
        frequency: Feedback sessions per day; <= 0 disables scheduling
        now: Current local time
        start_hour: Hour of the first slot
        end_hour: End of the working day (exclusive for slot placement)

    Returns:
        Slots sorted by time, empty when frequency <= 0
    """
    if frequency <= 0:
        return []

    day_start = now.replace(hour=start_hour, minute=0, second=0, microsecond=0)
    interval = timedelta(hours=end_hour - start_hour) / frequency

    slots = []
    for i in range(frequency):
        slot_time = day_start + interval * i
        if slot_time < now:
            slot_time += timedelta(days=1)
        slots.append(ScheduleSlot(time=slot_time))

    slots.sort(key=lambda slot: slot.time)
    return slots
