"""
Budget accounting.

Turns the usage ledger into a month-to-date spend picture. Snapshots are
always recomputed from the ledger; they are only requested on UI refreshes
and before feedback runs, so no caching is done.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional

from focus_coach.config.loader import BudgetConfig
from focus_coach.storage.repository import CoachRepository


@dataclass(frozen=True)
class BudgetSnapshot:
    """Derived spend state. Never stored."""
    limit: float
    spend: float
    remaining: float  # may be negative
    percent_used: float
    over_budget: bool
    should_warn: bool


def start_of_month(now: datetime) -> datetime:
    """First instant of ``now``'s calendar month, in local time."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def compute_budget_snapshot(spend: float, config: BudgetConfig) -> BudgetSnapshot:
    """Build a snapshot from a spend figure and the budget settings.

    Args:
        spend: Month-to-date spend
        config: Validated budget configuration (limit is always > 0)

    Returns:
        BudgetSnapshot with warn/over-budget flags
    """
    limit = config.monthly_limit
    percent_used = (spend / limit) * 100
    return BudgetSnapshot(
        limit=limit,
        spend=spend,
        remaining=limit - spend,
        percent_used=percent_used,
        over_budget=spend > limit,
        should_warn=config.warnings_enabled and percent_used > config.warning_threshold_percent,
    )


class BudgetAccountant:
    """Reads month-to-date spend from the usage ledger."""

    def __init__(self, repository: CoachRepository, config: BudgetConfig):
        self.repository = repository
        self.config = config

    async def month_to_date_spend(self, now: Optional[datetime] = None) -> float:
        now = now or datetime.now()
        return await asyncio.to_thread(self.repository.total_cost_since, start_of_month(now))

    async def snapshot(self, now: Optional[datetime] = None) -> BudgetSnapshot:
        spend = await self.month_to_date_spend(now)
        return compute_budget_snapshot(spend, self.config)

    async def monthly_breakdown(self, now: Optional[datetime] = None) -> List[Dict[str, object]]:
        """Month-to-date usage grouped per provider and model."""
        now = now or datetime.now()
        return await asyncio.to_thread(self.repository.usage_breakdown_since, start_of_month(now))
