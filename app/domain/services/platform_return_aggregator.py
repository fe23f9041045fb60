"""
PLATFORM RETURN AGGREGATOR

Blends platform returns into one value-weighted percentage for a period.

By default every platform contributes its latest known current value and
return percentage, regardless of the period end. With the WEEKLY value
source, value and return are sliced from the weekly snapshot history and
the allocation record is only a fallback.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Protocol

from app.domain.models import (
    PlatformAggregate,
    PlatformAllocation,
    PlatformPerformance,
    PlatformValueSource,
    WeeklySnapshot,
)

logger = logging.getLogger(__name__)


class PlatformStore(Protocol):
    """Protocol for platform allocation data access - ASYNC"""

    async def list_active_until(self, as_of: date) -> List[PlatformAllocation]:
        """Active allocations with allocation_date <= as_of"""
        ...


class WeeklyHistoryStore(Protocol):
    """Protocol for reading weekly snapshot history - ASYNC"""

    async def list_for_platform(
        self,
        platform_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[WeeklySnapshot]:
        """Snapshots with start <= week_start_date <= end, ascending"""
        ...


def weighted_return(platforms: Iterable[PlatformPerformance], total_value: Decimal) -> Decimal:
    """
    Sum of (value / total) * return over platforms.

    Defined as 0 when the total value is 0.
    """
    if total_value == 0:
        return Decimal('0')
    result = Decimal('0')
    for platform in platforms:
        weight = platform.current_value / total_value
        result += (platform.return_percentage or Decimal('0')) * weight
    return result


def slice_from_weekly(
    allocation: PlatformAllocation,
    history: List[WeeklySnapshot],
    period_start: date,
) -> PlatformPerformance:
    """
    Platform value/return for a period from its weekly history.

    `history` holds every snapshot starting on or before the period end,
    ascending. Value is the last closing; return is the change from the
    first opening inside the period to the last closing inside it.
    """
    if not history:
        return _from_allocation(allocation)

    in_period = [s for s in history if s.week_start_date >= period_start]
    value = history[-1].closing_value

    if not in_period or in_period[0].opening_value == 0:
        pct = Decimal('0')
    else:
        first_open = in_period[0].opening_value
        pct = (in_period[-1].closing_value - first_open) / first_open * Decimal('100')

    return PlatformPerformance(
        platform_id=allocation.id,
        platform_name=allocation.platform_name,
        return_percentage=pct,
        current_value=value,
    )


def _from_allocation(allocation: PlatformAllocation) -> PlatformPerformance:
    return PlatformPerformance(
        platform_id=allocation.id,
        platform_name=allocation.platform_name,
        return_percentage=allocation.return_percentage or Decimal('0'),
        current_value=allocation.current_value,
    )


class PlatformReturnAggregator:
    """Value-weighted return across active platforms"""

    def __init__(
        self,
        platform_store: PlatformStore,
        weekly_store: Optional[WeeklyHistoryStore] = None,
        value_source: PlatformValueSource = PlatformValueSource.CURRENT,
    ):
        if value_source == PlatformValueSource.WEEKLY and weekly_store is None:
            raise ValueError("Weekly value source requires a weekly snapshot store")
        self.platform_store = platform_store
        self.weekly_store = weekly_store
        self.value_source = value_source

    async def aggregate_returns(self, period_start: date, period_end: date) -> PlatformAggregate:
        """
        Aggregate platform performance for [period_start, period_end].

        Returns:
            PlatformAggregate with total value, weighted return and the
            per-platform lines in allocation order
        """
        allocations = await self.platform_store.list_active_until(period_end)

        platforms: List[PlatformPerformance] = []
        for allocation in allocations:
            if self.value_source == PlatformValueSource.WEEKLY:
                history = await self.weekly_store.list_for_platform(allocation.id, end=period_end)
                platforms.append(slice_from_weekly(allocation, history, period_start))
            else:
                platforms.append(_from_allocation(allocation))

        total_value = sum((p.current_value for p in platforms), Decimal('0'))
        pct = weighted_return(platforms, total_value)

        logger.debug(
            "Aggregated %d platform(s) for %s..%s | value=%s | return=%s",
            len(platforms),
            period_start,
            period_end,
            total_value,
            pct,
        )

        return PlatformAggregate(
            period_start=period_start,
            period_end=period_end,
            total_value=total_value,
            weighted_return_pct=pct,
            platforms=platforms,
        )
