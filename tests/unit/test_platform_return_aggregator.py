"""
Unit Tests for PlatformReturnAggregator
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

import pytest

from app.domain.models import PlatformAllocation, PlatformValueSource, WeeklySnapshot
from app.domain.services.platform_return_aggregator import PlatformReturnAggregator, weighted_return
from app.domain.services.weekly_interpolator import build_weekly_snapshot


class MockPlatformStore:
    def __init__(self, allocations: List[PlatformAllocation]):
        self.allocations = allocations

    async def list_active_until(self, as_of: date) -> List[PlatformAllocation]:
        return [a for a in self.allocations if a.allocation_date <= as_of]


class MockWeeklyStore:
    def __init__(self, snapshots: List[WeeklySnapshot]):
        self.snapshots = snapshots

    async def list_for_platform(
        self,
        platform_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[WeeklySnapshot]:
        return sorted(
            (
                s for s in self.snapshots
                if s.platform_id == platform_id
                and (start is None or s.week_start_date >= start)
                and (end is None or s.week_start_date <= end)
            ),
            key=lambda s: s.week_start_date,
        )


def allocation(pid: int, value: str, pct: str, on: date = date(2026, 1, 1)) -> PlatformAllocation:
    return PlatformAllocation(
        id=pid,
        platform_name=f"Platform {pid}",
        principal_amount=Decimal(value),
        allocation_date=on,
        return_percentage=Decimal(pct),
        current_value=Decimal(value),
    )


@pytest.mark.unit
class TestCurrentValueSource:

    @pytest.mark.asyncio
    async def test_value_weighted_return(self):
        store = MockPlatformStore([allocation(1, '1000', '10'), allocation(2, '3000', '2')])
        aggregator = PlatformReturnAggregator(store)

        result = await aggregator.aggregate_returns(date(2026, 1, 1), date(2026, 1, 31))

        assert result.total_value == Decimal('4000')
        # 0.25 * 10 + 0.75 * 2
        assert result.weighted_return_pct == Decimal('4')
        assert [p.platform_id for p in result.platforms] == [1, 2]

    @pytest.mark.asyncio
    async def test_no_platforms_gives_zero(self):
        aggregator = PlatformReturnAggregator(MockPlatformStore([]))

        result = await aggregator.aggregate_returns(date(2026, 1, 1), date(2026, 1, 31))

        assert result.total_value == Decimal('0')
        assert result.weighted_return_pct == Decimal('0')
        assert result.platforms == []

    @pytest.mark.asyncio
    async def test_allocations_after_period_end_are_excluded(self):
        store = MockPlatformStore([
            allocation(1, '1000', '5'),
            allocation(2, '1000', '50', on=date(2026, 2, 3)),
        ])
        aggregator = PlatformReturnAggregator(store)

        result = await aggregator.aggregate_returns(date(2026, 1, 1), date(2026, 1, 31))

        assert result.weighted_return_pct == Decimal('5')


@pytest.mark.unit
class TestWeeklyValueSource:

    def test_requires_weekly_store(self):
        with pytest.raises(ValueError):
            PlatformReturnAggregator(MockPlatformStore([]), value_source=PlatformValueSource.WEEKLY)

    @pytest.mark.asyncio
    async def test_value_and_return_sliced_from_history(self):
        store = MockPlatformStore([allocation(1, '1000', '99')])
        weekly = MockWeeklyStore([
            build_weekly_snapshot(1, date(2025, 12, 29), Decimal('1000'), Decimal('1000')),
            build_weekly_snapshot(1, date(2026, 1, 5), Decimal('1000'), Decimal('1050')),
            build_weekly_snapshot(1, date(2026, 1, 12), Decimal('1050'), Decimal('1100')),
            build_weekly_snapshot(1, date(2026, 2, 2), Decimal('1100'), Decimal('1500')),
        ])
        aggregator = PlatformReturnAggregator(store, weekly, PlatformValueSource.WEEKLY)

        result = await aggregator.aggregate_returns(date(2026, 1, 1), date(2026, 1, 31))

        assert result.total_value == Decimal('1100')
        assert result.weighted_return_pct == Decimal('10')

    @pytest.mark.asyncio
    async def test_falls_back_to_allocation_without_history(self):
        store = MockPlatformStore([allocation(1, '2000', '3')])
        aggregator = PlatformReturnAggregator(store, MockWeeklyStore([]), PlatformValueSource.WEEKLY)

        result = await aggregator.aggregate_returns(date(2026, 1, 1), date(2026, 1, 31))

        assert result.total_value == Decimal('2000')
        assert result.weighted_return_pct == Decimal('3')


@pytest.mark.unit
def test_weighted_return_zero_total():
    assert weighted_return([], Decimal('0')) == Decimal('0')
