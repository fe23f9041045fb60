"""
Unit Tests for WeeklyInterpolator
"""

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

import pytest

from app.domain.models import WeeklySnapshot
from app.domain.services.weekly_interpolator import (
    WeeklyInterpolator,
    align_to_grid,
    build_weekly_snapshot,
    weekly_return_pct,
)


class MockWeeklySnapshotStore:
    def __init__(self):
        self.rows: Dict[Tuple[int, date], WeeklySnapshot] = {}

    def _for(self, platform_id: int) -> List[WeeklySnapshot]:
        return sorted(
            (s for (pid, _), s in self.rows.items() if pid == platform_id),
            key=lambda s: s.week_start_date,
        )

    async def find_overlapping(self, platform_id: int, start: date, end: date) -> Optional[WeeklySnapshot]:
        for s in self._for(platform_id):
            if s.week_start_date <= end and s.week_end_date >= start:
                return s
        return None

    async def latest_on_or_before(self, platform_id: int, day: date) -> Optional[WeeklySnapshot]:
        candidates = [s for s in self._for(platform_id) if s.week_start_date <= day]
        return candidates[-1] if candidates else None

    async def find_before(self, platform_id: int, before: date) -> Optional[WeeklySnapshot]:
        candidates = [s for s in self._for(platform_id) if s.week_end_date < before]
        return max(candidates, key=lambda s: s.week_end_date) if candidates else None

    async def find_after(self, platform_id: int, after: date) -> Optional[WeeklySnapshot]:
        candidates = [s for s in self._for(platform_id) if s.week_start_date > after]
        return candidates[0] if candidates else None

    async def add(self, snapshot: WeeklySnapshot) -> WeeklySnapshot:
        key = (snapshot.platform_id, snapshot.week_start_date)
        if key in self.rows:
            raise ValueError("duplicate week")
        saved = replace(snapshot, id=len(self.rows) + 1)
        self.rows[key] = saved
        return saved

    async def list_for_platform(self, platform_id: int, start=None, end=None) -> List[WeeklySnapshot]:
        return [
            s for s in self._for(platform_id)
            if (start is None or s.week_start_date >= start)
            and (end is None or s.week_start_date <= end)
        ]

    def seed(self, platform_id: int, week_start: date, opening: str, closing: str) -> WeeklySnapshot:
        snapshot = build_weekly_snapshot(
            platform_id, week_start, Decimal(opening), Decimal(closing), entered_by="ops"
        )
        saved = replace(snapshot, id=len(self.rows) + 1)
        self.rows[(platform_id, week_start)] = saved
        return saved


WEEK1 = date(2026, 1, 5)
WEEK2 = date(2026, 1, 12)
WEEK3 = date(2026, 1, 19)
WEEK4 = date(2026, 1, 26)


@pytest.fixture
def store():
    return MockWeeklySnapshotStore()


@pytest.fixture
def interpolator(store):
    return WeeklyInterpolator(store)


@pytest.mark.unit
class TestInterpolateGaps:

    @pytest.mark.asyncio
    async def test_two_missing_weeks_fill_in_equal_steps(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')
        store.seed(1, WEEK4, '130', '135')

        created = await interpolator.interpolate_gaps(1, WEEK1, WEEK4)

        assert [s.week_start_date for s in created] == [WEEK2, WEEK3]
        assert created[0].opening_value == Decimal('100')
        assert created[0].closing_value == Decimal('110')
        assert created[1].opening_value == Decimal('110')
        assert created[1].closing_value == Decimal('120')
        assert all(s.is_interpolated for s in created)
        assert all(s.entered_by is None for s in created)

    @pytest.mark.asyncio
    async def test_interpolated_rows_carry_derived_fields(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')
        store.seed(1, WEEK3, '120', '125')

        created = await interpolator.interpolate_gaps(1, WEEK1, WEEK3)

        week = created[0]
        assert week.week_start_date == WEEK2
        assert week.week_end_date == date(2026, 1, 18)
        assert (week.year, week.week_number) == (2026, 3)
        assert week.profit_amount == week.closing_value - week.opening_value
        assert week.weekly_return_pct == weekly_return_pct(week.opening_value, week.closing_value)

    @pytest.mark.asyncio
    async def test_second_run_creates_nothing(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')
        store.seed(1, WEEK4, '130', '135')

        first = await interpolator.interpolate_gaps(1, WEEK1, WEEK4)
        second = await interpolator.interpolate_gaps(1, WEEK1, WEEK4)

        assert len(first) == 2
        assert second == []
        assert len(await store.list_for_platform(1)) == 4

    @pytest.mark.asyncio
    async def test_no_following_boundary_leaves_gap(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')

        created = await interpolator.interpolate_gaps(1, WEEK1, WEEK4)

        assert created == []

    @pytest.mark.asyncio
    async def test_no_prior_boundary_leaves_gap(self, store, interpolator):
        store.seed(1, WEEK4, '130', '135')

        created = await interpolator.interpolate_gaps(1, WEEK1, WEEK4)

        assert created == []

    @pytest.mark.asyncio
    async def test_other_platforms_are_untouched(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')
        store.seed(1, WEEK3, '120', '125')
        store.seed(2, WEEK1, '50', '55')

        await interpolator.interpolate_gaps(1, WEEK1, WEEK3)

        assert len(await store.list_for_platform(2)) == 1

    @pytest.mark.asyncio
    async def test_reversed_range_rejected(self, interpolator):
        with pytest.raises(ValueError):
            await interpolator.interpolate_gaps(1, WEEK4, WEEK1)


SUNDAY_1 = date(2026, 2, 1)
SUNDAY_2 = date(2026, 2, 8)
SUNDAY_3 = date(2026, 2, 15)
SUNDAY_4 = date(2026, 2, 22)


@pytest.mark.unit
class TestWeekGrid:

    def test_align_to_grid(self):
        assert align_to_grid(SUNDAY_4, date(2026, 1, 26)) == SUNDAY_1
        assert align_to_grid(SUNDAY_1, date(2026, 2, 9)) == SUNDAY_3
        assert align_to_grid(SUNDAY_1, SUNDAY_2) == SUNDAY_2

    @pytest.mark.asyncio
    async def test_window_starting_on_another_weekday_follows_stored_weeks(self, store, interpolator):
        store.seed(1, SUNDAY_1, '90', '100')
        store.seed(1, SUNDAY_4, '130', '135')

        created = await interpolator.fill_gaps_on_grid(1, date(2026, 1, 26), date(2026, 3, 2))

        assert [s.week_start_date for s in created] == [SUNDAY_2, SUNDAY_3]
        assert [s.closing_value for s in created] == [Decimal('110'), Decimal('120')]
        starts = [s.week_start_date for s in await store.list_for_platform(1)]
        assert starts == [SUNDAY_1, SUNDAY_2, SUNDAY_3, SUNDAY_4]

    @pytest.mark.asyncio
    async def test_platform_without_history_has_no_grid(self, interpolator):
        assert await interpolator.fill_gaps_on_grid(1, WEEK1, WEEK4) == []

    @pytest.mark.asyncio
    async def test_misaligned_walk_never_overlaps_stored_weeks(self, store, interpolator):
        store.seed(1, SUNDAY_1, '90', '100')
        store.seed(1, SUNDAY_4, '130', '135')

        # Monday walk: Feb 16 to Feb 22 would share Feb 22 with the stored week
        created = await interpolator.interpolate_gaps(1, date(2026, 2, 2), date(2026, 2, 23))

        assert [s.week_start_date for s in created] == [date(2026, 2, 9)]
        for week in created:
            for other in await store.list_for_platform(1):
                if other.week_start_date != week.week_start_date:
                    assert not (other.week_start_date <= week.week_end_date
                                and other.week_end_date >= week.week_start_date)


@pytest.mark.unit
class TestContinuity:

    @pytest.mark.asyncio
    async def test_reports_opening_mismatch(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')
        store.seed(1, WEEK2, '104', '110')
        store.seed(1, WEEK3, '110', '112')

        breaks = await interpolator.find_continuity_breaks(1)

        assert len(breaks) == 1
        assert breaks[0].week_start == WEEK2
        assert breaks[0].difference == Decimal('4')

    @pytest.mark.asyncio
    async def test_non_consecutive_weeks_are_not_compared(self, store, interpolator):
        store.seed(1, WEEK1, '90', '100')
        store.seed(1, WEEK4, '130', '135')

        assert await interpolator.find_continuity_breaks(1) == []


@pytest.mark.unit
def test_weekly_return_pct_rounds_to_two_places():
    assert weekly_return_pct(Decimal('300'), Decimal('301')) == Decimal('0.33')
    assert weekly_return_pct(Decimal('0'), Decimal('10')) == Decimal('0.00')
