"""
WEEKLY INTERPOLATOR

Fills missing weekly platform snapshots by linear interpolation between the
nearest known snapshot before and after each gap.

RULES:
- One platform at a time, 7-day stride on the platform's own week grid
- A candidate week that overlaps any stored week is left alone
- Never extrapolates: a gap without both boundaries stays a gap
- Rows it creates are flagged is_interpolated with no author
- Re-running over the same range creates nothing new
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional, Protocol

from app.domain.models import WeeklySnapshot
from app.utils.time import iso_week

logger = logging.getLogger(__name__)

WEEK = timedelta(days=7)
WEEK_SPAN = timedelta(days=6)


class WeeklySnapshotStore(Protocol):
    """Protocol for weekly snapshot data access - ASYNC"""

    async def find_overlapping(self, platform_id: int, start: date, end: date) -> Optional[WeeklySnapshot]:
        """Any snapshot whose week intersects [start, end]"""
        ...

    async def latest_on_or_before(self, platform_id: int, day: date) -> Optional[WeeklySnapshot]:
        ...

    async def find_before(self, platform_id: int, before: date) -> Optional[WeeklySnapshot]:
        """Snapshot with the latest week_end_date strictly before `before`"""
        ...

    async def find_after(self, platform_id: int, after: date) -> Optional[WeeklySnapshot]:
        """Snapshot with the earliest week_start_date strictly after `after`"""
        ...

    async def add(self, snapshot: WeeklySnapshot) -> WeeklySnapshot:
        ...

    async def list_for_platform(
        self,
        platform_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[WeeklySnapshot]:
        ...


@dataclass(frozen=True)
class ContinuityBreak:
    """Consecutive weeks whose opening does not match the prior closing"""
    platform_id: int
    previous_week_start: date
    week_start: date
    previous_closing: Decimal
    opening: Decimal

    @property
    def difference(self) -> Decimal:
        return self.opening - self.previous_closing


def weekly_return_pct(opening: Decimal, closing: Decimal) -> Decimal:
    if opening == 0:
        return Decimal('0.00')
    return ((closing - opening) / opening * Decimal('100')).quantize(
        Decimal('0.01'), rounding=ROUND_HALF_UP
    )


def build_weekly_snapshot(
    platform_id: int,
    week_start: date,
    opening: Decimal,
    closing: Decimal,
    *,
    is_interpolated: bool = False,
    entered_by: Optional[str] = None,
    notes: Optional[str] = None,
) -> WeeklySnapshot:
    """Derive week bounds, ISO numbering, return and profit from the two values"""
    year, week_number = iso_week(week_start)
    return WeeklySnapshot(
        id=None,
        platform_id=platform_id,
        week_start_date=week_start,
        week_end_date=week_start + WEEK_SPAN,
        week_number=week_number,
        year=year,
        opening_value=opening,
        closing_value=closing,
        weekly_return_pct=weekly_return_pct(opening, closing),
        profit_amount=closing - opening,
        is_interpolated=is_interpolated,
        entered_by=entered_by,
        notes=notes,
    )


def align_to_grid(anchor: date, start: date) -> date:
    """First day on or after `start` that is a whole number of weeks from `anchor`"""
    return start + timedelta(days=(anchor - start).days % 7)


def interpolate_between(
    platform_id: int,
    week_start: date,
    before: WeeklySnapshot,
    after: WeeklySnapshot,
) -> WeeklySnapshot:
    """
    One interpolated week starting where `before` closed.

    The step is the remaining change spread evenly over the weeks left
    until `after` opens.
    """
    gap_days = (after.week_start_date - before.week_end_date).days
    weeks_between = max(1, math.ceil(gap_days / 7))
    change_per_week = (after.opening_value - before.closing_value) / Decimal(weeks_between)

    opening = before.closing_value
    closing = opening + change_per_week

    return build_weekly_snapshot(
        platform_id,
        week_start,
        opening,
        closing,
        is_interpolated=True,
        entered_by=None,
        notes="interpolated",
    )


class WeeklyInterpolator:
    """Gap filler for weekly platform reporting"""

    def __init__(self, weekly_store: WeeklySnapshotStore):
        self.weekly_store = weekly_store

    async def interpolate_gaps(
        self,
        platform_id: int,
        range_start: date,
        range_end: date,
    ) -> List[WeeklySnapshot]:
        """
        Fill missing weeks of one platform between range_start and range_end.

        Each inserted week is visible to the next iteration, so a run of k
        missing weeks is filled with k equal steps.

        Returns:
            Snapshots created by this call (empty when nothing was missing)
        """
        if range_end < range_start:
            raise ValueError("range_end must not be before range_start")

        created: List[WeeklySnapshot] = []
        current = range_start

        while current <= range_end:
            existing = await self.weekly_store.find_overlapping(platform_id, current, current + WEEK_SPAN)
            if existing is not None and existing.week_start_date != current:
                logger.debug(
                    "Skipping platform %s week %s: overlaps stored week %s",
                    platform_id,
                    current,
                    existing.week_start_date,
                )
            elif existing is None:
                before = await self.weekly_store.find_before(platform_id, current)
                after = await self.weekly_store.find_after(platform_id, current)

                if before is not None and after is not None:
                    snapshot = interpolate_between(platform_id, current, before, after)
                    created.append(await self.weekly_store.add(snapshot))
                else:
                    logger.debug(
                        "Leaving gap for platform %s week %s: missing %s boundary",
                        platform_id,
                        current,
                        "prior" if before is None else "following",
                    )
            current += WEEK

        if created:
            logger.info(
                "Interpolated %d week(s) for platform %s between %s and %s",
                len(created),
                platform_id,
                range_start,
                range_end,
            )
        return created

    async def fill_gaps_on_grid(
        self,
        platform_id: int,
        range_start: date,
        range_end: date,
    ) -> List[WeeklySnapshot]:
        """
        interpolate_gaps with range_start moved onto the platform's week grid.

        The grid is anchored on the latest stored week starting on or before
        range_end; a platform with no such week has nothing to interpolate.
        """
        if range_end < range_start:
            raise ValueError("range_end must not be before range_start")

        anchor = await self.weekly_store.latest_on_or_before(platform_id, range_end)
        if anchor is None:
            return []

        aligned_start = align_to_grid(anchor.week_start_date, range_start)
        if aligned_start > range_end:
            return []
        return await self.interpolate_gaps(platform_id, aligned_start, range_end)

    async def find_continuity_breaks(self, platform_id: int) -> List[ContinuityBreak]:
        """Weeks whose opening differs from the preceding week's closing"""
        history = await self.weekly_store.list_for_platform(platform_id)
        breaks: List[ContinuityBreak] = []

        for previous, current in zip(history, history[1:]):
            if current.week_start_date - previous.week_start_date != WEEK:
                continue
            if current.opening_value != previous.closing_value:
                breaks.append(
                    ContinuityBreak(
                        platform_id=platform_id,
                        previous_week_start=previous.week_start_date,
                        week_start=current.week_start_date,
                        previous_closing=previous.closing_value,
                        opening=current.opening_value,
                    )
                )
        return breaks
