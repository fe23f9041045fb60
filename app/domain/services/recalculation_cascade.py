"""
RECALCULATION CASCADE CONTROLLER

Re-runs the monthly calculation for every month from a trigger date through
the current month, oldest first, so each month observes corrected earlier
state.

RULES:
- Months are processed strictly in ascending order
- The previous month's snapshot is handed forward explicitly (ordered fold)
- One month is calculated at a time per month key (per-month lock)
- A run can be bounded and resumed from the first unprocessed month
- No automatic retry; failures report how far the run got
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import date
from typing import AsyncIterator, Awaitable, Callable, Dict, Optional

from app.domain.models import CascadeResult, MonthlyReturnSnapshot
from app.domain.services.monthly_return_calculator import MonthlyReturnCalculator
from app.utils.time import first_of_month, months_between, today_local

logger = logging.getLogger(__name__)


class RecalculationError(Exception):
    """A month failed mid-cascade; earlier months are already persisted"""

    def __init__(self, failed_month: date, months_recalculated: int, cause: Exception):
        self.failed_month = failed_month
        self.months_recalculated = months_recalculated
        self.cause = cause
        super().__init__(
            f"Recalculation failed at {failed_month.strftime('%Y-%m')} "
            f"after {months_recalculated} month(s): {cause}"
        )

    @property
    def resume_from(self) -> date:
        return self.failed_month


class MonthLockRegistry:
    """
    asyncio.Lock per month key.

    A month's lock exists only while someone holds or waits for it, so the
    registry stays as small as the set of months in flight.
    """

    def __init__(self):
        self._locks: Dict[date, asyncio.Lock] = {}
        self._users: Dict[date, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, month: date) -> AsyncIterator[None]:
        key = first_of_month(month)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if not self._users[key]:
                del self._users[key]
                del self._locks[key]


# Shared by every controller that is not given its own registry
_SHARED_LOCKS = MonthLockRegistry()


class RecalculationCascade:
    """Forward recalculation of monthly snapshots"""

    def __init__(
        self,
        calculator: MonthlyReturnCalculator,
        locks: Optional[MonthLockRegistry] = None,
        today: Callable[[], date] = today_local,
        max_months: int = 0,
        checkpoint: Optional[Callable[[], Awaitable[None]]] = None,
    ):
        """
        Args:
            calculator: Monthly calculator (owns the snapshot store)
            locks: Per-month lock registry; defaults to the process-wide one
            today: Clock for the last month of the cascade
            max_months: Default bound per run (0 = unbounded)
            checkpoint: Awaited after each month, e.g. a session commit, so
                completed months survive a later failure
        """
        self.calculator = calculator
        self.locks = locks if locks is not None else _SHARED_LOCKS
        self.today = today
        self.max_months = max_months
        self.checkpoint = checkpoint

    async def recalculate_from_date(
        self,
        from_date: date,
        max_months: Optional[int] = None,
    ) -> CascadeResult:
        """
        Recalculate every month from from_date's month through the current month.

        Args:
            from_date: Effective date of the triggering change
            max_months: Bound for this run; overrides the controller default

        Returns:
            CascadeResult with the count and, when bounded, the month to resume from

        Raises:
            RecalculationError: when a month fails; carries the progress made
        """
        limit = self.max_months if max_months is None else max_months
        months = months_between(from_date, self.today())
        start_month = first_of_month(from_date)

        resume_from: Optional[date] = None
        if limit and len(months) > limit:
            resume_from = months[limit]
            months = months[:limit]

        logger.info(
            "Starting recalculation from %s | months=%d%s",
            start_month.strftime("%Y-%m"),
            len(months),
            f" | resume_from={resume_from.strftime('%Y-%m')}" if resume_from else "",
        )

        previous: Optional[MonthlyReturnSnapshot] = None
        done = 0
        for month in months:
            try:
                async with self.locks.hold(month):
                    previous = await self.calculator.calculate_month(month, previous=previous)
                    if self.checkpoint is not None:
                        await self.checkpoint()
            except Exception as exc:
                logger.error(
                    "Recalculation stopped at %s after %d month(s): %s",
                    month.strftime("%Y-%m"),
                    done,
                    exc,
                )
                raise RecalculationError(month, done, exc) from exc
            done += 1

        logger.info("Recalculation from %s complete | months=%d", start_month.strftime("%Y-%m"), done)

        return CascadeResult(
            from_month=start_month,
            months_recalculated=done,
            last_month=months[-1] if months else None,
            resume_from=resume_from,
        )

    async def calculate_month(
        self,
        month_date: date,
        precomputed_return_pct=None,
    ) -> MonthlyReturnSnapshot:
        """Single-month recalculation under the month's lock"""
        async with self.locks.hold(month_date):
            return await self.calculator.calculate_month(
                month_date,
                precomputed_return_pct=precomputed_return_pct,
            )
