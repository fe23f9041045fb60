"""
Weekly Platform Snapshot Repository
One row per (platform, week start); interpolated rows are flagged
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.domain.models import WeeklySnapshot
from app.infrastructure.db.models import WeeklyPlatformSnapshotModel


class WeeklySnapshotRepository:
    """Repository for weekly platform snapshots"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, platform_id: int, week_start: date) -> Optional[WeeklySnapshot]:
        result = await self.session.execute(
            select(WeeklyPlatformSnapshotModel).where(
                WeeklyPlatformSnapshotModel.platform_id == platform_id,
                WeeklyPlatformSnapshotModel.week_start_date == week_start,
            )
        )
        model = result.scalar_one_or_none()
        return self._to_domain(model) if model else None

    async def find_before(self, platform_id: int, before: date) -> Optional[WeeklySnapshot]:
        """Latest snapshot whose week ended strictly before `before`"""
        result = await self.session.execute(
            select(WeeklyPlatformSnapshotModel)
            .where(
                WeeklyPlatformSnapshotModel.platform_id == platform_id,
                WeeklyPlatformSnapshotModel.week_end_date < before,
            )
            .order_by(WeeklyPlatformSnapshotModel.week_end_date.desc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def find_after(self, platform_id: int, after: date) -> Optional[WeeklySnapshot]:
        """Earliest snapshot whose week starts strictly after `after`"""
        result = await self.session.execute(
            select(WeeklyPlatformSnapshotModel)
            .where(
                WeeklyPlatformSnapshotModel.platform_id == platform_id,
                WeeklyPlatformSnapshotModel.week_start_date > after,
            )
            .order_by(WeeklyPlatformSnapshotModel.week_start_date.asc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def find_overlapping(self, platform_id: int, start: date, end: date) -> Optional[WeeklySnapshot]:
        """Earliest snapshot whose [week_start_date, week_end_date] intersects [start, end]"""
        result = await self.session.execute(
            select(WeeklyPlatformSnapshotModel)
            .where(
                WeeklyPlatformSnapshotModel.platform_id == platform_id,
                WeeklyPlatformSnapshotModel.week_start_date <= end,
                WeeklyPlatformSnapshotModel.week_end_date >= start,
            )
            .order_by(WeeklyPlatformSnapshotModel.week_start_date.asc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def latest_on_or_before(self, platform_id: int, day: date) -> Optional[WeeklySnapshot]:
        """Most recent snapshot whose week starts on or before `day`"""
        result = await self.session.execute(
            select(WeeklyPlatformSnapshotModel)
            .where(
                WeeklyPlatformSnapshotModel.platform_id == platform_id,
                WeeklyPlatformSnapshotModel.week_start_date <= day,
            )
            .order_by(WeeklyPlatformSnapshotModel.week_start_date.desc())
            .limit(1)
        )
        model = result.scalars().first()
        return self._to_domain(model) if model else None

    async def add(self, snapshot: WeeklySnapshot) -> WeeklySnapshot:
        model = WeeklyPlatformSnapshotModel(
            platform_id=snapshot.platform_id,
            week_start_date=snapshot.week_start_date,
            week_end_date=snapshot.week_end_date,
            week_number=snapshot.week_number,
            year=snapshot.year,
            opening_value=snapshot.opening_value,
            closing_value=snapshot.closing_value,
            weekly_return_pct=snapshot.weekly_return_pct,
            profit_amount=snapshot.profit_amount,
            notes=snapshot.notes,
            entered_by=snapshot.entered_by,
            is_interpolated=snapshot.is_interpolated,
        )
        self.session.add(model)
        await self.session.flush()
        return self._to_domain(model)

    async def list_for_platform(
        self,
        platform_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[WeeklySnapshot]:
        """Snapshots with start <= week_start_date <= end, oldest first"""
        stmt = select(WeeklyPlatformSnapshotModel).where(
            WeeklyPlatformSnapshotModel.platform_id == platform_id
        )
        if start is not None:
            stmt = stmt.where(WeeklyPlatformSnapshotModel.week_start_date >= start)
        if end is not None:
            stmt = stmt.where(WeeklyPlatformSnapshotModel.week_start_date <= end)
        stmt = stmt.order_by(WeeklyPlatformSnapshotModel.week_start_date)

        result = await self.session.execute(stmt)
        return [self._to_domain(m) for m in result.scalars().all()]

    @staticmethod
    def _to_domain(model: WeeklyPlatformSnapshotModel) -> WeeklySnapshot:
        """Convert database model to domain entity"""
        return WeeklySnapshot(
            id=model.id,
            platform_id=model.platform_id,
            week_start_date=model.week_start_date,
            week_end_date=model.week_end_date,
            week_number=model.week_number,
            year=model.year,
            opening_value=Decimal(str(model.opening_value)),
            closing_value=Decimal(str(model.closing_value)),
            weekly_return_pct=Decimal(str(model.weekly_return_pct)),
            profit_amount=Decimal(str(model.profit_amount)),
            is_interpolated=bool(model.is_interpolated),
            entered_by=model.entered_by,
            notes=model.notes,
        )
