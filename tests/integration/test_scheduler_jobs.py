from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.domain.models import TransactionKind
from app.domain.services.weekly_interpolator import build_weekly_snapshot
from app.infrastructure.db.repositories.client_repository import ClientRepository
from app.infrastructure.db.repositories.monthly_return_repository import MonthlyReturnRepository
from app.infrastructure.db.repositories.platform_repository import PlatformAllocationRepository
from app.infrastructure.db.repositories.transaction_repository import TransactionRepository
from app.infrastructure.db.repositories.weekly_snapshot_repository import WeeklySnapshotRepository
from app.scheduler import jobs

# A Monday, the day the gap-fill job fires
TODAY = date(2026, 3, 2)


@pytest.fixture()
def job_database(db_engine, monkeypatch):
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    monkeypatch.setattr(jobs, "async_session_factory", factory)
    monkeypatch.setattr(jobs, "today_local", lambda: TODAY)
    return factory


@pytest.fixture()
async def funded_pool(db_session):
    asha = await ClientRepository(db_session).create("Asha")
    await TransactionRepository(db_session).create(
        asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 2, 10)
    )
    alpha = await PlatformAllocationRepository(db_session).create(
        "Alpha", Decimal("4000"), date(2026, 1, 1), Decimal("10"), Decimal("4400")
    )
    await db_session.commit()
    return asha, alpha


@pytest.mark.asyncio
@pytest.mark.integration
async def test_daily_refresh_writes_current_month(job_database, funded_pool, db_session):
    asha, _ = funded_pool

    result = await jobs.refresh_current_month_job()

    assert result.months_recalculated == 1
    assert result.from_month == date(2026, 3, 1)
    snapshots = await MonthlyReturnRepository(db_session).list_all()
    assert [s.month for s in snapshots] == [date(2026, 3, 1)]
    march = snapshots[0]
    assert march.total_corpus == Decimal("1000")
    assert march.monthly_return_percentage == Decimal("10")
    assert [(c.client_id, c.return_amount) for c in march.client_returns] == [(asha.id, Decimal("100"))]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_daily_refresh_failure_is_logged_not_raised(job_database, funded_pool, db_session, monkeypatch, caplog):
    async def failing_upsert(self, snapshot):
        raise ConnectionError("store unavailable")

    monkeypatch.setattr(MonthlyReturnRepository, "upsert", failing_upsert)

    assert await jobs.refresh_current_month_job() is None
    assert "resume from 2026-03" in caplog.text


@pytest.mark.asyncio
@pytest.mark.integration
async def test_gap_fill_job_counts_per_platform(job_database, funded_pool, db_session, monkeypatch):
    _, alpha = funded_pool
    beta = await PlatformAllocationRepository(db_session).create("Beta", Decimal("50"), date(2026, 1, 1))
    repo = WeeklySnapshotRepository(db_session)
    # Alpha reports Sunday weeks; the job itself runs on a Monday
    await repo.add(build_weekly_snapshot(alpha.id, date(2026, 2, 1), Decimal("90"), Decimal("100")))
    await repo.add(build_weekly_snapshot(alpha.id, date(2026, 2, 22), Decimal("130"), Decimal("135")))
    await repo.add(build_weekly_snapshot(beta.id, date(2026, 2, 23), Decimal("70"), Decimal("72")))
    await db_session.commit()
    monkeypatch.setattr(jobs.settings, "WEEKLY_INTERPOLATION_LOOKBACK_WEEKS", 5)

    counts = await jobs.interpolate_weekly_gaps_job()

    assert counts == {alpha.id: 2, beta.id: 0}
    alpha_weeks = await repo.list_for_platform(alpha.id)
    assert [w.week_start_date for w in alpha_weeks] == [
        date(2026, 2, 1), date(2026, 2, 8), date(2026, 2, 15), date(2026, 2, 22),
    ]
    assert [w.closing_value for w in alpha_weeks] == [
        Decimal("100"), Decimal("110"), Decimal("120"), Decimal("135"),
    ]
    assert all(
        earlier.week_end_date < later.week_start_date
        for earlier, later in zip(alpha_weeks, alpha_weeks[1:])
    )

    assert await jobs.interpolate_weekly_gaps_job() == {alpha.id: 0, beta.id: 0}
