from datetime import date
from decimal import Decimal

import pytest

from app.config import settings
from app.domain.models import TransactionKind, TransactionStatus
from app.domain.services.recalculation_cascade import MonthLockRegistry
from app.infrastructure.db.repositories.client_repository import ClientRepository
from app.infrastructure.db.repositories.monthly_return_repository import MonthlyReturnRepository
from app.infrastructure.db.repositories.platform_repository import PlatformAllocationRepository
from app.infrastructure.db.repositories.weekly_snapshot_repository import WeeklySnapshotRepository
from app.services.ledger_service import (
    DuplicateWeeklySnapshotError,
    LedgerService,
    LedgerValidationError,
    NotFoundError,
    OverlappingWeeklySnapshotError,
)
from app.services.portfolio_service import PortfolioService

TODAY = date(2026, 3, 15)


def today():
    return TODAY


def make_service(db_session, **overrides) -> LedgerService:
    service_settings = settings.model_copy(update=overrides) if overrides else settings
    return LedgerService(db_session, settings=service_settings, locks=MonthLockRegistry(), today=today)


@pytest.fixture()
async def clients(db_session):
    repo = ClientRepository(db_session)
    asha = await repo.create("Asha")
    ravi = await repo.create("Ravi")
    await db_session.commit()
    return asha, ravi


@pytest.fixture()
async def platform(db_session):
    repo = PlatformAllocationRepository(db_session)
    alpha = await repo.create("Alpha", Decimal("4000"), date(2026, 1, 1), Decimal("10"), Decimal("4400"))
    await db_session.commit()
    return alpha


@pytest.mark.asyncio
@pytest.mark.integration
async def test_recording_a_deposit_recalculates_through_today(db_session, clients, platform):
    asha, _ = clients
    service = make_service(db_session)

    outcome = await service.record_transaction(asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 1, 10))

    assert outcome.recalculated
    assert outcome.recalculation.months_recalculated == 3
    snapshots = await MonthlyReturnRepository(db_session).list_all()
    assert [s.month for s in snapshots] == [date(2026, 1, 1), date(2026, 2, 1), date(2026, 3, 1)]
    assert snapshots[0].client_returns[0].return_amount == Decimal("100")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_edit_cascades_to_later_months(db_session, clients, platform):
    asha, _ = clients
    service = make_service(db_session)
    january = await service.record_transaction(asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 1, 5))
    await service.record_transaction(asha.id, Decimal("500"), TransactionKind.DEPOSIT, date(2026, 2, 5))

    outcome = await service.edit_transaction(january.record.id, Decimal("2000"), reason="wrong amount", editor="ops")

    repo = MonthlyReturnRepository(db_session)
    assert outcome.record.is_edited
    assert outcome.record.edit_history[0].previous_amount == Decimal("1000")
    assert (await repo.get_for_month(date(2026, 1, 1))).total_corpus == Decimal("2000")
    assert (await repo.get_for_month(date(2026, 2, 1))).total_corpus == Decimal("2500")

    history = await service.transaction_history(asha.id, edited_only=True)
    assert [t.id for t in history] == [january.record.id]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_cancel_is_soft_and_recalculates(db_session, clients, platform):
    asha, ravi = clients
    service = make_service(db_session)
    await service.record_transaction(asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 2, 1))
    ravi_txn = await service.record_transaction(ravi.id, Decimal("3000"), TransactionKind.DEPOSIT, date(2026, 2, 1))

    outcome = await service.cancel_transaction(ravi_txn.record.id)

    assert outcome.record.status == TransactionStatus.CANCELLED
    february = await MonthlyReturnRepository(db_session).get_for_month(date(2026, 2, 1))
    assert february.total_corpus == Decimal("1000")
    assert [c.client_id for c in february.client_returns] == [asha.id]
    assert len(await service.transaction_history(ravi.id)) == 1

    with pytest.raises(LedgerValidationError):
        await service.cancel_transaction(ravi_txn.record.id)
    with pytest.raises(LedgerValidationError):
        await service.edit_transaction(ravi_txn.record.id, Decimal("10"), reason="late")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_rejected_mutations(db_session, clients):
    asha, _ = clients
    service = make_service(db_session)

    with pytest.raises(NotFoundError):
        await service.record_transaction(999, Decimal("10"), TransactionKind.DEPOSIT, date(2026, 1, 1))
    with pytest.raises(LedgerValidationError):
        await service.record_transaction(asha.id, Decimal("0"), TransactionKind.DEPOSIT, date(2026, 1, 1))
    with pytest.raises(NotFoundError):
        await service.edit_transaction(999, Decimal("10"), reason="x")

    txn = await service.record_transaction(asha.id, Decimal("10"), TransactionKind.DEPOSIT, date(2026, 1, 1))
    with pytest.raises(LedgerValidationError):
        await service.edit_transaction(txn.record.id, Decimal("20"), reason="  ")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_recalculation_failure_keeps_the_mutation(db_session, clients, platform):
    asha, _ = clients
    service = make_service(db_session)
    store = service.engine.calculator.snapshot_store
    original_upsert = store.upsert

    async def failing_upsert(snapshot):
        if snapshot.month == date(2026, 2, 1):
            raise ConnectionError("store unavailable")
        return await original_upsert(snapshot)

    store.upsert = failing_upsert

    outcome = await service.record_transaction(asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 1, 5))

    assert not outcome.recalculated
    assert outcome.resume_from == date(2026, 2, 1)
    assert outcome.recalculation.months_recalculated == 1
    assert "store unavailable" in outcome.recalculation_error

    persisted = await service.transaction_history(asha.id)
    assert [t.amount for t in persisted] == [Decimal("1000")]
    months = [s.month for s in await MonthlyReturnRepository(db_session).list_all()]
    assert months == [date(2026, 1, 1)]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_bulk_update_reports_unknown_platforms(db_session, clients, platform):
    service = make_service(db_session)

    outcome = await service.bulk_update_platform_returns([(platform.id, Decimal("5")), (999, Decimal("1"))])

    assert [r.success for r in outcome.results] == [True, False]
    assert outcome.results[1].error == "Platform not found"
    updated = await PlatformAllocationRepository(db_session).get(platform.id)
    assert updated.current_value == Decimal("4200")
    assert outcome.recalculation.months_recalculated == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_weekly_entry_and_gap_fill(db_session, platform):
    service = make_service(db_session)
    await service.record_weekly_snapshot(platform.id, date(2026, 1, 5), Decimal("90"), Decimal("100"), entered_by="ops")
    await service.record_weekly_snapshot(platform.id, date(2026, 1, 26), Decimal("130"), Decimal("135"), entered_by="ops")

    with pytest.raises(DuplicateWeeklySnapshotError):
        await service.record_weekly_snapshot(platform.id, date(2026, 1, 5), Decimal("1"), Decimal("2"))

    created, outcome = await service.interpolate_weekly_gaps(platform.id, date(2026, 1, 5), date(2026, 1, 26))

    assert [s.closing_value for s in created] == [Decimal("110"), Decimal("120")]
    assert outcome is None
    history = await WeeklySnapshotRepository(db_session).list_for_platform(platform.id)
    assert [s.is_interpolated for s in history] == [False, True, True, False]

    again, _ = await service.interpolate_weekly_gaps(platform.id, date(2026, 1, 5), date(2026, 1, 26))
    assert again == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_weekly_entry_overlapping_a_stored_week_is_rejected(db_session, platform):
    service = make_service(db_session)
    await service.record_weekly_snapshot(platform.id, date(2026, 2, 1), Decimal("90"), Decimal("100"))

    with pytest.raises(OverlappingWeeklySnapshotError):
        await service.record_weekly_snapshot(platform.id, date(2026, 2, 2), Decimal("100"), Decimal("105"))
    with pytest.raises(OverlappingWeeklySnapshotError):
        await service.record_weekly_snapshot(platform.id, date(2026, 1, 26), Decimal("80"), Decimal("90"))

    accepted = await service.record_weekly_snapshot(platform.id, date(2026, 2, 8), Decimal("100"), Decimal("104"))
    assert accepted.record.week_end_date == date(2026, 2, 14)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_recent_gap_fill_follows_each_platform_week_grid(db_session, platform):
    beta = await PlatformAllocationRepository(db_session).create("Beta", Decimal("50"), date(2026, 1, 1))
    await db_session.commit()
    service = LedgerService(
        db_session, settings=settings, locks=MonthLockRegistry(), today=lambda: date(2026, 3, 2)
    )
    # Alpha reports Sunday weeks, Beta Monday weeks
    await service.record_weekly_snapshot(platform.id, date(2026, 2, 1), Decimal("90"), Decimal("100"))
    await service.record_weekly_snapshot(platform.id, date(2026, 2, 22), Decimal("130"), Decimal("135"))
    await service.record_weekly_snapshot(beta.id, date(2026, 2, 2), Decimal("50"), Decimal("55"))
    await service.record_weekly_snapshot(beta.id, date(2026, 2, 23), Decimal("70"), Decimal("72"))

    counts = await service.interpolate_recent_weeks(5)

    assert counts == {platform.id: 2, beta.id: 2}
    repo = WeeklySnapshotRepository(db_session)
    alpha_weeks = await repo.list_for_platform(platform.id)
    assert [w.week_start_date for w in alpha_weeks] == [
        date(2026, 2, 1), date(2026, 2, 8), date(2026, 2, 15), date(2026, 2, 22),
    ]
    assert [w.closing_value for w in alpha_weeks if w.is_interpolated] == [Decimal("110"), Decimal("120")]
    beta_weeks = await repo.list_for_platform(beta.id)
    assert [w.closing_value for w in beta_weeks if w.is_interpolated] == [Decimal("60"), Decimal("65")]

    assert await service.interpolate_recent_weeks(5) == {platform.id: 0, beta.id: 0}


@pytest.mark.asyncio
@pytest.mark.integration
async def test_weekly_source_drives_monthly_returns(db_session, clients, platform):
    asha, _ = clients
    service = make_service(db_session, PLATFORM_VALUE_SOURCE="weekly")
    await service.record_transaction(asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 2, 1))

    outcome = await service.record_weekly_snapshot(platform.id, date(2026, 2, 2), Decimal("4000"), Decimal("4200"))

    assert outcome.recalculated
    february = await MonthlyReturnRepository(db_session).get_for_month(date(2026, 2, 1))
    assert february.total_platform_value == Decimal("4200")
    assert february.monthly_return_percentage == Decimal("5")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_client_portfolio_summary(db_session, clients, platform):
    asha, _ = clients
    service = make_service(db_session)
    await service.record_transaction(asha.id, Decimal("1000"), TransactionKind.DEPOSIT, date(2026, 1, 5))

    portfolio = await PortfolioService(db_session, today=today).client_portfolio(asha.id)

    assert portfolio.total_invested == Decimal("1000")
    assert [line.month for line in portfolio.monthly_returns] == [
        date(2026, 1, 1), date(2026, 2, 1), date(2026, 3, 1)
    ]
    assert portfolio.current_value == Decimal("1100")
    assert portfolio.return_percentage == Decimal("10.00")
    assert portfolio.previous_closing_balance == Decimal("1100")
    assert await PortfolioService(db_session, today=today).client_portfolio(999) is None
