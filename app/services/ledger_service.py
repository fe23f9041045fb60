# app/services/ledger_service.py

"""
SERVICE - LEDGER & PLATFORM MUTATIONS

Every mutation is committed first, then triggers recalculation from its
effective date. Recalculation failures are logged and reported back but
never undo the mutation; the next successful cascade covering the month
reconciles it.
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence, Tuple
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings as app_settings
from app.domain.models import (
    CascadeResult,
    PlatformValueSource,
    Transaction,
    TransactionKind,
    TransactionStatus,
    WeeklySnapshot,
)
from app.domain.services.recalculation_cascade import MonthLockRegistry, RecalculationError
from app.domain.services.weekly_interpolator import WEEK_SPAN, build_weekly_snapshot
from app.infrastructure.db.repositories.client_repository import ClientRepository
from app.infrastructure.db.repositories.platform_repository import PlatformAllocationRepository
from app.infrastructure.db.repositories.transaction_repository import TransactionRepository
from app.infrastructure.db.repositories.weekly_snapshot_repository import WeeklySnapshotRepository
from app.services.returns_engine import build_returns_engine
from app.utils.time import today_local

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Base class for rejected ledger / platform mutations"""


class NotFoundError(LedgerError):
    pass


class LedgerValidationError(LedgerError, ValueError):
    pass


class DuplicateWeeklySnapshotError(LedgerValidationError):
    pass


class OverlappingWeeklySnapshotError(DuplicateWeeklySnapshotError):
    """Entered week shares days with a stored week of the same platform"""


@dataclass
class MutationOutcome:
    """Mutated record plus what happened to the recalculation it triggered"""
    record: Any
    recalculation: Optional[CascadeResult] = None
    recalculation_error: Optional[str] = None
    resume_from: Optional[date] = None

    @property
    def recalculated(self) -> bool:
        return self.recalculation is not None and self.recalculation_error is None


@dataclass
class BulkUpdateItem:
    platform_id: int
    success: bool
    platform_name: Optional[str] = None
    error: Optional[str] = None


@dataclass
class BulkUpdateOutcome:
    results: List[BulkUpdateItem] = field(default_factory=list)
    recalculation: Optional[CascadeResult] = None
    recalculation_error: Optional[str] = None


class LedgerService:
    """Mutation entry points that keep monthly snapshots in step with the ledger"""

    def __init__(
        self,
        session: AsyncSession,
        settings=app_settings,
        locks: Optional[MonthLockRegistry] = None,
        today=today_local,
    ):
        self.session = session
        self.settings = settings
        self.today = today
        self.clients = ClientRepository(session)
        self.transactions = TransactionRepository(session)
        self.platforms = PlatformAllocationRepository(session)
        self.weekly = WeeklySnapshotRepository(session)
        self.engine = build_returns_engine(
            session,
            settings=settings,
            locks=locks,
            today=today,
            commit_each_month=True,
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    async def record_transaction(
        self,
        client_id: int,
        amount: Decimal,
        kind: TransactionKind,
        transaction_date: date,
    ) -> MutationOutcome:
        _require_positive(amount, "Amount")
        if await self.clients.get(client_id) is None:
            raise NotFoundError(f"Client {client_id} not found")

        txn = await self.transactions.create(client_id, amount, kind, transaction_date)
        await self.session.commit()

        logger.info(
            "Recorded %s %s for client %s on %s (txn=%s)",
            kind.value, amount, client_id, transaction_date, txn.id,
        )
        return await self._recalculate(txn, transaction_date)

    async def edit_transaction(
        self,
        transaction_id: int,
        new_amount: Decimal,
        reason: str,
        editor: Optional[str] = None,
    ) -> MutationOutcome:
        _require_positive(new_amount, "Amount")
        if not reason or not reason.strip():
            raise LedgerValidationError("Reason for edit is required")

        existing = await self._get_transaction(transaction_id)
        if existing.status == TransactionStatus.CANCELLED:
            raise LedgerValidationError(f"Transaction {transaction_id} is cancelled")

        txn = await self.transactions.update_amount(transaction_id, new_amount, editor, reason.strip())
        await self.session.commit()

        logger.info(
            "Edited txn %s: %s -> %s by %s (%s)",
            transaction_id, existing.amount, new_amount, editor or "unknown", reason,
        )
        return await self._recalculate(txn, txn.transaction_date)

    async def cancel_transaction(self, transaction_id: int) -> MutationOutcome:
        """Soft delete: the entry stays in the ledger with status cancelled"""
        existing = await self._get_transaction(transaction_id)
        if existing.status == TransactionStatus.CANCELLED:
            raise LedgerValidationError(f"Transaction {transaction_id} is already cancelled")

        txn = await self.transactions.cancel(transaction_id)
        await self.session.commit()

        logger.info("Cancelled txn %s (client=%s, amount=%s)", txn.id, txn.client_id, txn.amount)
        return await self._recalculate(txn, txn.transaction_date)

    async def transaction_history(self, client_id: int, edited_only: bool = False) -> List[Transaction]:
        if await self.clients.get(client_id) is None:
            raise NotFoundError(f"Client {client_id} not found")
        return await self.transactions.list_for_client(client_id, edited_only=edited_only)

    # ------------------------------------------------------------------
    # Platforms
    # ------------------------------------------------------------------

    async def add_platform_allocation(
        self,
        platform_name: str,
        principal_amount: Decimal,
        allocation_date: date,
    ) -> MutationOutcome:
        _require_positive(principal_amount, "Amount")
        if not platform_name or not platform_name.strip():
            raise LedgerValidationError("Platform name is required")

        platform = await self.platforms.create(platform_name.strip(), principal_amount, allocation_date)
        await self.session.commit()

        logger.info("Allocated %s to %s on %s", principal_amount, platform.platform_name, allocation_date)
        return await self._recalculate(platform, allocation_date)

    async def update_platform_returns(
        self,
        platform_id: int,
        return_percentage: Decimal,
        current_value: Decimal,
        effective_date: Optional[date] = None,
    ) -> MutationOutcome:
        """
        Overwrite a platform's latest return and value.

        The effective date defaults to today, i.e. only the current month
        is recalculated.
        """
        if current_value < 0:
            raise LedgerValidationError("Current value must not be negative")

        platform = await self.platforms.update_returns(platform_id, return_percentage, current_value)
        if platform is None:
            raise NotFoundError(f"Platform {platform_id} not found")
        await self.session.commit()

        return await self._recalculate(platform, effective_date or self.today())

    async def bulk_update_platform_returns(
        self,
        updates: Sequence[Tuple[int, Decimal]],
    ) -> BulkUpdateOutcome:
        """
        Apply (platform_id, return_percentage) pairs; value follows the principal.

        Unknown platforms are reported per item rather than failing the batch.
        """
        outcome = BulkUpdateOutcome()
        for platform_id, pct in updates:
            platform = await self.platforms.get(platform_id)
            if platform is None:
                outcome.results.append(
                    BulkUpdateItem(platform_id=platform_id, success=False, error="Platform not found")
                )
                continue
            value = platform.principal_amount * (Decimal("1") + Decimal(pct) / Decimal("100"))
            await self.platforms.update_returns(platform_id, Decimal(pct), value)
            outcome.results.append(
                BulkUpdateItem(platform_id=platform_id, success=True, platform_name=platform.platform_name)
            )
        await self.session.commit()

        recalculated = await self._recalculate(None, self.today())
        outcome.recalculation = recalculated.recalculation
        outcome.recalculation_error = recalculated.recalculation_error
        return outcome

    # ------------------------------------------------------------------
    # Weekly snapshots
    # ------------------------------------------------------------------

    async def record_weekly_snapshot(
        self,
        platform_id: int,
        week_start: date,
        opening_value: Decimal,
        closing_value: Decimal,
        entered_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> MutationOutcome:
        """
        Store an entered week. Recalculates only when platform value is
        time-sliced from weekly history.

        A week that shares any day with a stored week of the same platform
        is rejected, so the history stays one non-overlapping grid.
        """
        if opening_value < 0 or closing_value < 0:
            raise LedgerValidationError("Weekly values must not be negative")
        if await self.platforms.get(platform_id) is None:
            raise NotFoundError(f"Platform {platform_id} not found")

        clash = await self.weekly.find_overlapping(platform_id, week_start, week_start + WEEK_SPAN)
        if clash is not None and clash.week_start_date == week_start:
            raise DuplicateWeeklySnapshotError(
                f"Data for platform {platform_id} and week {week_start} already exists"
            )
        if clash is not None:
            raise OverlappingWeeklySnapshotError(
                f"Week {week_start} of platform {platform_id} overlaps the stored week "
                f"{clash.week_start_date} to {clash.week_end_date}"
            )

        snapshot = await self.weekly.add(
            build_weekly_snapshot(
                platform_id,
                week_start,
                opening_value,
                closing_value,
                entered_by=entered_by,
                notes=notes,
            )
        )
        await self.session.commit()

        if self._weekly_drives_returns():
            return await self._recalculate(snapshot, week_start)
        return MutationOutcome(record=snapshot)

    async def interpolate_weekly_gaps(
        self,
        platform_id: int,
        range_start: date,
        range_end: date,
    ) -> Tuple[List[WeeklySnapshot], Optional[MutationOutcome]]:
        """Fill missing weeks on the platform's own week grid within the range"""
        if await self.platforms.get(platform_id) is None:
            raise NotFoundError(f"Platform {platform_id} not found")

        created = await self.engine.interpolator.fill_gaps_on_grid(platform_id, range_start, range_end)
        await self.session.commit()

        if created and self._weekly_drives_returns():
            return created, await self._recalculate(created, created[0].week_start_date)
        return created, None

    async def interpolate_recent_weeks(self, lookback_weeks: int) -> Dict[int, int]:
        """Gap-fill the trailing window of every active platform; returns counts per platform"""
        today = self.today()
        window_start = today - timedelta(weeks=lookback_weeks)
        counts: Dict[int, int] = {}
        for platform in await self.platforms.list_active():
            created, _ = await self.interpolate_weekly_gaps(platform.id, window_start, today)
            counts[platform.id] = len(created)
        return counts

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _weekly_drives_returns(self) -> bool:
        return PlatformValueSource(self.settings.PLATFORM_VALUE_SOURCE) == PlatformValueSource.WEEKLY

    async def _get_transaction(self, transaction_id: int) -> Transaction:
        txn = await self.transactions.get(transaction_id)
        if txn is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return txn

    async def _recalculate(self, record: Any, from_date: date) -> MutationOutcome:
        try:
            result = await self.engine.cascade.recalculate_from_date(from_date)
        except RecalculationError as exc:
            await self.session.rollback()
            logger.exception(
                "Recalculation after mutation failed; resume from %s",
                exc.resume_from.strftime("%Y-%m"),
            )
            return MutationOutcome(
                record=record,
                recalculation=CascadeResult(
                    from_month=from_date.replace(day=1),
                    months_recalculated=exc.months_recalculated,
                    last_month=None,
                    resume_from=exc.resume_from,
                ),
                recalculation_error=str(exc.cause),
                resume_from=exc.resume_from,
            )
        await self.session.commit()
        return MutationOutcome(record=record, recalculation=result, resume_from=result.resume_from)


def _require_positive(amount: Decimal, label: str) -> None:
    if amount is None or Decimal(amount) <= 0:
        raise LedgerValidationError(f"{label} must be positive")
