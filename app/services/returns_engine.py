# app/services/returns_engine.py

"""
SERVICE - RETURNS ENGINE WIRING

Builds the domain services over SQLAlchemy repositories bound to one
session, so every read of a calculation goes through the same transaction.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings as app_settings
from app.domain.models import CompoundingPolicy, PlatformValueSource
from app.domain.services.corpus_resolver import CorpusResolver
from app.domain.services.monthly_return_calculator import MonthlyReturnCalculator
from app.domain.services.platform_return_aggregator import PlatformReturnAggregator
from app.domain.services.recalculation_cascade import MonthLockRegistry, RecalculationCascade
from app.domain.services.weekly_interpolator import WeeklyInterpolator
from app.infrastructure.db.repositories.client_repository import ClientRepository
from app.infrastructure.db.repositories.monthly_return_repository import MonthlyReturnRepository
from app.infrastructure.db.repositories.platform_repository import PlatformAllocationRepository
from app.infrastructure.db.repositories.transaction_repository import TransactionRepository
from app.infrastructure.db.repositories.weekly_snapshot_repository import WeeklySnapshotRepository
from app.utils.time import today_local


@dataclass
class ReturnsEngine:
    """Engine components sharing one session"""
    corpus_resolver: CorpusResolver
    platform_aggregator: PlatformReturnAggregator
    interpolator: WeeklyInterpolator
    calculator: MonthlyReturnCalculator
    cascade: RecalculationCascade
    snapshots: MonthlyReturnRepository


def build_returns_engine(
    session: AsyncSession,
    settings=app_settings,
    locks: Optional[MonthLockRegistry] = None,
    today: Callable[[], date] = today_local,
    commit_each_month: bool = False,
) -> ReturnsEngine:
    """
    Wire the engine for one session.

    With commit_each_month the cascade commits after every month, so a
    failure part-way keeps the months already recalculated.
    """
    weekly_repo = WeeklySnapshotRepository(session)
    snapshot_repo = MonthlyReturnRepository(session)

    corpus_resolver = CorpusResolver(
        transaction_store=TransactionRepository(session),
        client_directory=ClientRepository(session),
    )
    aggregator = PlatformReturnAggregator(
        platform_store=PlatformAllocationRepository(session),
        weekly_store=weekly_repo,
        value_source=PlatformValueSource(settings.PLATFORM_VALUE_SOURCE),
    )
    calculator = MonthlyReturnCalculator(
        corpus_resolver=corpus_resolver,
        platform_aggregator=aggregator,
        snapshot_store=snapshot_repo,
        policy=CompoundingPolicy(settings.RETURN_COMPOUNDING),
    )
    cascade = RecalculationCascade(
        calculator=calculator,
        locks=locks,
        today=today,
        max_months=settings.CASCADE_MAX_MONTHS,
        checkpoint=session.commit if commit_each_month else None,
    )

    return ReturnsEngine(
        corpus_resolver=corpus_resolver,
        platform_aggregator=aggregator,
        interpolator=WeeklyInterpolator(weekly_repo),
        calculator=calculator,
        cascade=cascade,
        snapshots=snapshot_repo,
    )
