"""
SCHEDULER JOB DEFINITIONS

Jobs are thin wrappers that:
- Log execution
- Obtain a DB session
- Call existing services

NO business logic is allowed here.
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.domain.services.recalculation_cascade import RecalculationError
from app.infrastructure.db.database import async_session_factory
from app.services.ledger_service import LedgerService
from app.services.returns_engine import build_returns_engine
from app.utils.time import today_local

_logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# DAILY RETURNS REFRESH
# -------------------------------------------------------------------

async def refresh_current_month_job():
    """
    Recalculate the current month so the snapshot follows the latest
    platform values even on days without a mutation.
    """
    today = today_local()
    _logger.info("Running daily returns refresh for %s", today.strftime("%Y-%m"))

    async with async_session_factory() as session:
        engine = build_returns_engine(session, today=today_local, commit_each_month=True)
        try:
            result = await engine.cascade.recalculate_from_date(today)
            await session.commit()
        except RecalculationError as exc:
            await session.rollback()
            _logger.error(
                "Daily returns refresh failed; resume from %s: %s",
                exc.resume_from.strftime("%Y-%m"), exc.cause,
            )
            return None

    _logger.info("Daily returns refresh done (%s month(s))", result.months_recalculated)
    return result


# -------------------------------------------------------------------
# WEEKLY GAP FILL
# -------------------------------------------------------------------

async def interpolate_weekly_gaps_job():
    """Fill missing weeks for every active platform over the lookback window"""
    lookback = settings.WEEKLY_INTERPOLATION_LOOKBACK_WEEKS
    _logger.info("Running weekly gap interpolation (lookback=%s weeks)", lookback)

    async with async_session_factory() as session:
        try:
            counts = await LedgerService(session, today=today_local).interpolate_recent_weeks(lookback)
        except SQLAlchemyError:
            await session.rollback()
            _logger.exception("Weekly gap interpolation failed")
            return None

    created = sum(counts.values())
    _logger.info("Weekly gap interpolation created %s week(s) across %s platform(s)", created, len(counts))
    return counts
