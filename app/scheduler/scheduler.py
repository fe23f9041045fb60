"""
SCHEDULER BOOTSTRAP

Initializes and manages the APScheduler instance.
Scheduler is orchestration-only and contains no business logic.
"""

import logging
from typing import Optional, Tuple

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from app.config import settings
from app.scheduler.jobs import interpolate_weekly_gaps_job, refresh_current_month_job

_logger = logging.getLogger(__name__)


def parse_run_time(value: str) -> Tuple[int, int]:
    """'HH:MM' -> (hour, minute)"""
    try:
        hour_str, minute_str = value.split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise ValueError(f"Invalid run time {value!r}, expected HH:MM")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid run time {value!r}, expected HH:MM")
    return hour, minute


class ReturnsScheduler:
    """Daily current-month refresh and weekly gap interpolation"""

    def __init__(self, timezone: Optional[str] = None, daily_time: Optional[str] = None):
        self.timezone = pytz.timezone(timezone or settings.TIMEZONE)
        self.scheduler = AsyncIOScheduler(timezone=self.timezone)
        self.daily_time = daily_time or settings.DAILY_REFRESH_TIME

    def register_jobs(self):
        hour, minute = parse_run_time(self.daily_time)

        # Daily refresh of the current month
        self.scheduler.add_job(
            refresh_current_month_job,
            CronTrigger(hour=hour, minute=minute, timezone=self.timezone),
            id="daily_returns_refresh",
            name="Daily Returns Refresh",
            replace_existing=True,
        )

        # Weekly gap fill, Mondays
        self.scheduler.add_job(
            interpolate_weekly_gaps_job,
            CronTrigger(day_of_week="mon", hour=hour, minute=minute, timezone=self.timezone),
            id="weekly_gap_interpolation",
            name="Weekly Gap Interpolation",
            replace_existing=True,
        )

    def start(self):
        _logger.info("Starting returns scheduler...")
        self.register_jobs()
        self.scheduler.start()
        for job in self.scheduler.get_jobs():
            _logger.info("Scheduled %s - next run: %s", job.name, job.next_run_time)

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            _logger.info("Scheduler stopped")
