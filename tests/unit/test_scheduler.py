import pytest

from app.scheduler.scheduler import ReturnsScheduler, parse_run_time


@pytest.mark.unit
def test_parse_run_time():
    assert parse_run_time("18:05") == (18, 5)

    with pytest.raises(ValueError):
        parse_run_time("25:00")
    with pytest.raises(ValueError):
        parse_run_time("six")


@pytest.mark.unit
def test_jobs_registered_without_starting():
    scheduler = ReturnsScheduler(timezone="Asia/Kolkata", daily_time="06:30")

    scheduler.register_jobs()

    jobs = {job.id: job for job in scheduler.scheduler.get_jobs()}
    assert set(jobs) == {"daily_returns_refresh", "weekly_gap_interpolation"}
    assert str(jobs["daily_returns_refresh"].trigger.timezone) == "Asia/Kolkata"
    assert not scheduler.scheduler.running
