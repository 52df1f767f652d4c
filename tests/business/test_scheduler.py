"""Scheduler wiring tests."""
import pytest

from business.scheduler import Scheduler


async def _noop():
    return None


class TestScheduler:
    def test_setup_report_jobs(self):
        scheduler = Scheduler(timezone="Asia/Seoul")
        scheduler.setup_report_jobs(_noop, _noop, _noop, hour=8, minute=30)

        assert sorted(scheduler.get_job_ids()) == [
            "daily_alerts", "monthly_report", "weekly_report"
        ]
        weekly = scheduler.scheduler.get_job("weekly_report")
        assert "day_of_week='mon'" in str(weekly.trigger)
        assert "hour='8'" in str(weekly.trigger)
        monthly = scheduler.scheduler.get_job("monthly_report")
        assert "day='1'" in str(monthly.trigger)

    @pytest.mark.asyncio
    async def test_replace_existing_job(self):
        scheduler = Scheduler()
        scheduler.add_daily_task(_noop, 9, 0, "daily_alerts")
        scheduler.add_daily_task(_noop, 10, 0, "daily_alerts")
        scheduler.start()
        try:
            assert scheduler.get_job_ids() == ["daily_alerts"]
            job = scheduler.scheduler.get_job("daily_alerts")
            assert "hour='10'" in str(job.trigger)
        finally:
            scheduler.stop()

    def test_invalid_arguments(self):
        scheduler = Scheduler()
        with pytest.raises(ValueError):
            scheduler.add_weekly_task(_noop, day_of_week="monday")
        with pytest.raises(ValueError):
            scheduler.add_monthly_task(_noop, day=31)

    def test_remove_missing_job_is_logged(self):
        scheduler = Scheduler()
        scheduler.add_daily_task(_noop, task_id="daily_alerts")
        scheduler.remove_job("daily_alerts")
        scheduler.remove_job("daily_alerts")
        assert scheduler.get_job_ids() == []

    @pytest.mark.asyncio
    async def test_start_and_stop(self):
        scheduler = Scheduler()
        scheduler.add_daily_task(_noop, task_id="daily_alerts")
        scheduler.start()
        assert scheduler.scheduler.running
        scheduler.stop()
        scheduler.stop()
