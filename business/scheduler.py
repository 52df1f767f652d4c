"""定时任务调度器

只负责按 cron 规则触发任务，具体的报表逻辑在 business/reports.py 中，
通过回调函数注入。
"""
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from typing import Callable, List, Optional
from loguru import logger

WEEKDAY_NAMES = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class Scheduler:
    """定时任务调度器

    业务逻辑通过回调函数注入，调度器本身不依赖业务模块。
    需要在事件循环运行后调用 start()。

    Args:
        timezone: 时区名称（如 'Asia/Seoul'），默认使用本地时区
    """

    def __init__(self, timezone: Optional[str] = None):
        kwargs = {"timezone": timezone} if timezone else {}
        self.scheduler = AsyncIOScheduler(**kwargs)

    def add_daily_task(
        self,
        task_func: Callable,
        hour: int = 9,
        minute: int = 0,
        task_id: str = 'daily_task',
        task_name: str = '每日任务'
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数（async 函数）
            hour: 小时 (0-23)
            minute: 分钟 (0-59)
            task_id: 任务ID
            task_name: 任务名称
        """
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def add_weekly_task(
        self,
        task_func: Callable,
        day_of_week: str = 'mon',
        hour: int = 9,
        minute: int = 0,
        task_id: str = 'weekly_task',
        task_name: str = '每周任务'
    ):
        """添加每周定时任务

        Args:
            day_of_week: 星期（'mon' ~ 'sun'）
        """
        if day_of_week not in WEEKDAY_NAMES:
            raise ValueError(f"Invalid day_of_week: {day_of_week}")
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(day_of_week=day_of_week, hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(
            f"Added weekly task '{task_name}' on {day_of_week} at {hour:02d}:{minute:02d}"
        )

    def add_monthly_task(
        self,
        task_func: Callable,
        day: int = 1,
        hour: int = 9,
        minute: int = 0,
        task_id: str = 'monthly_task',
        task_name: str = '每月任务'
    ):
        """添加每月定时任务

        Args:
            day: 每月第几天 (1-28)
        """
        if not 1 <= day <= 28:
            raise ValueError(f"Invalid day of month: {day}")
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(day=day, hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            replace_existing=True
        )
        logger.info(
            f"Added monthly task '{task_name}' on day {day} at {hour:02d}:{minute:02d}"
        )

    def setup_report_jobs(self, daily: Callable, weekly: Callable,
                          monthly: Callable, hour: int = 9, minute: int = 0):
        """注册三个报表任务：每日提醒、周一周报、每月 1 日月报"""
        self.add_daily_task(daily, hour, minute, 'daily_alerts', '每日提醒')
        self.add_weekly_task(weekly, 'mon', hour, minute, 'weekly_report', '周报')
        self.add_monthly_task(monthly, 1, hour, minute, 'monthly_report', '月报')

    def get_job_ids(self) -> List[str]:
        return [job.id for job in self.scheduler.get_jobs()]

    def start(self):
        """启动调度器"""
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """停止调度器"""
        if self.scheduler.running:
            self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        """移除任务

        Args:
            job_id: 任务ID
        """
        try:
            self.scheduler.remove_job(job_id)
            logger.info(f"Job {job_id} removed")
        except JobLookupError as e:
            logger.warning(f"Failed to remove job {job_id}: {e}")
