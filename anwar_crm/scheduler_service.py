"""
Scheduler for the Anwar sales CRM background jobs
- Daily system health check (08:00, emailed to the admin)
- Hourly purge of expired bot conversation state
"""

import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from anwar_crm import config

logger = logging.getLogger("scheduler")


class TaskScheduler:
    """Scheduled task manager"""

    def __init__(self):
        self.scheduler = AsyncIOScheduler(timezone=config.APP_TZ)

    def start(self):
        """Register every job and start the scheduler"""
        self.scheduler.add_job(
            self.run_daily_health_check,
            CronTrigger(hour=8, minute=0),
            id="daily_health_check",
            name="Daily system health check",
            replace_existing=True
        )

        self.scheduler.add_job(
            self.purge_bot_state,
            CronTrigger(minute=15),
            id="purge_bot_state",
            name="Purge expired bot state",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        if self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")

    # ==================== SCHEDULED TASKS ====================

    async def run_daily_health_check(self):
        from anwar_crm.services.health_check import perform_system_health_check

        try:
            report = await perform_system_health_check(send_email=True)
            logger.info(f"[HEALTH] Daily check done: {report['overall_status']}")
        except Exception as e:
            logger.error(f"[HEALTH] Daily check failed: {str(e)}")

    async def purge_bot_state(self):
        from anwar_crm.services.conversation_state import purge_expired_state

        try:
            await purge_expired_state()
        except Exception as e:
            logger.error(f"[BOT] Purge failed: {str(e)}")


# Global instance
task_scheduler = TaskScheduler()
