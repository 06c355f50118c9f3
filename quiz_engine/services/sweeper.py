"""
Background expiry sweeper

Runs the expiry sweep on an APScheduler interval job. Each run uses its own
session from the session factory.
"""
import logging
from typing import Any, Callable, Dict
from apscheduler.schedulers import SchedulerAlreadyRunningError
from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from quiz_engine.config import settings
from quiz_engine.database import SessionLocal
from quiz_engine.services.quiz_attempt_service import quiz_attempt_service, QuizAttemptService

logger = logging.getLogger(__name__)

JOB_ID = "expire_attempts"


class ExpirySweeper:
    """Scheduled job that expires overdue in-progress attempts"""

    def __init__(
        self,
        interval_seconds: int = None,
        session_factory: Callable[[], Session] = None,
        service: QuizAttemptService = None,
        scheduler: BackgroundScheduler = None
    ):
        self.interval_seconds = interval_seconds or settings.SWEEP_INTERVAL_SECONDS
        self.session_factory = session_factory or SessionLocal
        self.service = service or quiz_attempt_service
        self.scheduler = scheduler or BackgroundScheduler(timezone="UTC")

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def run_once(self) -> Dict[str, Any]:
        """One sweep in a fresh session"""
        db = self.session_factory()
        try:
            return self.service.sweep_expired_attempts(db)
        finally:
            db.close()

    def start(self) -> None:
        """Register the sweep job and start the scheduler"""
        self.scheduler.add_job(
            self.run_once,
            "interval",
            seconds=self.interval_seconds,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            replace_existing=True
        )

        try:
            self.scheduler.start()
        except SchedulerAlreadyRunningError:
            logger.info("Expiry sweeper already running")
            return

        logger.info(f"Expiry sweeper started (interval: {self.interval_seconds}s)")

    def stop(self) -> None:
        if not self.scheduler.running:
            return

        self.scheduler.shutdown()
        logger.info("Expiry sweeper stopped")


# Global instance
expiry_sweeper = ExpirySweeper()
