"""Dev Scheduler - Background jobs for the portal's retry queues and reminders

Jobs:
- process_outbox: deliver queued emails
- replay_side_effects: re-apply audit entries and in-app notifications whose
  first write failed
- check_deadlines: task deadline reminders
- cleanup_stale_locks: crash recovery for both queues

Both queues are drained the same way: an item is locked in MongoDB before
it is worked on, so several servers can run this scheduler side by side.
"""
import asyncio
import os
import socket
from typing import Callable, Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from ..config.settings import settings
from ..engine.dispatcher import SideEffectDispatcher
from ..repositories.notification_repo import NotificationRepository
from ..repositories.outbox_queue import OutboxQueue
from ..repositories.side_effect_repo import SideEffectRepository
from ..services.notification_service import NotificationService
from ..services.deadline_service import DeadlineService
from ..utils.logger import get_logger, set_correlation_id
from ..utils.idgen import generate_correlation_id, generate_id
from ..utils.time import utc_now

logger = get_logger(__name__)


class DevScheduler:
    """APScheduler jobs with MongoDB distributed locking"""

    def __init__(self):
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.notification_repo = NotificationRepository()
        self.side_effect_repo = SideEffectRepository()
        self.notification_service = NotificationService()
        self.dispatcher = SideEffectDispatcher()
        self.deadline_service = DeadlineService()
        self._is_running = False
        self._server_id = f"{socket.gethostname()}-{os.getpid()}-{generate_id()[:8]}"

    def start(self) -> None:
        if self._is_running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler()
        jobs = (
            (self._process_outbox, IntervalTrigger(seconds=settings.scheduler_interval_seconds), "process_outbox"),
            (self._replay_side_effects, IntervalTrigger(seconds=settings.scheduler_interval_seconds), "replay_side_effects"),
            (self._check_deadlines, IntervalTrigger(minutes=settings.deadline_check_interval_minutes), "check_deadlines"),
            (self._cleanup_stale_locks, IntervalTrigger(minutes=5), "cleanup_stale_locks"),
        )
        for func, trigger, job_id in jobs:
            self.scheduler.add_job(func, trigger=trigger, id=job_id, replace_existing=True)

        self.scheduler.start()
        self._is_running = True
        logger.info(f"Scheduler started on {self._server_id} with jobs: {', '.join(j[2] for j in jobs)}")

    def stop(self) -> None:
        if self.scheduler:
            self.scheduler.shutdown()
            self._is_running = False
            logger.info("Scheduler stopped")

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def _drain(self, queue: OutboxQueue, handle: Callable[..., bool], label: str) -> None:
        """
        Lock and handle every due item of a queue.

        Handlers do blocking I/O (SMTP, MongoDB), so each runs in a worker
        thread. A handler records its own failure on the item.
        """
        set_correlation_id(generate_correlation_id())
        start_time = utc_now()
        done = failed = skipped = 0

        try:
            for item in queue.get_pending(limit=50):
                lock_id = f"{self._server_id}-{generate_id()[:8]}"
                if not queue.acquire_lock(item.id, lock_id, settings.notification_lock_duration_seconds):
                    # Another server has it
                    skipped += 1
                    continue
                try:
                    if await asyncio.to_thread(handle, item):
                        done += 1
                    else:
                        failed += 1
                finally:
                    queue.release_lock(item.id, lock_id)

        except Exception as e:
            logger.error(f"Error in {label} job: {e}", extra={"error_code": type(e).__name__}, exc_info=True)
            return

        if done or failed:
            duration_ms = (utc_now() - start_time).total_seconds() * 1000
            logger.info(f"{label}: {done} done, {failed} failed, {skipped} skipped ({round(duration_ms, 2)} ms)")

    async def _process_outbox(self) -> None:
        await self._drain(self.notification_repo, self.notification_service.send_notification, "Email outbox")

    async def _replay_side_effects(self) -> None:
        await self._drain(self.side_effect_repo, self.dispatcher.retry_deferred, "Side-effect replay")

    async def _check_deadlines(self) -> None:
        set_correlation_id(generate_correlation_id())
        try:
            await asyncio.to_thread(self.deadline_service.run)
        except Exception as e:
            logger.error(f"Error in deadline reminder job: {e}", extra={"error_code": type(e).__name__})

    async def _cleanup_stale_locks(self) -> None:
        for queue in (self.notification_repo, self.side_effect_repo):
            queue.cleanup_stale_locks(max_lock_age_minutes=settings.stale_lock_cleanup_minutes)


_scheduler: Optional[DevScheduler] = None


def get_scheduler() -> DevScheduler:
    global _scheduler
    if _scheduler is None:
        _scheduler = DevScheduler()
    return _scheduler


def stop_scheduler() -> None:
    global _scheduler
    if _scheduler:
        _scheduler.stop()
        _scheduler = None
