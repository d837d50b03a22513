"""Deadline Service - Reminders for tasks approaching their due date"""
from datetime import datetime, timedelta
from typing import Dict, Optional

from ..engine.dispatcher import SideEffectDispatcher, deadline_intent
from ..repositories.task_repo import TaskRepository
from ..utils.time import utc_now, start_of_day
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Days before the due date at which the assignee is reminded
REMINDER_OFFSETS = (3, 1, 0)


class DeadlineService:
    """
    Remind assignees of unfinished tasks due in 3, 1 or 0 days

    Each (task, due date, offset) is reminded once, however often the job
    runs. Moving the due date re-arms the reminders.
    """

    def __init__(self):
        self.task_repo = TaskRepository()
        self.dispatcher = SideEffectDispatcher()

    def run(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """Scan once and send what is due; returns counts per offset"""
        today = start_of_day(now or utc_now())
        sent: Dict[str, int] = {}

        for days in REMINDER_OFFSETS:
            window_start = today + timedelta(days=days)
            tasks = self.task_repo.find_open_due_between(window_start, window_start + timedelta(days=1))
            count = 0
            for task in tasks:
                if self.dispatcher.notify(deadline_intent(task, days)):
                    count += 1
            sent[str(days)] = count

        total = sum(sent.values())
        if total:
            logger.info(f"Sent {total} deadline reminders", extra={"status": sent})
        return sent
