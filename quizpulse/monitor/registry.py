"""
Monitor Registry

Owns the live monitors of all assessments being watched. Each monitor gets
its own transport subscription and consumer task, so the state of one
assessment is never touched by events of another.
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from quizpulse.common.exceptions import MonitorError
from quizpulse.common.logger import app_logger
from quizpulse.domain.roster import RosterProvider
from quizpulse.events.bus import EventSubscription, EventTransport
from quizpulse.monitor.live_monitor import LiveMonitor
from quizpulse.monitor.progress import MonitorSnapshot

# Module logger
logger = app_logger.getChild("monitor.registry")


@dataclass
class _MonitorEntry:
    monitor: LiveMonitor
    subscription: EventSubscription
    task: asyncio.Task


class MonitorRegistry:
    """
    Registry of live monitors keyed by assessment id.

    Attributes:
        transport: Where monitors subscribe for events
        roster: Optional provider of course enrollments
    """

    def __init__(
        self,
        transport: EventTransport,
        roster: Optional[RosterProvider] = None,
        dedup_window: Optional[int] = None
    ):
        self.transport = transport
        self.roster = roster
        self.dedup_window = dedup_window
        self._entries: Dict[str, _MonitorEntry] = {}
        self._lock = threading.RLock()

    async def open(self, assessment_id: str, course_id: Optional[str] = None) -> LiveMonitor:
        """
        Start monitoring an assessment.

        Args:
            assessment_id: The assessment to monitor
            course_id: The assessment's course; its enrollments become the roster

        Returns:
            The new monitor

        Raises:
            MonitorError: If the assessment is already monitored
        """
        assessment_id = str(assessment_id)
        if assessment_id in self:
            raise MonitorError(
                f"Assessment {assessment_id} is already monitored",
                details={"assessment_id": assessment_id}
            )

        students = []
        if self.roster is not None and course_id is not None:
            students = await self.roster.get_enrolled(course_id)

        with self._lock:
            if assessment_id in self._entries:
                raise MonitorError(
                    f"Assessment {assessment_id} is already monitored",
                    details={"assessment_id": assessment_id}
                )
            monitor = LiveMonitor(
                assessment_id,
                course_id=course_id,
                roster=students,
                dedup_window=self.dedup_window
            )
            subscription = self.transport.subscribe(assessment_id)
            task = asyncio.get_running_loop().create_task(monitor.consume(subscription))
            self._entries[assessment_id] = _MonitorEntry(monitor, subscription, task)

        logger.info(
            f"Opened live monitor for assessment {assessment_id} "
            f"with {len(students)} enrolled student(s)"
        )
        return monitor

    async def get_or_open(self, assessment_id: str, course_id: Optional[str] = None) -> LiveMonitor:
        """Return the running monitor for an assessment, opening one if needed."""
        monitor = self.get(assessment_id)
        if monitor is not None:
            return monitor
        try:
            return await self.open(assessment_id, course_id)
        except MonitorError:
            # Opened concurrently by another caller
            return self.get(assessment_id)

    def get(self, assessment_id: str) -> Optional[LiveMonitor]:
        with self._lock:
            entry = self._entries.get(str(assessment_id))
        return entry.monitor if entry else None

    def snapshot(self, assessment_id: str) -> Optional[MonitorSnapshot]:
        """
        Snapshot of a monitored assessment.

        Returns:
            The snapshot, or None when the assessment is not monitored
        """
        monitor = self.get(assessment_id)
        return monitor.snapshot() if monitor else None

    async def refresh_roster(self, assessment_id: str) -> bool:
        """
        Reload a monitor's roster from the roster provider.

        Returns:
            False if the assessment is not monitored or has no course
        """
        monitor = self.get(assessment_id)
        if monitor is None or monitor.course_id is None or self.roster is None:
            return False
        monitor.set_roster(await self.roster.get_enrolled(monitor.course_id))
        return True

    async def close(self, assessment_id: str) -> bool:
        """
        Stop monitoring an assessment and drop its state.

        Returns:
            True if a monitor was closed
        """
        with self._lock:
            entry = self._entries.pop(str(assessment_id), None)
        if entry is None:
            return False

        entry.task.cancel()
        await asyncio.gather(entry.task, return_exceptions=True)
        entry.subscription.close()
        entry.monitor.close()
        logger.info(f"Closed live monitor for assessment {assessment_id}")
        return True

    async def close_all(self) -> None:
        """Close every monitor, typically at shutdown."""
        for assessment_id in self.assessment_ids:
            await self.close(assessment_id)

    @property
    def assessment_ids(self) -> List[str]:
        with self._lock:
            return list(self._entries)

    def __contains__(self, assessment_id: object) -> bool:
        with self._lock:
            return str(assessment_id) in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
