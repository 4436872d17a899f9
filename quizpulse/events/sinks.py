"""
Event Sinks

Secondary destinations for published lifecycle events. The publisher hands
every event to its transport first and then to each configured sink.
"""

import abc
import asyncio
import json
import re
import logging
from pathlib import Path
from typing import Optional, Union

from quizpulse.common.exceptions import PublishError
from quizpulse.common.logger import app_logger
from quizpulse.common.utils import utc_now
from quizpulse.config import settings
from quizpulse.events.models import LifecycleEvent

# Module logger
logger = app_logger.getChild("events.sinks")

_UNSAFE_PATH_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def _safe_part(value) -> str:
    return _UNSAFE_PATH_CHARS.sub("_", str(value)) or "unknown"


class EventSink(abc.ABC):
    """Something that records published events."""

    @abc.abstractmethod
    async def write(self, event: LifecycleEvent) -> None:
        """
        Record one event.

        Raises:
            PublishError: If the event could not be recorded
        """
        pass


class LoggingEventSink(EventSink):
    """Writes each event to the application log."""

    def __init__(self, logger: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.logger = logger or app_logger.getChild("events.log")
        self.level = level

    async def write(self, event: LifecycleEvent) -> None:
        self.logger.log(
            self.level,
            f"{event.event_type} event for assessment {event.assessment_id} "
            f"from student {event.student_id}",
            extra={"data": event.to_wire()}
        )


class JsonFileEventSink(EventSink):
    """
    Event log on the local file system.

    Each event becomes one indented JSON document at
    ``<root>/<EventType>/<CourseId>/<yyyyMMdd_HHmmss_fff>_<StudentId>_<AssessmentId>.json``.
    Events without a course are filed under ``unknown``. Characters other
    than letters, digits, ``_`` and ``-`` in the ids are replaced by ``_``,
    so every file stays under the root. Files are never overwritten: when
    the name is taken the event id is appended to it.
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root)

    def path_for(self, event: LifecycleEvent) -> Path:
        """File path the event will be written to, unless that name is taken."""
        now = utc_now()
        stamp = now.strftime("%Y%m%d_%H%M%S_") + f"{now.microsecond // 1000:03d}"
        course_dir = self.root / _safe_part(event.event_type) / _safe_part(event.course_id or "unknown")
        return course_dir / f"{stamp}_{_safe_part(event.student_id)}_{_safe_part(event.assessment_id)}.json"

    async def write(self, event: LifecycleEvent) -> None:
        path = self.path_for(event)
        fallback = path.with_name(f"{path.stem}_{_safe_part(event.event_id)}.json")
        document = json.dumps(event.to_wire(), indent=2)
        loop = asyncio.get_running_loop()
        try:
            path = await loop.run_in_executor(None, self._write_file, path, fallback, document)
        except OSError as e:
            raise PublishError(
                f"Failed to log {event.event_type} event to {path}",
                details={"event_id": event.event_id},
                cause=e
            )
        logger.info(f"Quiz event of type {event.event_type} logged to {path}")

    @staticmethod
    def _write_file(path: Path, fallback: Path, document: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with path.open("x", encoding="utf-8") as f:
                f.write(document)
        except FileExistsError:
            path = fallback
            with path.open("x", encoding="utf-8") as f:
                f.write(document)
        return path


def get_configured_sinks() -> list:
    """
    Sinks enabled by the application settings.

    Returns:
        A JsonFileEventSink when EVENT_LOG_DIR is set, otherwise an empty list
    """
    if settings.EVENT_LOG_DIR:
        return [JsonFileEventSink(settings.EVENT_LOG_DIR)]
    return []
