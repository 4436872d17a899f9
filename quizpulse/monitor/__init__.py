"""
Live monitoring of assessments in progress.
"""

from quizpulse.monitor.progress import (
    MonitorSnapshot, QuestionStats, StudentProgress, StudentScore, StudentStatus
)
from quizpulse.monitor.live_monitor import LiveMonitor
from quizpulse.monitor.registry import MonitorRegistry

__all__ = [
    'MonitorSnapshot',
    'QuestionStats',
    'StudentProgress',
    'StudentScore',
    'StudentStatus',
    'LiveMonitor',
    'MonitorRegistry',
]
