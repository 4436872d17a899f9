"""
Common Components for QuizPulse

Infrastructure shared by the scoring, submission and monitoring modules:
1. Logging - Centralized logging configuration
2. Error Handling - Exception hierarchy and structured error info
3. Metrics - Counters and timers with pluggable backends
4. Utilities - Time and arithmetic helpers
"""

# Initialize logging
from quizpulse.common.logger import app_logger, get_logger, with_context, log_execution_time

from quizpulse.common.exceptions import (
    ErrorCode, ErrorSeverity, ErrorInfo, QuizPulseError, NotFoundError,
    ValidationError, QuestionBankError, EventValidationError, PublishError,
    MonitorError
)

from quizpulse.common.metrics import (
    MetricsBackend, LoggingMetricsBackend, InMemoryMetricsBackend,
    MetricsService, get_metrics_service, set_metrics_backend
)

__all__ = [
    # Logging
    'app_logger', 'get_logger', 'with_context', 'log_execution_time',

    # Errors
    'ErrorCode', 'ErrorSeverity', 'ErrorInfo', 'QuizPulseError', 'NotFoundError',
    'ValidationError', 'QuestionBankError', 'EventValidationError', 'PublishError',
    'MonitorError',

    # Metrics
    'MetricsBackend', 'LoggingMetricsBackend', 'InMemoryMetricsBackend',
    'MetricsService', 'get_metrics_service', 'set_metrics_backend',
]
