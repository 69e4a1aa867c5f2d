"""
Message Queue — durable, retryable delivery of queued messages.

Callers enqueue (target, channel, schedule) requests; a processing run
selects what is due, batches it per channel, delivers through the
registered handlers and reschedules failures.
"""
from job_queue.clock import Clock, FrozenClock, SystemClock
from job_queue.enqueuer import Enqueuer
from job_queue.errors import (
    DataProviderUnavailableError,
    InvalidIntervalError,
    InvalidQueueInputError,
    PersistenceFailureError,
    QueueError,
)
from job_queue.intervals import DATE, TIME, Interval, parse_interval
from job_queue.processor import PageResult, QueueProcessor
from job_queue.rescheduler import Rescheduler
from job_queue.runner import QueueRunner
from job_queue.service import MessageQueueService, create_queue_service

__all__ = [
    "Clock", "FrozenClock", "SystemClock",
    "Enqueuer", "Rescheduler", "QueueProcessor", "PageResult", "QueueRunner",
    "MessageQueueService", "create_queue_service",
    "Interval", "parse_interval", "DATE", "TIME",
    "QueueError", "InvalidQueueInputError", "InvalidIntervalError",
    "DataProviderUnavailableError", "PersistenceFailureError",
]
