"""
Job events for presentation layers.

The controller emits a JobEvent on every status change and on every
poll. Observers register callbacks; a failing callback is logged and
never interrupts the job.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Optional
from uuid import uuid4

from .models import FailureInfo, JobStatus

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Types of job events."""
    STATUS = "status"
    POLL = "poll"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class JobEvent:
    """A single observation of the controller's job."""

    event_id: str = field(default_factory=lambda: str(uuid4()))
    job_id: str = ""
    event_type: EventType = EventType.STATUS
    status: JobStatus = JobStatus.IDLE
    timestamp: datetime = field(default_factory=datetime.utcnow)

    message: str = ""
    poll_count: int = 0
    elapsed_seconds: float = 0.0

    failure: Optional[FailureInfo] = None
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        event_data = {
            "id": self.event_id,
            "job_id": self.job_id,
            "type": self.event_type.value,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "message": self.message,
            "poll_count": self.poll_count,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }
        if self.failure:
            event_data["failure"] = {
                "kind": self.failure.kind.value,
                "message": self.failure.message,
            }
        if self.data:
            event_data["data"] = self.data
        return event_data


class JobEventEmitter:
    """
    Fans job events out to registered callbacks.

    Usage:
        emitter = JobEventEmitter()
        emitter.on_event(lambda e: print(e.to_dict()))
    """

    def __init__(self):
        self._callbacks: list[Callable[[JobEvent], None]] = []

    def on_event(self, callback: Callable[[JobEvent], None]):
        """Register callback for job events."""
        self._callbacks.append(callback)

    def emit(self, event: JobEvent):
        """Emit event to all callbacks."""
        for callback in self._callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Job event callback error: {e}")

