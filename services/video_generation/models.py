"""
Data model for scene video generation.

GenerationRequest is the immutable, validated input. Everything else
describes the single job the controller drives from submission to a
terminal state.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.config import DEFAULT_MODEL


class Resolution(str, Enum):
    """Output resolutions accepted by Veo."""
    HD = "720p"
    FULL_HD = "1080p"


class AspectRatio(str, Enum):
    """Output aspect ratios accepted by Veo."""
    LANDSCAPE = "16:9"
    PORTRAIT = "9:16"


class JobStatus(str, Enum):
    """Status of the generation job owned by the controller."""
    IDLE = "idle"
    SUBMITTING = "submitting"
    POLLING = "polling"
    RESOLVED = "resolved"
    FETCHING = "fetching"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_in_flight(self) -> bool:
        return self in IN_FLIGHT_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.READY, JobStatus.FAILED)


IN_FLIGHT_STATUSES = frozenset({
    JobStatus.SUBMITTING,
    JobStatus.POLLING,
    JobStatus.RESOLVED,
    JobStatus.FETCHING,
})

# Allowed forward transitions; anything else is a programming error
TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.IDLE: frozenset({JobStatus.SUBMITTING}),
    JobStatus.SUBMITTING: frozenset({JobStatus.POLLING, JobStatus.FAILED}),
    JobStatus.POLLING: frozenset({JobStatus.RESOLVED, JobStatus.FAILED}),
    JobStatus.RESOLVED: frozenset({JobStatus.FETCHING, JobStatus.FAILED}),
    JobStatus.FETCHING: frozenset({JobStatus.READY, JobStatus.FAILED}),
    JobStatus.READY: frozenset(),
    JobStatus.FAILED: frozenset(),
}


class FailureKind(str, Enum):
    """Why a job terminated abnormally."""
    CREDENTIAL_INVALID = "credential_invalid"
    OPERATION_FAILED = "operation_failed"
    ARTIFACT_MISSING = "artifact_missing"
    DOWNLOAD_FAILED = "download_failed"
    UNKNOWN = "unknown"


class FailureStage(str, Enum):
    """Remote call that produced a failure."""
    SUBMIT = "submit"
    POLL = "poll"
    RESOLVE = "resolve"
    FETCH = "fetch"


class GenerationRequest(BaseModel):
    """Request for a single scene video. Immutable once built."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    prompt: str
    number_of_outputs: Literal[1] = 1
    resolution: Resolution = Resolution.HD
    aspect_ratio: AspectRatio = AspectRatio.LANDSCAPE
    model: str = DEFAULT_MODEL

    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    @field_validator("prompt")
    @classmethod
    def _prompt_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("prompt must not be empty")
        return value


@dataclass(frozen=True)
class FailureInfo:
    """A classified failure attached to a job. Never retried automatically."""
    kind: FailureKind
    message: str
    stage: Optional[FailureStage] = None

    @property
    def guidance(self) -> str:
        """User-facing text for the presentation layer."""
        if self.kind == FailureKind.CREDENTIAL_INVALID:
            return "Your API key is invalid or not found. Please select a new key."
        return f"An error occurred: {self.message}"


@dataclass(frozen=True)
class OperationHandle:
    """Opaque reference to a remote long-running operation."""
    name: str
    raw: Any = None


@dataclass
class PollResult:
    """One observation of a remote operation."""
    done: bool
    artifact_uri: Optional[str] = None
    raw_error: Optional[str] = None
    filtered_reasons: list[str] = field(default_factory=list)
    operation: Optional[OperationHandle] = None


@dataclass
class FetchResult:
    """Outcome of downloading an artifact."""
    ok: bool
    status_text: Optional[str] = None
    content: Optional[bytes] = None
    content_type: Optional[str] = None


@dataclass(frozen=True)
class LocalArtifact:
    """Locally addressable handle to downloaded video bytes."""
    path: str
    size_bytes: int
    content_type: str = "video/mp4"


@dataclass
class GenerationJob:
    """The one job the controller owns at a time."""
    request: GenerationRequest
    generation: int
    id: str = field(default_factory=lambda: f"local-{uuid.uuid4().hex[:12]}")
    status: JobStatus = JobStatus.IDLE
    handle: Optional[OperationHandle] = None
    artifact_uri: Optional[str] = None
    local_artifact: Optional[LocalArtifact] = None
    failure: Optional[FailureInfo] = None

    poll_count: int = 0
    submitted_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None
