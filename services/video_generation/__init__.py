"""
Scene Video Generation Service

Drives a single Veo generation job from prompt to playable file:
- Submission and long-running operation polling (google-genai)
- Failure classification, including credential failures that re-gate the session
- Artifact download (httpx) and local storage
"""

from .artifacts import LocalArtifactWriter
from .client import HttpArtifactStore, OperationServiceError, VeoOperationService
from .controller import CredentialRequiredError, GenerationJobController, InvalidTransition
from .events import EventType, JobEvent
from .failures import classify_failure
from .models import (
    AspectRatio,
    FailureInfo,
    FailureKind,
    GenerationJob,
    GenerationRequest,
    JobStatus,
    LocalArtifact,
    Resolution,
)

__all__ = [
    "GenerationJobController",
    "CredentialRequiredError",
    "InvalidTransition",
    "VeoOperationService",
    "HttpArtifactStore",
    "OperationServiceError",
    "LocalArtifactWriter",
    "EventType",
    "JobEvent",
    "classify_failure",
    "AspectRatio",
    "FailureInfo",
    "FailureKind",
    "GenerationJob",
    "GenerationRequest",
    "JobStatus",
    "LocalArtifact",
    "Resolution",
]
