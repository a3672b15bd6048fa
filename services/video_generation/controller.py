"""
Generation Job Controller

Drives exactly one scene video job at a time:

    IDLE -> SUBMITTING -> POLLING -> RESOLVED -> FETCHING -> READY
                 \\            \\          \\           \\
                  +------------+----------+-----------+--> FAILED

A new submission discards whatever job is in flight (last caller wins,
no queueing). Each job is tagged with a generation number; after every
await the job checks that it is still the current generation and
silently abandons itself otherwise, so late results of a superseded job
never reach observers.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Callable, Optional

from core.config import get_config
from services.credentials import CredentialGate, CredentialState
from .artifacts import ArtifactWriter
from .client import ArtifactStore, OperationService
from .events import EventType, JobEvent, JobEventEmitter
from .failures import classify_failure, describe_exception
from .models import (
    TRANSITIONS,
    FailureInfo,
    FailureKind,
    FailureStage,
    GenerationJob,
    GenerationRequest,
    JobStatus,
    LocalArtifact,
    PollResult,
)

logger = logging.getLogger(__name__)


class CredentialRequiredError(Exception):
    """Raised when a submission is attempted without a selected credential."""


class InvalidTransition(Exception):
    """Raised when the job state machine is driven out of order."""


class GenerationJobController:
    """
    Owns the single-job lifecycle and exposes it to observers.

    Usage:
        controller = GenerationJobController(
            gate=gate,
            operation_service=VeoOperationService(lambda: gate.credential),
            artifact_store=HttpArtifactStore(),
            artifact_writer=LocalArtifactWriter("output"),
        )
        controller.subscribe(ProgressMonitor())

        await controller.submit(GenerationRequest(prompt="A cat surfing"))
        if controller.current_status() == JobStatus.READY:
            print(controller.current_result().path)
    """

    def __init__(
        self,
        gate: CredentialGate,
        operation_service: OperationService,
        artifact_store: ArtifactStore,
        artifact_writer: ArtifactWriter,
        poll_interval_seconds: Optional[float] = None,
        max_poll_seconds: Optional[float] = None,
        config: Optional[Any] = None,
    ):
        """
        Initialize the controller.

        Args:
            gate: Credential gate consulted before every submission
            operation_service: Submits requests and polls operations
            artifact_store: Downloads the finished video
            artifact_writer: Stores downloaded bytes locally
            poll_interval_seconds: Override for the configured poll interval
            max_poll_seconds: Override for the configured polling ceiling (0 disables)
            config: Optional config override
        """
        self.config = config or get_config()
        self.gate = gate
        self.operation_service = operation_service
        self.artifact_store = artifact_store
        self.artifact_writer = artifact_writer

        self.poll_interval_seconds = (
            poll_interval_seconds
            if poll_interval_seconds is not None
            else self.config.generation.poll_interval_seconds
        )
        self.max_poll_seconds = (
            max_poll_seconds
            if max_poll_seconds is not None
            else self.config.generation.max_poll_seconds
        )

        self._job: Optional[GenerationJob] = None
        self._generation = 0
        self._events = JobEventEmitter()

        gate.subscribe(self._on_credential_change)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def current_status(self) -> JobStatus:
        return self._job.status if self._job else JobStatus.IDLE

    def current_result(self) -> Optional[LocalArtifact]:
        return self._job.local_artifact if self._job else None

    def current_failure(self) -> Optional[FailureInfo]:
        return self._job.failure if self._job else None

    def current_job(self) -> Optional[GenerationJob]:
        return self._job

    def subscribe(self, callback: Callable[[JobEvent], None]):
        """Register callback for job events."""
        self._events.on_event(callback)

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    async def submit(self, request: GenerationRequest) -> None:
        """
        Submit a request and drive it until it is READY, FAILED or superseded.

        Raises:
            CredentialRequiredError: If the gate is not SELECTED (no job is created)
        """
        job = self._begin(request)
        await self._run(job)

    def start(self, request: GenerationRequest) -> asyncio.Task:
        """
        Submit a request and drive it in a background task.

        The credential check happens before the task is scheduled, so a
        rejected submission raises here rather than inside the task.
        """
        job = self._begin(request)
        return asyncio.create_task(self._run(job), name=f"generation-{job.generation}")

    def cancel(self) -> bool:
        """Abandon the in-flight job, if any, and return to IDLE."""
        job = self._job
        if job is None or not job.status.is_in_flight:
            return False
        self._abandon(job, "Generation cancelled")
        return True

    def acknowledge(self) -> bool:
        """Discard a READY or FAILED job and return to IDLE."""
        job = self._job
        if job is None or not job.status.is_terminal:
            return False
        self._job = None
        logger.debug(f"Job {job.id} acknowledged")
        return True

    # ------------------------------------------------------------------
    # Job lifecycle
    # ------------------------------------------------------------------

    def _begin(self, request: GenerationRequest) -> GenerationJob:
        if self.gate.state != CredentialState.SELECTED:
            raise CredentialRequiredError(
                f"Cannot submit while credential state is {self.gate.state.value}"
            )

        previous = self._job
        if previous is not None and previous.status.is_in_flight:
            logger.info(f"Discarding in-flight job {previous.id} ({previous.status.value})")

        self._generation += 1
        job = GenerationJob(request=request, generation=self._generation)
        self._job = job
        self._transition(job, JobStatus.SUBMITTING, "Submitting generation request")
        return job

    def _is_current(self, job: GenerationJob) -> bool:
        return self._job is job and job.generation == self._generation

    def _still_current(self, job: GenerationJob, where: str) -> bool:
        if self._is_current(job):
            return True
        logger.info(f"Dropping stale result for job {job.id} after {where}")
        return False

    async def _run(self, job: GenerationJob):
        try:
            await self._drive(job)
        except InvalidTransition:
            raise
        except Exception as e:
            logger.exception(f"Unexpected error while driving job {job.id}")
            if self._is_current(job) and job.status.is_in_flight:
                message, code, status = describe_exception(e)
                self._fail(job, classify_failure(None, message, code=code, status=status))

    async def _drive(self, job: GenerationJob):
        try:
            handle = await self.operation_service.submit(job.request)
        except Exception as e:
            if self._still_current(job, "submit"):
                self._fail_from_exception(job, FailureStage.SUBMIT, e)
            return

        if not self._still_current(job, "submit"):
            return

        job.handle = handle
        job.id = handle.name
        self._transition(job, JobStatus.POLLING, f"Operation {handle.name} accepted")

        result = await self._poll_until_done(job)
        if result is None:
            return

        if result.raw_error:
            self._fail(job, classify_failure(FailureStage.POLL, result.raw_error))
            return

        if not result.artifact_uri:
            message = "Video generation completed but no video URI was found."
            if result.filtered_reasons:
                message += " Filtered: " + "; ".join(result.filtered_reasons)
            self._fail(job, FailureInfo(
                kind=FailureKind.ARTIFACT_MISSING,
                message=message,
                stage=FailureStage.RESOLVE,
            ))
            return

        job.artifact_uri = result.artifact_uri
        self._transition(job, JobStatus.RESOLVED, "Video generated")

        await self._fetch(job)

    async def _poll_until_done(self, job: GenerationJob) -> Optional[PollResult]:
        """
        Poll the operation until it reports done.

        Returns the final PollResult, or None when the job failed or was
        superseded while waiting.
        """
        loop = asyncio.get_running_loop()
        started = loop.time()

        while True:
            await asyncio.sleep(self.poll_interval_seconds)

            if not self._still_current(job, "poll wait"):
                return None

            if self.max_poll_seconds and loop.time() - started > self.max_poll_seconds:
                self._fail(job, FailureInfo(
                    kind=FailureKind.OPERATION_FAILED,
                    message=(
                        f"Video generation did not complete within "
                        f"{self.max_poll_seconds:.0f} seconds"
                    ),
                    stage=FailureStage.POLL,
                ))
                return None

            try:
                result = await self.operation_service.poll(job.handle)
            except Exception as e:
                if self._still_current(job, "poll"):
                    self._fail_from_exception(
                        job,
                        FailureStage.POLL,
                        e,
                        prefix="Failed to get video generation status",
                    )
                return None

            if not self._still_current(job, "poll"):
                return None

            job.poll_count += 1
            if result.operation is not None:
                job.handle = result.operation

            if result.done:
                return result

            self._emit(job, EventType.POLL, "Rendering in progress")

    async def _fetch(self, job: GenerationJob):
        self._transition(job, JobStatus.FETCHING, "Downloading video")

        try:
            fetched = await self.artifact_store.fetch(job.artifact_uri, self.gate.credential)
        except Exception as e:
            if self._still_current(job, "fetch"):
                self._fail_from_exception(
                    job,
                    FailureStage.FETCH,
                    e,
                    prefix="Failed to download video",
                )
            return

        if not self._still_current(job, "fetch"):
            return

        if not fetched.ok or not fetched.content:
            reason = fetched.status_text or ("empty response" if fetched.ok else "unknown status")
            self._fail(job, classify_failure(
                FailureStage.FETCH,
                f"Failed to download video: {reason}",
            ))
            return

        try:
            artifact = await self.artifact_writer.save(
                job, fetched.content, fetched.content_type
            )
        except OSError as e:
            if self._still_current(job, "save"):
                self._fail(job, FailureInfo(
                    kind=FailureKind.DOWNLOAD_FAILED,
                    message=f"Failed to store video: {e}",
                    stage=FailureStage.FETCH,
                ))
            return

        if not self._still_current(job, "save"):
            return

        job.local_artifact = artifact
        job.completed_at = datetime.utcnow()
        self._transition(
            job,
            JobStatus.READY,
            f"Video ready: {artifact.path}",
            data={"path": artifact.path, "size_bytes": artifact.size_bytes},
        )

    # ------------------------------------------------------------------
    # State changes
    # ------------------------------------------------------------------

    def _transition(
        self,
        job: GenerationJob,
        new_status: JobStatus,
        message: str = "",
        failure: Optional[FailureInfo] = None,
        data: Optional[dict] = None,
    ):
        if new_status not in TRANSITIONS[job.status]:
            raise InvalidTransition(
                f"Job {job.id}: {job.status.value} -> {new_status.value} is not allowed"
            )

        old_status = job.status
        job.status = new_status
        logger.info(f"Job {job.id}: {old_status.value} -> {new_status.value}")

        if new_status == JobStatus.READY:
            event_type = EventType.COMPLETED
        elif new_status == JobStatus.FAILED:
            event_type = EventType.FAILED
        else:
            event_type = EventType.STATUS
        self._emit(job, event_type, message, failure=failure, data=data)

    def _fail_from_exception(
        self,
        job: GenerationJob,
        stage: FailureStage,
        error: Exception,
        prefix: Optional[str] = None,
    ):
        message, code, status = describe_exception(error)
        if prefix:
            message = f"{prefix}: {message}"
        self._fail(job, classify_failure(stage, message, code=code, status=status))

    def _fail(self, job: GenerationJob, failure: FailureInfo):
        job.failure = failure
        job.completed_at = datetime.utcnow()
        logger.error(f"Video generation failed: {failure.kind.value}: {failure.message}")
        self._transition(job, JobStatus.FAILED, failure.message, failure=failure)

        # Job is already terminal, so the gate listener will not abandon it
        if failure.kind == FailureKind.CREDENTIAL_INVALID:
            self.gate.invalidate()

    def _abandon(self, job: GenerationJob, message: str):
        self._generation += 1
        self._job = None
        logger.info(f"Job {job.id} abandoned in {job.status.value}: {message}")
        self._events.emit(JobEvent(
            job_id=job.id,
            event_type=EventType.CANCELLED,
            status=JobStatus.IDLE,
            message=message,
            poll_count=job.poll_count,
            elapsed_seconds=(datetime.utcnow() - job.submitted_at).total_seconds(),
        ))

    def _on_credential_change(self, state: CredentialState):
        job = self._job
        if state == CredentialState.UNSELECTED and job is not None and job.status.is_in_flight:
            self._abandon(job, "Credential invalidated")

    def _emit(
        self,
        job: GenerationJob,
        event_type: EventType,
        message: str,
        failure: Optional[FailureInfo] = None,
        data: Optional[dict] = None,
    ):
        self._events.emit(JobEvent(
            job_id=job.id,
            event_type=event_type,
            status=job.status,
            message=message,
            poll_count=job.poll_count,
            elapsed_seconds=(datetime.utcnow() - job.submitted_at).total_seconds(),
            failure=failure,
            data=data or {},
        ))
