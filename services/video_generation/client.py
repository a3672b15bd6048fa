"""
Remote collaborators for scene video generation.

- VeoOperationService: submits prompts to Google Veo and polls the
  returned long-running operation (google-genai SDK)
- HttpArtifactStore: downloads the finished video bytes (httpx)

Both are injected into the GenerationJobController through the
OperationService / ArtifactStore protocols so tests can substitute fakes.
"""

import httpx
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from google import genai
from google.genai import types

from core.config import get_config
from .models import FetchResult, GenerationRequest, OperationHandle, PollResult

logger = logging.getLogger(__name__)


class OperationServiceError(Exception):
    """Raised when the operation service cannot submit or poll."""

    def __init__(
        self,
        message: str,
        error_code: str = None,
        code: Optional[int] = None,
        status: Optional[str] = None,
    ):
        self.error_code = error_code
        self.code = code
        self.status = status
        super().__init__(message)


class OperationService(Protocol):
    async def submit(self, request: GenerationRequest) -> OperationHandle: ...

    async def poll(self, handle: OperationHandle) -> PollResult: ...


class ArtifactStore(Protocol):
    async def fetch(self, uri: str, credential: Optional[str]) -> FetchResult: ...


@dataclass
class _VeoOperation:
    """Client and operation pair carried inside an OperationHandle."""
    client: Any
    operation: Any


class VeoOperationService:
    """
    Operation service backed by Google Veo.

    A fresh genai.Client is built for every submission so the most
    recently selected key is used; polling reuses the client the
    operation was submitted with.

    Usage:
        service = VeoOperationService(credential_provider=lambda: gate.credential)

        handle = await service.submit(request)
        result = await service.poll(handle)
    """

    def __init__(
        self,
        credential_provider: Callable[[], Optional[str]],
        client_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Initialize the Veo operation service.

        Args:
            credential_provider: Returns the currently selected API key
            client_factory: Builds a genai client from a key (override for tests)
        """
        self.credential_provider = credential_provider
        self._client_factory = client_factory or (lambda key: genai.Client(api_key=key))

    def _new_client(self) -> Any:
        api_key = self.credential_provider()
        if not api_key:
            raise OperationServiceError(
                "API key not valid: no key is selected",
                error_code="NO_API_KEY",
                code=401,
                status="UNAUTHENTICATED",
            )
        return self._client_factory(api_key)

    async def submit(self, request: GenerationRequest) -> OperationHandle:
        client = self._new_client()

        logger.info(
            f"Veo request: model={request.model}, resolution={request.resolution.value}, "
            f"aspect_ratio={request.aspect_ratio.value}, prompt={request.prompt[:50]}..."
        )

        operation = await client.aio.models.generate_videos(
            model=request.model,
            prompt=request.prompt,
            config=types.GenerateVideosConfig(
                number_of_videos=request.number_of_outputs,
                resolution=request.resolution.value,
                aspect_ratio=request.aspect_ratio.value,
            ),
        )

        if operation is None or not getattr(operation, "name", None):
            raise OperationServiceError(
                "No operation name in Veo response",
                error_code="NO_OPERATION",
            )

        logger.info(f"Veo operation created: {operation.name}")
        return OperationHandle(
            name=operation.name,
            raw=_VeoOperation(client=client, operation=operation),
        )

    async def poll(self, handle: OperationHandle) -> PollResult:
        veo = handle.raw
        if not isinstance(veo, _VeoOperation):
            raise OperationServiceError(
                f"Handle {handle.name} was not issued by this service",
                error_code="FOREIGN_HANDLE",
            )

        operation = await veo.client.aio.operations.get(veo.operation)
        refreshed = OperationHandle(
            name=handle.name,
            raw=_VeoOperation(client=veo.client, operation=operation),
        )

        if not operation.done:
            return PollResult(done=False, operation=refreshed)

        if operation.error:
            return PollResult(
                done=True,
                raw_error=_error_message(operation.error),
                operation=refreshed,
            )

        response = operation.response
        videos = (response.generated_videos if response else None) or []
        uri = None
        if videos and videos[0].video:
            uri = videos[0].video.uri

        filtered = list((response.rai_media_filtered_reasons if response else None) or [])
        if not uri and filtered:
            logger.warning(f"Veo filtered output for {handle.name}: {filtered}")

        return PollResult(
            done=True,
            artifact_uri=uri,
            filtered_reasons=filtered,
            operation=refreshed,
        )


def _error_message(error: Any) -> str:
    """Render an operation error (a dict from the API) as text."""
    if isinstance(error, dict):
        message = error.get("message") or "Operation failed (no specific reason)"
        code = error.get("code")
        return f"{message} (code {code})" if code is not None else message
    return str(error)


def _is_media_type(content_type: Optional[str]) -> bool:
    """False for metadata or error bodies (JSON, HTML, plain text)."""
    if not content_type:
        return True
    mime = content_type.split(";", 1)[0].strip().lower()
    return not (mime == "application/json" or mime.startswith("text/"))


class HttpArtifactStore:
    """
    Downloads generated videos over HTTP.

    The credential travels as the ``key`` query parameter, which is how
    the Veo file download endpoint authenticates.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.timeout = timeout or get_config().generation.download_timeout_seconds
        self._http_client = http_client

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self):
        """Close the HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch(self, uri: str, credential: Optional[str]) -> FetchResult:
        client = await self._get_client()

        # Download URIs carry their own query (alt=media); the key is merged in
        url = httpx.URL(uri)
        if credential:
            url = url.copy_merge_params({"key": credential})

        response = await client.get(url, follow_redirects=True)

        if not response.is_success:
            status_text = response.reason_phrase or f"HTTP {response.status_code}"
            logger.warning(f"Video download returned {response.status_code} {status_text}")
            return FetchResult(ok=False, status_text=status_text)

        content_type = response.headers.get("content-type")
        if not _is_media_type(content_type):
            logger.warning(f"Video download returned {content_type} instead of media")
            return FetchResult(
                ok=False,
                status_text=f"Unexpected content type {content_type}",
                content_type=content_type,
            )

        logger.info(f"Video downloaded ({len(response.content) / 1024 / 1024:.1f} MB)")
        return FetchResult(
            ok=True,
            status_text=response.reason_phrase,
            content=response.content,
            content_type=response.headers.get("content-type"),
        )
