"""
Local storage for downloaded videos.

The controller hands the fetched bytes to an ArtifactWriter and keeps
only the returned LocalArtifact, a locally addressable handle the
presentation layer can play.
"""

import logging
import re
from pathlib import Path
from typing import Optional, Protocol

from .models import GenerationJob, LocalArtifact

logger = logging.getLogger(__name__)


class ArtifactWriter(Protocol):
    async def save(
        self,
        job: GenerationJob,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> LocalArtifact: ...


VIDEO_EXTENSIONS = {
    "video/mp4": ".mp4",
    "video/webm": ".webm",
    "video/quicktime": ".mov",
}


class LocalArtifactWriter:
    """Writes each video to ``<output_dir>/video_<operation id>.<ext>``."""

    def __init__(self, output_dir: str = "output"):
        self.output_dir = Path(output_dir)

    def _filename(self, job: GenerationJob, content_type: Optional[str]) -> str:
        # Operation names look like "models/<model>/operations/<id>"
        tail = re.sub(r"[^A-Za-z0-9_-]", "_", job.id.rsplit("/", 1)[-1])
        mime = (content_type or "").split(";", 1)[0].strip().lower()
        return f"video_{tail}{VIDEO_EXTENSIONS.get(mime, '.mp4')}"

    async def save(
        self,
        job: GenerationJob,
        content: bytes,
        content_type: Optional[str] = None,
    ) -> LocalArtifact:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_dir / self._filename(job, content_type)

        with open(output_path, "wb") as f:
            f.write(content)

        logger.info(f"Video saved: {output_path} ({len(content) / 1024 / 1024:.1f} MB)")
        return LocalArtifact(
            path=str(output_path),
            size_bytes=len(content),
            content_type=content_type or "video/mp4",
        )
