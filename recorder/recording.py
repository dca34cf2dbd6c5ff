"""The captured audio+video artifact for one pipeline session."""

import io
import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote, urlparse

# Nominal clip length reported by every recording, regardless of elapsed time
NOMINAL_DURATION_SECONDS = 10

_module_logger = logging.getLogger(__name__)

_SUFFIX_MIME_TYPES = {
    ".webm": "video/webm",
    ".mp4": "video/mp4",
    ".m4v": "video/mp4",
    ".mov": "video/quicktime",
    ".mkv": "video/x-matroska",
    ".3gp": "video/3gpp",
}


def mime_type_for(path: Path) -> str:
    """Guess a video MIME type from a file extension."""
    return _SUFFIX_MIME_TYPES.get(Path(path).suffix.lower(), "video/webm")


@dataclass(frozen=True)
class Recording:
    """Immutable recording handed from the capture controller to the pipeline."""

    media_payload: bytes
    access_url: str
    duration_seconds: int = NOMINAL_DURATION_SECONDS
    mime_type: str = "video/webm"
    filename: str = "recording.webm"

    @classmethod
    def create(
        cls,
        payload: bytes,
        directory: Path,
        mime_type: str = "video/webm",
        filename: str = "recording.webm",
    ) -> "Recording":
        """Store the payload in a session-scoped file and build a Recording.

        The returned access URL points at that file until `release()` is called.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        suffix = Path(filename).suffix or ".webm"
        with tempfile.NamedTemporaryFile(
            dir=directory, prefix="recording_", suffix=suffix, delete=False
        ) as f:
            f.write(payload)
            path = Path(f.name)
        _module_logger.debug(f"Recording stored at {path} ({len(payload)} bytes)")
        return cls(
            media_payload=payload,
            access_url=path.resolve().as_uri(),
            mime_type=mime_type,
            filename=filename,
        )

    @property
    def path(self) -> Path:
        """Local filesystem path behind the access URL."""
        return Path(unquote(urlparse(self.access_url).path))

    @property
    def size(self) -> int:
        return len(self.media_payload)

    def as_file(self, filename: str | None = None) -> io.BytesIO:
        """Repackage the payload as a named file-like object for uploads."""
        audio_file = io.BytesIO(self.media_payload)
        audio_file.name = filename or self.filename
        return audio_file

    def release(self) -> None:
        """Revoke the access URL. Safe to call more than once."""
        self.path.unlink(missing_ok=True)
