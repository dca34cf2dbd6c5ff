"""Frame extractor pulling one still image out of a recorded clip."""

import base64
import json
import logging
import shutil
import subprocess
import tempfile
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image

from config import FrameConfig
from errors import FrameDecodeError, FrameEncodeError
from .recording import Recording

if TYPE_CHECKING:
    from utils.logger import CardLogger

# Configure module logger
_module_logger = logging.getLogger(__name__)

DEFAULT_EPSILON = 0.1


@dataclass(frozen=True)
class ExtractedFrame:
    """A single still image taken from a recording."""

    data_url: str  # data:image/jpeg;base64,...
    offset_seconds: float  # Seek point actually used
    width: int
    height: int

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return {
            "data_url": self.data_url,
            "offset_seconds": self.offset_seconds,
            "width": self.width,
            "height": self.height,
        }

    @property
    def jpeg_bytes(self) -> bytes:
        """Decoded JPEG payload."""
        return base64.b64decode(self.data_url.split(",", 1)[1])

    def save(self, path: Path) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.jpeg_bytes)
        return path


@dataclass(frozen=True)
class MediaInfo:
    """Probed properties of a clip."""

    duration: float
    width: int
    height: int


def clamp_seek_offset(target: float, duration: float, epsilon: float = DEFAULT_EPSILON) -> float:
    """Seek point for `target` that stays strictly before end-of-stream.

    Seeking at or past the reported duration may yield no frame, so the
    offset is capped at `duration - epsilon` (and never negative).
    """
    return max(0.0, min(target, duration - epsilon))


class FrameExtractor:
    """Extracts a representative still frame from a Recording with ffmpeg."""

    def __init__(
        self,
        config: FrameConfig | None = None,
        ffmpeg_binary: str = "ffmpeg",
        ffprobe_binary: str = "ffprobe",
        logger: "CardLogger | None" = None,
    ):
        """Initialize the frame extractor.

        Args:
            config: Target offset, seek epsilon and JPEG quality.
            ffmpeg_binary: ffmpeg executable used to render the frame.
            ffprobe_binary: ffprobe executable used to read duration/resolution.
            logger: Optional CardLogger for styled output.
        """
        self.config = config or FrameConfig()
        self.ffmpeg_binary = ffmpeg_binary
        self.ffprobe_binary = ffprobe_binary
        self.logger = logger

    def _log_step(self, message: str) -> None:
        if self.logger:
            self.logger.step(message)

    def _log_info(self, message: str) -> None:
        if self.logger:
            self.logger.info(message)

    def _run(self, cmd: list[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            _module_logger.error(f"Could not run {cmd[0]}: {e}")
            raise FrameDecodeError(
                f"{cmd[0]} could not be started. Please install ffmpeg "
                "(macOS: brew install ffmpeg, Ubuntu: apt-get install ffmpeg)"
            ) from e

    def extract(self, recording: Recording, target_offset: float | None = None) -> ExtractedFrame:
        """Extract one frame from the recording.

        Args:
            recording: Recording whose payload is decoded.
            target_offset: Desired offset in seconds (default from config, 5s).

        Returns:
            ExtractedFrame holding a JPEG data URL and the offset used.

        Raises:
            FrameDecodeError: The payload could not be probed or seeked.
            FrameEncodeError: The rendered frame could not be encoded.
        """
        if target_offset is None:
            target_offset = self.config.target_offset

        # Temporary handle on the payload, removed on every exit path
        work_dir = Path(tempfile.mkdtemp(prefix="frame_extract_"))
        try:
            suffix = Path(recording.filename).suffix or ".webm"
            source = work_dir / f"source{suffix}"
            source.write_bytes(recording.media_payload)

            self._log_step("Extracting video frame...")
            info = self._probe(source)
            seek = clamp_seek_offset(target_offset, info.duration, self.config.epsilon)
            self._log_info(f"Duration: {info.duration:.2f}s, seeking to {seek:.2f}s")

            frame_path = work_dir / "frame.png"
            self._render_frame(source, seek, frame_path)
            data_url, width, height = self._encode_jpeg(frame_path, info)
        finally:
            shutil.rmtree(work_dir, ignore_errors=True)

        return ExtractedFrame(
            data_url=data_url,
            offset_seconds=seek,
            width=width,
            height=height,
        )

    def _probe(self, source: Path) -> MediaInfo:
        """Read natural duration and resolution of the clip."""
        cmd = [
            self.ffprobe_binary,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "format=duration:stream=width,height,duration",
            "-of", "json",
            str(source),
        ]
        result = self._run(cmd)
        if result.returncode != 0:
            _module_logger.error(f"ffprobe failed with return code {result.returncode}: {result.stderr}")
            raise FrameDecodeError(f"Could not load video: {result.stderr.strip()}")

        try:
            data = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise FrameDecodeError(f"Could not read video metadata: {e}") from e

        streams = data.get("streams") or []
        if not streams:
            raise FrameDecodeError("Video has no decodable video stream")
        stream = streams[0]

        duration = _parse_seconds(data.get("format", {}).get("duration"))
        if duration is None:
            duration = _parse_seconds(stream.get("duration"))
        if duration is None:
            # Streamed WebM often carries no duration header
            duration = self._last_packet_time(source)

        try:
            width = int(stream["width"])
            height = int(stream["height"])
        except (KeyError, TypeError, ValueError) as e:
            raise FrameDecodeError("Video stream has no resolution") from e

        return MediaInfo(duration=duration, width=width, height=height)

    def _last_packet_time(self, source: Path) -> float:
        cmd = [
            self.ffprobe_binary,
            "-v", "error",
            "-select_streams", "v:0",
            "-show_entries", "packet=pts_time",
            "-of", "csv=p=0",
            str(source),
        ]
        result = self._run(cmd)
        if result.returncode != 0:
            _module_logger.error(f"ffprobe packet scan failed: {result.stderr}")
            raise FrameDecodeError(f"Could not determine video duration: {result.stderr.strip()}")

        times = [t for t in (_parse_seconds(line.strip().rstrip(",")) for line in result.stdout.splitlines()) if t is not None]
        if not times:
            raise FrameDecodeError("Could not determine video duration")
        return max(times)

    def _render_frame(self, source: Path, seek: float, output_path: Path) -> None:
        """Render the frame at `seek` to a PNG at native resolution."""
        cmd = [
            self.ffmpeg_binary,
            "-ss", f"{seek:.3f}",
            "-i", str(source),
            "-frames:v", "1",
            str(output_path),
            "-y",  # Overwrite
        ]
        result = self._run(cmd)
        if result.returncode != 0 or not output_path.exists():
            _module_logger.error(f"ffmpeg frame extraction failed: {result.stderr}")
            raise FrameDecodeError(f"Could not seek to {seek:.2f}s: {result.stderr.strip()}")

    def _encode_jpeg(self, frame_path: Path, info: MediaInfo) -> tuple[str, int, int]:
        """Encode the rendered frame as a JPEG data URL."""
        try:
            with Image.open(frame_path) as image:
                if image.size != (info.width, info.height):
                    image = image.resize((info.width, info.height))
                buffer = BytesIO()
                image.convert("RGB").save(buffer, format="JPEG", quality=self.config.jpeg_quality)
        except (OSError, ValueError) as e:
            _module_logger.error(f"Frame encoding failed: {e}")
            raise FrameEncodeError(f"Could not encode frame: {e}") from e

        encoded = base64.b64encode(buffer.getvalue()).decode("utf-8")
        return f"data:image/jpeg;base64,{encoded}", info.width, info.height


def _parse_seconds(value: object) -> float | None:
    if value in (None, "", "N/A"):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
