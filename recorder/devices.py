"""Camera/microphone access through ffmpeg capture devices."""

import asyncio
import logging
import platform
import shutil
import subprocess
from typing import Protocol

from config import CaptureConfig
from errors import CaptureError, DeviceBusyError, DeviceNotFoundError, PermissionDeniedError

_module_logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Container/codec pairs in order of preference, with the encoders each needs
RECORDING_FORMATS: list[tuple[str, tuple[str, ...]]] = [
    ("video/webm;codecs=vp9,opus", ("libvpx-vp9", "libopus")),
    ("video/webm;codecs=vp8,opus", ("libvpx", "libopus")),
    ("video/webm", ("libvpx",)),
    ("video/mp4", ("libx264", "aac")),
]

_PERMISSION_MARKERS = ("permission denied", "not authorized", "operation not permitted", "access denied")
_BUSY_MARKERS = ("device or resource busy", "already in use", "resource temporarily unavailable")
_NOT_FOUND_MARKERS = ("no such file or directory", "no such device", "not found", "could not find", "invalid device index")


class MediaStream(Protocol):
    """A live audio+video stream holding the capture devices."""

    mime_type: str
    filename: str

    async def start_encoder(self) -> None: ...

    async def read_chunk(self) -> bytes: ...

    async def stop_encoder(self) -> None: ...

    async def release(self) -> None: ...


class MediaDevices(Protocol):
    """The platform's media subsystem."""

    async def open(self) -> MediaStream: ...


def classify_device_error(stderr: str) -> CaptureError:
    """Map ffmpeg device-open output onto a capture error kind."""
    text = stderr.lower()
    detail = stderr.strip().splitlines()[-1] if stderr.strip() else "capture device failed to open"
    if any(marker in text for marker in _PERMISSION_MARKERS):
        return PermissionDeniedError(f"Camera or microphone permission denied: {detail}")
    if any(marker in text for marker in _BUSY_MARKERS):
        return DeviceBusyError(f"Camera or microphone is in use by another process: {detail}")
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return DeviceNotFoundError(f"Camera or microphone not found: {detail}")
    return CaptureError(f"Could not access camera or microphone: {detail}")


def capture_input_args(config: CaptureConfig, system: str | None = None) -> list[str]:
    """ffmpeg input arguments opening the configured camera and microphone."""
    system = system or platform.system()
    if system == "Darwin":
        return [
            "-f", "avfoundation",
            "-framerate", "30",
            "-video_size", config.video_size,
            "-i", f"{config.video_device}:{config.audio_device}",
        ]
    if system == "Windows":
        return [
            "-f", "dshow",
            "-video_size", config.video_size,
            "-i", f"video={config.video_device}:audio={config.audio_device}",
        ]
    return [
        "-f", "v4l2",
        "-video_size", config.video_size,
        "-i", config.video_device,
        "-f", "alsa",
        "-i", config.audio_device,
    ]


def check_recording_support(ffmpeg_binary: str = "ffmpeg") -> bool:
    """Check if ffmpeg is available for live capture."""
    return shutil.which(ffmpeg_binary) is not None


def supported_formats(ffmpeg_binary: str = "ffmpeg") -> list[str]:
    """List the recording formats the local ffmpeg build can encode."""
    if not check_recording_support(ffmpeg_binary):
        return []

    result = subprocess.run(
        [ffmpeg_binary, "-hide_banner", "-encoders"],
        capture_output=True,
        text=True,
    )
    if result.returncode != 0:
        _module_logger.warning(f"ffmpeg -encoders failed: {result.stderr}")
        return []

    available = set()
    for line in result.stdout.splitlines():
        parts = line.split()
        if len(parts) >= 2:
            available.add(parts[1])

    return [
        fmt for fmt, encoders in RECORDING_FORMATS
        if all(encoder in available for encoder in encoders)
    ]


class FFmpegMediaStream:
    """Live stream backed by ffmpeg processes.

    While idle a preview process keeps the devices open. Starting the
    encoder swaps it for a process writing WebM (VP8 + Opus) to stdout.
    """

    mime_type = "video/webm"
    filename = "recording.webm"

    def __init__(self, config: CaptureConfig, input_args: list[str]):
        self.config = config
        self.input_args = input_args
        self._preview: asyncio.subprocess.Process | None = None
        self._encoder: asyncio.subprocess.Process | None = None

    async def _spawn(self, output_args: list[str], pipe_output: bool) -> asyncio.subprocess.Process:
        cmd = [
            self.config.ffmpeg_binary,
            "-hide_banner",
            "-loglevel", "error",
            *self.input_args,
            *output_args,
        ]
        _module_logger.debug(f"Starting ffmpeg: {' '.join(cmd)}")
        return await asyncio.create_subprocess_exec(
            *cmd,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE if pipe_output else asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

    async def _ensure_running(self, process: asyncio.subprocess.Process, window: float) -> None:
        """Raise a classified error if the process dies within `window` seconds."""
        try:
            await asyncio.wait_for(process.wait(), timeout=window)
        except asyncio.TimeoutError:
            return
        stderr = (await process.stderr.read()).decode(errors="replace")
        _module_logger.error(f"ffmpeg exited with {process.returncode}: {stderr}")
        raise classify_device_error(stderr)

    async def open_preview(self) -> None:
        self._preview = await self._spawn(["-f", "null", "-"], pipe_output=False)
        try:
            await self._ensure_running(self._preview, self.config.grant_timeout)
        except CaptureError:
            self._preview = None
            raise

    async def start_encoder(self) -> None:
        await self._terminate(self._preview)
        self._preview = None

        self._encoder = await self._spawn(
            [
                "-c:v", "libvpx",
                "-deadline", "realtime",
                "-cpu-used", "8",
                "-b:v", "1M",
                "-c:a", "libopus",
                "-f", "webm",
                "pipe:1",
            ],
            pipe_output=True,
        )
        try:
            await self._ensure_running(self._encoder, min(0.5, self.config.grant_timeout))
        except CaptureError:
            self._encoder = None
            raise

    async def read_chunk(self) -> bytes:
        if self._encoder is None or self._encoder.stdout is None:
            return b""
        return await self._encoder.stdout.read(CHUNK_SIZE)

    async def stop_encoder(self) -> None:
        """Ask ffmpeg to finish the file (like Ctrl+C) and wait for it to exit."""
        process = self._encoder
        if process is None:
            return
        if process.returncode is None and process.stdin is not None:
            try:
                process.stdin.write(b"q")
                await process.stdin.drain()
                process.stdin.close()
            except (BrokenPipeError, ConnectionResetError):
                pass
        try:
            await asyncio.wait_for(process.wait(), timeout=self.config.stop_timeout)
        except asyncio.TimeoutError:
            # Force kill if it doesn't stop
            process.kill()
            await process.wait()

    async def _terminate(self, process: asyncio.subprocess.Process | None) -> None:
        if process is None or process.returncode is not None:
            return
        try:
            process.terminate()
            await asyncio.wait_for(process.wait(), timeout=self.config.stop_timeout)
        except ProcessLookupError:
            # Process already terminated
            pass
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()

    async def release(self) -> None:
        """Stop every ffmpeg process so the devices are free again."""
        await self._terminate(self._preview)
        await self._terminate(self._encoder)
        self._preview = None
        self._encoder = None


class FFmpegMediaDevices:
    """Opens the configured camera and microphone through ffmpeg."""

    def __init__(self, config: CaptureConfig, system: str | None = None):
        self.config = config
        self.system = system or platform.system()

        if not check_recording_support(config.ffmpeg_binary):
            _module_logger.error("ffmpeg not found on system PATH")
            raise RuntimeError(
                "ffmpeg not found. Please install it:\n"
                "  macOS: brew install ffmpeg\n"
                "  Ubuntu: apt-get install ffmpeg\n"
            )

    async def open(self) -> FFmpegMediaStream:
        stream = FFmpegMediaStream(self.config, capture_input_args(self.config, self.system))
        await stream.open_preview()
        return stream
