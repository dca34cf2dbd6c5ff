"""Capture controllers producing a 10-second audio+video Recording.

Two implementations share one capability:

- StreamCaptureController drives a live camera/microphone stream and runs
  a timed recording with a one-second countdown.
- NativeCaptureController hands off to the host device's own capture UI and
  receives an already-encoded file later through `supply_recorded_file`.

`select_capture_controller` picks one of them once, at session start.
"""

import asyncio
import contextlib
import inspect
import logging
import re
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import TYPE_CHECKING

from config import CaptureConfig
from errors import CaptureError
from .devices import FFmpegMediaDevices, MediaDevices, MediaStream
from .recording import NOMINAL_DURATION_SECONDS, Recording, mime_type_for

if TYPE_CHECKING:
    from utils.logger import CardLogger

_module_logger = logging.getLogger(__name__)

RecordingCallback = Callable[[Recording], Awaitable[None] | None]
TickCallback = Callable[[int], None]
ErrorCallback = Callable[[Exception], None]

MOBILE_DEVICE_PATTERN = re.compile(
    r"android|webos|iphone|ipad|ipod|blackberry|iemobile|opera mini",
    re.IGNORECASE,
)


def is_mobile_device(descriptor: str) -> bool:
    """Check a user-agent style device descriptor for a mobile/touch device."""
    return bool(MOBILE_DEVICE_PATTERN.search(descriptor or ""))


class CaptureController(ABC):
    """Obtains one Recording per attempt and forwards it to the pipeline."""

    def __init__(
        self,
        on_recording: RecordingCallback,
        config: CaptureConfig | None = None,
        logger: "CardLogger | None" = None,
    ):
        self.on_recording = on_recording
        self.config = config or CaptureConfig()
        self.logger = logger
        self._emitted = False

    @abstractmethod
    async def begin(self) -> None:
        """Start a capture attempt."""

    @abstractmethod
    async def reset(self) -> None:
        """Release anything held and clear recording state."""

    async def _emit(self, recording: Recording) -> None:
        """Forward a finished recording exactly once per attempt."""
        if self._emitted:
            _module_logger.warning("Recording already emitted for this attempt; ignoring")
            return
        self._emitted = True
        result = self.on_recording(recording)
        if inspect.isawaitable(result):
            await result


class NativeCaptureController(CaptureController):
    """Delegates capture to the host device's native camera UI."""

    def __init__(
        self,
        on_recording: RecordingCallback,
        config: CaptureConfig | None = None,
        launcher: Callable[[], None] | None = None,
        logger: "CardLogger | None" = None,
    ):
        super().__init__(on_recording, config, logger)
        self.launcher = launcher

    async def begin(self) -> None:
        """Open the native capture UI. The file arrives via supply_recorded_file()."""
        self._emitted = False
        if self.launcher is not None:
            self.launcher()
        if self.logger:
            self.logger.step("Waiting for the device camera to deliver a video...")

    async def supply_recorded_file(self, path: Path) -> Recording:
        """Wrap a file delivered by the native capture UI into a Recording."""
        path = Path(path)
        if not path.exists():
            _module_logger.error(f"Video file not found: {path}")
            raise FileNotFoundError(f"Video not found: {path}")

        payload = path.read_bytes()
        recording = Recording.create(
            payload,
            self.config.recordings_dir,
            mime_type=mime_type_for(path),
            filename=f"recording{path.suffix.lower() or '.webm'}",
        )
        if self.logger:
            self.logger.info(f"Received {path.name} ({len(payload) / 1024:.1f} KB)")

        await self._emit(recording)
        return recording

    async def reset(self) -> None:
        self._emitted = False


class StreamCaptureController(CaptureController):
    """Manages its own live stream and a fixed-length timed recording."""

    def __init__(
        self,
        on_recording: RecordingCallback,
        config: CaptureConfig | None = None,
        devices: MediaDevices | None = None,
        on_tick: TickCallback | None = None,
        on_error: ErrorCallback | None = None,
        logger: "CardLogger | None" = None,
    ):
        super().__init__(on_recording, config, logger)
        self.devices = devices or FFmpegMediaDevices(self.config)
        self.on_tick = on_tick
        self.on_error = on_error

        self.countdown = 0
        self._stream: MediaStream | None = None
        self._chunks: list[bytes] = []
        self._recording = False
        self._reader: asyncio.Task | None = None
        self._timer: asyncio.Task | None = None

    @property
    def has_stream(self) -> bool:
        return self._stream is not None

    @property
    def is_recording(self) -> bool:
        return self._recording

    async def begin(self) -> None:
        """Request camera+microphone access and start the live preview.

        Raises PermissionDeniedError, DeviceNotFoundError or DeviceBusyError
        when the devices cannot be acquired. Nothing is retried.
        """
        if self._stream is not None:
            return
        if self.logger:
            self.logger.step("Requesting camera and microphone...")
        self._stream = await self.devices.open()
        if self.logger:
            self.logger.success("Camera ready")

    async def start_timed_recording(self) -> None:
        """Start buffering encoded chunks with a countdown from 10 seconds."""
        if self._stream is None:
            raise CaptureError("No live stream; call begin() before recording")
        if self._recording:
            return

        self._chunks = []
        self._emitted = False
        try:
            await self._stream.start_encoder()
        except CaptureError:
            await self._release_stream()
            raise

        self._recording = True
        self.countdown = self.config.duration_seconds
        self._reader = asyncio.create_task(self._read_chunks())
        self._timer = asyncio.create_task(self._run_countdown())
        if self.logger:
            self.logger.step(f"Recording {self.countdown}s clip...")

    async def _read_chunks(self) -> None:
        stream = self._stream
        while stream is not None:
            chunk = await stream.read_chunk()
            if not chunk:
                break
            self._chunks.append(chunk)

    async def _run_countdown(self) -> None:
        while self.countdown > 0:
            await asyncio.sleep(self.config.tick_interval)
            self.countdown -= 1
            if self.on_tick:
                self.on_tick(self.countdown)
        try:
            await self.stop_recording()
        except Exception as e:
            # The countdown task is never awaited; report to the owner instead
            _module_logger.error(f"Stopping the recording failed: {e}")
            if self.on_error is None:
                raise
            self.on_error(e)

    async def stop_recording(self) -> Recording | None:
        """Stop the recording (timer expiry or manual) and emit the Recording.

        Returns None if no recording is in progress.
        """
        if not self._recording or self._stream is None:
            return None
        self._recording = False
        self._cancel_timer()

        try:
            await self._stream.stop_encoder()
            if self._reader is not None:
                await self._reader
        finally:
            self._reader = None
            mime_type = self._stream.mime_type
            filename = self._stream.filename
            await self._release_stream()

        payload = b"".join(self._chunks)
        self._chunks = []
        self.countdown = 0

        recording = Recording.create(
            payload,
            self.config.recordings_dir,
            mime_type=mime_type,
            filename=filename,
        )
        _module_logger.info(
            f"Recording finished: {len(payload)} bytes, nominal {NOMINAL_DURATION_SECONDS}s"
        )
        if self.logger:
            self.logger.success(f"Recording captured ({len(payload) / 1024:.1f} KB)")

        await self._emit(recording)
        return recording

    def _cancel_timer(self) -> None:
        timer = self._timer
        self._timer = None
        if timer is not None and timer is not asyncio.current_task() and not timer.done():
            timer.cancel()

    async def _release_stream(self) -> None:
        stream = self._stream
        self._stream = None
        if stream is not None:
            await stream.release()

    async def reset(self) -> None:
        """Release the stream and clear recording state. Idempotent."""
        self._cancel_timer()
        reader = self._reader
        self._reader = None
        if reader is not None and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

        await self._release_stream()
        self._chunks = []
        self._recording = False
        self._emitted = False
        self.countdown = 0


def select_capture_controller(
    device_descriptor: str,
    on_recording: RecordingCallback,
    config: CaptureConfig | None = None,
    devices: MediaDevices | None = None,
    launcher: Callable[[], None] | None = None,
    on_tick: TickCallback | None = None,
    on_error: ErrorCallback | None = None,
    logger: "CardLogger | None" = None,
) -> CaptureController:
    """Choose the native or live-stream controller for this session."""
    if is_mobile_device(device_descriptor):
        return NativeCaptureController(on_recording, config, launcher=launcher, logger=logger)
    return StreamCaptureController(
        on_recording, config, devices=devices, on_tick=on_tick, on_error=on_error, logger=logger
    )
