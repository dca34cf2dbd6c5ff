"""Recording module for the capture-to-card pipeline.

This module provides:
- CaptureController: Live-stream and native-capture recording controllers
- FrameExtractor: Pull one still frame out of a recording with ffmpeg
- Transcriber: Transcribe audio using the OpenAI Speech-to-Text API
"""

from .devices import FFmpegMediaDevices, check_recording_support, supported_formats
from .frame_extractor import ExtractedFrame, FrameExtractor, clamp_seek_offset
from .recording import NOMINAL_DURATION_SECONDS, Recording
from .session import (
    CaptureController,
    NativeCaptureController,
    StreamCaptureController,
    is_mobile_device,
    select_capture_controller,
)
from .transcriber import Transcriber, TranscriptionResult, build_openai_client

__all__ = [
    "FFmpegMediaDevices",
    "check_recording_support",
    "supported_formats",
    "ExtractedFrame",
    "FrameExtractor",
    "clamp_seek_offset",
    "NOMINAL_DURATION_SECONDS",
    "Recording",
    "CaptureController",
    "NativeCaptureController",
    "StreamCaptureController",
    "is_mobile_device",
    "select_capture_controller",
    "Transcriber",
    "TranscriptionResult",
    "build_openai_client",
]
