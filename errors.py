"""Exception hierarchy shared by the capture, extraction and AI layers."""


class ClipCardError(Exception):
    """Base error for the card pipeline."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(ClipCardError):
    """Required configuration is missing or invalid."""


class InvalidTransitionError(ClipCardError):
    """An operation was invoked from a stage that does not allow it."""


# Capture acquisition

class CaptureError(ClipCardError):
    """Camera/microphone could not be used for this attempt."""


class PermissionDeniedError(CaptureError):
    """Access to the camera or microphone was refused."""


class DeviceNotFoundError(CaptureError):
    """No matching camera or microphone exists."""


class DeviceBusyError(CaptureError):
    """The device is held by another process."""


# Frame extraction

class FrameExtractionError(ClipCardError):
    """A still frame could not be produced from a recording."""


class FrameDecodeError(FrameExtractionError):
    """The recording never became decodable/seekable."""


class FrameEncodeError(FrameExtractionError):
    """The rendered frame could not be encoded as an image."""


# Remote services

class ServiceError(ClipCardError):
    """A remote AI call failed."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        self.status_code = status_code
        self.body = body
        super().__init__(message)


class TranscriptionError(ServiceError):
    """Speech-to-text call failed."""


class GenerationError(ServiceError):
    """Text generation call failed."""
