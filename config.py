"""Configuration and settings for the capture-to-card pipeline."""

import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

from errors import ConfigurationError

DEFAULT_BASE_URL = "https://api.openai.com/v1"


@dataclass(frozen=True)
class AIServiceConfig:
    """Connection settings for the speech-to-text and generation services.

    Passed explicitly into the client constructors. Construction fails as
    soon as the API key is missing so a misconfigured run never reaches
    the network.
    """

    api_key: str
    base_url: str = DEFAULT_BASE_URL

    def __post_init__(self):
        if not self.api_key:
            raise ConfigurationError(
                "OPENAI_API_KEY is not set. Add it to your environment or .env file."
            )
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    @classmethod
    def from_env(cls) -> "AIServiceConfig":
        """Read OPENAI_API_KEY and OPENAI_BASE_URL from the environment."""
        return cls(
            api_key=os.getenv("OPENAI_API_KEY", ""),
            base_url=os.getenv("OPENAI_BASE_URL") or DEFAULT_BASE_URL,
        )


@dataclass
class ModelConfig:
    """Models and sampling settings for the two remote calls."""

    transcription: str = "whisper-1"
    transcription_language: str = "zh"  # Fixed language hint

    generation: str = "gpt-3.5-turbo"  # Text-only, cheapest chat model
    max_tokens: int = 300
    temperature: float = 0.7


def _default_video_device() -> str:
    system = platform.system()
    if system == "Darwin":
        return "0"
    if system == "Windows":
        return "Integrated Camera"
    return "/dev/video0"


def _default_audio_device() -> str:
    system = platform.system()
    if system == "Darwin":
        return "0"
    if system == "Windows":
        return "Microphone"
    return "default"


@dataclass
class CaptureConfig:
    """Recording settings."""

    duration_seconds: int = 10
    tick_interval: float = 1.0  # Countdown tick, seconds
    grant_timeout: float = 2.0  # How long a device open may take to fail
    stop_timeout: float = 5.0  # Wait for the encoder to finalize before killing it

    video_device: str = field(default_factory=_default_video_device)
    audio_device: str = field(default_factory=_default_audio_device)
    video_size: str = "1280x720"
    ffmpeg_binary: str = "ffmpeg"

    recordings_dir: Path = Path("./recordings")


@dataclass
class FrameConfig:
    """Still-frame extraction settings."""

    target_offset: float = 5.0
    epsilon: float = 0.1  # Keep seeks strictly before end-of-stream
    jpeg_quality: int = 80


@dataclass
class Config:
    """Application configuration."""

    capture: CaptureConfig = field(default_factory=CaptureConfig)
    frame: FrameConfig = field(default_factory=FrameConfig)
    models: ModelConfig = field(default_factory=ModelConfig)

    logs_dir: Path = Path("./logs")
    cards_dir: Path = Path("./cards")


def load_config(**overrides) -> Config:
    """Build a Config, applying keyword overrides to matching top-level fields."""
    config = Config()
    for key, value in overrides.items():
        if hasattr(config, key):
            setattr(config, key, value)
    return config
