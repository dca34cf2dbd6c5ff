"""Data model for the capture-to-card state machine."""

import json
from dataclasses import asdict, dataclass
from enum import StrEnum
from pathlib import Path
from typing import Literal, assert_never

from composer.generator import GenerationResult
from composer.platforms import DEFAULT_PLATFORM, SocialPlatform
from recorder.frame_extractor import ExtractedFrame
from recorder.recording import Recording
from recorder.transcriber import TranscriptionResult


class Stage(StrEnum):
    """States of one pipeline session."""
    RECORDING = "recording"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    READY = "ready"
    GENERATING = "generating"
    COMPLETED = "completed"
    ERROR = "error"


StageIcon = Literal["image", "type", "brain"]


@dataclass(frozen=True)
class StageInfo:
    """How a stage is presented to the user."""

    icon: StageIcon
    text: str
    color: str
    busy: bool  # Show a spinner


def describe_stage(stage: Stage) -> StageInfo:
    """Display info for a stage."""
    match stage:
        case Stage.RECORDING:
            return StageInfo("image", "Record a 10-second video", "blue", busy=False)
        case Stage.EXTRACTING:
            return StageInfo("image", "Extracting video frame...", "yellow", busy=True)
        case Stage.TRANSCRIBING:
            return StageInfo("type", "Transcribing audio...", "magenta", busy=True)
        case Stage.READY:
            return StageInfo("brain", "Ready, generate the copy when you are", "blue", busy=False)
        case Stage.GENERATING:
            return StageInfo("brain", "Generating copy...", "green", busy=True)
        case Stage.COMPLETED:
            return StageInfo("brain", "Done", "green", busy=False)
        case Stage.ERROR:
            return StageInfo("brain", "Processing failed", "red", busy=False)
        case _:
            assert_never(stage)


@dataclass
class PipelineSession:
    """Mutable state of the one live session. Replaced wholesale on reset."""

    stage: Stage = Stage.RECORDING
    recording: Recording | None = None
    frame: ExtractedFrame | None = None
    transcript: TranscriptionResult | None = None
    generation: GenerationResult | None = None
    error: str | None = None


@dataclass(frozen=True)
class GeneratedCard:
    """Terminal output of a successful run, merged into CardData."""

    image: str | None
    text: str
    transcribed_text: str
    extracted_frame_url: str | None
    ai_generated_text: str
    platform: SocialPlatform = DEFAULT_PLATFORM


@dataclass
class CardData:
    """Fields of the social-media card being assembled."""

    image: str | None = None
    text: str = ""
    platform: SocialPlatform = DEFAULT_PLATFORM
    video_url: str | None = None
    extracted_frame_url: str | None = None
    transcribed_text: str | None = None
    ai_generated_text: str | None = None

    def apply(self, card: GeneratedCard) -> None:
        """Merge generated content into the card."""
        self.image = card.image
        self.text = card.text
        self.transcribed_text = card.transcribed_text
        self.extracted_frame_url = card.extracted_frame_url
        self.ai_generated_text = card.ai_generated_text
        self.platform = card.platform

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        data = asdict(self)
        data["platform"] = str(self.platform)
        return data

    def save(self, path: Path) -> Path:
        """Save card fields to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)
        return path
