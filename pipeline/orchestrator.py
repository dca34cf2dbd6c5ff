"""State machine driving a Recording through extraction, transcription and generation."""

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from composer.generator import CopyGenerator
from composer.platforms import DEFAULT_PLATFORM, SocialPlatform, resolve_platform
from errors import FrameExtractionError, GenerationError, InvalidTransitionError, TranscriptionError
from recorder.frame_extractor import FrameExtractor
from recorder.recording import Recording
from recorder.transcriber import Transcriber, TranscriptionResult
from .models import GeneratedCard, PipelineSession, Stage, StageInfo, describe_stage

if TYPE_CHECKING:
    from utils.logger import CardLogger

_module_logger = logging.getLogger(__name__)

DEFAULT_FRAME_OFFSET = 5.0

# Substituted for the transcript when speech-to-text fails
PLACEHOLDER_TRANSCRIPT = "Audio transcription failed, the copy will be generated from the image instead"

CardCallback = Callable[[GeneratedCard], None]
StageCallback = Callable[[Stage, StageInfo], None]


class PipelineOrchestrator:
    """Sequences frame extraction, transcription and copy generation for one session.

    Stages move forward only:

        recording -> extracting -> transcribing -> ready -> generating -> completed

    Extraction and generation failures end in `error`. A transcription
    failure is recovered locally by storing PLACEHOLDER_TRANSCRIPT, so the
    session still reaches `ready`. `ready` waits for an explicit call to
    `generate()`. `reset()` is allowed from every stage.

    Each call awaits one operation at a time. Results that arrive after a
    reset belong to a discarded session and are dropped.
    """

    def __init__(
        self,
        extractor: FrameExtractor,
        transcriber: Transcriber,
        generator: CopyGenerator,
        platform: str = DEFAULT_PLATFORM,
        on_complete: CardCallback | None = None,
        on_stage_change: StageCallback | None = None,
        frame_offset: float = DEFAULT_FRAME_OFFSET,
        logger: "CardLogger | None" = None,
    ):
        self.extractor = extractor
        self.transcriber = transcriber
        self.generator = generator
        self.platform: SocialPlatform = resolve_platform(platform)
        self.on_complete = on_complete
        self.on_stage_change = on_stage_change
        self.frame_offset = frame_offset
        self.logger = logger

        self._session = PipelineSession()
        self._epoch = 0

    @property
    def session(self) -> PipelineSession:
        return self._session

    @property
    def stage(self) -> Stage:
        return self._session.stage

    def _set_stage(self, stage: Stage) -> None:
        self._session.stage = stage
        _module_logger.debug(f"Stage -> {stage}")
        if self.on_stage_change:
            self.on_stage_change(stage, describe_stage(stage))

    def _fail(self, message: str) -> None:
        self._session.error = message
        if self.logger:
            self.logger.error(message)
        self._set_stage(Stage.ERROR)

    def _is_stale(self, epoch: int) -> bool:
        if epoch != self._epoch:
            _module_logger.info("Discarding result for a session that was reset")
            return True
        return False

    async def handle_recording(self, recording: Recording) -> None:
        """Run extraction then transcription for a freshly captured recording.

        Ends in `ready`, or in `error` if the frame cannot be extracted.
        """
        if self._session.stage is not Stage.RECORDING or self._session.recording is not None:
            raise InvalidTransitionError(
                f"Cannot accept a recording in stage '{self._session.stage}'"
            )

        epoch = self._epoch
        self._session.recording = recording
        self._set_stage(Stage.EXTRACTING)

        try:
            frame = await asyncio.to_thread(self.extractor.extract, recording, self.frame_offset)
        except FrameExtractionError as e:
            if self._is_stale(epoch):
                return
            self._fail(str(e))
            return
        if self._is_stale(epoch):
            return

        self._session.frame = frame
        if self.logger:
            self.logger.success(f"Frame extracted at {frame.offset_seconds:.2f}s ({frame.width}x{frame.height})")
        self._set_stage(Stage.TRANSCRIBING)

        try:
            transcript = await self.transcriber.transcribe(recording)
        except TranscriptionError as e:
            if self._is_stale(epoch):
                return
            _module_logger.warning(f"Transcription failed, continuing with placeholder: {e}")
            if self.logger:
                self.logger.warning("Audio transcription failed, skipping it")
            transcript = TranscriptionResult(text=PLACEHOLDER_TRANSCRIPT)
        if self._is_stale(epoch):
            return

        self._session.transcript = transcript
        self._set_stage(Stage.READY)

    async def generate(self, platform: str | None = None) -> GeneratedCard | None:
        """Generate the copy. Only allowed from `ready`.

        Returns the card emitted to `on_complete`, or None when the call
        failed or its session was reset meanwhile.
        """
        if self._session.stage is not Stage.READY:
            raise InvalidTransitionError(
                f"Cannot generate in stage '{self._session.stage}'"
            )
        if platform is not None:
            self.platform = resolve_platform(platform)

        epoch = self._epoch
        transcript = self._session.transcript.text if self._session.transcript else ""
        self._session.error = None
        self._set_stage(Stage.GENERATING)

        try:
            result = await self.generator.generate(transcript, self.platform)
        except GenerationError as e:
            if self._is_stale(epoch):
                return None
            self._fail(str(e))
            return None
        if self._is_stale(epoch):
            return None

        self._session.generation = result
        self._set_stage(Stage.COMPLETED)

        frame_url = self._session.frame.data_url if self._session.frame else None
        card = GeneratedCard(
            image=frame_url,
            text=result.text,
            transcribed_text=transcript,
            extracted_frame_url=frame_url,
            ai_generated_text=result.text,
            platform=self.platform,
        )
        if self.on_complete:
            self.on_complete(card)
        return card

    def reset(self) -> None:
        """Discard the session and return to `recording`."""
        recording = self._session.recording
        if recording is not None:
            recording.release()

        self._epoch += 1
        self._session = PipelineSession()
        self._set_stage(Stage.RECORDING)
