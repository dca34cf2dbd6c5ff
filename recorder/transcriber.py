"""Audio transcription using the OpenAI Speech-to-Text API."""

import logging
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

import httpx
from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from config import AIServiceConfig, ModelConfig
from errors import ConfigurationError, TranscriptionError
from .recording import Recording

if TYPE_CHECKING:
    from utils.logger import CardLogger

_module_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TranscriptionResult:
    """Text recognised in a recording's audio track."""

    text: str
    language: str | None = None
    confidence: float | None = None

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return {
            "text": self.text,
            "language": self.language,
            "confidence": self.confidence,
        }


def build_openai_client(
    service: AIServiceConfig,
    http_client: httpx.AsyncClient | None = None,
) -> AsyncOpenAI:
    """Create the async OpenAI client shared by transcription and generation.

    Retries are disabled and no timeout is configured: a failed call is
    reported once and a stalled call waits on the transport.
    """
    if not service.api_key:
        raise ConfigurationError("OPENAI_API_KEY is not set")
    return AsyncOpenAI(
        api_key=service.api_key,
        base_url=service.base_url,
        max_retries=0,
        timeout=None,
        http_client=http_client,
    )


class Transcriber:
    """Transcribes a recording's audio with a single multipart request."""

    def __init__(
        self,
        service: AIServiceConfig,
        models: ModelConfig | None = None,
        client: AsyncOpenAI | None = None,
        logger: "CardLogger | None" = None,
    ):
        """Initialize the transcriber.

        Args:
            service: Base URL and API key; a missing key fails here.
            models: Transcription model and language hint.
            client: Optional pre-built AsyncOpenAI client.
            logger: Optional CardLogger for styled output.
        """
        self.models = models or ModelConfig()
        self.client = client or build_openai_client(service)
        self.logger = logger

    async def transcribe(self, recording: Recording) -> TranscriptionResult:
        """Transcribe the audio of a recording.

        The payload is uploaded as a named file (`recording.webm`) with the
        fixed language hint. The multipart boundary is left to the transport.

        Raises:
            TranscriptionError: On a non-success response (carries status and
                body) or a transport failure.
        """
        audio_file = recording.as_file()
        _module_logger.info(
            f"Transcription request: {audio_file.name}, {recording.size} bytes, {recording.mime_type}"
        )

        try:
            response = await self.client.audio.transcriptions.create(
                model=self.models.transcription,
                file=audio_file,
                language=self.models.transcription_language,
            )
        except APIStatusError as e:
            body = e.response.text
            _module_logger.error(f"Transcription failed: {e.status_code} {body}")
            raise TranscriptionError(
                f"Transcription failed: {e.status_code} - {body}",
                status_code=e.status_code,
                body=body,
            ) from e
        except APIConnectionError as e:
            _module_logger.error(f"Transcription request failed: {e}")
            raise TranscriptionError(f"Transcription request failed: {e}") from e
        except (APIError, ValueError) as e:
            # Malformed success bodies surface as decode errors from the SDK
            _module_logger.error(f"Transcription response unreadable: {e}")
            raise TranscriptionError(f"Transcription response could not be read: {e}") from e

        result = self._parse_response(response)
        if self.logger:
            self.logger.info(f"Transcription: {len(result.text)} characters")
        return result

    def _parse_response(self, response: Any) -> TranscriptionResult:
        """Parse the API response into a TranscriptionResult."""
        return TranscriptionResult(
            text=getattr(response, "text", None) or "",
            language=getattr(response, "language", None),
            confidence=getattr(response, "confidence", None),
        )
