"""Platform-tailored copy generation with an OpenAI chat model."""

import logging
from dataclasses import dataclass
from typing import Any, TYPE_CHECKING

from openai import APIConnectionError, APIError, APIStatusError, AsyncOpenAI

from config import AIServiceConfig, ModelConfig
from errors import GenerationError
from prompts.card_prompts import CARD_COPY_PROMPT, NO_AUDIO_MARKER
from recorder.transcriber import build_openai_client
from .platforms import DEFAULT_PLATFORM, get_platform_spec

if TYPE_CHECKING:
    from utils.logger import CardLogger
    from utils.tracking import CostTracker

_module_logger = logging.getLogger(__name__)


def build_card_prompt(transcript: str, platform: str | None) -> str:
    """Render the copywriting prompt for a transcript and platform.

    Unknown platforms use the WeChat rules; an empty transcript is replaced
    by a literal no-audio marker.
    """
    spec = get_platform_spec(platform)
    return CARD_COPY_PROMPT.format(
        platform_name=spec.name,
        transcript=transcript or NO_AUDIO_MARKER,
        style=spec.style,
        length=spec.length,
        features=spec.features,
    )


@dataclass(frozen=True)
class TokenUsage:
    """Token accounting reported by the completion endpoint."""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class GenerationResult:
    """Generated copy. Only produced for a successful call."""

    text: str
    usage: TokenUsage | None = None

    def to_dict(self) -> dict:
        """Convert to serializable dictionary."""
        return {
            "text": self.text,
            "usage": None if self.usage is None else {
                "prompt_tokens": self.usage.prompt_tokens,
                "completion_tokens": self.usage.completion_tokens,
                "total_tokens": self.usage.total_tokens,
            },
        }


class CopyGenerator:
    """Turns a transcript into marketing copy for one social platform."""

    def __init__(
        self,
        service: AIServiceConfig,
        models: ModelConfig | None = None,
        client: AsyncOpenAI | None = None,
        cost_tracker: "CostTracker | None" = None,
        logger: "CardLogger | None" = None,
    ):
        self.models = models or ModelConfig()
        self.client = client or build_openai_client(service)
        self.cost_tracker = cost_tracker
        self.logger = logger

    async def generate(self, transcript: str, platform: str = DEFAULT_PLATFORM) -> GenerationResult:
        """Generate copy for `platform` from a transcript or placeholder.

        Raises:
            GenerationError: On any failed call. No fallback text is produced.
        """
        prompt = build_card_prompt(transcript, platform)

        try:
            response = await self.client.chat.completions.create(
                model=self.models.generation,
                messages=[{"role": "user", "content": prompt}],
                max_tokens=self.models.max_tokens,
                temperature=self.models.temperature,
            )
        except APIStatusError as e:
            body = e.response.text
            _module_logger.error(f"Generation failed: {e.status_code} {body}")
            raise GenerationError(
                f"Content generation failed ({e.status_code}), please try again",
                status_code=e.status_code,
                body=body,
            ) from e
        except APIConnectionError as e:
            _module_logger.error(f"Generation request failed: {e}")
            raise GenerationError("Content generation failed, please try again") from e
        except (APIError, ValueError) as e:
            _module_logger.error(f"Generation response unreadable: {e}")
            raise GenerationError("Content generation failed, please try again") from e

        result = GenerationResult(
            text=self._first_choice_text(response),
            usage=self._parse_usage(response),
        )

        if result.usage is not None:
            if self.cost_tracker is not None:
                self.cost_tracker.add_usage(
                    result.usage.prompt_tokens,
                    result.usage.completion_tokens,
                    model=self.models.generation,
                )
            if self.logger:
                self.logger.api(result.usage.prompt_tokens, result.usage.completion_tokens)

        return result

    def _first_choice_text(self, response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return getattr(message, "content", None) or ""

    def _parse_usage(self, response: Any) -> TokenUsage | None:
        usage = getattr(response, "usage", None)
        if usage is None:
            return None
        return TokenUsage(
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            total_tokens=getattr(usage, "total_tokens", 0) or 0,
        )
