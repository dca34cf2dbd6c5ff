"""Copywriting module turning transcripts into platform-ready text."""

from .generator import CopyGenerator, GenerationResult, TokenUsage, build_card_prompt
from .platforms import (
    DEFAULT_PLATFORM,
    PLATFORM_SPECS,
    PLATFORM_TEXT_LIMITS,
    PlatformSpec,
    SocialPlatform,
    fit_to_platform,
    get_platform_spec,
    resolve_platform,
)

__all__ = [
    "CopyGenerator",
    "GenerationResult",
    "TokenUsage",
    "build_card_prompt",
    "DEFAULT_PLATFORM",
    "PLATFORM_SPECS",
    "PLATFORM_TEXT_LIMITS",
    "PlatformSpec",
    "SocialPlatform",
    "fit_to_platform",
    "get_platform_spec",
    "resolve_platform",
]
