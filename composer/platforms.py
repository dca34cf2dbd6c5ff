"""Social platforms a card can target, with their copy rules."""

from dataclasses import dataclass
from enum import StrEnum


class SocialPlatform(StrEnum):
    """Supported target networks."""
    WECHAT = "wechat"
    WEIBO = "weibo"
    XIAOHONGSHU = "xiaohongshu"


DEFAULT_PLATFORM = SocialPlatform.WECHAT


@dataclass(frozen=True)
class PlatformSpec:
    """Length, style and feature rules used to prompt for one platform."""

    name: str
    style: str
    length: str
    features: str
    max_text_length: int


PLATFORM_SPECS: dict[SocialPlatform, PlatformSpec] = {
    SocialPlatform.WECHAT: PlatformSpec(
        name="WeChat Moments (微信朋友圈)",
        style="relaxed and natural, suited to sharing everyday moments",
        length="50-100 characters",
        features="emoji are welcome",
        max_text_length=200,
    ),
    SocialPlatform.WEIBO: PlatformSpec(
        name="Weibo (微博)",
        style="concise and fun, easy to repost",
        length="100-140 characters",
        features="trending #hashtags# are welcome",
        max_text_length=140,
    ),
    SocialPlatform.XIAOHONGSHU: PlatformSpec(
        name="Xiaohongshu (小红书)",
        style="detailed and practical, a recommendation-style share",
        length="100-200 characters",
        features="emoji and line breaks for layout are welcome",
        max_text_length=1000,
    ),
}

# Character limits enforced by the card editor
PLATFORM_TEXT_LIMITS: dict[SocialPlatform, int] = {
    platform: spec.max_text_length for platform, spec in PLATFORM_SPECS.items()
}


def resolve_platform(platform: str | None) -> SocialPlatform:
    """Map a platform identifier to a SocialPlatform, defaulting to WeChat."""
    try:
        return SocialPlatform((platform or "").strip().lower())
    except ValueError:
        return DEFAULT_PLATFORM


def get_platform_spec(platform: str | None) -> PlatformSpec:
    """Platform spec for an identifier; unknown identifiers get the WeChat spec."""
    return PLATFORM_SPECS[resolve_platform(platform)]


def fit_to_platform(text: str, platform: str | None) -> str:
    """Trim text to the platform's character limit."""
    limit = PLATFORM_TEXT_LIMITS[resolve_platform(platform)]
    return text if len(text) <= limit else text[:limit]
