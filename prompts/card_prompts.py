"""Prompts used by the composer module to write social-media copy."""

# Stands in for the transcript when the recording had no usable speech
NO_AUDIO_MARKER = "no audio content"

CARD_COPY_PROMPT = """Write an engaging post for the {platform_name} platform based on the audio transcript below.

Audio transcript: {transcript}

Requirements:
1. Style: {style}
2. Length: {length}
3. Features: {features}
4. Base the post on the audio content; if the content is empty, write a general-purpose post
5. Keep the writing natural and fluent, never stiff

Output only the post content, with no extra commentary or explanation."""
