"""
Run settings and option enumerations for the video document generator.

Settings come from CLI flags and environment variables only; nothing is
persisted between runs.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from enum import Enum


class _StringEnum(Enum):
    """Enum with case-insensitive parsing from its string value."""

    @classmethod
    def from_string(cls, value):
        """Convert a string (or an existing member) to an enum member.

        Raises:
            ValueError: If value is not one of the member values.
        """
        if isinstance(value, cls):
            return value
        value_lower = str(value).lower()
        for member in cls:
            if member.value == value_lower:
                return member
        valid_values = [m.value for m in cls]
        raise ValueError(f"Invalid {cls.__name__}: {value}. Must be one of {valid_values}")


class EncoderMode(_StringEnum):
    """Encoder selection for re-encoding videos."""

    CPU = "cpu"
    GPU = "gpu"
    AUTO = "auto"


class VideoQuality(_StringEnum):
    """Target resolution for re-encoding before upload."""

    NO_CONVERSION = "none"
    P1080 = "1080p"
    P720 = "720p"
    P480 = "480p"

    @property
    def height(self) -> int | None:
        """Target frame height in pixels, or None when no conversion is done."""
        if self is VideoQuality.NO_CONVERSION:
            return None
        return int(self.value.rstrip("p"))


class ImageEmbedFrequency(_StringEnum):
    """How often the model is asked to reference screenshots."""

    MINIMAL = "minimal"
    MODERATE = "moderate"
    DETAILED = "detailed"


class FrameExtractionMethod(_StringEnum):
    """Strategy used to pull a still frame out of a video."""

    STANDARD = "standard"
    FAST = "fast"
    MULTIPLE = "multiple"


DEFAULT_MODEL = "gemini-2.5-pro"
API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


@dataclass
class GeneratorSettings:
    """Configuration for one document generation run.

    Attributes:
        api_key: Gemini API key.
        language: Output language ("japanese", "english", or any language name).
        temperature: Sampling temperature; 0 leaves the model default in place.
        custom_prompt: Replaces the preset prompt when set.
        prompt_preset: Built-in prompt preset name ("general", "manual", "specification").
        gemini_model: Model used for generation and integration.
        embed_images: Ask for screenshot markers and replace them with frames.
        image_embed_frequency: How densely screenshots are requested.
        video_quality: Re-encode target before upload.
        encoder_mode: Encoder selection for re-encoding.
        frame_extraction_method: Strategy for pulling screenshot frames.
        max_poll_attempts: Upload status checks before giving up.
        poll_interval: Seconds between checks while the file is PROCESSING.
        no_state_poll_interval: Seconds between checks when no state is reported.
        cleanup_remote_files: Delete uploaded files from the API after the run.
        output_dir: Directory for the document and its images.
    """

    api_key: str = ""
    language: str = "japanese"
    temperature: float = 0.0
    custom_prompt: str | None = None
    prompt_preset: str = "general"
    gemini_model: str = DEFAULT_MODEL
    embed_images: bool = False
    image_embed_frequency: ImageEmbedFrequency = ImageEmbedFrequency.MODERATE
    video_quality: VideoQuality = VideoQuality.NO_CONVERSION
    encoder_mode: EncoderMode = EncoderMode.CPU
    frame_extraction_method: FrameExtractionMethod = FrameExtractionMethod.STANDARD
    max_poll_attempts: int = 60
    poll_interval: float = 10.0
    no_state_poll_interval: float = 5.0
    cleanup_remote_files: bool = True
    output_dir: str = "output"

    def __post_init__(self):
        self.image_embed_frequency = ImageEmbedFrequency.from_string(self.image_embed_frequency)
        self.video_quality = VideoQuality.from_string(self.video_quality)
        self.encoder_mode = EncoderMode.from_string(self.encoder_mode)
        self.frame_extraction_method = FrameExtractionMethod.from_string(
            self.frame_extraction_method
        )
        if self.custom_prompt is not None and not self.custom_prompt.strip():
            self.custom_prompt = None

    def validate(self) -> None:
        """Check the settings before a run.

        Raises:
            ValueError: If the API key is missing or a numeric option is out of range.
        """
        if not self.api_key or not self.api_key.strip():
            raise ValueError(
                "Gemini API key is not set. Pass --api-key or set one of: "
                + ", ".join(API_KEY_ENV_VARS)
            )
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError(f"Temperature must be between 0.0 and 2.0, got {self.temperature}")
        if self.max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1")
        if self.poll_interval <= 0 or self.no_state_poll_interval <= 0:
            raise ValueError("Poll intervals must be positive")


def settings_from_env(**overrides) -> GeneratorSettings:
    """Build settings with the API key taken from the environment.

    Explicit overrides win; a falsy ``api_key`` override is ignored so the
    environment value still applies.
    """
    api_key = overrides.pop("api_key", None)
    if not api_key:
        api_key = next((os.environ[v] for v in API_KEY_ENV_VARS if os.environ.get(v)), "")
    settings = GeneratorSettings(api_key=api_key)
    return replace(settings, **overrides) if overrides else settings
