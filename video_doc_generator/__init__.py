"""
Video Doc Generator - Turn videos into Markdown documents with Google Gemini.

This package uploads local videos (or passes YouTube URLs) to the Gemini API,
asks the model to write a document from a prompt preset, integrates the
documents of multi-part inputs, and can embed screenshots extracted from the
source videos with FFmpeg and OpenCV.

Long videos are split into parts the API accepts; optional re-encoding can use
NVIDIA NVENC when FFmpeg supports it.
"""

from .config import (
    DEFAULT_MODEL,
    EncoderMode,
    FrameExtractionMethod,
    GeneratorSettings,
    ImageEmbedFrequency,
    VideoQuality,
    settings_from_env,
)
from .gemini_client import (
    FileProcessingTimeout,
    GeminiClient,
    GeminiError,
    GenerationError,
    UploadedVideo,
    UploadError,
)
from .generator import DocumentGenerationError, DocumentGenerator, GenerationResult
from .progress import ProgressTracker, ProgressUpdate
from .prompts import PRESETS, PromptPreset, build_generation_prompt, build_integration_prompt
from .screenshots import EmbedResult, embed_screenshots, shift_screenshot_timestamps
from .video_processor import (
    VideoProcessingError,
    VideoSegment,
    detect_nvenc_support,
    encode_video,
    extract_frame,
    get_encoder_info,
    get_video_duration,
    split_video_if_needed,
)
from .youtube import DownloadError, download_youtube_video, is_youtube_url

__version__ = "0.1.0"
__all__ = [
    "DEFAULT_MODEL",
    "PRESETS",
    "DocumentGenerationError",
    "DocumentGenerator",
    "DownloadError",
    "EmbedResult",
    "EncoderMode",
    "FileProcessingTimeout",
    "FrameExtractionMethod",
    "GeminiClient",
    "GeminiError",
    "GenerationError",
    "GenerationResult",
    "GeneratorSettings",
    "ImageEmbedFrequency",
    "ProgressTracker",
    "ProgressUpdate",
    "PromptPreset",
    "UploadError",
    "UploadedVideo",
    "VideoProcessingError",
    "VideoQuality",
    "VideoSegment",
    "build_generation_prompt",
    "build_integration_prompt",
    "detect_nvenc_support",
    "download_youtube_video",
    "embed_screenshots",
    "encode_video",
    "extract_frame",
    "get_encoder_info",
    "get_video_duration",
    "is_youtube_url",
    "settings_from_env",
    "shift_screenshot_timestamps",
    "split_video_if_needed",
]
