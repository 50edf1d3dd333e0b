"""
Screenshot placeholder handling for generated documents.

When image embedding is enabled the model is asked to mark moments worth
illustrating as ``[Screenshot: MM:SSs]``. This module finds those markers,
shifts them for split segments, extracts the matching frames from the source
videos and replaces each marker with a Markdown image link.
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from pathlib import Path

from .config import FrameExtractionMethod
from .video_processor import VideoProcessingError, extract_frame, get_video_duration

logger = logging.getLogger(__name__)

IMAGES_DIR_NAME = "images"

# [Screenshot: 00:14s], [Screenshot: 1:02:03s], [Screenshot: 123.45s]
SCREENSHOT_PATTERN = re.compile(
    r"\[Screenshot:\s*(\d+:\d{2}(?::\d{2})?(?:\.\d+)?|\d+(?:\.\d+)?)\s*s\]"
)


@dataclass
class EmbedResult:
    """Outcome of screenshot embedding.

    Attributes:
        document: Document text with placeholders replaced or removed.
        images: Paths of the image files written, in document order.
        missing: Placeholders that could not be resolved to a frame.
    """

    document: str
    images: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)


def parse_timestamp(text: str) -> float:
    """
    Convert a placeholder timestamp to seconds.

    Accepts "MM:SS", "H:MM:SS" (fractional seconds allowed) and plain seconds
    such as "83.5". Unparsable input yields 0.0.
    """
    parts = text.strip().split(":")
    if len(parts) > 3:
        return 0.0
    total = 0.0
    try:
        for part in parts:
            total = total * 60 + float(part)
    except ValueError:
        return 0.0
    return total


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS (minutes unbounded, fractions kept when present)."""
    seconds = round(max(0.0, seconds), 2)
    minutes = int(seconds // 60)
    secs = round(seconds - minutes * 60, 2)
    if secs.is_integer():
        return f"{minutes:02d}:{int(secs):02d}"
    return f"{minutes:02d}:{secs:05.2f}".rstrip("0")


def find_screenshot_placeholders(document: str) -> list[tuple[str, float]]:
    """Unique placeholders in order of first appearance, with their timestamps."""
    seen = {}
    for match in SCREENSHOT_PATTERN.finditer(document):
        placeholder = match.group(0)
        if placeholder not in seen:
            seen[placeholder] = parse_timestamp(match.group(1))
    return list(seen.items())


def shift_screenshot_timestamps(document: str, offset: float) -> str:
    """
    Add a segment's start offset to every screenshot placeholder.

    Documents generated from a split segment report times relative to that
    segment; shifting them makes the markers refer to the original video.
    """
    if not offset:
        return document

    def _shift(match):
        return f"[Screenshot: {format_timestamp(parse_timestamp(match.group(1)) + offset)}s]"

    return SCREENSHOT_PATTERN.sub(_shift, document)


def image_filename(video_number: int, timestamp: float) -> str:
    """Name of the image for a timestamp, e.g. ``image-1-83_5s.png``."""
    ts = f"{timestamp:.3f}".rstrip("0").rstrip(".")
    return f"image-{video_number}-{ts.replace('.', '_')}s.png"


def _probe_durations(video_paths: list[str]) -> list[float]:
    durations = []
    for video_path in video_paths:
        try:
            durations.append(get_video_duration(video_path))
        except VideoProcessingError as exc:
            logger.warning("Failed to get duration for %s: %s", video_path, exc)
            durations.append(math.inf)
    return durations


def embed_screenshots(
    document: str,
    video_paths: list[str],
    output_dir: str,
    method: FrameExtractionMethod | str = FrameExtractionMethod.STANDARD,
) -> EmbedResult:
    """
    Replace screenshot placeholders with frames extracted from the videos.

    For each unique placeholder, videos long enough to contain the timestamp
    are tried in order (all videos if none is long enough). The first
    successful extraction is saved to ``<output_dir>/images`` and every
    occurrence of the placeholder becomes ``![Screenshot N](./images/<file>)``.
    Placeholders no video can satisfy are removed from the document.

    Args:
        document: Generated document text.
        video_paths: Source videos, numbered from 1 in image file names.
        output_dir: Directory the document will be saved in.
        method: Frame extraction strategy.

    Returns:
        EmbedResult: The rewritten document and the images written.
    """
    placeholders = find_screenshot_placeholders(document)
    result = EmbedResult(document=document)
    if not placeholders:
        return result

    logger.info("Found %d screenshot references to process", len(placeholders))
    images_dir = Path(output_dir) / IMAGES_DIR_NAME
    images_dir.mkdir(parents=True, exist_ok=True)
    durations = _probe_durations(video_paths)

    for placeholder, timestamp in placeholders:
        candidates = [i for i, d in enumerate(durations) if timestamp <= d]
        if not candidates:
            candidates = list(range(len(video_paths)))

        replacement = ""
        for index in candidates:
            filename = image_filename(index + 1, timestamp)
            image_path = images_dir / filename
            try:
                extract_frame(video_paths[index], timestamp, str(image_path), method)
            except VideoProcessingError as exc:
                logger.warning(
                    "Failed to extract frame from video %d at %ss: %s", index + 1, timestamp, exc
                )
                continue
            result.images.append(str(image_path))
            replacement = (
                f"![Screenshot {len(result.images)}](./{IMAGES_DIR_NAME}/{filename})"
            )
            break

        if not replacement:
            logger.warning("Failed to extract frame at %ss from any video", timestamp)
            result.missing.append(placeholder)
        result.document = result.document.replace(placeholder, replacement)

    return result
