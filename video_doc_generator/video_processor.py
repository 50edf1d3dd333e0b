"""
Video processing functions built on the FFmpeg command-line tools.

This module probes durations with ffprobe, splits long videos into segments
the Gemini API accepts, re-encodes videos to a smaller resolution before
upload, and extracts still frames for screenshot embedding. Encoding supports
both CPU-based libx264 and GPU-accelerated NVENC when available on NVIDIA
hardware.
"""

from __future__ import annotations

import logging
import math
import os
import shutil
import subprocess
import tempfile
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import cv2
import numpy as np

from .config import EncoderMode, FrameExtractionMethod, VideoQuality

logger = logging.getLogger(__name__)

# Videos at or above this length are split before upload.
MAX_VIDEO_DURATION = 3600.0
# 58m20s per part keeps each segment safely under the limit.
SEGMENT_DURATION = 3500.0
# Offsets sampled around the requested timestamp by the "multiple" method.
MULTI_FRAME_OFFSETS = (-0.5, 0.0, 0.5)

COMMON_EXECUTABLE_DIRS = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    "/usr/bin",
    "/bin",
    "/opt/local/bin",
    "/sw/bin",
    "/usr/local/opt/ffmpeg/bin",
    "/opt/homebrew/opt/ffmpeg/bin",
)

MIME_TYPES = {
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".webm": "video/webm",
    ".3gp": "video/3gpp",
    ".mpg": "video/mpeg",
    ".mpeg": "video/mpeg",
}


class VideoProcessingError(RuntimeError):
    """Raised when ffmpeg/ffprobe cannot be found or a command fails."""


@dataclass(frozen=True)
class VideoSegment:
    """A piece of an input video ready for upload.

    Attributes:
        path: File to upload (the original file when no split was needed).
        offset: Start time of this segment within the source video, in seconds.
        source_index: Index of the input file this segment came from.
        duration: Segment length in seconds, when known.
    """

    path: str
    offset: float = 0.0
    source_index: int = 0
    duration: float | None = None


# =============================================================================
# Executable discovery
# =============================================================================

_executable_cache: dict[str, str] = {}


def find_executable(name: str) -> str:
    """
    Locate an FFmpeg tool binary.

    Looks on PATH first, then in common install locations (Homebrew, MacPorts,
    system directories) that GUI-launched processes often miss. The result is
    cached per name.

    Args:
        name: Executable name, e.g. "ffmpeg" or "ffprobe".

    Returns:
        str: Absolute path to the executable.

    Raises:
        VideoProcessingError: If the executable cannot be found.
    """
    if name in _executable_cache:
        return _executable_cache[name]

    found = shutil.which(name)
    if found is None:
        for directory in COMMON_EXECUTABLE_DIRS:
            candidate = os.path.join(directory, name)
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                found = candidate
                break

    if found is None:
        raise VideoProcessingError(
            f"Failed to find '{name}' in PATH or common locations {list(COMMON_EXECUTABLE_DIRS)}. "
            "Make sure ffmpeg is installed and in your PATH."
        )

    logger.debug("Using %s at %s", name, found)
    _executable_cache[name] = found
    return found


def _run(cmd: list[str], what: str) -> subprocess.CompletedProcess:
    """Run a command, raising VideoProcessingError with stderr on failure."""
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as exc:
        raise VideoProcessingError(f"Failed to execute {what}: {exc}") from exc
    if result.returncode != 0:
        raise VideoProcessingError(f"{what} failed: {(result.stderr or '').strip()}")
    return result


# =============================================================================
# Probing
# =============================================================================


def get_video_duration(video_path: str) -> float:
    """
    Get the duration of a video file in seconds using ffprobe.

    Args:
        video_path: Path to the video file.

    Returns:
        float: Duration in seconds.

    Raises:
        VideoProcessingError: If ffprobe fails or prints something that is not a number.
    """
    cmd = [
        find_executable("ffprobe"),
        "-v",
        "quiet",
        "-show_entries",
        "format=duration",
        "-of",
        "csv=p=0",
        video_path,
    ]
    result = _run(cmd, "ffprobe")
    try:
        return float(result.stdout.strip())
    except ValueError as exc:
        raise VideoProcessingError(
            f"Failed to parse duration for {video_path}: {result.stdout!r}"
        ) from exc


def get_mime_type(file_path: str) -> str:
    """Map a video file extension to its MIME type (defaults to video/mp4)."""
    return MIME_TYPES.get(Path(file_path).suffix.lower(), "video/mp4")


# =============================================================================
# Splitting
# =============================================================================


def split_video_if_needed(
    video_path: str,
    output_dir: str,
    max_duration: float = MAX_VIDEO_DURATION,
    segment_duration: float = SEGMENT_DURATION,
    source_index: int = 0,
) -> list[VideoSegment]:
    """
    Split a video into upload-sized segments when it is too long.

    Segments are cut with stream copy (no re-encoding), so splitting is fast
    but cut points snap to keyframes. Each segment records its start offset so
    timestamps reported against the segment can be mapped back to the source.

    Output files are named: {original_name}_part_{number}.{ext}
    Example: lecture_part_001.mp4, lecture_part_002.mp4, etc.

    Args:
        video_path: Path to the video file.
        output_dir: Directory for the segment files.
        max_duration: Videos shorter than this are returned unchanged.
        segment_duration: Length of each segment in seconds.
        source_index: Index of this video among the run's inputs.

    Returns:
        list[VideoSegment]: The original file as a single segment, or the parts in order.

    Raises:
        VideoProcessingError: If probing or any ffmpeg invocation fails.
    """
    duration = get_video_duration(video_path)

    if duration < max_duration:
        return [
            VideoSegment(path=video_path, offset=0.0, source_index=source_index, duration=duration)
        ]

    num_segments = math.ceil(duration / segment_duration)
    logger.info(
        "Video is %.1f minutes long, splitting %s into %d parts",
        duration / 60,
        video_path,
        num_segments,
    )

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    base_name = Path(video_path).stem
    video_ext = Path(video_path).suffix or ".mp4"
    segments = []

    for i in range(num_segments):
        start_time = i * segment_duration
        output_file = os.path.join(output_dir, f"{base_name}_part_{i + 1:03d}{video_ext}")

        cmd = [
            find_executable("ffmpeg"),
            "-y",
            "-i",
            video_path,
            "-ss",
            str(start_time),
            "-t",
            str(segment_duration),
            "-c",
            "copy",  # Stream copy, no re-encoding
            "-avoid_negative_ts",
            "make_zero",
            output_file,
        ]
        _run(cmd, "ffmpeg")
        logger.debug("Part %03d: %.0fs -> %s", i + 1, start_time, output_file)
        segments.append(
            VideoSegment(
                path=output_file,
                offset=start_time,
                source_index=source_index,
                duration=min(segment_duration, duration - start_time),
            )
        )

    return segments


# =============================================================================
# NVENC Hardware Encoding Support
# =============================================================================

_nvenc_available: bool | None = None  # Cached detection result


def detect_nvenc_support() -> bool:
    """
    Detect if NVENC hardware encoding is available.

    Checks if FFmpeg has h264_nvenc encoder support by querying FFmpeg's
    encoder list. The result is cached for subsequent calls.

    Returns:
        bool: True if NVENC is available, False otherwise.
    """
    global _nvenc_available

    if _nvenc_available is not None:
        return _nvenc_available

    try:
        result = subprocess.run(
            [find_executable("ffmpeg"), "-hide_banner", "-encoders"],
            capture_output=True,
            text=True,
            timeout=10,
        )
        _nvenc_available = "h264_nvenc" in result.stdout
    except (subprocess.TimeoutExpired, VideoProcessingError, OSError):
        _nvenc_available = False

    return _nvenc_available


def get_encoder_options(
    mode: EncoderMode | str | None = None,
    quality_preset: str = "p4",
) -> list[str]:
    """
    Get FFmpeg encoder options based on encoder mode and availability.

    The encoder selection follows these rules:
    - "cpu": Always use libx264 (software encoding)
    - "gpu": Require NVENC, raise error if unavailable
    - "auto": Use NVENC if available, fallback to libx264
    - None: Same as "cpu"

    Args:
        mode: Encoder mode, as an EncoderMode or its string value.
        quality_preset: NVENC quality preset (p1-p7). Only used when NVENC is selected.

    Returns:
        list[str]: FFmpeg encoder arguments (e.g., ["-c:v", "h264_nvenc", ...])

    Raises:
        RuntimeError: If mode is "gpu" and NVENC is not available.

    Example:
        >>> get_encoder_options("cpu")
        ['-c:v', 'libx264', '-preset', 'fast', '-crf', '23']
    """
    mode = EncoderMode.from_string(mode or EncoderMode.CPU)

    if mode is EncoderMode.CPU:
        return _get_libx264_options()

    nvenc_available = detect_nvenc_support()

    if mode is EncoderMode.GPU:
        if not nvenc_available:
            raise RuntimeError(
                "GPU encoding requested but NVENC is not available.\n"
                "Possible causes:\n"
                "  - No NVIDIA GPU with NVENC support\n"
                "  - NVIDIA drivers not installed\n"
                "  - FFmpeg not compiled with NVENC support\n\n"
                "To use CPU encoding instead, use encoder mode 'cpu' or 'auto'"
            )
        return _get_nvenc_options(quality_preset)

    if nvenc_available:
        return _get_nvenc_options(quality_preset)
    return _get_libx264_options()


def _get_nvenc_options(preset: str = "p4") -> list[str]:
    return [
        "-c:v",
        "h264_nvenc",
        "-preset",
        preset,  # p1=fastest, p4=balanced, p7=quality
        "-rc",
        "vbr",
        "-cq",
        "23",
        "-b:v",
        "0",
    ]


def _get_libx264_options() -> list[str]:
    return ["-c:v", "libx264", "-preset", "fast", "-crf", "23"]


def get_encoder_info(mode: EncoderMode | str | None = None) -> dict[str, str | bool]:
    """
    Describe the encoder that would be used for a given mode.

    Returns:
        dict: Keys "name", "type" ("hardware", "software" or "unavailable"),
            "nvenc_available" and "selected_mode".
    """
    mode = EncoderMode.from_string(mode or EncoderMode.CPU)

    if mode is EncoderMode.CPU:
        # CPU mode never needs the ffmpeg encoder query
        return {
            "name": "libx264",
            "type": "software",
            "nvenc_available": False,
            "selected_mode": mode.value,
        }

    nvenc_available = detect_nvenc_support()
    if nvenc_available:
        name, kind = "h264_nvenc", "hardware"
    elif mode is EncoderMode.GPU:
        name, kind = "unavailable", "unavailable"
    else:
        name, kind = "libx264", "software"

    return {
        "name": name,
        "type": kind,
        "nvenc_available": nvenc_available,
        "selected_mode": mode.value,
    }


# =============================================================================
# Re-encoding
# =============================================================================


def parse_progress_line(line: str, duration: float | None) -> float | None:
    """
    Convert one line of ``ffmpeg -progress`` output to a percentage.

    Only ``out_time_ms``/``out_time_us`` lines (both in microseconds) carry
    position information; every other line returns None.
    """
    key, _, value = line.strip().partition("=")
    if key not in ("out_time_ms", "out_time_us") or not duration or duration <= 0:
        return None
    try:
        seconds = int(value) / 1_000_000
    except ValueError:
        return None
    return max(0.0, min(100.0, seconds / duration * 100.0))


def run_ffmpeg_with_progress(
    cmd: list[str],
    duration: float | None = None,
    on_progress: Callable[[float], None] | None = None,
) -> None:
    """
    Run an ffmpeg command that writes ``-progress pipe:1`` output to stdout.

    A background thread drains stdout and reports percentages while the main
    thread collects stderr, so neither pipe can fill up and block ffmpeg.

    Raises:
        VideoProcessingError: If ffmpeg cannot be started or exits non-zero.
    """
    try:
        proc = subprocess.Popen(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except OSError as exc:
        raise VideoProcessingError(f"Failed to execute ffmpeg: {exc}") from exc

    def _read_progress():
        for line in proc.stdout:
            percent = parse_progress_line(line, duration)
            if percent is not None and on_progress is not None:
                on_progress(percent)

    reader = threading.Thread(target=_read_progress, daemon=True)
    reader.start()
    stderr = proc.stderr.read()
    returncode = proc.wait()
    reader.join()

    if returncode != 0:
        raise VideoProcessingError(f"ffmpeg failed: {(stderr or '').strip()}")


def encode_video(
    video_path: str,
    output_dir: str,
    quality: VideoQuality | str,
    mode: EncoderMode | str | None = None,
    duration: float | None = None,
    on_progress: Callable[[float], None] | None = None,
) -> str:
    """
    Re-encode a video to a lower resolution before upload.

    The output keeps the aspect ratio (``scale=-2:<height>``), uses the encoder
    selected for ``mode``, encodes audio as AAC, and is always written as MP4:
    {original_name}_{quality}.mp4

    Args:
        video_path: Path to the input video.
        output_dir: Directory for the encoded file.
        quality: Target quality; VideoQuality.NO_CONVERSION returns the input path.
        mode: Encoder mode ("cpu", "gpu" or "auto").
        duration: Input duration in seconds, used for progress percentages.
        on_progress: Called with a percentage (0-100) as encoding advances.

    Returns:
        str: Path of the file to upload.

    Raises:
        VideoProcessingError: If ffmpeg fails.
        RuntimeError: If mode is "gpu" and NVENC is not available.
    """
    quality = VideoQuality.from_string(quality)
    if quality.height is None:
        return video_path

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    output_file = os.path.join(output_dir, f"{Path(video_path).stem}_{quality.value}.mp4")
    encoder_info = get_encoder_info(mode)
    logger.info(
        "Encoding %s to %s with %s (%s)",
        video_path,
        quality.value,
        encoder_info["name"],
        encoder_info["type"],
    )

    cmd = [
        find_executable("ffmpeg"),
        "-y",
        "-loglevel",
        "error",
        "-i",
        video_path,
        "-vf",
        f"scale=-2:{quality.height}",
        *get_encoder_options(mode),
        "-c:a",
        "aac",
        "-b:a",
        "128k",
        "-progress",
        "pipe:1",
        "-nostats",
        output_file,
    ]
    run_ffmpeg_with_progress(cmd, duration=duration, on_progress=on_progress)
    return output_file


# =============================================================================
# Frame extraction
# =============================================================================


def compute_sharpness(frame: np.ndarray) -> float:
    """
    Score frame sharpness as the variance of its Laplacian.

    Motion-blurred or mid-transition frames have weak edges and score low.

    Args:
        frame: BGR or grayscale image.

    Returns:
        float: Sharpness score (higher is sharper).
    """
    gray = frame if frame.ndim == 2 else cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    return float(np.var(cv2.Laplacian(gray, cv2.CV_64F)))


def _extract_single_frame(video_path: str, timestamp: float, output_path: str, accurate: bool):
    ffmpeg = find_executable("ffmpeg")
    if accurate:
        # -ss after -i decodes up to the timestamp: slow but frame-accurate
        cmd = [ffmpeg, "-y", "-loglevel", "error", "-i", video_path, "-ss", str(timestamp)]
    else:
        # -ss before -i seeks the input to the nearest keyframe first
        cmd = [ffmpeg, "-y", "-loglevel", "error", "-ss", str(timestamp), "-i", video_path]
    cmd += ["-frames:v", "1", output_path]
    # A leftover image from an earlier run must not pass as this frame
    Path(output_path).unlink(missing_ok=True)
    _run(cmd, "ffmpeg")

    if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
        raise VideoProcessingError(
            f"No frame was written for {timestamp}s of {video_path} "
            "(timestamp may be past the end of the video)"
        )


def _extract_sharpest_frame(video_path: str, timestamp: float, output_path: str):
    best_path = None
    best_score = -1.0
    with tempfile.TemporaryDirectory(prefix="frames_") as tmpdir:
        for i, offset in enumerate(MULTI_FRAME_OFFSETS):
            candidate_ts = max(0.0, timestamp + offset)
            candidate_path = os.path.join(tmpdir, f"candidate_{i}.png")
            try:
                _extract_single_frame(video_path, candidate_ts, candidate_path, accurate=False)
            except VideoProcessingError as exc:
                logger.debug("Candidate frame at %.2fs unavailable: %s", candidate_ts, exc)
                continue

            frame = cv2.imread(candidate_path)
            if frame is None:
                continue
            score = compute_sharpness(frame)
            if score > best_score:
                best_score = score
                best_path = candidate_path

        if best_path is None:
            raise VideoProcessingError(
                f"No frame could be extracted around {timestamp}s of {video_path}"
            )
        shutil.copyfile(best_path, output_path)


def extract_frame(
    video_path: str,
    timestamp: float,
    output_path: str,
    method: FrameExtractionMethod | str = FrameExtractionMethod.STANDARD,
) -> str:
    """
    Extract a single still frame from a video as an image file.

    Methods:
    - "standard": Decode up to the timestamp for a frame-accurate image
    - "fast": Seek to the nearest keyframe first (much faster on long videos)
    - "multiple": Sample frames at t-0.5s, t and t+0.5s and keep the sharpest

    Args:
        video_path: Path to the source video.
        timestamp: Position in seconds.
        output_path: Destination image path (format from extension, e.g. .png).
        method: Extraction strategy.

    Returns:
        str: output_path.

    Raises:
        VideoProcessingError: If no frame could be written.
    """
    method = FrameExtractionMethod.from_string(method)
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)

    if method is FrameExtractionMethod.MULTIPLE:
        _extract_sharpest_frame(video_path, timestamp, output_path)
    else:
        _extract_single_frame(
            video_path,
            timestamp,
            output_path,
            accurate=method is FrameExtractionMethod.STANDARD,
        )
    return output_path
