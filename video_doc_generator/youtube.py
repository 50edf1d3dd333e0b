"""
YouTube source handling.

Gemini can read public YouTube videos directly from their URL, so a YouTube
source is normally never downloaded. A local copy is only fetched with yt-dlp
when frames must be extracted for screenshot embedding.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import yt_dlp
from yt_dlp.utils import DownloadError as YtDlpDownloadError

logger = logging.getLogger(__name__)

_VIDEO_ID = r"([A-Za-z0-9_-]{11})"
YOUTUBE_URL_PATTERNS = (
    re.compile(r"^(?:https?://)?(?:www\.|m\.|music\.)?youtube\.com/watch\?(?:.*&)?v=" + _VIDEO_ID),
    re.compile(r"^(?:https?://)?(?:www\.|m\.)?youtube\.com/(?:shorts|embed|live|v)/" + _VIDEO_ID),
    re.compile(r"^(?:https?://)?youtu\.be/" + _VIDEO_ID),
)


class DownloadError(RuntimeError):
    """Raised when a YouTube video cannot be downloaded."""


@dataclass(frozen=True)
class DownloadedVideo:
    """A YouTube video saved locally.

    Attributes:
        path: Local file path.
        title: Video title reported by YouTube.
    """

    path: str
    title: str


def extract_video_id(url: str) -> str | None:
    """Return the 11-character video ID of a YouTube URL, or None."""
    url = url.strip()
    for pattern in YOUTUBE_URL_PATTERNS:
        match = pattern.match(url)
        if match:
            return match.group(1)
    return None


def is_youtube_url(text: str) -> bool:
    """Check whether the given text is a YouTube video URL."""
    return extract_video_id(text) is not None


def _progress_hook(on_progress: Callable[[float], None] | None):
    def hook(d):
        if on_progress is None or d.get("status") != "downloading":
            return
        total = d.get("total_bytes") or d.get("total_bytes_estimate")
        downloaded = d.get("downloaded_bytes")
        if total and downloaded is not None:
            on_progress(min(100.0, downloaded / total * 100.0))

    return hook


def download_youtube_video(
    url: str,
    output_dir: str,
    on_progress: Callable[[float], None] | None = None,
) -> DownloadedVideo:
    """
    Download a YouTube video for local frame extraction.

    Prefers an MP4 video+audio pair merged into MP4, falling back to the best
    single file. Playlists are ignored.

    Args:
        url: YouTube video URL.
        output_dir: Directory the file is saved to.
        on_progress: Called with a download percentage (0-100).

    Returns:
        DownloadedVideo: Local path and title.

    Raises:
        DownloadError: If yt-dlp fails or the downloaded file cannot be located.
    """
    Path(output_dir).mkdir(parents=True, exist_ok=True)
    ydl_opts = {
        "format": "bestvideo[ext=mp4]+bestaudio[ext=m4a]/best[ext=mp4]/best",
        "merge_output_format": "mp4",
        "outtmpl": str(Path(output_dir) / "%(id)s.%(ext)s"),
        "noplaylist": True,
        "quiet": True,
        "no_warnings": True,
        "progress_hooks": [_progress_hook(on_progress)],
    }

    logger.info("Downloading YouTube video %s", url)
    try:
        with yt_dlp.YoutubeDL(ydl_opts) as ydl:
            info = ydl.extract_info(url, download=True)
            candidates = [
                entry.get("filepath")
                for entry in info.get("requested_downloads") or []
                if entry.get("filepath")
            ]
            candidates.append(ydl.prepare_filename(info))
    except YtDlpDownloadError as exc:
        raise DownloadError(f"Failed to download YouTube video {url}: {exc}") from exc

    for candidate in candidates:
        if Path(candidate).is_file():
            title = info.get("title") or info.get("id") or "youtube_video"
            logger.info("Downloaded %s to %s", title, candidate)
            return DownloadedVideo(path=str(candidate), title=title)

    raise DownloadError(f"Unable to locate the downloaded file for {url}")
