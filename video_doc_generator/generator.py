"""
Main DocumentGenerator class that orchestrates the video-to-document pipeline.

This module provides the high-level interface of the package, coordinating
video preparation, the Gemini client, screenshot embedding and file output.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field, replace
from pathlib import Path

from .gemini_client import GeminiClient, UploadedVideo
from .progress import ProgressTracker
from .prompts import build_generation_prompt
from .screenshots import embed_screenshots, shift_screenshot_timestamps
from .utils import generate_filename, sanitize_filename, save_document
from .video_processor import encode_video, split_video_if_needed
from .youtube import download_youtube_video, extract_video_id, is_youtube_url

logger = logging.getLogger(__name__)

# Encoding/download progress is reported in steps of this many percent
PERCENT_REPORT_STEP = 5


class DocumentGenerationError(RuntimeError):
    """Raised when any pipeline step fails; the message names the step."""


@dataclass
class GenerationResult:
    """Result of a generation run.

    Attributes:
        document: Final Markdown document text.
        output_path: Path of the saved document.
        images: Paths of embedded screenshot images.
        segments: Number of video segments sent to the model.
    """

    document: str
    output_path: str
    images: list = field(default_factory=list)
    segments: int = 0


def _percent_reporter(report, label):
    """Wrap a message callback so it only fires every PERCENT_REPORT_STEP percent."""
    last = -PERCENT_REPORT_STEP

    def on_progress(percent):
        nonlocal last
        if percent - last >= PERCENT_REPORT_STEP or (percent >= 100 and last < 100):
            last = percent
            report(f"{label}: {percent:.0f}%")

    return on_progress


class DocumentGenerator:
    """
    Turns videos into a Markdown document with the Gemini API.

    The pipeline is strictly sequential and stops at the first failing step:

    1. Prepare each input: split videos that are too long, optionally re-encode
    2. Upload every segment and wait until the service has processed it
    3. Generate one document per segment
    4. Integrate the documents when there is more than one
    5. Optionally replace screenshot markers with frames from the source videos
    6. Save ``<first input name>.md`` in the output directory

    A single YouTube URL can be given instead of local files; the URL is passed
    to the model directly and only downloaded when screenshots are embedded.

    Attributes:
        settings (GeneratorSettings): Run configuration.

    Example:
        >>> settings = settings_from_env(language="english", embed_images=True)
        >>> generator = DocumentGenerator(settings, progress_callback=print)
        >>> result = generator.generate(["input/demo.mp4"])
        >>> print(result.output_path)
        output/demo.md
    """

    def __init__(self, settings, progress_callback=None, client=None):
        """
        Initialize the generator.

        Args:
            settings (GeneratorSettings): Run configuration; validated here.
            progress_callback (callable, optional): Receives a ProgressUpdate for
                every step and status message.
            client (GeminiClient, optional): Pre-built client, mainly for tests.
                Created from the settings on first use when omitted.

        Raises:
            ValueError: If the settings are invalid (e.g. no API key).
        """
        settings.validate()
        self.settings = settings
        self._progress_callback = progress_callback
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = GeminiClient.from_settings(self.settings)
        return self._client

    def generate(self, sources):
        """
        Run the full pipeline.

        Args:
            sources (list or str): Local video paths, or a single YouTube URL.

        Returns:
            GenerationResult: The document, where it was saved, and its images.

        Raises:
            ValueError: If there are no sources, a file does not exist, or a
                YouTube URL is mixed with other sources.
            DocumentGenerationError: If any pipeline step fails.
        """
        if isinstance(sources, str):
            sources = [sources]
        sources = list(sources)
        if not sources:
            raise ValueError("No input videos were given")

        youtube_sources = [s for s in sources if is_youtube_url(s)]
        if youtube_sources:
            if len(sources) > 1:
                raise ValueError("A YouTube URL must be the only source")
            return self._generate_from_youtube(sources[0])

        missing = [s for s in sources if not os.path.isfile(s)]
        if missing:
            raise ValueError(f"Video file not found: {', '.join(missing)}")
        return self._generate_from_files(sources)

    # -------------------------------------------------------------------------
    # Pipelines
    # -------------------------------------------------------------------------

    def _generate_from_files(self, sources):
        settings = self.settings
        embed = settings.embed_images
        n_inputs = len(sources)
        tracker = ProgressTracker(
            self._progress_callback,
            total_steps=3 * n_inputs + (1 if n_inputs > 1 else 0) + (1 if embed else 0),
        )
        tracker.detail("Starting document generation")
        prompt = build_generation_prompt(settings)

        with tempfile.TemporaryDirectory(prefix="video_doc_") as work_dir:
            segments = self._prepare_inputs(sources, work_dir, tracker)
            n_segments = len(segments)
            tracker.set_total(
                n_inputs + 2 * n_segments + (1 if n_segments > 1 else 0) + (1 if embed else 0)
            )

            uploaded = []
            try:
                for index, segment in enumerate(segments):
                    name = Path(segment.path).name
                    tracker.advance(f"Uploading file ({index + 1}/{n_segments}): {name}")
                    uploaded.append(
                        self._run_step(
                            f"Failed to upload file {segment.path}",
                            self.client.upload_video,
                            segment.path,
                            on_status=tracker.detail,
                        )
                    )

                documents = []
                for index, (segment, video) in enumerate(zip(segments, uploaded)):
                    tracker.advance(f"Generating document ({index + 1}/{n_segments})")
                    document = self._run_step(
                        f"Failed to generate document for {Path(segment.path).name}",
                        self.client.generate_document,
                        prompt,
                        [video],
                    )
                    tracker.detail(f"Document generated ({len(document)} characters)")
                    if embed and segment.offset:
                        document = shift_screenshot_timestamps(document, segment.offset)
                    documents.append(document)
            finally:
                if settings.cleanup_remote_files:
                    for video in uploaded:
                        self.client.delete_file(video.name)

        document = self._integrate(documents, tracker)

        images = []
        if embed:
            tracker.advance("Embedding screenshots")
            embedded = self._run_step(
                "Failed to embed screenshots",
                embed_screenshots,
                document,
                sources,
                settings.output_dir,
                settings.frame_extraction_method,
            )
            document, images = embedded.document, embedded.images

        return self._save(document, generate_filename(sources), images, n_segments, tracker)

    def _generate_from_youtube(self, url):
        settings = self.settings
        embed = settings.embed_images
        tracker = ProgressTracker(self._progress_callback, total_steps=1 + (2 if embed else 0))
        tracker.detail("Starting document generation")
        video = UploadedVideo(uri=url)

        with tempfile.TemporaryDirectory(prefix="video_doc_") as work_dir:
            downloaded = None
            if embed:
                tracker.advance("Downloading YouTube video")
                downloaded = self._run_step(
                    "Failed to download YouTube video",
                    download_youtube_video,
                    url,
                    work_dir,
                    on_progress=_percent_reporter(tracker.detail, "Downloading"),
                )

            tracker.advance("Generating document (1/1)")
            document = self._run_step(
                "Failed to generate document for YouTube video",
                self.client.generate_document,
                build_generation_prompt(settings),
                [video],
            )

            images = []
            if embed:
                tracker.advance("Embedding screenshots")
                embedded = self._run_step(
                    "Failed to embed screenshots",
                    embed_screenshots,
                    document,
                    [downloaded.path],
                    settings.output_dir,
                    settings.frame_extraction_method,
                )
                document, images = embedded.document, embedded.images

        if downloaded is not None:
            filename = f"{sanitize_filename(downloaded.title)}.md"
        else:
            filename = f"youtube_{extract_video_id(url)}.md"
        return self._save(document, filename, images, 1, tracker)

    # -------------------------------------------------------------------------
    # Steps
    # -------------------------------------------------------------------------

    def _prepare_inputs(self, sources, work_dir, tracker):
        """Split (and optionally re-encode) every input; returns all segments in order."""
        quality = self.settings.video_quality
        segments = []

        for index, path in enumerate(sources):
            name = Path(path).name
            tracker.advance(f"Processing file ({index + 1}/{len(sources)}): {name}")
            # Per-input subdirectory keeps same-named inputs from colliding
            input_dir = os.path.join(work_dir, f"{index:03d}")

            parts = self._run_step(
                f"Failed to process file {name}",
                split_video_if_needed,
                path,
                input_dir,
                source_index=index,
            )
            if len(parts) > 1:
                tracker.detail(f"Video split into {len(parts)} segments")

            if quality.height is not None:
                parts = [self._encode(part, input_dir, tracker) for part in parts]
            segments.extend(parts)

        return segments

    def _encode(self, segment, output_dir, tracker):
        name = Path(segment.path).name
        encoded_path = self._run_step(
            f"Failed to encode file {name}",
            encode_video,
            segment.path,
            output_dir,
            self.settings.video_quality,
            self.settings.encoder_mode,
            duration=segment.duration,
            on_progress=_percent_reporter(tracker.detail, f"Encoding {name}"),
        )
        return replace(segment, path=encoded_path)

    def _integrate(self, documents, tracker):
        if len(documents) == 1:
            return documents[0]
        tracker.advance(f"Integrating {len(documents)} documents")
        return self._run_step(
            "Failed to integrate documents",
            self.client.integrate_documents,
            documents,
            self.settings,
        )

    def _save(self, document, filename, images, n_segments, tracker):
        output_path = self._run_step(
            "Failed to save document",
            save_document,
            document,
            self.settings.output_dir,
            filename,
        )
        tracker.complete(f"Document generation completed: {output_path}")
        return GenerationResult(
            document=document, output_path=output_path, images=images, segments=n_segments
        )

    @staticmethod
    def _run_step(failure, func, *args, **kwargs):
        """Call one pipeline step, re-raising failures as DocumentGenerationError."""
        try:
            return func(*args, **kwargs)
        except (RuntimeError, OSError) as exc:
            logger.error("%s: %s", failure, exc)
            raise DocumentGenerationError(f"{failure}: {exc}") from exc
