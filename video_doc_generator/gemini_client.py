"""
Gemini API access: video upload with processing-state polling, document
generation, and document integration.

Uploads go through the google-genai SDK, which implements the resumable
upload protocol. Uploaded videos are processed asynchronously by the service,
so ``upload_video`` polls the file state at a fixed interval until it becomes
ACTIVE, fails, or the attempt budget runs out.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

import httpx
from google import genai
from google.genai import errors, types

from .config import DEFAULT_MODEL, GeneratorSettings
from .prompts import build_integration_prompt
from .utils import format_file_size
from .video_processor import get_mime_type

logger = logging.getLogger(__name__)

STATE_ACTIVE = "ACTIVE"
STATE_PROCESSING = "PROCESSING"
STATE_FAILED = "FAILED"
STATE_UNSPECIFIED = "STATE_UNSPECIFIED"

# SDK errors plus network failures raised by the underlying HTTP client
_API_ERRORS = (errors.APIError, httpx.HTTPError)


class GeminiError(RuntimeError):
    """Base class for Gemini API failures."""


class UploadError(GeminiError):
    """Raised when a file cannot be uploaded or processed by the service."""


class FileProcessingTimeout(UploadError):
    """Raised when an uploaded file is still not ACTIVE after all poll attempts."""


class GenerationError(GeminiError):
    """Raised when content generation fails or returns no text."""


@dataclass(frozen=True)
class UploadedVideo:
    """A video the model can reference.

    Attributes:
        uri: File URI returned by the service, or a YouTube URL.
        name: Server-side resource name ("files/abc123"); None for YouTube URLs.
        mime_type: MIME type sent with the file reference.
    """

    uri: str
    name: str | None = None
    mime_type: str | None = None


def _state_name(file_info) -> str | None:
    """Normalise the ``state`` of a files.get() result to a plain string."""
    state = getattr(file_info, "state", None)
    if state is None:
        return None
    name = getattr(state, "name", None) or str(state)
    if name == STATE_UNSPECIFIED:
        return None
    return name


class GeminiClient:
    """
    Thin wrapper around ``google.genai.Client`` for the document pipeline.

    Attributes:
        model (str): Model used for generation and integration.
        temperature (float): Sampling temperature; 0 leaves the model default.
        max_poll_attempts (int): Status checks before an upload times out.
        poll_interval (float): Seconds between checks while PROCESSING.
        no_state_poll_interval (float): Seconds between checks when no state is reported.
    """

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.0,
        max_poll_attempts: int = 60,
        poll_interval: float = 10.0,
        no_state_poll_interval: float = 5.0,
        client=None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_poll_attempts = max_poll_attempts
        self.poll_interval = poll_interval
        self.no_state_poll_interval = no_state_poll_interval
        self._client = client if client is not None else genai.Client(api_key=api_key)

    @classmethod
    def from_settings(cls, settings: GeneratorSettings, client=None) -> GeminiClient:
        return cls(
            api_key=settings.api_key,
            model=settings.gemini_model,
            temperature=settings.temperature,
            max_poll_attempts=settings.max_poll_attempts,
            poll_interval=settings.poll_interval,
            no_state_poll_interval=settings.no_state_poll_interval,
            client=client,
        )

    # -------------------------------------------------------------------------
    # Upload
    # -------------------------------------------------------------------------

    def upload_video(
        self, file_path: str, on_status: Callable[[str], None] | None = None
    ) -> UploadedVideo:
        """
        Upload a video and wait until the service has finished processing it.

        State handling while polling:
        - ACTIVE: done, return the file URI (an ACTIVE file without URI is an error)
        - PROCESSING: wait ``poll_interval`` seconds and check again
        - FAILED: the service rejected the file
        - no state reported: assume still processing, wait ``no_state_poll_interval``
        - anything else: unknown state, give up

        Args:
            file_path: Local video file.
            on_status: Receives short human-readable status messages.

        Returns:
            UploadedVideo: Server-side name, URI and MIME type.

        Raises:
            UploadError: On transport errors, FAILED/unknown state, or missing URI.
            FileProcessingTimeout: If the file is not ACTIVE within the attempt budget.
        """
        report = on_status or (lambda message: None)
        path = Path(file_path)
        mime_type = get_mime_type(file_path)
        size = format_file_size(path.stat().st_size)

        logger.info("Uploading %s (%s, %s)", path.name, size, mime_type)
        report(f"Uploading file... ({size})")

        try:
            uploaded = self._client.files.upload(
                file=str(path),
                config=types.UploadFileConfig(display_name=path.name, mime_type=mime_type),
            )
        except _API_ERRORS as exc:
            raise UploadError(f"Failed to upload file content: {exc}") from exc

        logger.info("File registered on server as %s", uploaded.name)
        report("Waiting for file processing to complete...")
        uri = self._wait_until_active(uploaded.name, report)
        return UploadedVideo(uri=uri, name=uploaded.name, mime_type=mime_type)

    def _wait_until_active(self, name: str, report: Callable[[str], None]) -> str:
        attempt = 0
        while True:
            attempt += 1
            report(f"Checking file status ({attempt}/{self.max_poll_attempts})")

            try:
                file_info = self._client.files.get(name=name)
            except _API_ERRORS as exc:
                raise UploadError(f"Failed to get file status: {exc}") from exc

            state = _state_name(file_info)
            logger.debug("File %s state: %s (attempt %d)", name, state, attempt)

            if state == STATE_ACTIVE:
                uri = getattr(file_info, "uri", None)
                if not uri:
                    raise UploadError("File is ACTIVE but URI is missing.")
                report("File processing completed")
                return uri

            if state == STATE_FAILED:
                raise UploadError("File processing failed on the server.")

            if state is not None and state != STATE_PROCESSING:
                raise UploadError(f"Unknown file state received: {state}")

            if attempt > self.max_poll_attempts:
                raise FileProcessingTimeout(
                    f"File processing timeout after {self.max_poll_attempts} attempts"
                    + ("" if state else " (no state reported)")
                )

            if state == STATE_PROCESSING:
                interval = self.poll_interval
                report(
                    f"File still processing, checking again in {interval:g}s "
                    f"({attempt}/{self.max_poll_attempts})"
                )
            else:
                interval = self.no_state_poll_interval
                report(
                    "No file state reported, assuming still processing "
                    f"({attempt}/{self.max_poll_attempts})"
                )
            time.sleep(interval)

    def delete_file(self, name: str) -> bool:
        """Delete an uploaded file. Failures are logged, not raised."""
        try:
            self._client.files.delete(name=name)
        except _API_ERRORS as exc:
            logger.warning("Failed to delete remote file %s: %s", name, exc)
            return False
        logger.debug("Deleted remote file %s", name)
        return True

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    def _generation_config(self) -> types.GenerateContentConfig | None:
        if self.temperature > 0:
            return types.GenerateContentConfig(temperature=self.temperature)
        return None

    def _generate(self, parts: list[types.Part]) -> str:
        try:
            response = self._client.models.generate_content(
                model=self.model,
                contents=[types.Content(role="user", parts=parts)],
                config=self._generation_config(),
            )
        except _API_ERRORS as exc:
            raise GenerationError(f"API request failed: {exc}") from exc

        text = response.text
        if not text:
            raise GenerationError("No text content in response")
        return text

    def generate_document(self, prompt: str, videos: list[UploadedVideo]) -> str:
        """
        Generate a document from a prompt and one or more videos.

        Args:
            prompt: Instruction text, sent as the first part.
            videos: Uploaded files or YouTube URLs, each sent as a file_data part.

        Returns:
            str: The generated document text.

        Raises:
            GenerationError: If the request fails or the response has no text.
        """
        parts = [types.Part(text=prompt)]
        for video in videos:
            parts.append(
                types.Part(
                    file_data=types.FileData(file_uri=video.uri, mime_type=video.mime_type)
                )
            )

        logger.info("Requesting document from %s for %d video(s)", self.model, len(videos))
        text = self._generate(parts)
        logger.info("Generated document length: %d characters", len(text))
        return text

    def integrate_documents(self, documents: list[str], settings: GeneratorSettings) -> str:
        """Merge several generated documents into one with a text-only request."""
        prompt = build_integration_prompt(documents, settings)
        logger.info("Integrating %d documents", len(documents))
        try:
            return self._generate([types.Part(text=prompt)])
        except GenerationError as exc:
            raise GenerationError(f"Document integration failed: {exc}") from exc
