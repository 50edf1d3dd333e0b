"""
Unit tests for video_doc_generator.generator module.

The Gemini client is a MagicMock and the FFmpeg-backed steps are patched in
the generator's namespace, so the tests exercise orchestration only: step
order, progress totals, timestamp shifting, cleanup and error wrapping.
"""

import os
from dataclasses import replace
from unittest.mock import MagicMock, patch

import httpx
import pytest

from video_doc_generator.config import VideoQuality
from video_doc_generator.gemini_client import GeminiClient, GenerationError, UploadedVideo, UploadError
from video_doc_generator.generator import (
    DocumentGenerationError,
    DocumentGenerator,
    GenerationResult,
    _percent_reporter,
)
from video_doc_generator.screenshots import EmbedResult
from video_doc_generator.video_processor import VideoProcessingError, VideoSegment
from video_doc_generator.youtube import DownloadedVideo


def _single_segment(path, output_dir, source_index=0, **kwargs):
    return [VideoSegment(path=path, offset=0.0, source_index=source_index, duration=60.0)]


@pytest.fixture
def gemini():
    """A GeminiClient stand-in that uploads instantly."""
    client = MagicMock()
    client.upload_video.side_effect = lambda path, on_status=None: UploadedVideo(
        uri=f"uri://{os.path.basename(path)}", name=f"files/{os.path.basename(path)}"
    )
    client.generate_document.return_value = "# Document"
    client.integrate_documents.return_value = "# Integrated"
    client.delete_file.return_value = True
    return client


@pytest.fixture
def updates():
    return []


@pytest.fixture
def make_generator(settings, gemini, updates):
    def _make(**overrides):
        return DocumentGenerator(replace(settings, **overrides), updates.append, client=gemini)

    return _make


class TestInputValidation:
    """Tests for source validation in generate()."""

    def test_invalid_settings_rejected(self, settings, gemini):
        with pytest.raises(ValueError, match="API key"):
            DocumentGenerator(replace(settings, api_key=""), client=gemini)

    def test_no_sources(self, make_generator):
        with pytest.raises(ValueError, match="No input videos"):
            make_generator().generate([])

    def test_missing_file(self, make_generator, tmp_path):
        with pytest.raises(ValueError, match="Video file not found"):
            make_generator().generate([str(tmp_path / "nope.mp4")])

    def test_youtube_url_mixed_with_files(self, make_generator, video_file):
        with pytest.raises(ValueError, match="only source"):
            make_generator().generate(["https://youtu.be/dQw4w9WgXcQ", video_file])


@patch("video_doc_generator.generator.split_video_if_needed", side_effect=_single_segment)
class TestLocalFilePipeline:
    """Tests for the local file pipeline."""

    def test_single_video(self, mock_split, make_generator, gemini, updates, video_file, settings):
        result = make_generator().generate(video_file)

        assert isinstance(result, GenerationResult)
        assert result.document == "# Document"
        assert result.output_path == os.path.join(settings.output_dir, "lecture.md")
        assert result.segments == 1
        with open(result.output_path, encoding="utf-8") as f:
            assert f.read() == "# Document"
        gemini.integrate_documents.assert_not_called()
        gemini.delete_file.assert_called_once_with("files/lecture.mp4")

    def test_progress_steps(self, mock_split, make_generator, updates, video_file):
        make_generator().generate([video_file])

        steps = [(u.step, u.total_steps) for u in updates]
        messages = [u.message for u in updates]
        assert updates[-1].step == updates[-1].total_steps == 3
        assert all(step <= total for step, total in steps)
        assert [s for s, _ in steps] == sorted(s for s, _ in steps)
        assert "Processing file (1/1): lecture.mp4" in messages
        assert "Uploading file (1/1): lecture.mp4" in messages
        assert "Generating document (1/1)" in messages

    def test_multiple_videos_are_integrated(
        self, mock_split, make_generator, gemini, updates, tmp_path, settings
    ):
        paths = []
        for name in ("intro.mp4", "demo.mov"):
            path = tmp_path / name
            path.write_bytes(b"x")
            paths.append(str(path))
        gemini.generate_document.side_effect = ["# Part 1", "# Part 2"]

        result = make_generator().generate(paths)

        assert result.document == "# Integrated"
        assert result.output_path.endswith("intro.md")
        documents = gemini.integrate_documents.call_args[0][0]
        assert documents == ["# Part 1", "# Part 2"]
        assert updates[-1].total_steps == 2 + 2 * 2 + 1
        assert "Integrating 2 documents" in [u.message for u in updates]

    def test_split_segments_are_shifted_and_integrated(
        self, mock_split, make_generator, gemini, updates, video_file
    ):
        mock_split.side_effect = lambda path, output_dir, source_index=0, **kw: [
            VideoSegment(path="/tmp/lecture_part_001.mp4", offset=0.0, duration=3500.0),
            VideoSegment(path="/tmp/lecture_part_002.mp4", offset=3500.0, duration=500.0),
        ]
        gemini.generate_document.side_effect = [
            "A [Screenshot: 00:10s]",
            "B [Screenshot: 00:14s]",
        ]

        with patch("video_doc_generator.generator.embed_screenshots") as mock_embed:
            mock_embed.return_value = EmbedResult(document="# Final", images=["img.png"])
            result = make_generator(embed_images=True).generate([video_file])

        documents = gemini.integrate_documents.call_args[0][0]
        assert documents == ["A [Screenshot: 00:10s]", "B [Screenshot: 58:34s]"]
        assert mock_embed.call_args[0][1] == [video_file]
        assert result.document == "# Final"
        assert result.images == ["img.png"]
        assert result.segments == 2
        # 1 prepare + 2 uploads + 2 generations + integration + screenshots
        assert updates[-1].total_steps == 7
        assert "Video split into 2 segments" in [u.message for u in updates]

    def test_timestamps_not_shifted_without_embedding(
        self, mock_split, make_generator, gemini, video_file
    ):
        mock_split.side_effect = lambda path, output_dir, source_index=0, **kw: [
            VideoSegment(path="/tmp/a_part_001.mp4", offset=0.0),
            VideoSegment(path="/tmp/a_part_002.mp4", offset=3500.0),
        ]
        gemini.generate_document.side_effect = ["A", "B [Screenshot: 00:14s]"]

        make_generator().generate([video_file])

        assert gemini.integrate_documents.call_args[0][0][1] == "B [Screenshot: 00:14s]"

    def test_encodes_when_quality_set(self, mock_split, make_generator, gemini, video_file):
        with patch("video_doc_generator.generator.encode_video") as mock_encode:
            mock_encode.return_value = "/tmp/work/lecture_720p.mp4"
            make_generator(video_quality=VideoQuality.P720).generate([video_file])

        args, kwargs = mock_encode.call_args
        assert args[0] == video_file
        assert args[2] is VideoQuality.P720
        assert kwargs["duration"] == 60.0
        assert gemini.upload_video.call_args[0][0] == "/tmp/work/lecture_720p.mp4"

    def test_upload_failure_is_wrapped(self, mock_split, make_generator, gemini, video_file):
        gemini.upload_video.side_effect = UploadError("File processing failed on the server.")

        with pytest.raises(DocumentGenerationError, match="Failed to upload file") as exc_info:
            make_generator().generate([video_file])

        assert isinstance(exc_info.value.__cause__, UploadError)
        assert not os.listdir(make_generator().settings.output_dir)

    def test_network_failure_with_failing_cleanup(
        self, mock_split, settings, mock_genai_client, video_file
    ):
        """A dropped connection fails the generation step, and failed cleanup does not hide it."""
        mock_genai_client.models.generate_content.side_effect = httpx.ConnectError("connection reset")
        mock_genai_client.files.delete.side_effect = httpx.ConnectError("connection reset")
        client = GeminiClient.from_settings(settings, client=mock_genai_client)
        generator = DocumentGenerator(settings, client=client)

        with pytest.raises(DocumentGenerationError, match="Failed to generate document") as exc_info:
            generator.generate([video_file])

        assert isinstance(exc_info.value.__cause__, GenerationError)
        mock_genai_client.files.delete.assert_called_once_with(name="files/abc")

    def test_remote_files_deleted_after_generation_failure(
        self, mock_split, make_generator, gemini, video_file
    ):
        gemini.generate_document.side_effect = GenerationError("No text content in response")

        with pytest.raises(DocumentGenerationError, match="Failed to generate document"):
            make_generator().generate([video_file])

        gemini.delete_file.assert_called_once_with("files/lecture.mp4")

    def test_keep_remote_files(self, mock_split, make_generator, gemini, video_file):
        make_generator(cleanup_remote_files=False).generate([video_file])

        gemini.delete_file.assert_not_called()

    def test_processing_failure_is_wrapped(self, mock_split, make_generator, gemini, video_file):
        mock_split.side_effect = VideoProcessingError("ffprobe failed")

        with pytest.raises(DocumentGenerationError, match="Failed to process file lecture.mp4"):
            make_generator().generate([video_file])

        gemini.upload_video.assert_not_called()

    def test_integration_failure_is_wrapped(
        self, mock_split, make_generator, gemini, tmp_path
    ):
        paths = []
        for name in ("a.mp4", "b.mp4"):
            (tmp_path / name).write_bytes(b"x")
            paths.append(str(tmp_path / name))
        gemini.integrate_documents.side_effect = GenerationError("Document integration failed")

        with pytest.raises(DocumentGenerationError, match="Failed to integrate documents"):
            make_generator().generate(paths)


@patch("video_doc_generator.generator.download_youtube_video")
class TestYouTubePipeline:
    """Tests for the YouTube URL pipeline."""

    URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

    def test_url_passed_directly(self, mock_download, make_generator, gemini, settings):
        result = make_generator().generate(self.URL)

        mock_download.assert_not_called()
        gemini.upload_video.assert_not_called()
        videos = gemini.generate_document.call_args[0][1]
        assert videos == [UploadedVideo(uri=self.URL)]
        assert result.output_path == os.path.join(settings.output_dir, "youtube_dQw4w9WgXcQ.md")

    def test_download_for_screenshots(self, mock_download, make_generator, gemini, updates, settings):
        mock_download.return_value = DownloadedVideo(path="/tmp/dQw4w9WgXcQ.mp4", title="Setup: Part 1")

        with patch("video_doc_generator.generator.embed_screenshots") as mock_embed:
            mock_embed.return_value = EmbedResult(document="# With images")
            result = make_generator(embed_images=True).generate([self.URL])

        assert mock_embed.call_args[0][1] == ["/tmp/dQw4w9WgXcQ.mp4"]
        assert result.output_path == os.path.join(settings.output_dir, "Setup_ Part 1.md")
        assert updates[-1].step == updates[-1].total_steps == 3

    def test_download_failure_is_wrapped(self, mock_download, make_generator, gemini):
        from video_doc_generator.youtube import DownloadError

        mock_download.side_effect = DownloadError("Video unavailable")

        with pytest.raises(DocumentGenerationError, match="Failed to download YouTube video"):
            make_generator(embed_images=True).generate(self.URL)

        gemini.generate_document.assert_not_called()


class TestPercentReporter:
    def test_throttles_messages(self):
        messages = []
        report = _percent_reporter(messages.append, "Encoding a.mp4")

        for percent in (0.0, 1.0, 4.9, 5.0, 7.0, 12.0, 100.0):
            report(percent)

        assert messages == [
            "Encoding a.mp4: 0%",
            "Encoding a.mp4: 5%",
            "Encoding a.mp4: 12%",
            "Encoding a.mp4: 100%",
        ]


@patch("video_doc_generator.generator.GeminiClient.from_settings")
def test_client_created_lazily(mock_from_settings, settings):
    generator = DocumentGenerator(settings)
    mock_from_settings.assert_not_called()

    client = generator.client

    mock_from_settings.assert_called_once_with(settings)
    assert generator.client is client
