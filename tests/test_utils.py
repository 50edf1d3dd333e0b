"""
Unit tests for video_doc_generator.utils module.

Tests file naming, size formatting and document saving.
"""

import os

from video_doc_generator.utils import (
    format_file_size,
    generate_filename,
    sanitize_filename,
    save_document,
)


class TestSanitizeFilename:
    """Tests for sanitize_filename function."""

    def test_replaces_invalid_characters(self):
        assert sanitize_filename('a/b\\c*d?e:f"g<h>i|j') == "a_b_c_d_e_f_g_h_i_j"

    def test_replaces_fullwidth_colon(self):
        assert sanitize_filename("講義：第1回") == "講義_第1回"

    def test_keeps_valid_names(self):
        assert sanitize_filename("My Lecture (2024)") == "My Lecture (2024)"

    def test_empty_title_falls_back(self):
        assert sanitize_filename("   ") == "document"


class TestGenerateFilename:
    """Tests for generate_filename function."""

    def test_uses_first_input(self):
        assert generate_filename(["videos/lecture.mp4", "videos/other.mov"]) == "lecture.md"

    def test_keeps_inner_dots(self):
        assert generate_filename(["talk.part1.mp4"]) == "talk.part1.md"

    def test_sanitizes_stem(self):
        assert generate_filename(["videos/Q&A: what?.mp4"]) == "Q&A_ what_.md"

    def test_no_inputs(self):
        assert generate_filename([]) == "document.md"


class TestFormatFileSize:
    """Tests for format_file_size function."""

    def test_zero(self):
        assert format_file_size(0) == "0 B"

    def test_bytes(self):
        assert format_file_size(512) == "512 B"

    def test_kilobytes(self):
        assert format_file_size(1536) == "1.5 KB"

    def test_megabytes(self):
        assert format_file_size(5 * 1024 * 1024) == "5 MB"

    def test_gigabytes_is_largest_unit(self):
        assert format_file_size(2048 * 1024**3) == "2048 GB"


class TestSaveDocument:
    """Tests for save_document function."""

    def test_writes_utf8(self, temp_output_dir):
        path = save_document("# 概要\n", temp_output_dir, "doc.md")

        assert path == os.path.join(temp_output_dir, "doc.md")
        with open(path, encoding="utf-8") as f:
            assert f.read() == "# 概要\n"

    def test_creates_output_dir(self, tmp_path):
        target = tmp_path / "nested" / "out"

        save_document("text", str(target), "doc.md")

        assert (target / "doc.md").exists()

    def test_overwrites_existing(self, temp_output_dir):
        save_document("old", temp_output_dir, "doc.md")
        path = save_document("new", temp_output_dir, "doc.md")

        with open(path, encoding="utf-8") as f:
            assert f.read() == "new"
