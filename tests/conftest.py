"""
Pytest configuration and shared fixtures for Video Doc Generator tests.

This module provides common fixtures and test utilities used across
all test modules.
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

import video_doc_generator.video_processor as vp
from video_doc_generator.config import GeneratorSettings


@pytest.fixture(autouse=True)
def reset_video_processor_caches():
    """Clear cached executable paths and NVENC detection between tests."""
    vp._executable_cache.clear()
    vp._nvenc_available = None
    yield
    vp._executable_cache.clear()
    vp._nvenc_available = None


@pytest.fixture
def temp_output_dir(tmp_path):
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return str(output_dir)


@pytest.fixture
def video_file(tmp_path):
    """Create an empty placeholder video file (contents are never decoded)."""
    path = tmp_path / "lecture.mp4"
    path.write_bytes(b"\x00" * 16)
    return str(path)


@pytest.fixture
def settings(temp_output_dir):
    """Valid settings with fast polling, writing into the temp output dir."""
    return GeneratorSettings(
        api_key="test-key",
        language="english",
        poll_interval=0.01,
        no_state_poll_interval=0.01,
        output_dir=temp_output_dir,
    )


@pytest.fixture
def sharp_frame():
    """Create a 100x100 black/white checkerboard (strong edges)."""
    frame = np.zeros((100, 100, 3), dtype=np.uint8)
    for y in range(0, 100, 10):
        for x in range(0, 100, 10):
            if (x // 10 + y // 10) % 2 == 0:
                frame[y : y + 10, x : x + 10] = 255
    return frame


@pytest.fixture
def flat_frame():
    """Create a 100x100 uniform gray frame (no edges)."""
    return np.full((100, 100, 3), 128, dtype=np.uint8)


def file_info(state, uri="https://generativelanguage.googleapis.com/v1beta/files/abc", name="files/abc"):
    """Build an object shaped like a google-genai File with the given state name."""
    state_obj = None if state is None else SimpleNamespace(name=state)
    return SimpleNamespace(name=name, uri=uri, state=state_obj, mime_type="video/mp4")


@pytest.fixture
def mock_genai_client():
    """A MagicMock standing in for google.genai.Client."""
    client = MagicMock()
    client.files.upload.return_value = file_info("PROCESSING")
    client.files.get.return_value = file_info("ACTIVE")
    client.models.generate_content.return_value = SimpleNamespace(text="# Generated")
    return client
