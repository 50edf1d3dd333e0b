"""
Utility functions for file naming and saving generated documents.
"""

import os
import re
from pathlib import Path

_INVALID_FILENAME_CHARS = re.compile(r'[\\/*?:"<>|：]')


def sanitize_filename(title):
    """
    Replace characters that are invalid in file names with underscores.

    Args:
        title (str): Raw title, e.g. a YouTube video title.

    Returns:
        str: A name safe to use on Windows, macOS and Linux.
    """
    return _INVALID_FILENAME_CHARS.sub("_", title).strip() or "document"


def generate_filename(paths):
    """
    Derive the Markdown file name for a run from its input files.

    The name is taken from the first input file with its extension replaced
    by ``.md``.

    Args:
        paths (list): Input video paths.

    Returns:
        str: File name such as "lecture.md", or "document.md" for no inputs.

    Example:
        >>> generate_filename(["videos/lecture.part1.mp4", "b.mov"])
        'lecture.part1.md'
    """
    if not paths:
        return "document.md"
    return f"{sanitize_filename(Path(paths[0]).stem)}.md"


def format_file_size(size_bytes):
    """
    Format a byte count with 1024-based units.

    Example:
        >>> format_file_size(1536)
        '1.5 KB'
    """
    if size_bytes <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB"]
    value = float(size_bytes)
    index = 0
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    return f"{round(value, 2):g} {units[index]}"


def save_document(content, output_dir, filename):
    """
    Write a generated document to disk as UTF-8.

    Args:
        content (str): Document text.
        output_dir (str): Target directory, created if missing.
        filename (str): File name inside output_dir.

    Returns:
        str: Full path of the written file.
    """
    os.makedirs(output_dir, exist_ok=True)
    output_path = os.path.join(output_dir, filename)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(content)
    return output_path
