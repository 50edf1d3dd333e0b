"""
Video Doc Generator - Main entry point and CLI interface.

This module provides the command-line interface for the Video Doc Generator.
It builds GeneratorSettings from flags and the environment, runs the
DocumentGenerator and prints step progress to the terminal.

Example:
    $ export GEMINI_API_KEY=...
    $ python main.py input/lecture.mp4 --language english --embed-images
    $ python main.py "https://youtu.be/dQw4w9WgXcQ" --preset manual
"""

import argparse
import logging
import sys

from video_doc_generator import (
    DEFAULT_MODEL,
    PRESETS,
    DocumentGenerationError,
    DocumentGenerator,
    EncoderMode,
    FrameExtractionMethod,
    ImageEmbedFrequency,
    VideoQuality,
    settings_from_env,
)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def build_parser():
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        description="Generate a Markdown document from videos with Google Gemini."
    )
    parser.add_argument(
        "sources", nargs="+", help="Video files, or a single YouTube URL"
    )
    parser.add_argument("--output-dir", default="output", help="Output directory (default: output)")
    parser.add_argument("--language", default="japanese", help="Document language (default: japanese)")
    parser.add_argument("--model", default=DEFAULT_MODEL, help=f"Gemini model (default: {DEFAULT_MODEL})")
    parser.add_argument(
        "--temperature", type=float, default=0.0, help="Sampling temperature 0.0-2.0 (0 = model default)"
    )
    parser.add_argument(
        "--preset", choices=sorted(PRESETS), default="general", help="Built-in prompt preset"
    )
    parser.add_argument("--prompt-file", help="Text file whose content replaces the preset prompt")
    parser.add_argument(
        "--embed-images", action="store_true", help="Embed screenshots extracted from the videos"
    )
    parser.add_argument(
        "--image-frequency",
        choices=[f.value for f in ImageEmbedFrequency],
        default=ImageEmbedFrequency.MODERATE.value,
        help="How many screenshots to request",
    )
    parser.add_argument(
        "--frame-method",
        choices=[m.value for m in FrameExtractionMethod],
        default=FrameExtractionMethod.STANDARD.value,
        help="Screenshot extraction strategy",
    )
    parser.add_argument(
        "--quality",
        choices=[q.value for q in VideoQuality],
        default=VideoQuality.NO_CONVERSION.value,
        help="Re-encode videos to this height before upload",
    )
    parser.add_argument(
        "--encoder",
        choices=[e.value for e in EncoderMode],
        default=EncoderMode.CPU.value,
        help="Encoder for re-encoding (gpu = NVENC)",
    )
    parser.add_argument("--api-key", help="Gemini API key (default: GEMINI_API_KEY / GOOGLE_API_KEY)")
    parser.add_argument(
        "--keep-remote-files", action="store_true", help="Do not delete uploaded files from the API"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def print_progress(update):
    """Print a ProgressUpdate as ``[step/total] message``."""
    print(f"[{update.step}/{update.total_steps}] {update.message}")


def read_prompt_file(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


def main(argv=None):
    """
    Main entry point for the Video Doc Generator application.

    Args:
        argv (list, optional): Arguments to parse instead of sys.argv.

    Returns:
        int: Process exit code (0 success, 1 failure, 130 interrupted).
    """
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    custom_prompt = None
    if args.prompt_file:
        try:
            custom_prompt = read_prompt_file(args.prompt_file)
        except OSError as exc:
            print(f"\n✗ Could not read prompt file: {exc}", file=sys.stderr)
            return 1

    try:
        settings = settings_from_env(
            api_key=args.api_key,
            language=args.language,
            temperature=args.temperature,
            custom_prompt=custom_prompt,
            prompt_preset=args.preset,
            gemini_model=args.model,
            embed_images=args.embed_images,
            image_embed_frequency=args.image_frequency,
            video_quality=args.quality,
            encoder_mode=args.encoder,
            frame_extraction_method=args.frame_method,
            cleanup_remote_files=not args.keep_remote_files,
            output_dir=args.output_dir,
        )
        generator = DocumentGenerator(settings, progress_callback=print_progress)
        result = generator.generate(args.sources)
    except KeyboardInterrupt:
        print("\n✗ Interrupted")
        return 130
    except (DocumentGenerationError, ValueError) as exc:
        print(f"\n✗ {exc}", file=sys.stderr)
        return 1

    print(f"\n✓ Document saved to {result.output_path}")
    if result.images:
        print(f"✓ Embedded {len(result.images)} screenshots")
    return 0


if __name__ == "__main__":
    sys.exit(main())
