"""Main module for the image-transform CLI."""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from .core import (
    QUICK_CONVERT,
    ImageTransformError,
    OutputFormat,
    PipelineDefaults,
    PipelineExecutor,
    get_logger,
    set_debug,
)
from . import __version__ as VERSION
from .core.models import BatchSettings, stem_of
from .sessions import BatchSession, ImageEditSession

FORMAT_CHOICES = [fmt.value for fmt in OutputFormat]


def _add_resize_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--width", type=int, default=None, help="Maximum output width")
    parser.add_argument("--height", type=int, default=None, help="Maximum output height")


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argument parser for every image-transform command.

    Returns:
        The configured top-level `ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        prog="image-transform",
        description="Image Transform - crop, rotate, adjust, resize and re-encode images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Edit one image and export it as PNG
  image-transform convert photo.jpg --rotate 15 --brightness 1.2 --format png

  # Resize to 800px wide JPEG at quality 90
  image-transform quick-convert photo.jpg

  # Convert a folder of images to WebP, one at a time
  image-transform batch images/*.jpg -o converted --format webp --quality 80

  # Show version
  image-transform version
        """,
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    convert = subparsers.add_parser("convert", help="Edit and export a single image")
    convert.add_argument("input", type=Path, help="Source image file")
    convert.add_argument("-o", "--output", type=Path, default=None, help="Output file")
    convert.add_argument("--format", choices=FORMAT_CHOICES, default=None, help="Output format")
    convert.add_argument("--quality", type=int, default=None, help="Output quality (1-100)")
    _add_resize_options(convert)
    convert.add_argument("--rotate", type=float, default=0.0, help="Rotation in degrees (-180..180)")
    convert.add_argument(
        "--crop",
        type=int,
        nargs=4,
        metavar=("X", "Y", "WIDTH", "HEIGHT"),
        default=None,
        help="Crop rectangle in source pixels",
    )
    convert.add_argument("--brightness", type=float, default=None, help="Brightness (0.5-2)")
    convert.add_argument("--contrast", type=float, default=None, help="Contrast (0.5-2)")
    convert.add_argument("--saturation", type=float, default=None, help="Saturation (0-2)")
    convert.add_argument("--blur", type=float, default=None, help="Blur radius (0-10)")
    convert.add_argument("--sharpen", type=float, default=None, help="Sharpen sigma (0-10)")

    quick = subparsers.add_parser(
        "quick-convert", help="Resize to 800px wide and save as JPEG quality 90"
    )
    quick.add_argument("input", type=Path, help="Source image file")
    quick.add_argument("-o", "--output-dir", type=Path, default=None, help="Output directory")

    batch = subparsers.add_parser("batch", help="Convert many images with shared settings")
    batch.add_argument("inputs", type=Path, nargs="+", help="Source image files")
    batch.add_argument("-o", "--output-dir", type=Path, required=True, help="Output directory")
    batch.add_argument("--format", choices=FORMAT_CHOICES, default=None, help="Output format")
    batch.add_argument("--quality", type=int, default=None, help="Output quality (1-100)")
    _add_resize_options(batch)
    batch.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum images processed at once (default: 1)",
    )

    subparsers.add_parser("version", help="Show version information")
    return parser


def run_convert(args: argparse.Namespace, defaults: PipelineDefaults) -> Path:
    """Apply the command-line edits through an editing session and export."""
    logger = get_logger("image-transform.cli")
    with ImageEditSession(args.input.read_bytes(), defaults=defaults) as session:
        if args.crop:
            x, y, width, height = args.crop
            session.update_crop({"x": x, "y": y, "width": width, "height": height})
        if args.rotate:
            session.update_rotation(args.rotate)
        for kind in ("brightness", "contrast", "saturation", "blur", "sharpen"):
            value = getattr(args, kind)
            if value is not None:
                session.update_adjustment(kind, value)
        if args.format or args.quality is not None:
            session.update_export(args.format or session.draft.output_format, args.quality)
        if args.width or args.height:
            session.update_resize(args.width, args.height)

        data = session.finalize()
        output = args.output or args.input.with_name(session.output_filename(args.input.name))

    output.write_bytes(data)
    logger.info(f"Wrote {output} ({len(data)} bytes)")
    return output


def run_quick_convert(args: argparse.Namespace, defaults: PipelineDefaults) -> Path:
    logger = get_logger("image-transform.cli")
    executor = PipelineExecutor(defaults=defaults)
    data = executor.execute(QUICK_CONVERT.request_for(args.input.read_bytes()))

    output_dir = args.output_dir or args.input.parent
    output_dir.mkdir(parents=True, exist_ok=True)
    output = output_dir / f"converted_{stem_of(args.input.name)}.{QUICK_CONVERT.output_format.extension}"
    output.write_bytes(data)
    logger.info(f"Wrote {output} ({len(data)} bytes)")
    return output


def run_batch(args: argparse.Namespace, defaults: PipelineDefaults) -> List[Path]:
    """Enroll every input, run the batch and write the completed results."""
    logger = get_logger("image-transform.cli")
    settings = BatchSettings(
        output_format=args.format or defaults.output_format,
        quality=args.quality if args.quality is not None else defaults.quality,
        target_width=args.width,
        target_height=args.height,
    )
    session = BatchSession(settings=settings, defaults=defaults, concurrency=args.concurrency)
    enrollment = session.enroll_many((path.name, path.read_bytes(), None) for path in args.inputs)
    for filename, reason in enrollment.rejected:
        logger.warning(f"Skipped {filename}: {reason}")

    report = session.run()

    args.output_dir.mkdir(parents=True, exist_ok=True)
    written = []
    for filename, data in session.completed_results():
        output = args.output_dir / filename
        output.write_bytes(data)
        written.append(output)

    logger.info(
        f"Batch complete: {report.completed} converted, {report.failed} failed, "
        f"{len(enrollment.rejected)} skipped in {report.processing_time:.2f}s"
    )
    if report.failed:
        sys.exit(1)
    return written


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the image-transform command-line interface.

    Parses arguments, loads `PipelineDefaults` from the environment and
    dispatches to the selected command. Transform and I/O errors are logged
    and turn into exit status 1.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print("Image Transform CLI")
        print(f"Version {VERSION}")
        print("Crop, rotate, adjust, resize and re-encode images")
        sys.exit(0)
        return

    commands = {
        "convert": run_convert,
        "quick-convert": run_quick_convert,
        "batch": run_batch,
    }
    if args.command not in commands:
        parser.print_help()
        sys.exit(1)
        return

    if args.debug:
        set_debug(True)

    logger = get_logger("image-transform.cli")
    try:
        defaults = PipelineDefaults.from_env()
        commands[args.command](args, defaults)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user.")
    except (ImageTransformError, OSError) as e:
        logger.error(f"{args.command} failed: {e}")
        logger.debug("Failure details", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
