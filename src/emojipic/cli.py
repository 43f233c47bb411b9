import argparse
import dataclasses
import json
import logging
import struct
import sys
from pathlib import Path

from emojipic.converter import image_to_request
from emojipic.engine import MosaicEngine
from emojipic.errors import EmojipicError
from emojipic.events import Cancelled, Error, PictographicResult, Progress, TextResult
from emojipic.palette import Palette
from emojipic.settings import PLATFORMS, DeviceMode, Mode, Quality, RenderStyle, Settings
from emojipic.worker import MosaicWorker

logger = logging.getLogger("emojipic")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Render an image as an emoji mosaic or character art")
    parser.add_argument("image", help="Path to input image")
    parser.add_argument(
        "-m", "--mode", default=Mode.PICTOGRAPHIC.value, choices=[m.value for m in Mode], help="Output mode"
    )
    parser.add_argument("-d", "--density", type=int, default=10, help="Pixels per mosaic cell (default: 10)")
    parser.add_argument(
        "-q", "--quality", default=Quality.HIGH.value, choices=[q.value for q in Quality], help="Sampling quality"
    )
    parser.add_argument("-p", "--platform", default="standard", choices=sorted(PLATFORMS), help="Target platform")
    parser.add_argument("-w", "--width", type=int, default=None, help="Base column count for character modes")
    parser.add_argument("--desktop", action="store_true", help="Widen character output for desktop viewing")
    parser.add_argument(
        "-s", "--style", default=RenderStyle.ASCII.value, choices=[s.value for s in RenderStyle], help="Ramp style"
    )
    parser.add_argument("--watermark", action="store_true", help="Append the caption")
    parser.add_argument("--font", default=None, help="Font used to render palette symbols")
    parser.add_argument("--palette", type=Path, default=None, help="Load a saved palette instead of rendering one")
    parser.add_argument("--save-palette", type=Path, default=None, help="Save the built palette to this file")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Log progress (-vv for debug)")
    return parser


def _settings_from_args(args: argparse.Namespace) -> Settings:
    return Settings(
        density=args.density,
        quality=Quality(args.quality),
        platform=args.platform,
        platform_width=args.width,
        device_mode=DeviceMode.DESKTOP if args.desktop else DeviceMode.MOBILE,
        render_style=RenderStyle(args.style),
        watermark=args.watermark,
    )


def _log_progress(event) -> None:
    if isinstance(event, Progress):
        logger.info("%d%%", event.percent)


def _wait(worker: MosaicWorker, future):
    """Block on a worker future; the first Ctrl-C cancels the request, later ones are ignored."""
    cancelled = False
    while True:
        try:
            return future.result()
        except KeyboardInterrupt:
            if not cancelled:
                logger.info("Interrupted, cancelling")
                worker.cancel()
                cancelled = True


def main(argv=None):
    args = build_parser().parse_args(argv)
    level = logging.WARNING - 10 * min(args.verbose, 2)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    image_path = Path(args.image)
    if not image_path.exists():
        print(f"File not found: {image_path}", file=sys.stderr)
        sys.exit(1)

    try:
        settings = _settings_from_args(args)
    except ValueError as e:
        print(str(e), file=sys.stderr)
        sys.exit(2)

    try:
        palette = Palette.load(args.palette) if args.palette else None
    except (OSError, ValueError, struct.error, EmojipicError) as e:
        print(f"Could not load palette: {e}", file=sys.stderr)
        sys.exit(1)
    engine = MosaicEngine(font_path=args.font, palette=palette)
    request = image_to_request(image_path, settings, args.mode)

    with MosaicWorker(engine) as worker:
        if args.save_palette:
            try:
                _wait(worker, worker.initialize()).save(args.save_palette)
            except EmojipicError as e:
                print(str(e), file=sys.stderr)
                sys.exit(1)
        future = worker.submit(request, on_event=_log_progress)
        event = _wait(worker, future)

    if isinstance(event, Cancelled):
        print("Cancelled", file=sys.stderr)
        sys.exit(130)
    if isinstance(event, Error):
        print(event.message, file=sys.stderr)
        sys.exit(1)
    if isinstance(event, TextResult):
        print(event.text)
    elif isinstance(event, PictographicResult):
        print(json.dumps([dataclasses.asdict(item) for item in event.items], ensure_ascii=False))
