import asyncio
from pathlib import Path

from PIL import Image

from emojipic.engine import MosaicEngine
from emojipic.events import Event, Request
from emojipic.settings import Mode, Settings


def image_to_request(
    image: Image.Image | str | Path,
    settings: Settings | None = None,
    mode: Mode | str = Mode.PICTOGRAPHIC,
) -> Request:
    """Flatten an image (or image file) into an RGBA8 request."""
    if not isinstance(image, Image.Image):
        image = Image.open(image)
    image = image.convert("RGBA")
    return Request(
        pixels=image.tobytes(),
        width=image.width,
        height=image.height,
        settings=settings if settings is not None else Settings(),
        mode=Mode(mode),
    )


def image_to_mosaic(
    image: Image.Image | str | Path,
    engine: MosaicEngine | None = None,
    settings: Settings | None = None,
    mode: Mode | str = Mode.PICTOGRAPHIC,
) -> Event:
    """Convert synchronously and return the terminal event."""
    if engine is None:
        engine = MosaicEngine()
    request = image_to_request(image, settings, mode)
    return asyncio.run(engine.run(request))
