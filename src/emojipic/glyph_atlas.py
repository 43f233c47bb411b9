import logging
import os
import shutil
import subprocess
from collections.abc import Callable, Iterable

import numpy as np
from PIL import Image, ImageDraw, ImageFont

from emojipic.charsets import split_symbols
from emojipic.errors import InitializationError
from emojipic.palette import Palette, PaletteEntry

logger = logging.getLogger(__name__)

ALPHA_THRESHOLD = 128
# Bitmap colour fonts (Noto Color Emoji) only load at their strike size
BITMAP_STRIKE_SIZE = 109
FONT_ENV_VAR = "EMOJIPIC_FONT"

Renderer = Callable[[str], np.ndarray]


def find_emoji_font() -> str | None:
    """Ask fontconfig which font provides emoji."""
    if shutil.which("fc-match") is None:
        return None
    result = subprocess.run(
        ["fc-match", "-f", "%{file}", "emoji"],
        capture_output=True,
        text=True,
    )
    if result.returncode == 0 and result.stdout.strip():
        return result.stdout.strip()
    return None


def resolve_font_path(font_path: str | None = None) -> str | None:
    if font_path:
        return font_path
    return os.environ.get(FONT_ENV_VAR) or find_emoji_font()


class GlyphRenderer:
    """Draws a symbol centred on a cleared, transparent square RGBA raster."""

    def __init__(self, cell_size: int = 32, font_size: int = 32, font_path: str | None = None):
        self.cell_size = cell_size
        self.font_size = font_size
        self.font_path = resolve_font_path(font_path)
        self.font, self.canvas_size = self._load_font()

    def _load_font(self) -> tuple[ImageFont.FreeTypeFont, int]:
        if self.font_path is None:
            logger.warning("No emoji font found, falling back to Pillow's default font")
            return ImageFont.load_default(size=self.font_size), self.cell_size
        try:
            return ImageFont.truetype(self.font_path, self.font_size), self.cell_size
        except OSError:
            font = ImageFont.truetype(self.font_path, BITMAP_STRIKE_SIZE)
            canvas_size = round(self.cell_size * BITMAP_STRIKE_SIZE / self.font_size)
            logger.warning(
                "%s does not load at size %d; drawing at %d and downscaling to %dpx",
                self.font_path,
                self.font_size,
                BITMAP_STRIKE_SIZE,
                self.cell_size,
            )
            return font, canvas_size

    def __call__(self, symbol: str) -> np.ndarray:
        size = self.canvas_size
        img = Image.new("RGBA", (size, size), (0, 0, 0, 0))
        draw = ImageDraw.Draw(img)
        # Emoji sit high on a middle anchor, nudge them down a little
        draw.text(
            (size / 2, size / 2 + size / 16),
            symbol,
            fill=(0, 0, 0, 255),
            font=self.font,
            anchor="mm",
            embedded_color=True,
        )
        if size != self.cell_size:
            img = img.resize((self.cell_size, self.cell_size), Image.LANCZOS)
        return np.asarray(img)


def average_opaque(pixels: np.ndarray) -> tuple[int, int, int] | None:
    """Mean RGB over pixels whose alpha exceeds the threshold, or None if there are none."""
    opaque = pixels[..., 3] > ALPHA_THRESHOLD
    if not opaque.any():
        return None
    mean = pixels[..., :3][opaque].astype(np.float64).mean(axis=0)
    r, g, b = (int(v) for v in np.floor(mean + 0.5))
    return r, g, b


def build_palette(
    symbols: Iterable[str] | str,
    cell_size: int = 32,
    font_size: int = 32,
    font_path: str | None = None,
    renderer: Renderer | None = None,
) -> Palette:
    """Render each symbol and reduce it to its representative colour.

    Symbols that render without a single opaque pixel (blank on this font stack)
    are dropped. Output keeps the input order otherwise.

    Raises:
        InitializationError: the font cannot be loaded or no symbol survives.
    """
    symbols = split_symbols(symbols) if isinstance(symbols, str) else list(symbols)
    if renderer is None:
        try:
            renderer = GlyphRenderer(cell_size, font_size, font_path)
        except OSError as e:
            raise InitializationError(f"Could not load font {font_path or ''}: {e}") from e

    entries = []
    for symbol in symbols:
        colour = average_opaque(renderer(symbol))
        if colour is None:
            logger.debug("Dropping %r: renders blank", symbol)
            continue
        entries.append(PaletteEntry(symbol, *colour))

    if not entries:
        raise InitializationError(f"None of {len(symbols)} symbols rendered any opaque pixels")
    logger.info("Built palette of %d symbols (%d dropped)", len(entries), len(symbols) - len(entries))
    return Palette(
        entries=tuple(entries),
        font_name=getattr(renderer, "font_path", None) or "",
        font_size=font_size,
        cell_size=cell_size,
    )
