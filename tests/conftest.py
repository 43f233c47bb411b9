import shutil
import subprocess

import numpy as np
import pytest

from emojipic.palette import Palette, PaletteEntry

_FONT_CANDIDATES = [
    "/usr/share/fonts/truetype/dejavu/DejaVuSansMono.ttf",
    "/usr/share/fonts/truetype/liberation/LiberationMono-Regular.ttf",
    "/usr/share/fonts/TTF/DejaVuSansMono.ttf",
    "/usr/share/fonts/dejavu-sans-mono-fonts/DejaVuSansMono.ttf",
]


def _find_monospace_font():
    """Find a monospace font on the system."""
    for path in _FONT_CANDIDATES:
        if shutil.os.path.exists(path):
            return path
    result = shutil.which("fc-match")
    if result:
        out = subprocess.run(["fc-match", "-f", "%{file}", "monospace"], capture_output=True, text=True)
        if out.returncode == 0 and out.stdout.strip():
            return out.stdout.strip()
    return None


FONT_PATH = _find_monospace_font()
needs_font = pytest.mark.skipif(FONT_PATH is None, reason="No monospace font found on system")

RED = (255, 0, 0)
GREEN = (0, 255, 0)
BLUE = (0, 0, 255)
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)


def solid_rgba(width, height, colour, alpha=255) -> bytes:
    """Row-major RGBA8 buffer of a single colour."""
    return bytes([*colour, alpha]) * (width * height)


def make_palette():
    return Palette(
        entries=(
            PaletteEntry("🍎", *RED),
            PaletteEntry("🍏", *GREEN),
            PaletteEntry("💙", *BLUE),
            PaletteEntry("⚪", *WHITE),
            PaletteEntry("⚫", *BLACK),
        )
    )


class FakeRenderer:
    """Renders each symbol as an opaque square of a known colour; None means blank."""

    def __init__(self, colours, cell_size=8):
        self.colours = colours
        self.cell_size = cell_size
        self.calls = []

    def __call__(self, symbol):
        self.calls.append(symbol)
        arr = np.zeros((self.cell_size, self.cell_size, 4), dtype=np.uint8)
        colour = self.colours.get(symbol)
        if colour is not None:
            arr[2:-2, 2:-2, :3] = colour
            arr[2:-2, 2:-2, 3] = 255
        return arr
