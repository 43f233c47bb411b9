from __future__ import annotations

import math
from typing import Protocol

import numpy as np

from emojipic.charsets import ASCII_RAMP, BLOCK_RAMP, BRAILLE_RAMP, NBSP, SYMBOL_RAMP
from emojipic.palette import Palette
from emojipic.settings import Mode, RenderStyle, Settings

RAMPS = {
    RenderStyle.ASCII: ASCII_RAMP,
    RenderStyle.BLOCK: BLOCK_RAMP,
    RenderStyle.BRAILLE: BRAILLE_RAMP,
    RenderStyle.SYMBOL: SYMBOL_RAMP,
}

LUMA_WEIGHTS = (0.299, 0.587, 0.114)


class Matcher(Protocol):
    blank: str  # emitted for empty cells in character modes

    def classify(self, colour: tuple[float, float, float]) -> str:
        """Pick the symbol for one sampled colour."""
        ...

    def classify_row(self, colours: np.ndarray) -> list[str]:
        """Pick symbols for an (n, 3) array of sampled colours."""
        ...


def luma(colour: tuple[float, float, float]) -> float:
    r, g, b = colour
    return r * LUMA_WEIGHTS[0] + g * LUMA_WEIGHTS[1] + b * LUMA_WEIGHTS[2]


def ramp_index(value: float, length: int) -> int:
    return min(length - 1, max(0, math.floor(value / 255 * length)))


class NearestPaletteMatcher:
    """Closest palette entry by squared RGB distance; first entry wins ties."""

    def __init__(self, palette: Palette, blank: str = " "):
        self.palette = palette
        self.blank = blank
        self._symbols = [entry.symbol for entry in palette]

    def classify(self, colour: tuple[float, float, float]) -> str:
        return self.palette.find_nearest(colour).symbol

    def classify_row(self, colours: np.ndarray) -> list[str]:
        if len(colours) == 0:
            return []
        return [self._symbols[i] for i in self.palette.nearest_indices(colours)]


class RampMatcher:
    """Maps perceptual brightness onto a sparse-to-dense character ramp."""

    def __init__(self, ramp: str, collapse_whitespace: bool = False):
        if not ramp:
            raise ValueError("Ramp must contain at least one character")
        self.blank = NBSP if collapse_whitespace else " "
        self.ramp = tuple(self.blank if char == " " else char for char in ramp)

    def classify(self, colour: tuple[float, float, float]) -> str:
        return self.ramp[ramp_index(luma(colour), len(self.ramp))]

    def classify_row(self, colours: np.ndarray) -> list[str]:
        colours = np.asarray(colours, dtype=np.float64).reshape(-1, 3)
        values = colours[:, 0] * LUMA_WEIGHTS[0] + colours[:, 1] * LUMA_WEIGHTS[1] + colours[:, 2] * LUMA_WEIGHTS[2]
        n = len(self.ramp)
        indices = np.clip(np.floor(values / 255 * n).astype(np.intp), 0, n - 1)
        return [self.ramp[i] for i in indices]


def select_matcher(mode: Mode, settings: Settings, palette: Palette | None) -> Matcher:
    blank = NBSP if settings.collapses_whitespace else " "
    if Mode(mode) is Mode.CHARACTER_RAMP:
        return RampMatcher(RAMPS[settings.render_style], collapse_whitespace=settings.collapses_whitespace)
    if palette is None:
        raise ValueError(f"{Mode(mode).value} mode needs a palette")
    return NearestPaletteMatcher(palette, blank=blank)
