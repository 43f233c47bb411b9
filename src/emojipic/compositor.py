from __future__ import annotations

from typing import Protocol

import numpy as np

from emojipic.charsets import MOSAIC_CAPTION, TEXT_CAPTION
from emojipic.events import OutputItem, PictographicResult, TextResult
from emojipic.grid import GridSpec
from emojipic.settings import Mode

WATERMARK_COLOUR = (128, 128, 128, 0.5)
WATERMARK_SPACING = 0.8  # fraction of density between caption characters


class Compositor(Protocol):
    def add_row(self, row: int, symbols: list[str], colours: np.ndarray, valid: np.ndarray) -> None: ...

    def finish(self, watermark: bool = False) -> PictographicResult | TextResult: ...


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


class PictographicCompositor:
    """Positioned symbols in scan order, for drawing onto a canvas downstream."""

    def __init__(self, grid: GridSpec, width: int, height: int, density: int):
        self.grid = grid
        self.width = width
        self.height = height
        self.density = density
        self._items: list[OutputItem] = []

    def add(self, symbol: str, x: float, y: float, colour: tuple[float, float, float]) -> None:
        rgb = tuple(_round_half_up(c) for c in colour)
        self._items.append(OutputItem(symbol, _round_half_up(x), _round_half_up(y), rgb))

    def add_row(self, row: int, symbols: list[str], colours: np.ndarray, valid: np.ndarray) -> None:
        y = row * self.grid.sample_height
        for col, (symbol, colour, ok) in enumerate(zip(symbols, colours, valid)):
            # Empty cells are left out of the mosaic
            if ok:
                self.add(symbol, col * self.grid.sample_width, y, tuple(colour))

    def _watermark(self) -> list[OutputItem]:
        n = len(MOSAIC_CAPTION)
        step = self.density * WATERMARK_SPACING
        y = self.height - self.density
        return [
            OutputItem(char, _round_half_up(self.width - (n - i) * step), y, WATERMARK_COLOUR)
            for i, char in enumerate(MOSAIC_CAPTION)
        ]

    def finish(self, watermark: bool = False) -> PictographicResult:
        items = list(self._items)
        if watermark:
            items.extend(self._watermark())
        return PictographicResult(items=tuple(items))


class TextCompositor:
    """Rows of characters; empty cells become ``blank``."""

    def __init__(self, blank: str = " "):
        self.blank = blank
        self._rows: list[str] = []

    def add_row(self, row: int, symbols: list[str], colours: np.ndarray, valid: np.ndarray) -> None:
        self._rows.append("".join(symbol if ok else self.blank for symbol, ok in zip(symbols, valid)))

    def finish(self, watermark: bool = False) -> TextResult:
        rows = list(self._rows)
        if watermark:
            rows += ["", TEXT_CAPTION]
        return TextResult(text="\n".join(rows))


def compositor_for(mode: Mode, grid: GridSpec, width: int, height: int, density: int, blank: str = " ") -> Compositor:
    if Mode(mode) is Mode.PICTOGRAPHIC:
        return PictographicCompositor(grid, width, height, density)
    return TextCompositor(blank)
