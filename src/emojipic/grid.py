from __future__ import annotations

import math
from dataclasses import dataclass

from emojipic.errors import InvalidDimensionError
from emojipic.settings import DeviceMode, Mode, Settings

# Character cells are taller than wide; without this the output stretches vertically
CORRECTION_FACTOR = 0.55
DESKTOP_SCALE = 2.2
DEFAULT_BASE_WIDTH = 40
DEFAULT_RAMP_DESKTOP_WIDTH = 80


@dataclass(frozen=True)
class GridSpec:
    cols: int
    rows: int
    sample_width: float
    sample_height: float

    @property
    def total_cells(self) -> int:
        return self.cols * self.rows

    def cell_bounds(self, row: int, col: int) -> tuple[float, float, float, float]:
        """(x, y, width, height) of a cell in source pixel space."""
        return (col * self.sample_width, row * self.sample_height, self.sample_width, self.sample_height)


def character_columns(mode: Mode, settings: Settings) -> int:
    desktop = settings.device_mode is DeviceMode.DESKTOP
    preset = settings.preset
    base = settings.platform_width
    if base is None:
        base = preset.ramp_width if mode is Mode.CHARACTER_RAMP else preset.glyph_width
    if base is None:
        if mode is Mode.CHARACTER_RAMP:
            return DEFAULT_RAMP_DESKTOP_WIDTH if desktop else DEFAULT_BASE_WIDTH
        base = DEFAULT_BASE_WIDTH
    return round(base * DESKTOP_SCALE) if desktop else base


def compute_grid(width: int, height: int, mode: Mode, settings: Settings) -> GridSpec:
    if width < 1 or height < 1:
        raise InvalidDimensionError(f"Image must be at least 1x1, got {width}x{height}")

    mode = Mode(mode)
    if mode is Mode.PICTOGRAPHIC:
        cols = max(1, width // settings.density)
    else:
        cols = max(1, character_columns(mode, settings))

    rows = math.floor(cols * (height / width) * CORRECTION_FACTOR)
    if rows < 1:
        raise InvalidDimensionError(
            f"A {width}x{height} image gives {rows} rows at {cols} columns; use a taller image or more columns"
        )
    return GridSpec(cols=cols, rows=rows, sample_width=width / cols, sample_height=height / rows)
