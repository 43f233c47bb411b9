import math

import numpy as np

from emojipic.errors import InvalidDimensionError
from emojipic.grid import GridSpec
from emojipic.settings import Quality

SUB_STEPS = {Quality.PERFORMANCE: 1, Quality.HIGH: 2}


def sub_steps_for(quality: Quality) -> int:
    """Sub-samples per cell axis: 1 for performance, 2 (a 2x2 grid) for high quality."""
    return SUB_STEPS[Quality(quality)]


def pixels_from_buffer(buffer, width: int, height: int) -> np.ndarray:
    """View a row-major RGBA8 buffer as an array of shape (height, width, 4)."""
    if width < 1 or height < 1:
        raise InvalidDimensionError(f"Image must be at least 1x1, got {width}x{height}")
    if isinstance(buffer, np.ndarray):
        arr = np.asarray(buffer, dtype=np.uint8)
    else:
        arr = np.frombuffer(buffer, dtype=np.uint8)
    expected = width * height * 4
    if arr.size != expected:
        raise InvalidDimensionError(f"Pixel buffer holds {arr.size} bytes, expected {expected} for {width}x{height} RGBA")
    return arr.reshape(height, width, 4)


def _offsets(start: float, span: float, sub_steps: int) -> list[int]:
    step = span / sub_steps
    return [math.floor(start + i * step) for i in range(sub_steps)]


def sample_cell(
    pixels: np.ndarray,
    width: int,
    height: int,
    bounds: tuple[float, float, float, float],
    sub_steps: int,
) -> tuple[float, float, float] | None:
    """Average colour of a sub_steps x sub_steps lattice inside one cell.

    Lattice points falling outside the image are skipped. Returns None when all
    of them do. Alpha is ignored.
    """
    x0, y0, w, h = bounds
    xs = [x for x in _offsets(x0, w, sub_steps) if 0 <= x < width]
    total = np.zeros(3)
    count = 0
    for y in _offsets(y0, h, sub_steps):
        if not 0 <= y < height:
            continue
        for x in xs:
            total += pixels[y, x, :3]
            count += 1
    if count == 0:
        return None
    r, g, b = (total / count).tolist()
    return r, g, b


def sample_row(pixels: np.ndarray, grid: GridSpec, row: int, sub_steps: int) -> tuple[np.ndarray, np.ndarray]:
    """Sample every cell in one grid row at once.

    Returns:
        colours: float64 array of shape (cols, 3), zero where the cell is empty
        valid: bool array of shape (cols,), False for cells with no in-bounds samples
    """
    height, width = pixels.shape[:2]
    steps = np.arange(sub_steps)
    ys = np.floor(row * grid.sample_height + steps * (grid.sample_height / sub_steps)).astype(np.intp)
    xs = np.floor(
        np.arange(grid.cols)[:, None] * grid.sample_width + steps[None, :] * (grid.sample_width / sub_steps)
    ).astype(np.intp)  # (cols, sub_steps)

    y_ok = (ys >= 0) & (ys < height)
    x_ok = (xs >= 0) & (xs < width)
    ys_c = np.clip(ys, 0, height - 1)
    xs_c = np.clip(xs, 0, width - 1)

    # (sub_y, cols, sub_x, 3)
    samples = pixels[ys_c[:, None, None], xs_c[None, :, :], :3].astype(np.float64)
    weight = y_ok[:, None, None] & x_ok[None, :, :]
    sums = (samples * weight[..., None]).sum(axis=(0, 2))
    counts = weight.sum(axis=(0, 2))

    valid = counts > 0
    colours = np.zeros((grid.cols, 3))
    colours[valid] = sums[valid] / counts[valid, None]
    return colours, valid
