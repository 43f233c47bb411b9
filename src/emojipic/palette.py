from __future__ import annotations

import struct
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

import numpy as np

from emojipic.errors import InitializationError

MAGIC = b"EPAL"
FORMAT_VERSION = 1


@dataclass(frozen=True)
class PaletteEntry:
    symbol: str
    r: int
    g: int
    b: int

    @property
    def rgb(self) -> tuple[int, int, int]:
        return (self.r, self.g, self.b)


@dataclass(frozen=True)
class Palette:
    entries: tuple[PaletteEntry, ...]
    font_name: str = ""
    font_size: int = 0
    cell_size: int = 0

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple(self.entries))
        if not self.entries:
            raise InitializationError("Palette is empty")

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def __getitem__(self, index: int) -> PaletteEntry:
        return self.entries[index]

    @cached_property
    def colours(self) -> np.ndarray:
        """(n, 3) float64 matrix of entry colours, in palette order."""
        arr = np.array([entry.rgb for entry in self.entries], dtype=np.float64)
        arr.setflags(write=False)
        return arr

    def nearest_indices(self, colours: np.ndarray) -> np.ndarray:
        """Index of the closest entry for each row of an (n, 3) colour array.

        Squared euclidean distance in RGB; ties resolve to the earliest entry.
        """
        colours = np.asarray(colours, dtype=np.float64).reshape(-1, 3)
        diff = colours[:, None, :] - self.colours[None, :, :]
        dist = (diff * diff).sum(axis=2)
        return dist.argmin(axis=1)

    def find_nearest(self, colour: tuple[float, float, float]) -> PaletteEntry:
        best_entry = self.entries[0]
        best_dist = float("inf")
        r, g, b = colour
        for entry in self.entries:
            dist = (r - entry.r) ** 2 + (g - entry.g) ** 2 + (b - entry.b) ** 2
            if dist < best_dist:
                best_dist = dist
                best_entry = entry
        return best_entry

    def save(self, path: str | Path) -> None:
        path = Path(path)
        with path.open("wb") as f:
            f.write(MAGIC)
            f.write(struct.pack("B", FORMAT_VERSION))
            name_bytes = self.font_name.encode("utf-8")
            f.write(struct.pack(">H", len(name_bytes)))
            f.write(name_bytes)
            f.write(struct.pack(">HH", self.font_size, self.cell_size))
            f.write(struct.pack(">I", len(self.entries)))
            for entry in self.entries:
                symbol_bytes = entry.symbol.encode("utf-8")
                f.write(struct.pack("B", len(symbol_bytes)))
                f.write(symbol_bytes)
                f.write(struct.pack("BBB", entry.r, entry.g, entry.b))

    @classmethod
    def load(cls, path: str | Path) -> Palette:
        path = Path(path)
        with path.open("rb") as f:
            magic = f.read(4)
            if magic != MAGIC:
                raise ValueError(f"Not an EPAL file: {magic!r}")
            (version,) = struct.unpack("B", f.read(1))
            if version != FORMAT_VERSION:
                raise ValueError(f"Unsupported format version: {version}")
            (name_len,) = struct.unpack(">H", f.read(2))
            font_name = f.read(name_len).decode("utf-8")
            font_size, cell_size = struct.unpack(">HH", f.read(4))
            (count,) = struct.unpack(">I", f.read(4))
            entries = []
            for _ in range(count):
                (symbol_len,) = struct.unpack("B", f.read(1))
                symbol = f.read(symbol_len).decode("utf-8")
                r, g, b = struct.unpack("BBB", f.read(3))
                entries.append(PaletteEntry(symbol, r, g, b))
            return cls(entries=tuple(entries), font_name=font_name, font_size=font_size, cell_size=cell_size)
