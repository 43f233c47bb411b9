from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

from emojipic.settings import Mode, Settings


@dataclass(frozen=True)
class Request:
    """One conversion job. ``pixels`` is row-major RGBA8, width * height * 4 bytes."""

    pixels: bytes | bytearray | memoryview
    width: int
    height: int
    settings: Settings = field(default_factory=Settings)
    mode: Mode = Mode.PICTOGRAPHIC

    def __post_init__(self):
        object.__setattr__(self, "mode", Mode(self.mode))


@dataclass(frozen=True)
class OutputItem:
    symbol: str
    x: int
    y: int
    color: tuple  # (r, g, b) or (r, g, b, alpha) for overlay items


@dataclass(frozen=True)
class Progress:
    percent: int


@dataclass(frozen=True)
class PictographicResult:
    items: tuple[OutputItem, ...]


@dataclass(frozen=True)
class TextResult:
    text: str


@dataclass(frozen=True)
class Cancelled:
    pass


@dataclass(frozen=True)
class Error:
    message: str


Event = Union[Progress, PictographicResult, TextResult, Cancelled, Error]

TERMINAL_EVENTS = (PictographicResult, TextResult, Cancelled, Error)


def is_terminal(event: Event) -> bool:
    return isinstance(event, TERMINAL_EVENTS)
