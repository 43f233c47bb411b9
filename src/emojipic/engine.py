from __future__ import annotations

import asyncio
import functools
import logging
import threading
from collections.abc import AsyncIterator, Callable, Iterable
from enum import Enum

from emojipic.charsets import EMOJI
from emojipic.compositor import compositor_for
from emojipic.errors import EmojipicError, EngineBusyError, InitializationError, NotReadyError
from emojipic.events import Cancelled, Error, Event, PictographicResult, Progress, Request, TextResult, is_terminal
from emojipic.glyph_atlas import Renderer, build_palette
from emojipic.grid import compute_grid
from emojipic.matcher import select_matcher
from emojipic.palette import Palette
from emojipic.sampling import pixels_from_buffer, sample_row, sub_steps_for

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_ROWS = 4


class EngineState(str, Enum):
    IDLE = "idle"
    INITIALIZING = "initializing"
    READY = "ready"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


def _terminal_state(event: Event) -> EngineState:
    if isinstance(event, (PictographicResult, TextResult)):
        return EngineState.COMPLETED
    if isinstance(event, Cancelled):
        return EngineState.CANCELLED
    return EngineState.FAILED


class MosaicEngine:
    """Turns RGBA pixel buffers into symbol mosaics, one request at a time.

    The engine owns the palette (built lazily, once) and the cancellation flag.
    Rows are processed in chunks of ``chunk_rows``; between chunks the engine
    yields to the event loop and honours a pending ``cancel()``. Every request
    produces zero or more ``Progress`` events followed by exactly one terminal
    event, and the engine is ready for the next request afterwards.
    """

    def __init__(
        self,
        symbols: Iterable[str] | str = EMOJI,
        cell_size: int = 32,
        font_size: int = 32,
        font_path: str | None = None,
        renderer: Renderer | None = None,
        palette: Palette | None = None,
        chunk_rows: int = DEFAULT_CHUNK_ROWS,
    ):
        if chunk_rows < 1:
            raise ValueError(f"chunk_rows must be at least 1, got {chunk_rows}")
        self.symbols = symbols
        self.cell_size = cell_size
        self.font_size = font_size
        self.font_path = font_path
        self.renderer = renderer
        self.chunk_rows = chunk_rows
        self.palette = palette
        self.state = EngineState.READY if palette is not None else EngineState.IDLE
        self.outcome: EngineState | None = None
        self._cancel = threading.Event()
        self._active: object | None = None

    @property
    def ready(self) -> bool:
        return self.palette is not None

    async def initialize(self) -> Palette:
        """Build the palette if it isn't built yet. Failures leave the engine idle."""
        if self.palette is not None:
            return self.palette
        if self.state is EngineState.INITIALIZING:
            raise NotReadyError("Palette is still being built")

        self.state = EngineState.INITIALIZING
        build = functools.partial(
            build_palette, self.symbols, self.cell_size, self.font_size, self.font_path, self.renderer
        )
        try:
            palette = await asyncio.get_running_loop().run_in_executor(None, build)
        except InitializationError:
            self.state = EngineState.IDLE
            raise
        except Exception as e:
            self.state = EngineState.IDLE
            raise InitializationError(f"Palette build failed: {e}") from e

        self.palette = palette
        self.state = EngineState.READY
        return palette

    def cancel(self) -> None:
        """Ask the in-flight request to stop at its next yield point. Safe from any thread."""
        self._cancel.set()

    def process(self, request: Request) -> AsyncIterator[Event]:
        """Claim the engine for ``request`` and return its event stream.

        The busy check, the cancellation reset and the claim happen here,
        synchronously, so a ``cancel()`` issued after this call always applies
        to this request. The stream must be iterated (or closed) to release the
        engine.
        """
        if self._active is not None:
            return _rejected(EngineBusyError("Another request is still being processed"))
        marker = object()
        self._active = marker
        self._cancel.clear()
        return self._stream(request, marker)

    async def run(self, request: Request, on_event: Callable[[Event], None] | None = None) -> Event:
        """Drive a request to its end, passing each event to ``on_event``. Returns the terminal event."""
        return await drain(self.process(request), on_event)

    def _release(self, marker: object, outcome: EngineState | None = None) -> None:
        if self._active is not marker:
            return
        self._active = None
        if outcome is not None:
            self.outcome = outcome
        if self.palette is not None:
            self.state = EngineState.READY

    async def _stream(self, request: Request, marker: object) -> AsyncIterator[Event]:
        try:
            try:
                await self.initialize()
            except EmojipicError as e:
                self._release(marker, EngineState.FAILED)
                yield Error(str(e))
                return

            # A cancel may have landed while the palette was being built
            if self._cancel.is_set():
                self._release(marker, EngineState.CANCELLED)
                yield Cancelled()
                return

            self.state = EngineState.PROCESSING
            async for event in self._convert(request):
                if is_terminal(event):
                    self._release(marker, _terminal_state(event))
                yield event
        finally:
            self._release(marker)

    async def _convert(self, request: Request) -> AsyncIterator[Event]:
        try:
            settings = request.settings
            pixels = pixels_from_buffer(request.pixels, request.width, request.height)
            grid = compute_grid(request.width, request.height, request.mode, settings)
            matcher = select_matcher(request.mode, settings, self.palette)
            compositor = compositor_for(
                request.mode, grid, request.width, request.height, settings.density, matcher.blank
            )
            sub_steps = sub_steps_for(settings.quality)
            logger.debug(
                "Converting %dx%d image in %s mode: %dx%d grid, %d sub-steps",
                request.width,
                request.height,
                request.mode.value,
                grid.cols,
                grid.rows,
                sub_steps,
            )

            done = 0
            for row in range(grid.rows):
                colours, valid = sample_row(pixels, grid, row, sub_steps)
                compositor.add_row(row, matcher.classify_row(colours), colours, valid)
                done += grid.cols

                if (row + 1) % self.chunk_rows == 0 or row == grid.rows - 1:
                    await asyncio.sleep(0)
                    if self._cancel.is_set():
                        logger.info("Cancelled after %d of %d rows", row + 1, grid.rows)
                        yield Cancelled()
                        return
                    yield Progress(percent=done * 100 // grid.total_cells)

            result = compositor.finish(watermark=settings.watermark)
        except EmojipicError as e:
            logger.warning("Request failed: %s", e)
            yield Error(str(e))
            return
        except Exception as e:
            logger.exception("Request failed")
            yield Error(f"{type(e).__name__}: {e}")
            return

        logger.info("Converted %d cells", grid.total_cells)
        yield result


async def _rejected(error: EmojipicError) -> AsyncIterator[Event]:
    yield Error(str(error))


async def drain(events: AsyncIterator[Event], on_event: Callable[[Event], None] | None = None) -> Event:
    """Consume an event stream, passing each event to ``on_event``. Returns the terminal event."""
    terminal = None
    async for event in events:
        if on_event is not None:
            on_event(event)
        if is_terminal(event):
            terminal = event
    return terminal
