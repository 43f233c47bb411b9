import asyncio
import threading

import pytest

import emojipic.engine as engine_module
from emojipic.charsets import TEXT_CAPTION
from emojipic.engine import EngineState, MosaicEngine
from emojipic.events import Cancelled, Error, PictographicResult, Progress, Request, TextResult
from emojipic.settings import Mode, Settings
from tests.conftest import GREEN, RED, WHITE, FakeRenderer, make_palette, solid_rgba

# 10 columns by 1000 rows at density 1
TALL_WIDTH, TALL_HEIGHT = 10, 1819


def make_engine(chunk_rows=4):
    return MosaicEngine(palette=make_palette(), chunk_rows=chunk_rows)


def collect(engine, request):
    async def _collect():
        return [event async for event in engine.process(request)]

    return asyncio.run(_collect())


def red_request(**settings):
    return Request(solid_rgba(100, 100, RED), 100, 100, Settings(density=10, **settings))


def tall_request():
    return Request(solid_rgba(TALL_WIDTH, TALL_HEIGHT, RED), TALL_WIDTH, TALL_HEIGHT, Settings(density=1))


def test_red_square_end_to_end():
    events = collect(make_engine(), red_request())
    assert events[:-1] == [Progress(80), Progress(100)]
    result = events[-1]
    assert isinstance(result, PictographicResult)
    assert len(result.items) == 50
    assert all(item.color == RED for item in result.items)
    assert all(item.symbol == "🍎" for item in result.items)
    assert (result.items[0].x, result.items[0].y) == (0, 0)
    assert (result.items[-1].x, result.items[-1].y) == (90, 80)


def test_exactly_one_terminal_event():
    events = collect(make_engine(), red_request())
    terminals = [e for e in events if not isinstance(e, Progress)]
    assert len(terminals) == 1
    assert events[-1] is terminals[0]


def test_progress_is_monotonic_and_ends_at_100():
    events = collect(make_engine(), tall_request())
    percents = [e.percent for e in events if isinstance(e, Progress)]
    assert len(percents) == 250
    assert percents == sorted(percents)
    assert percents[-1] == 100
    assert percents.count(100) == 1


def test_uniform_colour_maps_every_cell_to_matching_entry():
    request = Request(
        solid_rgba(100, 100, GREEN), 100, 100, Settings(platform_width=10), mode=Mode.CHARACTER_GLYPH
    )
    result = collect(make_engine(), request)[-1]
    assert result == TextResult("\n".join(["🍏" * 10] * 5))


def test_ramp_mode_text():
    request = Request(solid_rgba(100, 100, WHITE), 100, 100, Settings(platform_width=8), mode="character-ramp")
    result = collect(make_engine(), request)[-1]
    lines = result.text.split("\n")
    assert len(lines) == 4  # floor(8 * 0.55)
    assert all(line == "$" * 8 for line in lines)


def test_text_watermark():
    request = Request(
        solid_rgba(100, 100, WHITE), 100, 100, Settings(platform_width=8, watermark=True), Mode.CHARACTER_RAMP
    )
    result = collect(make_engine(), request)[-1]
    assert result.text.endswith("\n\n" + TEXT_CAPTION)


def test_cancel_from_progress_callback(monkeypatch):
    engine = make_engine()
    rows_seen = []
    real_sample_row = engine_module.sample_row

    def spy(pixels, grid, row, sub_steps):
        rows_seen.append(row)
        return real_sample_row(pixels, grid, row, sub_steps)

    monkeypatch.setattr(engine_module, "sample_row", spy)
    events = []

    def on_event(event):
        events.append(event)
        if isinstance(event, Progress):
            engine.cancel()

    terminal = asyncio.run(engine.run(tall_request(), on_event))

    assert terminal == Cancelled()
    assert [type(e) for e in events] == [Progress, Cancelled]
    # Signal lands after the first chunk; only one more chunk runs
    assert len(rows_seen) == 2 * engine.chunk_rows
    assert engine.outcome is EngineState.CANCELLED
    assert engine.state is EngineState.READY


def test_cancel_from_controller_task():
    engine = make_engine()

    async def scenario():
        task = asyncio.create_task(engine.run(tall_request()))
        for _ in range(10):
            await asyncio.sleep(0)
        engine.cancel()
        return await task

    assert asyncio.run(scenario()) == Cancelled()


def test_cancel_before_request_is_reset():
    engine = make_engine()
    engine.cancel()
    events = collect(engine, red_request())
    assert isinstance(events[-1], PictographicResult)


def test_engine_usable_after_cancel():
    engine = make_engine()

    def on_event(event):
        if isinstance(event, Progress):
            engine.cancel()

    assert asyncio.run(engine.run(tall_request(), on_event)) == Cancelled()
    assert isinstance(collect(engine, red_request())[-1], PictographicResult)


def test_second_request_while_busy_is_rejected():
    engine = make_engine()

    async def scenario():
        first = engine.process(red_request())
        progress = await first.__anext__()
        assert engine.state is EngineState.PROCESSING
        rejected = await engine.run(red_request())
        rest = [event async for event in first]
        return progress, rejected, rest

    progress, rejected, rest = asyncio.run(scenario())
    assert progress == Progress(80)
    assert isinstance(rejected, Error)
    assert "still being processed" in rejected.message
    assert rest[0] == Progress(100)
    assert isinstance(rest[1], PictographicResult)
    assert engine.state is EngineState.READY


def test_engine_is_claimed_before_first_event():
    engine = make_engine()

    async def scenario():
        first = engine.process(red_request())
        second = [event async for event in engine.process(red_request())]
        return second, [event async for event in first]

    second, first = asyncio.run(scenario())
    assert len(second) == 1
    assert "still being processed" in second[0].message
    assert isinstance(first[-1], PictographicResult)


def test_cancel_right_after_process_is_honoured():
    engine = make_engine()

    async def scenario():
        events = engine.process(tall_request())
        engine.cancel()
        return [event async for event in events]

    assert asyncio.run(scenario()) == [Cancelled()]
    assert engine.outcome is EngineState.CANCELLED
    assert isinstance(collect(engine, red_request())[-1], PictographicResult)


def test_invalid_dimensions_fail_without_corrupting_engine():
    engine = make_engine()
    wide = Request(solid_rgba(1000, 10, RED), 1000, 10, Settings(density=10))
    events = collect(engine, wide)
    assert len(events) == 1
    assert isinstance(events[0], Error)
    assert "rows" in events[0].message
    assert engine.outcome is EngineState.FAILED
    assert engine.state is EngineState.READY
    assert isinstance(collect(engine, red_request())[-1], PictographicResult)


def test_wrong_buffer_length_is_an_error():
    events = collect(make_engine(), Request(b"\x00" * 10, 5, 5))
    assert events == [Error("Pixel buffer holds 10 bytes, expected 100 for 5x5 RGBA")]


def test_unexpected_exception_becomes_error_event(monkeypatch):
    def broken(*args):
        raise RuntimeError("boom")

    monkeypatch.setattr(engine_module, "sample_row", broken)
    engine = make_engine()
    assert collect(engine, red_request()) == [Error("RuntimeError: boom")]
    assert engine.state is EngineState.READY


def test_palette_is_built_lazily_once():
    renderer = FakeRenderer({"r": RED, "g": GREEN})
    engine = MosaicEngine(symbols=["r", "g"], renderer=renderer)
    assert engine.state is EngineState.IDLE
    assert not engine.ready

    first = collect(engine, red_request())[-1]
    second = collect(engine, red_request())[-1]

    assert engine.state is EngineState.READY
    assert [e.symbol for e in engine.palette] == ["r", "g"]
    assert renderer.calls == ["r", "g"]
    assert first == second
    assert first.items[0].symbol == "r"


def test_failed_initialization_can_be_retried():
    engine = MosaicEngine(symbols=["r"], renderer=FakeRenderer({}))
    events = collect(engine, red_request())
    assert len(events) == 1
    assert isinstance(events[0], Error)
    assert engine.state is EngineState.IDLE
    assert engine.palette is None

    engine.renderer = FakeRenderer({"r": RED})
    assert isinstance(collect(engine, red_request())[-1], PictographicResult)


def test_renderer_crash_is_an_initialization_error():
    def crash(symbol):
        raise KeyError(symbol)

    engine = MosaicEngine(symbols=["r"], renderer=crash)
    events = collect(engine, red_request())
    assert events[0].message.startswith("Palette build failed")


def test_request_during_initialization_is_not_ready():
    gate = threading.Event()
    inner = FakeRenderer({"r": RED})

    def gated(symbol):
        gate.wait(5)
        return inner(symbol)

    engine = MosaicEngine(symbols=["r"], renderer=gated)

    async def scenario():
        init = asyncio.create_task(engine.initialize())
        await asyncio.sleep(0)
        assert engine.state is EngineState.INITIALIZING
        event = await engine.run(red_request())
        gate.set()
        await init
        return event

    event = asyncio.run(scenario())
    assert isinstance(event, Error)
    assert "still being built" in event.message
    assert engine.state is EngineState.READY


def test_initialize_returns_existing_palette():
    palette = make_palette()
    engine = MosaicEngine(palette=palette)
    assert engine.state is EngineState.READY
    assert asyncio.run(engine.initialize()) is palette


def test_chunk_rows_must_be_positive():
    with pytest.raises(ValueError):
        MosaicEngine(palette=make_palette(), chunk_rows=0)


def test_cancel_during_palette_build():
    gate = threading.Event()
    inner = FakeRenderer({"r": RED})

    def gated(symbol):
        gate.wait(5)
        return inner(symbol)

    engine = MosaicEngine(symbols=["r"], renderer=gated)

    async def scenario():
        request = asyncio.create_task(engine.run(red_request()))
        await asyncio.sleep(0)
        assert engine.state is EngineState.INITIALIZING
        engine.cancel()
        gate.set()
        return await request

    assert asyncio.run(scenario()) == Cancelled()
    assert engine.ready
    assert engine.outcome is EngineState.CANCELLED
    assert isinstance(collect(engine, red_request())[-1], PictographicResult)
