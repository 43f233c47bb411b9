from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future

from emojipic.engine import MosaicEngine, drain
from emojipic.events import Event, Request
from emojipic.palette import Palette

logger = logging.getLogger(__name__)


class MosaicWorker:
    """Hosts a MosaicEngine on a background thread with its own event loop.

    The controlling thread never blocks on a conversion: ``submit`` returns a
    future for the terminal event, and ``cancel`` posts the cancel message onto
    the worker loop where it is picked up between row chunks.
    """

    def __init__(self, engine: MosaicEngine | None = None, name: str = "emojipic-worker"):
        self.engine = engine if engine is not None else MosaicEngine()
        self.name = name
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None

    def __enter__(self) -> MosaicWorker:
        return self.start()

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> MosaicWorker:
        if self._thread is not None:
            return self
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Started %s", self.name)
        return self

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        try:
            self._loop.run_forever()
        finally:
            pending = asyncio.all_tasks(self._loop)
            for task in pending:
                task.cancel()
            if pending:
                self._loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
            self._loop.close()

    def close(self, timeout: float | None = None) -> None:
        if self._thread is None:
            return
        self.engine.cancel()
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        logger.debug("Stopped %s", self.name)
        self._thread = None
        self._loop = None

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError(f"{self.name} is not running; call start() first")
        return self._loop

    def initialize(self) -> Future[Palette]:
        return asyncio.run_coroutine_threadsafe(self.engine.initialize(), self._require_loop())

    def submit(self, request: Request, on_event: Callable[[Event], None] | None = None) -> Future[Event]:
        """Queue a request; ``on_event`` runs on the worker thread for every event.

        The engine is claimed in the first callback the worker loop runs for
        this submit, so a later ``cancel`` or ``submit`` always sees it busy.
        """
        loop = self._require_loop()
        future: Future[Event] = Future()

        def copy_outcome(task: asyncio.Task) -> None:
            if future.cancelled():
                return
            if task.cancelled():
                future.cancel()
            elif task.exception() is not None:
                future.set_exception(task.exception())
            else:
                future.set_result(task.result())

        def begin() -> None:
            if future.cancelled():
                return
            task = loop.create_task(drain(self.engine.process(request), on_event))
            task.add_done_callback(copy_outcome)

        loop.call_soon_threadsafe(begin)
        return future

    def cancel(self) -> None:
        self._require_loop().call_soon_threadsafe(self.engine.cancel)
