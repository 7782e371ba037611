"""Background check that the engine runtimes can be imported.

A worker thread verifies each registered engine and pushes ``ProgressEvent``
objects onto a queue; the caller drains the queue until the ``done`` event.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
import queue
import threading
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, Optional

from tqdm import tqdm

from ..models.registry import list_engines, runtime_module

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    engine: str = ""
    runtime: str = ""
    available: bool = False
    detail: str = ""
    done: bool = False


class EngineInstaller:
    def __init__(self, engines: Optional[Iterable[str]] = None, *, import_runtimes: bool = True) -> None:
        self.engines = list(engines if engines is not None else list_engines())
        self.import_runtimes = import_runtimes
        self.events: "queue.Queue[ProgressEvent]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def _check(self, engine: str) -> ProgressEvent:
        runtime = runtime_module(engine) or ""
        if not runtime:
            return ProgressEvent(engine, runtime, False, "unknown engine")
        if importlib.util.find_spec(runtime) is None:
            return ProgressEvent(engine, runtime, False, f"module '{runtime}' is not installed")
        if self.import_runtimes:
            try:
                mod = importlib.import_module(runtime)
            except Exception as e:
                return ProgressEvent(engine, runtime, False, f"import failed: {e}")
            version = getattr(mod, "__version__", "")
            return ProgressEvent(engine, runtime, True, f"{runtime} {version}".strip())
        return ProgressEvent(engine, runtime, True, runtime)

    def _worker(self) -> None:
        try:
            for engine in self.engines:
                self.events.put(self._check(engine))
        finally:
            self.events.put(ProgressEvent(done=True))

    def start(self) -> "EngineInstaller":
        self._thread = threading.Thread(target=self._worker, name="zooci-engine-check", daemon=True)
        self._thread.start()
        return self

    def iter_events(self) -> Iterator[ProgressEvent]:
        if self._thread is None:
            self.start()
        while True:
            event = self.events.get()
            if event.done:
                break
            yield event
        assert self._thread is not None
        self._thread.join()

    def run(self, progress: bool = False) -> Dict[str, ProgressEvent]:
        """Verify every engine and return the events by engine name."""
        results: Dict[str, ProgressEvent] = {}
        with tqdm(total=len(self.engines), desc="engines", disable=not progress) as bar:
            for event in self.iter_events():
                results[event.engine] = event
                if not event.available:
                    logger.warning("Engine %s unavailable: %s", event.engine, event.detail)
                bar.update(1)
        return results
