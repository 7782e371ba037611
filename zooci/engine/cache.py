from __future__ import annotations

import threading
import traceback
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Optional


@dataclass(frozen=True)
class DownloadOutcome:
    model_id: str
    path: Optional[Path] = None
    error: Optional[str] = None
    traceback: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.path is not None


class DownloadCache:
    """Model id -> download outcome, for the lifetime of one run.

    The first recorded outcome for an id is kept; a cached failure is
    returned to every later caller without trying again.
    """

    def __init__(self) -> None:
        self._outcomes: Dict[str, DownloadOutcome] = {}
        self._lock = threading.Lock()
        self.attempts: Dict[str, int] = {}

    def get(self, model_id: str) -> Optional[DownloadOutcome]:
        with self._lock:
            return self._outcomes.get(model_id)

    def __contains__(self, model_id: str) -> bool:
        return self.get(model_id) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def record(self, outcome: DownloadOutcome) -> DownloadOutcome:
        with self._lock:
            return self._outcomes.setdefault(outcome.model_id, outcome)

    def fetch(self, model_id: str, download: Callable[[], Path]) -> DownloadOutcome:
        cached = self.get(model_id)
        if cached is not None:
            return cached
        with self._lock:
            self.attempts[model_id] = self.attempts.get(model_id, 0) + 1
        try:
            outcome = DownloadOutcome(model_id, path=Path(download()))
        except Exception as e:
            outcome = DownloadOutcome(model_id, error=f"{type(e).__name__}: {e}", traceback=traceback.format_exc())
        return self.record(outcome)

