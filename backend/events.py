"""In-process event channel that the front-end polls for progress updates."""

from __future__ import annotations

import threading
from collections import deque
from typing import Any

IMPORT_PROGRESS = "import-progress"


class ProgressFeed:
    """Bounded ring buffer of events, each tagged with an increasing ``seq``."""

    def __init__(self, capacity: int = 1000) -> None:
        self._events: deque[dict[str, Any]] = deque(maxlen=max(1, capacity))
        self._lock = threading.Lock()
        self._seq = 0

    def publish(self, event: str, payload: dict[str, Any]) -> int:
        with self._lock:
            self._seq += 1
            self._events.append({"seq": self._seq, "event": event, "payload": payload})
            return self._seq

    def since(self, seq: int = 0) -> dict[str, Any]:
        with self._lock:
            events = [e for e in self._events if e["seq"] > seq]
            return {"events": events, "next": self._seq}
