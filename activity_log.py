"""
Callback plumbing and the activity log.

Every component takes an optional `callbacks` argument: either a dict of
callables (headless runner, tests) or an object exposing Qt signals of the
same names (GUI). Callback failures never propagate into the pipeline.
"""
import datetime
from typing import Callable, List, Optional


def emit(callbacks, name: str, *args) -> None:
    """Invoke callbacks[name](*args) or callbacks.<name>.emit(*args) if present."""
    if callbacks is None:
        return
    # Handle dict-style callbacks
    if isinstance(callbacks, dict):
        fn = callbacks.get(name)
        if callable(fn):
            try:
                fn(*args)
            except Exception as e:
                if name != "log":
                    emit_log(callbacks, f"[ERROR] '{name}' callback raised: {e}")
    # Handle object-style callbacks (Qt signals)
    elif hasattr(callbacks, name):
        try:
            getattr(callbacks, name).emit(*args)
        except Exception as e:
            if name != "log":
                emit_log(callbacks, f"[ERROR] '{name}' callback raised: {e}")


def emit_log(callbacks, msg: str) -> None:
    emit(callbacks, "log", msg)


def emit_progress(callbacks, done: int, total: int) -> None:
    emit(callbacks, "progress", done, total)


class ActivityLog:
    """
    Timestamped log lines for display.

    Keeps the most recent `max_entries` lines; `displayed()` returns only the
    tail the UI shows. Nothing here is read back by the engine.
    """

    def __init__(self, display_limit: int = 50, max_entries: int = 1000,
                 echo: Optional[Callable[[str], None]] = None,
                 clock: Callable[[], datetime.datetime] = datetime.datetime.now):
        self.display_limit = display_limit
        self.max_entries = max_entries
        self._echo = echo
        self._clock = clock
        self._entries: List[str] = []
        self._total = 0

    def add(self, msg: str) -> str:
        timestamp = self._clock().strftime("%H:%M:%S")
        entry = f"[{timestamp}] {msg}"
        self._entries.append(entry)
        self._total += 1
        # Keep last max_entries messages
        if len(self._entries) > self.max_entries:
            self._entries = self._entries[-self.max_entries:]
        if self._echo is not None:
            self._echo(entry)
        return entry

    def clear(self) -> None:
        self._entries = []
        self._total = 0

    @property
    def total(self) -> int:
        """Number of lines ever added since the last clear."""
        return self._total

    @property
    def entries(self) -> List[str]:
        return list(self._entries)

    def displayed(self) -> List[str]:
        return self._entries[-self.display_limit:] if self.display_limit > 0 else []

    @property
    def is_truncated(self) -> bool:
        return self._total > len(self.displayed())

    def as_callbacks(self) -> dict:
        return {"log": self.add}
