"""Bounded event collector shared by every diagnostic kind."""

from collections import deque
from typing import Any, Callable, Generic, TypeVar

T = TypeVar("T")


class Collector(Generic[T]):
    """Append-only FIFO buffer fed by event listeners on a page or process.

    The collector remembers every (emitter, event, handler) it installs, so
    ``detach`` removes exactly those and nothing else. Once detached, late
    events are ignored.
    """

    def __init__(self, max_entries: int):
        if max_entries < 1:
            raise ValueError(f"max_entries must be positive, got {max_entries}")
        self.max_entries = max_entries
        self._entries: deque[T] = deque(maxlen=max_entries)
        self._listeners: list[tuple[Any, str, Callable[..., Any]]] = []
        self._detached = False
        self._appended = 0

    @property
    def detached(self) -> bool:
        return self._detached

    def listen(self, emitter: Any, event: str, handler: Callable[..., Any]) -> None:
        emitter.on(event, handler)
        self._listeners.append((emitter, event, handler))

    def append(self, entry: T) -> None:
        if self._detached:
            return
        self._entries.append(entry)
        self._appended += 1

    @property
    def appended(self) -> int:
        """Total entries ever accepted, including those since evicted."""
        return self._appended

    def entries(self) -> list[T]:
        """Snapshot of the buffered entries, oldest first."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def detach(self) -> None:
        self._detached = True
        while self._listeners:
            emitter, event, handler = self._listeners.pop()
            emitter.remove_listener(event, handler)
