from collections import deque
from enum import Enum
from typing import Callable, List


class SessionEvent(str, Enum):
    PRINCIPAL_CHANGED = "principal_changed"
    ROLES_LOADED = "roles_loaded"
    OVERRIDES_LOADED = "overrides_loaded"
    PREVIEW_CHANGED = "preview_changed"
    CLOSED = "closed"


Listener = Callable[[SessionEvent], None]


class EventDispatcher:
    """
    Synchronous observer list.

    Events raised while a dispatch is running are queued and delivered after
    the current one, so listeners never re-enter each other.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._queue: deque = deque()
        self._dispatching = False

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def notify(self, event: SessionEvent) -> None:
        self._queue.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._queue:
                current = self._queue.popleft()
                for listener in list(self._listeners):
                    listener(current)
        finally:
            self._queue.clear()
            self._dispatching = False
