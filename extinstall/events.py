"""
Event Bus - Registration Notifications

A small observer scoped to one Installer. Registry mutations are announced
here so host code can log or react to them; filters let host code adjust a
handful of values (such as the nonce name) without subclassing.
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

REGISTERED = "registered"
DEREGISTERED = "deregistered"


@dataclass
class Event:
    """A single emitted notification."""
    timestamp: str
    name: str
    event_type: str
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"event": self.event_type, **self.payload}


Listener = Callable[[Event], None]
Filter = Callable[[Any], Any]


class EventBus:
    """
    Observer with ``on``/``emit`` for notifications and
    ``add_filter``/``apply_filters`` for overridable values.

    Event names are namespaced with the hook prefix, e.g.
    ``extinstall/acme/registered``.
    """

    def __init__(self, prefix: str = "", history_size: int = 100):
        self.prefix = prefix
        self.history: List[Event] = []
        self._history_size = history_size
        self._listeners: Dict[str, List[Listener]] = {}
        self._filters: Dict[str, List[Filter]] = {}
        self._lock = threading.Lock()

    def qualified_name(self, event_type: str) -> str:
        if self.prefix:
            return f"extinstall/{self.prefix}/{event_type}"
        return f"extinstall/{event_type}"

    def on(self, event_type: str, callback: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(event_type, []).append(callback)

    def off(self, event_type: str, callback: Listener) -> bool:
        with self._lock:
            listeners = self._listeners.get(event_type, [])
            if callback in listeners:
                listeners.remove(callback)
                return True
        return False

    def emit(self, event_type: str, payload: Optional[Dict[str, Any]] = None) -> Event:
        """
        Record an event and deliver it to every listener for its type.

        A listener that raises is logged and skipped; it never aborts the
        operation that emitted the event.
        """
        event = Event(
            timestamp=_now(),
            name=self.qualified_name(event_type),
            event_type=event_type,
            payload=payload or {},
        )
        with self._lock:
            self.history.append(event)
            del self.history[:-self._history_size]
            listeners = list(self._listeners.get(event_type, []))

        logger.debug(f"Emitting {event.name}: {event.payload}")
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception(f"Listener for '{event.name}' failed")
        return event

    def add_filter(self, name: str, callback: Filter) -> None:
        with self._lock:
            self._filters.setdefault(name, []).append(callback)

    def apply_filters(self, name: str, value: Any) -> Any:
        """Pass ``value`` through every filter registered under ``name``, in order."""
        with self._lock:
            filters = list(self._filters.get(name, []))
        for callback in filters:
            value = callback(value)
        return value


def _now() -> str:
    """Get current timestamp in ISO format."""
    return datetime.now(timezone.utc).isoformat()
