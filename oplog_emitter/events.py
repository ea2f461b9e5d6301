"""A small thread-safe publish/subscribe registry keyed by event name."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from logging import Logger, getLogger
from typing import Any, Callable, Optional

logger: Logger = getLogger(__name__)

Listener = Callable[..., Any]


@dataclass(frozen=True, eq=False)
class _Registration:
    listener: Listener
    once: bool = False


class EventEmitter:
    """Registry of listeners per event name.

    Listeners are called synchronously, in registration order, on the thread that emits. A listener that raises is
    logged and does not prevent the remaining listeners from running.
    """

    def __init__(self) -> None:
        self._registrations: dict[str, list[_Registration]] = {}
        self._registry_lock = threading.RLock()

    def _check_event(self, event: str) -> None:
        """Hook for subclasses restricting the accepted event names."""

    def _registered(self, event: str, listener: Listener) -> None:
        """Hook called after ``listener`` was registered for ``event``."""

    def _add(self, event: str, listener: Optional[Listener], once: bool) -> Any:
        self._check_event(event)

        def register(func: Listener) -> Listener:
            if not callable(func):
                raise TypeError(f"listener for {event!r} must be callable")
            with self._registry_lock:
                self._registrations.setdefault(event, []).append(_Registration(func, once))
            self._registered(event, func)
            return func

        if listener is None:
            return register
        return register(listener)

    def on(self, event: str, listener: Optional[Listener] = None) -> Any:
        """Register ``listener`` for every ``event``. Without a listener, returns a decorator."""
        return self._add(event, listener, once=False)

    def once(self, event: str, listener: Optional[Listener] = None) -> Any:
        """Register ``listener`` for the next ``event`` only. Without a listener, returns a decorator."""
        return self._add(event, listener, once=True)

    def off(self, event: str, listener: Listener) -> None:
        """Remove the first registration of ``listener`` for ``event``, if any."""
        with self._registry_lock:
            registrations = self._registrations.get(event, [])
            for index, registration in enumerate(registrations):
                if registration.listener == listener:
                    del registrations[index]
                    return

    def listeners(self, event: str) -> list[Listener]:
        with self._registry_lock:
            return [registration.listener for registration in self._registrations.get(event, [])]

    def emit(self, event: str, *args: Any) -> bool:
        """Call the listeners of ``event`` with ``args``. Returns False when nobody was listening."""
        with self._registry_lock:
            registrations = list(self._registrations.get(event, []))
            if any(registration.once for registration in registrations):
                self._registrations[event] = [
                    registration
                    for registration in self._registrations[event]
                    if not (registration.once and registration in registrations)
                ]

        for registration in registrations:
            try:
                registration.listener(*args)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Listener %r for event %r raised", registration.listener, event)
        return bool(registrations)
