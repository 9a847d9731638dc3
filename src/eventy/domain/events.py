"""Session event bus.

Hey future me - this replaces the old "global mutable auth context". AuthSession OWNS the
Session and publishes SESSION_CHANGED; ApiClient only ever EMITS SESSION_INVALIDATED when
the backend says 401/403 - it never touches the Session itself. Everyone gets the bus via
constructor injection, there is no module-level instance.

emit() awaits coroutine listeners one after another in registration order. That ordering
is what lets ApiClient guarantee "logout finished before the 403 reaches the caller".
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[[Any], Awaitable[None] | None]


class AuthEvent(str, Enum):
    """Events published on the session bus."""

    SESSION_CHANGED = "session-changed"  # payload: Session | None
    SESSION_INVALIDATED = "session-invalidated"  # payload: status code


class AuthEventBus:
    """Tiny async observer for session lifecycle events."""

    def __init__(self) -> None:
        self._listeners: dict[AuthEvent, list[Listener]] = {}

    def subscribe(self, event: AuthEvent, listener: Listener) -> Callable[[], None]:
        """Register a listener (sync or async).

        Returns:
            Callable that removes the listener again (safe to call twice)
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def listener_count(self, event: AuthEvent) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: AuthEvent, payload: Any = None) -> None:
        """Deliver an event to every listener, awaiting async ones in order.

        A failing listener is logged and does not stop the others.
        """
        # Copy: listeners may unsubscribe themselves while we iterate
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Listener for %s failed", event.value)
