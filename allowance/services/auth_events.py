"""Auth state change notifications.

Subscribers receive ``(event, session)`` on every auth state transition.
``session`` is the :class:`~allowance.schemas.auth.SessionInfo` after the
transition, or ``None`` once signed out.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from enum import Enum

logger = logging.getLogger(__name__)


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    USER_UPDATED = "USER_UPDATED"


Listener = Callable[[AuthEvent, object | None], Awaitable[None]]


class AuthStateNotifier:
    """Fan-out of auth events to registered async listeners."""

    def __init__(self) -> None:
        self._listeners: list[Listener] = []
        self._lock = asyncio.Lock()

    async def subscribe(self, listener: Listener) -> Callable[[], Awaitable[None]]:
        """Register ``listener`` and return a coroutine function that removes it."""
        async with self._lock:
            self._listeners.append(listener)

        async def unsubscribe() -> None:
            async with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, event: AuthEvent, session: object | None) -> int:
        """Deliver ``event`` to every listener.

        Returns the count of listeners notified successfully. A failing
        listener is logged and does not prevent delivery to the others.
        """
        async with self._lock:
            listeners = list(self._listeners)

        delivered = 0
        for listener in listeners:
            try:
                await listener(event, session)
                delivered += 1
            except Exception:
                logger.exception("Auth listener failed for %s", event.value)
        return delivered

    @property
    def listener_count(self) -> int:
        return len(self._listeners)


auth_notifier = AuthStateNotifier()
