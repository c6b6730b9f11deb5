"""Change notification channel."""

from __future__ import annotations

from typing import Callable

import structlog

logger = structlog.get_logger(__name__)

ChangeHandler = Callable[[], None]


class ChangeSignal:
    """Multi-consumer signal fired when the configuration changes.

    Handlers run synchronously in the emitting callback. The order in which
    subscribers are called is unspecified. A handler that raises is logged
    and does not stop the others.
    """

    def __init__(self) -> None:
        self._handlers: list[ChangeHandler] = []

    def subscribe(self, handler: ChangeHandler) -> None:
        """Register a handler. Subscribing the same handler twice is a no-op."""
        if handler not in self._handlers:
            self._handlers.append(handler)

    def unsubscribe(self, handler: ChangeHandler) -> None:
        """Remove a handler. Unknown handlers are ignored."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def emit(self) -> None:
        for handler in list(self._handlers):
            try:
                handler()
            except Exception as e:
                logger.error(
                    "Change handler failed",
                    handler=getattr(handler, "__qualname__", repr(handler)),
                    error=str(e),
                    exc_info=True,
                )

    def __len__(self) -> int:
        return len(self._handlers)
