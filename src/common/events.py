"""Minimal observer hook used for operation and catalog notifications."""

from __future__ import annotations

import logging
from typing import Any, Callable, List

logger = logging.getLogger(__name__)


class EventHook:
    """An ordered list of callbacks fired with the same arguments.

    Subscribers are called synchronously in registration order. A subscriber
    that raises is logged and skipped so one broken listener cannot stall an
    install that is already half way through.
    """

    def __init__(self, name: str):
        self.name = name
        self._handlers: List[Callable[..., Any]] = []

    def subscribe(self, handler: Callable[..., Any]) -> Callable[..., Any]:
        """Register a handler; returns it so this can be used as a decorator."""
        self._handlers.append(handler)
        return handler

    def unsubscribe(self, handler: Callable[..., Any]) -> None:
        """Remove a handler if it is registered."""
        if handler in self._handlers:
            self._handlers.remove(handler)

    def __iadd__(self, handler: Callable[..., Any]) -> "EventHook":
        self.subscribe(handler)
        return self

    def __isub__(self, handler: Callable[..., Any]) -> "EventHook":
        self.unsubscribe(handler)
        return self

    def __len__(self) -> int:
        return len(self._handlers)

    def fire(self, *args: Any, **kwargs: Any) -> None:
        """Invoke every handler with the given arguments."""
        for handler in list(self._handlers):
            try:
                handler(*args, **kwargs)
            except Exception:  # pylint: disable=broad-exception-caught
                logger.exception("Handler for event '%s' failed", self.name)
