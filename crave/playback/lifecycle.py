from __future__ import annotations

import logging
from typing import Callable

logger = logging.getLogger(__name__)

ForegroundListener = Callable[[bool], None]


class AppLifecycle:
    """Foreground/background state of the host app, pushed in by the platform layer."""

    def __init__(self, foreground: bool = True):
        self._foreground = foreground
        self._listeners: list[ForegroundListener] = []

    @property
    def foreground(self) -> bool:
        return self._foreground

    def set_foreground(self, foreground: bool) -> None:
        if foreground == self._foreground:
            return
        self._foreground = foreground
        logger.info("App moved to %s", "foreground" if foreground else "background")
        for listener in list(self._listeners):
            listener(foreground)

    def subscribe(self, listener: ForegroundListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe
