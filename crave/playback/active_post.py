# crave/playback/active_post.py
"""
The id of the one post allowed to play.

A single ActivePostSignal is shared by every player of a feed. The feed list
writes it from visibility callbacks; players read it and subscribe to
changes. Only the most recently acquired writer may change the value.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Callable, Iterator, Optional

from crave.app.domain.errors import ActivePostScopeError

logger = logging.getLogger(__name__)

Listener = Callable[[Optional[str]], None]


class ActivePostWriter:
    def __init__(self, signal: "ActivePostSignal", owner: str):
        self._signal = signal
        self.owner = owner

    @property
    def is_current(self) -> bool:
        return self._signal._writer is self

    def set_active(self, post_id: Optional[str]) -> None:
        if not self.is_current:
            logger.warning("Dropped active post write from superseded writer %s", self.owner)
            return
        self._signal.set_active(post_id)

    def release(self) -> None:
        """Discard the active id if this writer still owns the signal."""
        if not self.is_current:
            return
        self._signal._writer = None
        self._signal.set_active(None)


class ActivePostSignal:
    def __init__(self, initial: Optional[str] = None):
        self._active = initial
        self._listeners: list[Listener] = []
        self._writer: Optional[ActivePostWriter] = None

    def get_active(self) -> Optional[str]:
        return self._active

    def set_active(self, post_id: Optional[str]) -> None:
        if post_id == self._active:
            return
        previous, self._active = self._active, post_id
        logger.debug("Active post %s -> %s", previous, post_id)
        for listener in list(self._listeners):
            listener(post_id)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def acquire_writer(self, owner: str) -> ActivePostWriter:
        if self._writer is not None:
            logger.info("Active post writer %s superseded by %s", self._writer.owner, owner)
        self._writer = ActivePostWriter(self, owner)
        return self._writer


_current_signal: ContextVar[Optional[ActivePostSignal]] = ContextVar("active_post_signal", default=None)


@contextmanager
def active_post_scope(signal: Optional[ActivePostSignal] = None) -> Iterator[ActivePostSignal]:
    signal = signal or ActivePostSignal()
    token = _current_signal.set(signal)
    try:
        yield signal
    finally:
        _current_signal.reset(token)


def use_active_post() -> ActivePostSignal:
    signal = _current_signal.get()
    if signal is None:
        raise ActivePostScopeError()
    return signal
