# crave/playback/player_state.py
"""
Playback state machine for a single feed item.

    loading -> ready_to_play <-> (playing <-> paused)
       ^            any of them -> error -> (recovery) -> loading

`reduce` is pure: it takes the current state and an event and returns the
next state plus the side effects the player must carry out. PLAY and PAUSE
are only emitted when the derived playing state changes, so feeding the same
event twice does nothing the second time.
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

DEFAULT_MAX_RECOVERY_ATTEMPTS = 3


class Phase(str, Enum):
    LOADING = "loading"
    READY_TO_PLAY = "ready_to_play"
    PLAYING = "playing"
    PAUSED = "paused"
    ERROR = "error"


class EventKind(str, Enum):
    MOUNTED = "mounted"
    READY = "ready"
    PLAYER_ERROR = "player_error"
    LOAD_TIMEOUT = "load_timeout"
    PLAY_CALL_FAILED = "play_call_failed"
    ACTIVE_CHANGED = "active_changed"
    PLAY_ALLOWED = "play_allowed"
    APP_STATE = "app_state"
    TAP = "tap"
    RECOVERY_DUE = "recovery_due"
    UNMOUNT = "unmount"


class Effect(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    START_LOAD_TIMER = "start_load_timer"
    CANCEL_LOAD_TIMER = "cancel_load_timer"
    SCHEDULE_RECOVERY = "schedule_recovery"
    RELOAD = "reload"


@dataclass(frozen=True)
class PlayerEvent:
    kind: EventKind
    value: bool = True


@dataclass(frozen=True)
class PlayerState:
    phase: Phase = Phase.LOADING
    is_active: bool = False
    play_allowed: bool = True
    foreground: bool = True
    user_paused: bool = False
    recovery_attempts: int = 0
    max_recovery_attempts: int = DEFAULT_MAX_RECOVERY_ATTEMPTS
    mounted: bool = True

    @property
    def loaded(self) -> bool:
        return self.phase in (Phase.READY_TO_PLAY, Phase.PLAYING, Phase.PAUSED)

    @property
    def is_playing(self) -> bool:
        return self.phase == Phase.PLAYING


_FAILURES = (EventKind.PLAYER_ERROR, EventKind.LOAD_TIMEOUT, EventKind.PLAY_CALL_FAILED)


def should_play(state: PlayerState) -> bool:
    return (
        state.mounted
        and state.loaded
        and state.is_active
        and state.play_allowed
        and state.foreground
        and not state.user_paused
    )


def reduce(state: PlayerState, event: PlayerEvent) -> tuple[PlayerState, list[Effect]]:
    if not state.mounted:
        return state, []

    kind = event.kind

    if kind == EventKind.MOUNTED:
        if state.phase != Phase.LOADING:
            return state, []
        return state, [Effect.START_LOAD_TIMER]

    if kind == EventKind.READY:
        if state.phase != Phase.LOADING:
            return state, []
        return _settle(replace(state, phase=Phase.READY_TO_PLAY), [Effect.CANCEL_LOAD_TIMER])

    if kind in _FAILURES:
        return _fail(state)

    if kind == EventKind.RECOVERY_DUE:
        if state.phase != Phase.ERROR:
            return state, []
        return replace(state, phase=Phase.LOADING), [Effect.RELOAD, Effect.START_LOAD_TIMER]

    if kind == EventKind.ACTIVE_CHANGED:
        if event.value == state.is_active:
            return state, []
        # Becoming active again clears a pause the user made earlier.
        user_paused = False if event.value else state.user_paused
        return _settle(replace(state, is_active=event.value, user_paused=user_paused), [])

    if kind == EventKind.PLAY_ALLOWED:
        return _settle(replace(state, play_allowed=event.value), [])

    if kind == EventKind.APP_STATE:
        return _settle(replace(state, foreground=event.value), [])

    if kind == EventKind.TAP:
        if state.phase == Phase.PLAYING:
            return _settle(replace(state, user_paused=True), [])
        if state.phase == Phase.PAUSED and state.user_paused:
            return _settle(replace(state, user_paused=False), [])
        return state, []

    if kind == EventKind.UNMOUNT:
        effects = [Effect.CANCEL_LOAD_TIMER]
        if state.is_playing:
            effects.append(Effect.PAUSE)
        phase = Phase.PAUSED if state.is_playing else state.phase
        return replace(state, phase=phase, mounted=False), effects

    raise ValueError(f"Unknown player event: {kind}")


def _settle(state: PlayerState, effects: list[Effect]) -> tuple[PlayerState, list[Effect]]:
    """Move between ready/playing/paused to match `should_play`."""
    if not state.loaded:
        return state, effects

    if should_play(state):
        if state.is_playing:
            return state, effects
        return replace(state, phase=Phase.PLAYING), effects + [Effect.PLAY]

    if state.is_playing:
        return replace(state, phase=Phase.PAUSED), effects + [Effect.PAUSE]
    return state, effects


def _fail(state: PlayerState) -> tuple[PlayerState, list[Effect]]:
    if state.phase == Phase.ERROR:
        return state, []

    effects = [Effect.CANCEL_LOAD_TIMER]
    if state.is_playing:
        effects.append(Effect.PAUSE)

    attempts = state.recovery_attempts
    if attempts < state.max_recovery_attempts:
        attempts += 1
        effects.append(Effect.SCHEDULE_RECOVERY)

    return replace(state, phase=Phase.ERROR, recovery_attempts=attempts), effects
