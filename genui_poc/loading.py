# --- Purpose -------------------------------------------------------------------
# Loading state for the chat screen.
#
# The flag is raised when the user submits a message or presses a generated
# widget, and lowered when a surface settles. Every loading episode is bounded
# by a timeout that forces the guard back to idle when the backend never answers.

import enum

from kivy.clock import Clock
from kivy.logger import Logger

DEFAULT_LOADING_TIMEOUT = 45.0


class LoadingState(enum.Enum):
    IDLE = "idle"
    LOADING = "loading"


class LoadingGuard:
    """Two-state machine with one authoritative timeout timer.

    `on_change(is_loading)` is called on every real transition, never on
    a repeated `begin()` or `settle()`.
    """

    def __init__(self, on_change=None, timeout=DEFAULT_LOADING_TIMEOUT, clock=None):
        self.on_change = on_change
        self.timeout = timeout
        self._clock = clock if clock is not None else Clock
        self._state = LoadingState.IDLE
        self._timer = None
        self._disposed = False

    @property
    def state(self):
        return self._state

    @property
    def is_loading(self):
        return self._state is LoadingState.LOADING

    def begin(self):
        if self._disposed:
            return
        self._cancel_timer()
        self._timer = self._clock.schedule_once(self._on_timeout, self.timeout)
        if self._state is LoadingState.LOADING:
            # already waiting: only the timeout restarts
            return
        self._transition(LoadingState.LOADING)

    def settle(self):
        if self._disposed or self._state is LoadingState.IDLE:
            return
        self._cancel_timer()
        self._transition(LoadingState.IDLE)

    def _on_timeout(self, dt):
        self._timer = None
        if self._disposed or self._state is LoadingState.IDLE:
            return
        Logger.warning(
            f"GenUI: no surface after {self.timeout:.0f}s, clearing loading state"
        )
        self._transition(LoadingState.IDLE)

    def _transition(self, new_state):
        self._state = new_state
        if self.on_change is not None:
            self.on_change(new_state is LoadingState.LOADING)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def dispose(self):
        self._disposed = True
        self._cancel_timer()
