# --- Purpose -------------------------------------------------------------------
# Collapses bursts of "surface added/updated" notifications into one settle.
#
# A streamed model reply touches the same surface many times while it is being
# assembled. Refreshing the surface list on every chunk would rebuild the
# widget tree over and over, so we hold a single cancellable Clock event and
# restart it on every notification. Only the last event of a burst fires.

from kivy.clock import Clock
from kivy.logger import Logger

DEFAULT_DEBOUNCE_SECONDS = 0.15


class SurfaceDebouncer:
    """Emit `on_settle(surface_id)` once per quiet period, with the last id seen."""

    def __init__(self, on_settle, delay=DEFAULT_DEBOUNCE_SECONDS, clock=None):
        self.on_settle = on_settle
        self.delay = delay
        # Clock: anything exposing Kivy's `schedule_once(callback, timeout)`.
        self._clock = clock if clock is not None else Clock
        self._pending_surface_id = None
        self._timer = None
        self._disposed = False

    @property
    def pending_surface_id(self):
        return self._pending_surface_id

    @property
    def is_pending(self):
        return self._timer is not None

    def notify(self, surface_id):
        if self._disposed or not surface_id:
            return
        self._pending_surface_id = surface_id
        if self._timer is not None:
            self._timer.cancel()
        self._timer = self._clock.schedule_once(self._fire, self.delay)

    def _fire(self, dt):
        self._timer = None
        if self._disposed:
            return
        surface_id = self._pending_surface_id
        self._pending_surface_id = None
        if surface_id is None:
            return
        Logger.debug(f"GenUI: surface {surface_id} settled")
        self.on_settle(surface_id)

    def dispose(self):
        """Cancel the pending timer; nothing fires after this."""
        self._disposed = True
        self._pending_surface_id = None
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
