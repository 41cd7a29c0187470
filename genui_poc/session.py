# --- Purpose -------------------------------------------------------------------
# The chat screen's state without any widgets: which surfaces are shown, whether
# a reply is loading, and the conversation that feeds both.
#
# Surface events from the conversation go through the debouncer; only a settle
# changes the shown surface list (single-surface: the settled id replaces the
# previous one), and only a settle asks the view to rebuild. The loading guard
# opens on every request and closes on a settle, a surface update, or timeout.

from kivy.logger import Logger

from genui_poc.conversation import GenUiConversation
from genui_poc.debounce import SurfaceDebouncer
from genui_poc.loading import LoadingGuard


class ChatSession:
    def __init__(self, host, on_surfaces_changed=None, on_loading_changed=None,
                 on_text_response=None, on_error=None, debounce_delay=0.15,
                 loading_timeout=45.0, history_window=6, clock=None):
        self.host = host
        self.on_surfaces_changed = on_surfaces_changed
        self.on_loading_changed = on_loading_changed
        self.on_text_response = on_text_response
        self.on_error = on_error
        self.history_window = history_window
        self.surface_ids = []
        self.conversation = None
        self.debouncer = SurfaceDebouncer(self.on_surface_settled, delay=debounce_delay,
                                          clock=clock)
        self.loading_guard = LoadingGuard(self._loading_changed, timeout=loading_timeout,
                                          clock=clock)

    @property
    def is_loading(self):
        return self.loading_guard.is_loading

    def start(self, content_generator):
        """Talk to `content_generator` from now on; any previous conversation ends."""
        if self.conversation is not None:
            self.conversation.dispose()
        self.conversation = GenUiConversation(
            content_generator=content_generator,
            host=self.host,
            on_surface_added=self.on_surface_added,
            on_surface_updated=self.on_surface_updated,
            on_surface_removed=self.on_surface_removed,
            on_text_response=self.on_text_response,
            on_user_action=self.on_user_action,
            on_error=self.on_error,
            history_window=self.history_window,
        )
        return self.conversation

    def send(self, text):
        """Send a user message; False when there is nothing to send or no model."""
        text = (text or "").strip()
        if not text or self.conversation is None:
            return False
        self.conversation.send_request(text)
        self.loading_guard.begin()
        return True

    def on_user_action(self, action):
        # the action goes back to the model, so another reply is on its way
        self.loading_guard.begin()

    def on_surface_added(self, update):
        self.debouncer.notify(update.surface_id)

    def on_surface_updated(self, update):
        self.loading_guard.settle()
        self.debouncer.notify(update.surface_id)

    def on_surface_removed(self, update):
        if update.surface_id in self.surface_ids:
            self._set_surfaces([])

    def on_surface_settled(self, surface_id):
        Logger.debug(f"GenUI: surface {surface_id} settled")
        self._set_surfaces([surface_id])
        self.loading_guard.settle()

    def _set_surfaces(self, surface_ids):
        self.surface_ids = list(surface_ids)
        if self.on_surfaces_changed is not None:
            self.on_surfaces_changed(list(self.surface_ids))

    def _loading_changed(self, is_loading):
        if self.on_loading_changed is not None:
            self.on_loading_changed(is_loading)

    def dispose(self):
        self.debouncer.dispose()
        self.loading_guard.dispose()
        if self.conversation is not None:
            self.conversation.dispose()
        self.surface_ids = []
