# --- Purpose -------------------------------------------------------------------
# The chat screen: the settled surface on top, the text input underneath.
#
# The widget tree is declared in `kv_files/chat_screen.kv`; this module holds
# the Python classes the KV rules attach to.

# screens/chat_screen.py
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.screen import MDScreen


class TempSpinWait(MDBoxLayout):
    """Spinner row shown while the model is working on a reply."""


class ChatScreen(MDScreen):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # ScreenManager refers to this screen by name
        self.name = 'chat_screen'

    def show_spinner(self, spinner):
        status_box = self.ids.status_box
        if spinner.parent is None:
            status_box.add_widget(spinner)

    def hide_spinner(self, spinner):
        if spinner is not None and spinner.parent is not None:
            spinner.parent.remove_widget(spinner)

    def scroll_to_top(self):
        self.ids.surface_scroll.scroll_y = 1
