# --- High-level overview -------------------------------------------------------
# Kivy/KivyMD entry point of the GenUI career helper.
# It wires together:
#   - UI screens (backend setup + chat)
#   - the chat session (conversation, surface debouncer, loading guard)
#   - the content generator for the configured backend (Ollama or Gemini)
#   - the surface host whose settled surfaces are rendered as widgets

import os
# KIVY_GL_BACKEND selects the graphics backend before Kivy opens its window.
os.environ.setdefault('KIVY_GL_BACKEND', 'sdl2')
import sys

from kivy.core.window import Window
from kivy.lang import Builder
from kivy.logger import Logger
from kivy.metrics import dp, sp
from kivy.properties import BooleanProperty, ObjectProperty, StringProperty
from kivy.resources import resource_add_path
from kivy.uix.rst import RstDocument
from kivymd.app import MDApp
from kivymd.uix.label import MDLabel
from kivymd.uix.menu import MDDropdownMenu
from kivymd.uix.snackbar import MDSnackbar

# convert: Markdown → reStructuredText, for plain-text replies shown in an RstDocument.
from m2r2 import convert

# keep the focused input visible above the soft keyboard on mobile
Window.softinput_mode = "below_target"

from genui_poc import __version__
from genui_poc.a2ui import SurfaceHost
from genui_poc.catalog.custom_catalog import as_catalog
from genui_poc.config import BACKEND_GEMINI, load_settings
from genui_poc.conversation import build_system_instruction
from genui_poc.exceptions import ConfigError
from genui_poc.llm_api import GeminiContentGenerator, OllamaContentGenerator, get_llm_models
from genui_poc.screens.backend_screen import BackendSetupScreen  # noqa: F401 (KV rule)
from genui_poc.screens.chat_screen import ChatScreen, TempSpinWait  # noqa: F401
from genui_poc.session import ChatSession
from genui_poc.surface_view import GenUiSurface

# Running from a PyInstaller bundle unpacks resources into sys._MEIPASS.
if getattr(sys, 'frozen', False):
    base_path = sys._MEIPASS
else:
    base_path = os.path.dirname(os.path.abspath(__file__))
kv_file_path = os.path.join(base_path, 'main_layout.kv')
kv_files_dir = os.path.join(base_path, 'kv_files')
# lets `#:include chat_screen.kv` find the screen layouts
resource_add_path(kv_files_dir)


class GenUiPocApp(MDApp):
    title = "GenUI Army Career POC"
    ollama_uri = StringProperty("")
    selected_llm = StringProperty("")
    is_loading = BooleanProperty(False)
    llm_menu = ObjectProperty()
    tmp_spin = ObjectProperty(None)

    def build(self):
        self.settings = load_settings()
        self.ollama_uri = self.settings.ollama_uri
        self.selected_llm = self.settings.ollama_model
        self.theme_cls.primary_palette = "Lime"
        self.theme_cls.theme_style = "Light"

        self.catalog = as_catalog()
        self.host = SurfaceHost()
        self.chat_screen = None
        self.surface_widgets = []
        self.reply_widget = None
        self.session = ChatSession(
            self.host,
            on_surfaces_changed=self.show_surfaces,
            on_loading_changed=self.on_loading_changed,
            on_text_response=self.add_bot_message,
            on_error=self.on_generation_error,
            debounce_delay=self.settings.debounce_seconds,
            loading_timeout=self.settings.loading_timeout_s,
            history_window=self.settings.history_window,
        )
        root = Builder.load_file(kv_file_path)
        # created after the KV rules are loaded so the spinner rule applies
        self.tmp_spin = TempSpinWait()
        return root

    def on_start(self):
        Logger.info(f"GenUI: starting v{__version__} with {self.settings.backend} backend")
        if self.settings.backend == BACKEND_GEMINI:
            self.root.current = 'chat_screen'

    def on_stop(self):
        self.session.dispose()
        for widget in self.surface_widgets:
            widget.dispose()
        self.host.dispose()

    # --- feedback --------------------------------------------------------------

    def show_toast_msg(self, message, is_error=False):
        bg_color = (0.2, 0.6, 0.2, 1) if not is_error else (0.8, 0.2, 0.2, 1)
        MDSnackbar(
            MDLabel(
                text=message,
                font_style="Subtitle1",
            ),
            md_bg_color=bg_color,
            y=dp(24),
            pos_hint={"center_x": 0.5},
            duration=3,
        ).open()

    # --- navigation --------------------------------------------------------------

    def go_to_chat(self, instance, ollama_uri_widget):
        ollama_uri = ollama_uri_widget.text.strip()
        if ollama_uri:
            self.ollama_uri = ollama_uri.rstrip("/")
            ollama_uri_widget.text = ""
        else:
            self.show_toast_msg("Using default Ollama URL")
        self.root.current = 'chat_screen'

    def go_back_to_setup(self, instance):
        self.root.current = 'backend_setup_screen'

    def update_chat_welcome(self, screen_instance):
        """Called when the chat screen is shown: pick a model and start talking."""
        self.chat_screen = screen_instance
        if self.settings.backend == BACKEND_GEMINI:
            screen_instance.ids.llm_menu.text = self.settings.gemini_model
        else:
            self._build_llm_menu(screen_instance)
        try:
            self.start_conversation()
        except ConfigError as e:
            Logger.error(f"GenUI: {e}")
            self.show_toast_msg(str(e), is_error=True)

    def _build_llm_menu(self, screen_instance):
        ollama_models = get_llm_models(self.ollama_uri)
        menu_items = [
            {
                "text": f"{model_name}",
                "leading_icon": "robot-happy",
                "on_release": lambda x=f"{model_name}": self.llm_menu_callback(x, screen_instance),
                "font_size": sp(24),
            } for model_name in ollama_models
        ]
        self.llm_menu = MDDropdownMenu(
            caller=screen_instance.ids.llm_menu,
            items=menu_items,
        )
        if self.selected_llm not in ollama_models:
            if ollama_models:
                self.selected_llm = ollama_models[0]
            else:
                Logger.warning(f"GenUI: no Ollama model found at {self.ollama_uri}")
                self.show_toast_msg("No Ollama model found", is_error=True)
                self.selected_llm = ""
        screen_instance.ids.llm_menu.text = self.selected_llm or "None"

    def llm_menu_callback(self, text_item, screen):
        self.llm_menu.dismiss()
        self.selected_llm = text_item
        screen.ids.llm_menu.text = self.selected_llm
        if self.session.conversation is not None:
            self.session.conversation.content_generator.model = text_item

    def open_llm_menu(self, button):
        if self.llm_menu is not None:
            self.llm_menu.caller = button
            self.llm_menu.open()

    # --- conversation ------------------------------------------------------------

    def make_content_generator(self):
        instruction = build_system_instruction(self.settings.system_instruction, self.catalog)
        if self.settings.backend == BACKEND_GEMINI:
            self.settings.validate()
            return GeminiContentGenerator(
                self.settings.gemini_api_key, self.settings.gemini_model, instruction
            )
        return OllamaContentGenerator(self.ollama_uri, self.selected_llm, instruction)

    def start_conversation(self):
        self.session.start(self.make_content_generator())

    def send_message(self, button_instance, chat_input_widget):
        user_message = chat_input_widget.text.strip()
        if not user_message:
            self.show_toast_msg("Please type a message!", is_error=True)
            return
        if not self.session.send(user_message):
            self.show_toast_msg("No model connected", is_error=True)
            return
        chat_input_widget.text = ""

    def on_generation_error(self, error):
        self.show_toast_msg(str(error), is_error=True)

    # --- surfaces ----------------------------------------------------------------

    def show_surfaces(self, surface_ids):
        """Rebuild the surface list; called only when the session settles."""
        if self.chat_screen is None:
            return
        surface_list = self.chat_screen.ids.surface_list
        for widget in self.surface_widgets:
            widget.dispose()
            surface_list.remove_widget(widget)
        self.surface_widgets = [
            GenUiSurface(self.host, self.catalog, surface_id)
            for surface_id in surface_ids
        ]
        for widget in self.surface_widgets:
            surface_list.add_widget(widget)
        self.chat_screen.scroll_to_top()

    def add_bot_message(self, msg_to_add):
        if self.chat_screen is None:
            return
        reply_box = self.chat_screen.ids.reply_box
        if self.reply_widget is not None:
            reply_box.remove_widget(self.reply_widget)
        self.reply_widget = RstDocument(
            text=convert(msg_to_add),
            size_hint_y=None,
            height=dp(120),
            background_color=self.theme_cls.bg_normal,
        )
        reply_box.add_widget(self.reply_widget)

    def on_loading_changed(self, is_loading):
        self.is_loading = is_loading
        if self.chat_screen is None:
            return
        if is_loading:
            self.chat_screen.show_spinner(self.tmp_spin)
        else:
            self.chat_screen.hide_spinner(self.tmp_spin)


def main():
    GenUiPocApp().run()


if __name__ == '__main__':
    main()
