# --- Purpose -------------------------------------------------------------------
# First screen: the user confirms the Ollama base URI (e.g.
# http://127.0.0.1:11434 or http://<PC_LAN_IP>:11434) before chatting.
# Skipped entirely when the app is configured for the Gemini backend.

# screens/backend_screen.py
from kivymd.uix.screen import MDScreen


class BackendSetupScreen(MDScreen):
    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.name = 'backend_setup_screen'
