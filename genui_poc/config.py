# --- Purpose -------------------------------------------------------------------
# Runtime settings for the GenUI client, read from environment variables.
#
# The app only needs a handful of knobs: which backend answers (a local Ollama
# server or Google Gemini), where it lives, and the two timings that drive the
# surface debounce and the loading safety timeout.

import os
from dataclasses import dataclass, field

from kivy.logger import Logger

from genui_poc.exceptions import ConfigError

BACKEND_OLLAMA = "ollama"
BACKEND_GEMINI = "gemini"

DEFAULT_OLLAMA_URI = "http://localhost:11434"
DEFAULT_GEMINI_MODEL = "models/gemini-2.5-flash"
DEFAULT_DEBOUNCE_MS = 150
DEFAULT_LOADING_TIMEOUT_S = 45.0
DEFAULT_HISTORY_WINDOW = 6

DEFAULT_SYSTEM_INSTRUCTION = """\
You are an Army career helper.
Goal: help the user narrow down Army careers based on interests, strengths, and constraints.
Prefer producing interactive UI (cards, buttons, lists) instead of long text.
Ask 1 short question at a time, then refine recommendations.
When showing multiple buttons or choices, always put clear spacing (margin/gap) between each button so they do not touch.
When asking how strongly the user agrees with something, or how often something applies, use a Scale component.
"""


@dataclass
class Settings:
    backend: str = BACKEND_OLLAMA
    ollama_uri: str = DEFAULT_OLLAMA_URI
    ollama_model: str = ""
    gemini_api_key: str = ""
    gemini_model: str = DEFAULT_GEMINI_MODEL
    debounce_ms: int = DEFAULT_DEBOUNCE_MS
    loading_timeout_s: float = DEFAULT_LOADING_TIMEOUT_S
    history_window: int = DEFAULT_HISTORY_WINDOW
    system_instruction: str = field(default=DEFAULT_SYSTEM_INSTRUCTION)

    @property
    def debounce_seconds(self):
        return self.debounce_ms / 1000.0

    def validate(self):
        if self.backend not in (BACKEND_OLLAMA, BACKEND_GEMINI):
            raise ConfigError(f"Unknown backend {self.backend!r}")
        if self.backend == BACKEND_GEMINI and not self.gemini_api_key:
            raise ConfigError("GEMINI_API_KEY is required for the gemini backend")
        return self


def _number(environ, name, default, cast):
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        Logger.warning(f"GenUI: invalid {name}={raw!r}, using {default}")
        return default
    if value <= 0:
        Logger.warning(f"GenUI: {name} must be positive, using {default}")
        return default
    return value


def load_settings(environ=None):
    """Build `Settings` from `environ` (defaults to `os.environ`)."""
    if environ is None:
        environ = os.environ
    return Settings(
        backend=environ.get("GENUI_BACKEND", BACKEND_OLLAMA).strip().lower(),
        ollama_uri=environ.get("OLLAMA_URI", DEFAULT_OLLAMA_URI).rstrip("/"),
        ollama_model=environ.get("OLLAMA_MODEL", ""),
        gemini_api_key=environ.get("GEMINI_API_KEY", ""),
        gemini_model=environ.get("GEMINI_MODEL", DEFAULT_GEMINI_MODEL),
        debounce_ms=_number(environ, "GENUI_DEBOUNCE_MS", DEFAULT_DEBOUNCE_MS, int),
        loading_timeout_s=_number(
            environ, "GENUI_LOADING_TIMEOUT_S", DEFAULT_LOADING_TIMEOUT_S, float
        ),
        history_window=_number(
            environ, "GENUI_HISTORY_WINDOW", DEFAULT_HISTORY_WINDOW, int
        ),
    )
