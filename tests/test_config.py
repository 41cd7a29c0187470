"""
Tests for genui_poc.config (environment-driven settings).
"""

import pytest

from genui_poc.config import (
    BACKEND_GEMINI,
    BACKEND_OLLAMA,
    DEFAULT_GEMINI_MODEL,
    DEFAULT_OLLAMA_URI,
    Settings,
    load_settings,
)
from genui_poc.exceptions import ConfigError


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})
        assert settings.backend == BACKEND_OLLAMA
        assert settings.ollama_uri == DEFAULT_OLLAMA_URI
        assert settings.gemini_model == DEFAULT_GEMINI_MODEL
        assert settings.debounce_ms == 150
        assert settings.debounce_seconds == pytest.approx(0.15)
        assert settings.loading_timeout_s == 45.0
        assert settings.history_window == 6
        assert "Army career helper" in settings.system_instruction

    def test_overrides(self):
        settings = load_settings({
            "GENUI_BACKEND": " Gemini ",
            "OLLAMA_URI": "http://10.0.0.5:11434/",
            "OLLAMA_MODEL": "llama3",
            "GEMINI_API_KEY": "secret",
            "GENUI_DEBOUNCE_MS": "300",
            "GENUI_LOADING_TIMEOUT_S": "12.5",
            "GENUI_HISTORY_WINDOW": "10",
        })
        assert settings.backend == BACKEND_GEMINI
        assert settings.ollama_uri == "http://10.0.0.5:11434"
        assert settings.ollama_model == "llama3"
        assert settings.gemini_api_key == "secret"
        assert settings.debounce_seconds == pytest.approx(0.3)
        assert settings.loading_timeout_s == 12.5
        assert settings.history_window == 10

    @pytest.mark.parametrize("raw", ["soon", "", "-5", "0"])
    def test_bad_numbers_fall_back(self, raw):
        settings = load_settings({"GENUI_DEBOUNCE_MS": raw, "GENUI_LOADING_TIMEOUT_S": raw})
        assert settings.debounce_ms == 150
        assert settings.loading_timeout_s == 45.0


class TestValidate:
    def test_ollama_is_valid(self):
        assert Settings().validate().backend == BACKEND_OLLAMA

    def test_gemini_needs_key(self):
        with pytest.raises(ConfigError):
            Settings(backend=BACKEND_GEMINI).validate()

    def test_gemini_with_key(self):
        Settings(backend=BACKEND_GEMINI, gemini_api_key="secret").validate()

    def test_unknown_backend(self):
        with pytest.raises(ConfigError):
            Settings(backend="openai").validate()
