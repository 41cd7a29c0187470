# --- Purpose -------------------------------------------------------------------
# Error types shared across the GenUI client. Generator failures travel to the
# UI through `on_error` callbacks; malformed A2UI messages are raised by the
# parser and skipped by the surface host.


class GenUiError(Exception):
    """Base class for every error raised by this app."""


class ConfigError(GenUiError):
    """A setting is missing or cannot be used (e.g. no Gemini API key)."""


class GenerationError(GenUiError):
    """The content generator failed: connection, HTTP status or bad stream."""

    def __init__(self, message, backend=None):
        super().__init__(message)
        self.backend = backend


class A2uiMessageError(GenUiError):
    """An A2UI message could not be understood."""

    def __init__(self, message, payload=None):
        super().__init__(message)
        self.payload = payload
