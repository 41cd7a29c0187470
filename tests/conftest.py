"""
Shared fixtures for the GenUI client tests.

Kivy parses sys.argv and writes console logs on import; both are switched off
here before any test module imports Kivy. SDL's offscreen video driver gives
Kivy a window without a display, so catalog modules import headless; tests build
only plain Kivy widgets, never KivyMD ones (those need a running MDApp).
"""

import os

os.environ.setdefault("KIVY_NO_ARGS", "1")
os.environ.setdefault("KIVY_NO_CONSOLELOG", "1")
os.environ.setdefault("KIVY_NO_FILELOG", "1")
os.environ.setdefault("SDL_VIDEODRIVER", "offscreen")

import pytest  # noqa: E402


class FakeClockEvent:
    def __init__(self, callback, due):
        self.callback = callback
        self.due = due
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeClock:
    """Deterministic stand-in for `kivy.clock.Clock.schedule_once`."""

    def __init__(self):
        self.now = 0.0
        self.events = []

    def schedule_once(self, callback, timeout=0):
        event = FakeClockEvent(callback, self.now + timeout)
        self.events.append(event)
        return event

    @property
    def pending(self):
        return [event for event in self.events if not event.cancelled]

    def advance(self, seconds=0.0):
        target = self.now + seconds
        while True:
            due = [event for event in self.pending if event.due <= target]
            if not due:
                break
            event = min(due, key=lambda e: e.due)
            self.events.remove(event)
            dt = event.due - self.now
            self.now = event.due
            event.callback(dt)
        self.now = target


@pytest.fixture
def clock():
    return FakeClock()


class ImmediateThread:
    """Runs a Thread target synchronously when started."""

    def __init__(self, target=None, args=(), kwargs=None, daemon=None):
        self.target = target
        self.args = args
        self.kwargs = kwargs or {}
        self.daemon = daemon

    def start(self):
        self.target(*self.args, **self.kwargs)


@pytest.fixture
def immediate_threads(monkeypatch):
    from genui_poc import llm_api

    monkeypatch.setattr(llm_api, "Thread", ImmediateThread)
    return ImmediateThread


class FakeGenerator:
    """Records sends; tests drive the callbacks by hand."""

    backend = "fake"

    def __init__(self):
        self.requests = []
        self.disposed = False
        self.model = "fake-model"

    def send(self, messages, on_chunk, on_done, on_error):
        self.requests.append(
            {"messages": list(messages), "on_chunk": on_chunk,
             "on_done": on_done, "on_error": on_error}
        )

    @property
    def last(self):
        return self.requests[-1]

    def dispose(self):
        self.disposed = True


@pytest.fixture
def generator():
    return FakeGenerator()
