"""
Tests for genui_poc.conversation (GenUiConversation).

The content generator is faked (see conftest.FakeGenerator); callbacks are
driven by hand in the order a streamed reply would deliver them.
"""

import json

import pytest

from genui_poc.a2ui import SurfaceHost, UserAction
from genui_poc.catalog import Catalog, CatalogItem
from genui_poc.conversation import GenUiConversation, build_system_instruction
from genui_poc.exceptions import GenerationError

SURFACE_LINES = [
    json.dumps({"surfaceUpdate": {"surfaceId": "main", "components": [
        {"id": "root", "component": {"Column": {"children": {"explicitList": ["title"]}}}},
        {"id": "title", "component": {"Text": {"text": {"literalString": "Pick one"}}}},
    ]}}),
    json.dumps({"beginRendering": {"surfaceId": "main", "root": "root"}}),
]


class Events:
    def __init__(self):
        self.added = []
        self.updated = []
        self.removed = []
        self.text = []
        self.actions = []
        self.errors = []


@pytest.fixture
def host():
    return SurfaceHost()


@pytest.fixture
def events():
    return Events()


@pytest.fixture
def conversation(generator, host, events):
    return GenUiConversation(
        generator,
        host,
        on_surface_added=events.added.append,
        on_surface_updated=events.updated.append,
        on_surface_removed=events.removed.append,
        on_text_response=events.text.append,
        on_user_action=events.actions.append,
        on_error=events.errors.append,
        history_window=3,
    )


def stream(request, text, size=9):
    for index in range(0, len(text), size):
        request["on_chunk"](text[index:index + size])


class TestSendRequest:
    def test_user_turn_sent(self, conversation, generator):
        conversation.send_request("I like engines")
        assert generator.last["messages"] == [{"role": "user", "content": "I like engines"}]
        assert conversation.is_waiting

    def test_history_window(self, conversation, generator):
        for index in range(4):
            conversation.send_request(f"q{index}")
            generator.last["on_done"]()
        sent = generator.last["messages"]
        assert len(sent) == 3
        assert sent[-1] == {"role": "user", "content": "q3"}

    def test_streamed_surface_reaches_host(self, conversation, generator, host, events):
        conversation.send_request("show me options")
        stream(generator.last, "\n".join(SURFACE_LINES) + "\n")
        generator.last["on_done"]()
        assert [event.surface_id for event in events.added] == ["main"]
        assert host.surfaces["main"].root == "root"
        assert set(host.surfaces["main"].components) == {"root", "title"}
        assert not conversation.is_waiting

    def test_assistant_turn_recorded(self, conversation, generator):
        conversation.send_request("hello")
        stream(generator.last, SURFACE_LINES[1])
        generator.last["on_done"]()
        assert conversation.messages[-1] == {"role": "assistant", "content": SURFACE_LINES[1]}

    def test_plain_text_reported(self, conversation, generator, events):
        conversation.send_request("hello")
        stream(generator.last, "Let me think about that.\n" + SURFACE_LINES[1])
        generator.last["on_done"]()
        assert events.text == ["Let me think about that."]

    def test_no_text_callback_for_pure_json(self, conversation, generator, events):
        conversation.send_request("hello")
        stream(generator.last, "\n".join(SURFACE_LINES))
        generator.last["on_done"]()
        assert events.text == []

    def test_stale_request_ignored(self, conversation, generator, host):
        conversation.send_request("first")
        stale = generator.last
        conversation.send_request("second")
        stream(stale, "\n".join(SURFACE_LINES))
        stale["on_done"]()
        assert host.surfaces == {}
        assert conversation.is_waiting

    def test_error_reported(self, conversation, generator, events):
        conversation.send_request("hello")
        error = GenerationError("connection refused", "fake")
        generator.last["on_error"](error)
        assert events.errors == [error]
        assert not conversation.is_waiting


class TestUserActions:
    def test_action_sent_back_to_model(self, conversation, generator, host, events):
        action = UserAction("pick", "main", "medic_button", {"career": "Medic"}, timestamp="t0")
        host.dispatch_action(action)
        assert events.actions == [action]
        sent = json.loads(generator.last["messages"][-1]["content"])
        assert sent["userAction"]["name"] == "pick"
        assert sent["userAction"]["context"] == {"career": "Medic"}


class TestDispose:
    def test_dispose_stops_everything(self, conversation, generator, host, events):
        conversation.send_request("hello")
        request = generator.last
        conversation.dispose()
        assert generator.disposed
        stream(request, "\n".join(SURFACE_LINES))
        request["on_done"]()
        host.dispatch_action(UserAction("pick", "main", "b"))
        assert host.surfaces == {}
        assert events.actions == []
        assert len(generator.requests) == 1

    def test_send_after_dispose_ignored(self, conversation, generator):
        conversation.dispose()
        conversation.send_request("hello")
        assert generator.requests == []


class TestSystemInstruction:
    def test_includes_persona_protocol_and_catalog(self):
        catalog = Catalog([CatalogItem("Scale", lambda ctx: None)], "jobs")
        instruction = build_system_instruction("You are an Army career helper.\n", catalog)
        assert instruction.startswith("You are an Army career helper.")
        assert "beginRendering" in instruction
        assert "- Scale" in instruction

