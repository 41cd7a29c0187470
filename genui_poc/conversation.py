# --- Purpose -------------------------------------------------------------------
# Conversation between the user, the content generator and the surface host.
#
# Each request streams its reply through a fresh `MessageStreamParser`. A2UI
# messages go to the host and leftover prose becomes a text reply. Actions from
# generated widgets are sent back to the model as user turns.

import json

from kivy.logger import Logger

from genui_poc.a2ui import MessageStreamParser

DEFAULT_HISTORY_WINDOW = 6

PROTOCOL_GUIDE = """\
Reply ONLY with A2UI messages, one JSON object per line, no markdown.
Each object holds exactly one of: "surfaceUpdate", "dataModelUpdate", "beginRendering", "deleteSurface".
- {"surfaceUpdate": {"surfaceId": "main", "components": [{"id": "title", "component": {"Text": {"text": {"literalString": "Hello"}}}}]}}
- {"dataModelUpdate": {"surfaceId": "main", "path": "/", "contents": [{"key": "answer", "valueNumber": 2}]}}
- {"beginRendering": {"surfaceId": "main", "root": "title"}}
Components are a flat list; containers refer to children by id.
Send beginRendering after the components it needs.
Values are {"literalString": ...}, {"literalNumber": ...}, {"literalBoolean": ...} or {"path": "/data/model/path"}.
When the user acts on a widget you receive {"userAction": {"name": ..., "sourceComponentId": ..., "context": {...}}}.
"""


def build_system_instruction(instruction, catalog):
    """Persona instruction + the A2UI reply format + the catalog examples."""
    return "\n".join([instruction.rstrip(), "", PROTOCOL_GUIDE, catalog.describe()])


class GenUiConversation:
    """Sends user turns to the generator and feeds its reply to the host.

    Text that is not part of an A2UI message (a short greeting, an apology)
    is passed to `on_text_response` once the reply is complete.
    """

    def __init__(self, content_generator, host, on_surface_added=None,
                 on_surface_updated=None, on_surface_removed=None,
                 on_text_response=None, on_user_action=None, on_error=None,
                 history_window=DEFAULT_HISTORY_WINDOW):
        self.content_generator = content_generator
        self.host = host
        self.on_text_response = on_text_response
        self.on_user_action = on_user_action
        self.on_error = on_error
        self.history_window = history_window
        # messages: chat transcript [{role, content}, ...]
        self.messages = []
        self._parser = None
        self._reply = []
        self._request_id = 0
        self._disposed = False
        self._listener = host.add_listener(
            on_surface_added, on_surface_updated, on_surface_removed
        )
        host.add_action_listener(self._on_action)

    @property
    def is_waiting(self):
        return self._parser is not None

    def send_request(self, text):
        if self._disposed:
            return
        self.messages.append({"role": "user", "content": text})
        self._request_id += 1
        request_id = self._request_id
        self._parser = MessageStreamParser()
        self._reply = []
        Logger.info(f"GenUI: sending request #{request_id} ({len(text)} chars)")
        self.content_generator.send(
            self.messages[-self.history_window:],
            on_chunk=lambda chunk: self._on_chunk(request_id, chunk),
            on_done=lambda: self._on_done(request_id),
            on_error=lambda error: self._on_error(request_id, error),
        )

    def _is_current(self, request_id):
        return not self._disposed and request_id == self._request_id

    def _on_chunk(self, request_id, chunk):
        if not self._is_current(request_id) or self._parser is None:
            return
        self._reply.append(chunk)
        for message in self._parser.feed(chunk):
            self.host.handle_message(message)

    def _on_done(self, request_id):
        if not self._is_current(request_id) or self._parser is None:
            return
        text = self._parser.close()
        self._parser = None
        reply = "".join(self._reply)
        self._reply = []
        self.messages.append({"role": "assistant", "content": reply})
        Logger.debug(f"GenUI: request #{request_id} finished ({len(reply)} chars)")
        if text and self.on_text_response is not None:
            self.on_text_response(text)

    def _on_error(self, request_id, error):
        if not self._is_current(request_id):
            return
        self._parser = None
        self._reply = []
        if self.on_error is not None:
            self.on_error(error)

    def _on_action(self, action):
        if self._disposed:
            return
        if self.on_user_action is not None:
            self.on_user_action(action)
        self.send_request(json.dumps(action.to_message()))

    def dispose(self):
        self._disposed = True
        self.content_generator.dispose()
        self.host.remove_listener(self._listener)
        self.host.remove_action_listener(self._on_action)
