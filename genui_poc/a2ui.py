# --- Purpose -------------------------------------------------------------------
# A2UI plumbing: turn the model's streamed text into messages, and keep the
# surfaces those messages describe.
#
# WHAT this module does
# - `MessageStreamParser`: pulls complete JSON objects out of streamed text,
#    whatever the chunk boundaries are (fences and prose around them are kept
#    aside as plain text).
# - `SurfaceHost`: applies `surfaceUpdate`, `dataModelUpdate`,
#    `beginRendering` and `deleteSurface` messages, owns each surface's data
#    model, and tells listeners when a surface is added, updated or removed.
# - `UserAction`: what a generated widget dispatches when the user acts on it.
#
# HOW surfaces change
# - A surface is "added" the first time `beginRendering` names it.
# - Any later change to a rendered surface emits "updated".

import json
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

from kivy.logger import Logger

from genui_poc.exceptions import A2uiMessageError

MESSAGE_KINDS = ("surfaceUpdate", "dataModelUpdate", "beginRendering", "deleteSurface")
LITERAL_KEYS = ("literalString", "literalNumber", "literalBoolean", "literalArray")
_FENCE = re.compile(r"```(?:jsonl|json)?")


@dataclass
class SurfaceAdded:
    surface_id: str
    surface: "Surface"


@dataclass
class SurfaceUpdated:
    surface_id: str
    surface: "Surface"


@dataclass
class SurfaceRemoved:
    surface_id: str


@dataclass
class UserAction:
    name: str
    surface_id: str
    source_component_id: str
    context: dict = field(default_factory=dict)
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_message(self):
        return {
            "userAction": {
                "name": self.name,
                "surfaceId": self.surface_id,
                "sourceComponentId": self.source_component_id,
                "timestamp": self.timestamp,
                "context": self.context,
            }
        }


@dataclass
class Surface:
    surface_id: str
    components: dict = field(default_factory=dict)
    root: str = None
    styles: dict = field(default_factory=dict)
    data: dict = field(default_factory=dict)
    rendered: bool = False

    def component(self, component_id):
        return self.components.get(component_id)


def _object_end(text):
    """Index just past the object starting at text[0], or -1 if unfinished."""
    depth = 0
    in_string = False
    escaped = False
    for index, char in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return index + 1
    return -1


def _opens_object(text):
    """Whether the `{` at text[0] can start a JSON object; None until it is known."""
    rest = text[1:].lstrip()
    if not rest:
        return None
    return rest[0] in '"}'


class MessageStreamParser:
    """Incrementally extracts top-level JSON objects from streamed text."""

    def __init__(self):
        self._buffer = ""
        self._prose = []

    def _skip_brace(self):
        # the `{` at the front is prose; scanning resumes at the next one
        self._prose.append("{")
        self._buffer = self._buffer[1:]

    def feed(self, text):
        self._buffer += text
        messages = []
        while True:
            start = self._buffer.find("{")
            if start < 0:
                self._prose.append(self._buffer)
                self._buffer = ""
                break
            if start:
                self._prose.append(self._buffer[:start])
                self._buffer = self._buffer[start:]
            opens = _opens_object(self._buffer)
            if opens is None:
                break
            if not opens:
                self._skip_brace()
                continue
            end = _object_end(self._buffer)
            if end < 0:
                break
            try:
                messages.append(json.loads(self._buffer[:end]))
            except json.JSONDecodeError as e:
                Logger.warning(f"GenUI: skipping malformed JSON in stream: {e}")
                self._skip_brace()
                continue
            self._buffer = self._buffer[end:]
        return messages

    def close(self):
        """Finish the stream; returns any plain text that surrounded the JSON."""
        if self._buffer.strip():
            Logger.warning(
                f"GenUI: stream ended inside a JSON object ({len(self._buffer)} chars dropped)"
            )
        self._buffer = ""
        lines = []
        for line in "".join(self._prose).splitlines():
            line = _FENCE.sub("", line).strip()
            # separators left over from a JSON array of messages
            if line.strip("[], "):
                lines.append(line)
        self._prose = []
        return "\n".join(lines)


def parse_message(payload):
    """Return `(kind, body)` for an A2UI message or raise A2uiMessageError."""
    if not isinstance(payload, dict):
        raise A2uiMessageError("message is not an object", payload)
    kinds = [kind for kind in MESSAGE_KINDS if kind in payload]
    if len(kinds) == 1:
        body = payload[kinds[0]]
    elif not kinds and payload.get("type") in MESSAGE_KINDS:
        kinds = [payload["type"]]
        body = payload
    else:
        raise A2uiMessageError("expected exactly one A2UI message kind", payload)
    if not isinstance(body, dict):
        raise A2uiMessageError(f"{kinds[0]} body is not an object", payload)
    surface_id = body.get("surfaceId")
    if not isinstance(surface_id, str) or not surface_id:
        raise A2uiMessageError(f"{kinds[0]} without surfaceId", payload)
    return kinds[0], body


def normalize_component(raw):
    """Flatten both component shapes into {"id", "type", "props", "weight"}."""
    if not isinstance(raw, dict) or not raw.get("id"):
        raise A2uiMessageError("component without id", raw)
    wrapper = raw.get("component")
    if isinstance(wrapper, dict) and len(wrapper) == 1:
        (kind, props), = wrapper.items()
    elif isinstance(raw.get("type"), str):
        kind = raw["type"]
        props = {k: v for k, v in raw.items() if k not in ("id", "type", "weight")}
    else:
        raise A2uiMessageError(f"component {raw['id']} has no type", raw)
    return {
        "id": str(raw["id"]),
        "type": kind,
        "props": props if isinstance(props, dict) else {},
        "weight": raw.get("weight"),
    }


def _entry_value(entry):
    if "valueString" in entry:
        return entry["valueString"]
    if "valueNumber" in entry:
        return entry["valueNumber"]
    if "valueBoolean" in entry:
        return entry["valueBoolean"]
    if "valueMap" in entry:
        return contents_to_dict(entry["valueMap"])
    if "valueList" in entry:
        return list(entry["valueList"])
    return entry.get("value")


def contents_to_dict(contents):
    if isinstance(contents, dict):
        return dict(contents)
    result = {}
    for entry in contents or []:
        if isinstance(entry, dict) and "key" in entry:
            result[str(entry["key"])] = _entry_value(entry)
    return result


def split_path(path):
    return [token for token in str(path or "").split("/") if token]


def resolve_path(path, scope=None):
    """Absolute paths pass through; relative ones hang off `scope`."""
    path = str(path or "")
    if path.startswith("/"):
        return path
    base = (scope or "").rstrip("/")
    return f"{base}/{path}" if path else (base or "/")


def get_path(data, path):
    node = data
    for token in split_path(path):
        if isinstance(node, dict):
            node = node.get(token)
        elif isinstance(node, list) and token.isdigit() and int(token) < len(node):
            node = node[int(token)]
        else:
            return None
    return node


def set_path(data, path, value):
    tokens = split_path(path)
    if not tokens:
        raise A2uiMessageError("cannot set the data model root through a path", value)
    node = data
    for token, following in zip(tokens, tokens[1:]):
        if isinstance(node, list) and token.isdigit() and int(token) < len(node):
            child = node[int(token)]
        elif isinstance(node, dict):
            child = node.get(token)
        else:
            raise A2uiMessageError(f"path {path} crosses a scalar", value)
        if not isinstance(child, (dict, list)):
            child = [] if following.isdigit() else {}
            if isinstance(node, list):
                node[int(token)] = child
            else:
                node[token] = child
        node = child
    last = tokens[-1]
    if isinstance(node, list) and last.isdigit():
        index = int(last)
        if index < len(node):
            node[index] = value
        else:
            node.append(value)
    elif isinstance(node, dict):
        node[last] = value
    else:
        raise A2uiMessageError(f"path {path} crosses a scalar", value)


class SurfaceHost:
    """Owns the surfaces built from A2UI messages."""

    def __init__(self):
        self.surfaces = {}
        self._listeners = []
        self._action_listeners = []

    # listeners ---------------------------------------------------------------

    def add_listener(self, on_added=None, on_updated=None, on_removed=None):
        entry = (on_added, on_updated, on_removed)
        self._listeners.append(entry)
        return entry

    def remove_listener(self, entry):
        if entry in self._listeners:
            self._listeners.remove(entry)

    def add_action_listener(self, listener):
        self._action_listeners.append(listener)

    def remove_action_listener(self, listener):
        if listener in self._action_listeners:
            self._action_listeners.remove(listener)

    def _emit(self, event):
        slot = {SurfaceAdded: 0, SurfaceUpdated: 1, SurfaceRemoved: 2}[type(event)]
        for listener in list(self._listeners):
            callback = listener[slot]
            if callback is not None:
                callback(event)

    # messages ----------------------------------------------------------------

    def handle_message(self, payload):
        try:
            kind, body = parse_message(payload)
            handler = getattr(self, f"_on_{kind}")
            handler(body)
        except A2uiMessageError as e:
            Logger.warning(f"GenUI: skipping A2UI message: {e}")
            return False
        return True

    def _surface(self, surface_id):
        surface = self.surfaces.get(surface_id)
        if surface is None:
            surface = Surface(surface_id)
            self.surfaces[surface_id] = surface
        return surface

    def _changed(self, surface):
        if surface.rendered:
            self._emit(SurfaceUpdated(surface.surface_id, surface))

    def _on_surfaceUpdate(self, body):
        components = body.get("components")
        if not isinstance(components, list):
            raise A2uiMessageError("surfaceUpdate without components", body)
        surface = self._surface(body["surfaceId"])
        for raw in components:
            try:
                component = normalize_component(raw)
            except A2uiMessageError as e:
                Logger.warning(f"GenUI: skipping component: {e}")
                continue
            surface.components[component["id"]] = component
        Logger.debug(
            f"GenUI: surface {surface.surface_id} now has {len(surface.components)} components"
        )
        self._changed(surface)

    def _on_dataModelUpdate(self, body):
        surface = self._surface(body["surfaceId"])
        value = contents_to_dict(body.get("contents"))
        path = body.get("path")
        if not split_path(path):
            surface.data = value
        else:
            existing = get_path(surface.data, path)
            if isinstance(existing, dict):
                existing.update(value)
            else:
                set_path(surface.data, path, value)
        self._changed(surface)

    def _on_beginRendering(self, body):
        root = body.get("root") or body.get("rootComponentId")
        if not root:
            raise A2uiMessageError("beginRendering without root", body)
        surface = self._surface(body["surfaceId"])
        surface.root = str(root)
        if isinstance(body.get("styles"), dict):
            surface.styles = body["styles"]
        if surface.rendered:
            self._emit(SurfaceUpdated(surface.surface_id, surface))
        else:
            surface.rendered = True
            self._emit(SurfaceAdded(surface.surface_id, surface))

    def _on_deleteSurface(self, body):
        if self.surfaces.pop(body["surfaceId"], None) is not None:
            self._emit(SurfaceRemoved(body["surfaceId"]))

    # data model --------------------------------------------------------------

    def get_data(self, surface_id, path, scope=None):
        surface = self.surfaces.get(surface_id)
        if surface is None:
            return None
        return get_path(surface.data, resolve_path(path, scope))

    def update_data(self, surface_id, path, value, scope=None, notify=False):
        """Write a widget's value into the data model.

        Widgets write with `notify=False` so that their own surface is not
        rebuilt underneath the user's pointer.
        """
        surface = self.surfaces.get(surface_id)
        if surface is None:
            return
        try:
            set_path(surface.data, resolve_path(path, scope), value)
        except A2uiMessageError as e:
            Logger.warning(f"GenUI: cannot update {path}: {e}")
            return
        if notify:
            self._changed(surface)

    def resolve_value(self, surface_id, bound, scope=None):
        if not isinstance(bound, dict):
            return bound
        literal = next((bound[key] for key in LITERAL_KEYS if key in bound), None)
        if "path" not in bound:
            return literal
        value = self.get_data(surface_id, bound["path"], scope)
        if value is None and literal is not None:
            # path plus literal: the literal seeds the data model
            self.update_data(surface_id, bound["path"], literal, scope)
            return literal
        return value

    # actions -----------------------------------------------------------------

    def dispatch_action(self, action):
        Logger.info(f"GenUI: action {action.name} from {action.source_component_id}")
        for listener in list(self._action_listeners):
            listener(action)

    def dispose(self):
        self._listeners.clear()
        self._action_listeners.clear()
