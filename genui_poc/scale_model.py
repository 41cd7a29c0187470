# --- Purpose -------------------------------------------------------------------
# State behind the "Scale" catalog widget: one question, an ordered list of
# option labels, and the index the user picked.
#
# The selected index has two sources: the value the user is dragging right now
# (local override) and the value stored in the surface data model (external).
# The local override always wins so the slider follows the finger, while the
# new index is pushed to the data model on the next Clock frame.

import math

from kivy.clock import Clock


def middle_index(count):
    return (count - 1) // 2


def clamp_index(index, count):
    return max(0, min(int(index), count - 1))


def parse_index(raw):
    """Return `raw` as an int index, or None when it is not numeric."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return None
    if isinstance(raw, float):
        # "inf", "nan" and "1e999" all parse as floats but have no index
        if math.isnan(raw) or math.isinf(raw):
            return None
        return int(round(raw))
    if isinstance(raw, dict):
        for key in ("literalNumber", "literalString", "valueNumber"):
            if key in raw:
                return parse_index(raw[key])
    return None


def parse_options(raw, resolve=None):
    """Turn an A2UI options value into a list of labels.

    Accepts a plain list, `{"literalArray": [...]}` or `{"path": ...}` (looked
    up through `resolve`). Anything else yields an empty list.
    """
    if isinstance(raw, dict):
        if "literalArray" in raw:
            raw = raw["literalArray"]
        elif "path" in raw and resolve is not None:
            raw = resolve(raw)
        else:
            return []
    if not isinstance(raw, (list, tuple)):
        return []
    labels = []
    for option in raw:
        if isinstance(option, dict):
            option = option.get("label", option.get("literalString"))
        if option is None:
            continue
        labels.append(str(option))
    return labels


class ScaleSelection:
    """Reconciles the locally dragged index with the data-model index."""

    def __init__(self, options, external_value=None, on_change=None,
                 on_submit=None, clock=None):
        self.options = list(options or [])
        self.on_change = on_change
        self.on_submit = on_submit
        self.local_override = None
        self.external_value = parse_index(external_value)
        self._clock = clock if clock is not None else Clock

    @property
    def is_empty(self):
        return not self.options

    @property
    def displayed_index(self):
        if self.is_empty:
            return None
        if self.local_override is not None:
            index = self.local_override
        elif self.external_value is not None:
            index = self.external_value
        else:
            index = middle_index(len(self.options))
        return clamp_index(index, len(self.options))

    @property
    def displayed_label(self):
        index = self.displayed_index
        if index is None:
            return ""
        return self.options[index]

    def set_options(self, options):
        self.options = list(options or [])

    def set_external(self, value):
        self.external_value = parse_index(value)

    def select(self, index):
        """Adopt `index` now and hand it to `on_change` on the next frame."""
        if self.is_empty:
            return None
        index = parse_index(index)
        if index is None:
            return None
        index = clamp_index(index, len(self.options))
        self.local_override = index
        if self.on_change is not None:
            self._clock.schedule_once(lambda dt: self.on_change(index))
        return index

    def submit(self):
        index = self.displayed_index
        if index is None:
            return None
        payload = {"selectedIndex": index, "selectedLabel": self.options[index]}
        if self.on_submit is not None:
            self.on_submit(payload)
        return payload
