# --- Purpose -------------------------------------------------------------------
# Widget catalog: which component types the model may use and how to build them.
#
# This module stays free of KivyMD imports; the renderers themselves live in
# `core_items` and `custom_catalog`.

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from kivy.logger import Logger

from genui_poc.a2ui import UserAction


@dataclass(frozen=True)
class CatalogItem:
    name: str
    widget_builder: Callable[["ItemContext"], Any]
    data_schema: Optional[dict] = None
    example_data: Optional[Callable[[], dict]] = None


class Catalog:
    def __init__(self, items, catalog_id):
        self.catalog_id = catalog_id
        self._items = {}
        for item in items:
            self._items[item.name] = item

    def __contains__(self, name):
        return name in self._items

    def __len__(self):
        return len(self._items)

    @property
    def names(self):
        return list(self._items)

    def get(self, name):
        return self._items.get(name)

    def with_item(self, item):
        """Copy of this catalog where `item` replaces any item of the same name."""
        items = dict(self._items)
        items[item.name] = item
        return Catalog(items.values(), self.catalog_id)

    def describe(self):
        """Catalog section of the system instruction, one example per item."""
        lines = [
            f"Available components (catalog {self.catalog_id}):",
        ]
        for item in self._items.values():
            lines.append(f"- {item.name}")
            if item.example_data is not None:
                example = item.example_data()
                lines.append(f"  example: {json.dumps(example, separators=(',', ':'))}")
        return "\n".join(lines)


@dataclass
class ItemContext:
    """Everything a catalog builder needs to render one component."""

    host: Any
    surface_id: str
    component_id: str
    data: dict
    build_child: Callable[[str, Optional[str]], Any]
    scope: Optional[str] = None
    extra: dict = field(default_factory=dict)

    def resolve(self, bound, default=None):
        value = self.host.resolve_value(self.surface_id, bound, self.scope)
        return default if value is None else value

    def child(self, child_id):
        return self.build_child(child_id, self.scope)

    def update_data(self, path, value):
        self.host.update_data(self.surface_id, path, value, self.scope)

    def dispatch(self, action, extra_context=None):
        """Resolve the action's context against the data model and send it."""
        if not isinstance(action, dict) or not action.get("name"):
            Logger.warning(f"GenUI: component {self.component_id} has no action name")
            return None
        context = {}
        raw_context = action.get("context") or []
        if isinstance(raw_context, dict):
            raw_context = [{"key": k, "value": v} for k, v in raw_context.items()]
        for entry in raw_context:
            if isinstance(entry, dict) and "key" in entry:
                context[entry["key"]] = self.resolve(entry.get("value"))
        if extra_context:
            context.update(extra_context)
        user_action = UserAction(
            name=action["name"],
            surface_id=self.surface_id,
            source_component_id=self.component_id,
            context=context,
        )
        self.host.dispatch_action(user_action)
        return user_action
