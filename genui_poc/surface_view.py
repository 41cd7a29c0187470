# --- Purpose -------------------------------------------------------------------
# Turns a surface held by the `SurfaceHost` into a KivyMD widget tree.
#
# `SurfaceRenderer` walks the flat component list from the surface root and asks
# the catalog to build each component. `GenUiSurface` is the container placed
# in the chat screen; the app rebuilds it when the session settles, so a reply
# that is still streaming does not rebuild the tree on every message.

from kivy.logger import Logger
from kivy.metrics import dp
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.label import MDLabel

from genui_poc.catalog import ItemContext


class SurfaceRenderer:
    def __init__(self, host, catalog):
        self.host = host
        self.catalog = catalog

    def build(self, surface_id):
        surface = self.host.surfaces.get(surface_id)
        if surface is None or surface.root is None:
            return None
        return self._build_component(surface, surface.root, None, ())

    def _build_component(self, surface, component_id, scope, ancestors):
        if component_id in ancestors:
            Logger.warning(f"GenUI: component cycle at {component_id}, skipping")
            return None
        component = surface.component(component_id)
        if component is None:
            Logger.debug(f"GenUI: component {component_id} not received yet")
            return None
        item = self.catalog.get(component["type"])
        if item is None:
            Logger.warning(f"GenUI: unsupported component type {component['type']}")
            return MDLabel(
                text=f"[Unsupported component: {component['type']}]",
                theme_text_color="Hint",
                adaptive_height=True,
            )
        path = ancestors + (component_id,)
        ctx = ItemContext(
            host=self.host,
            surface_id=surface.surface_id,
            component_id=component_id,
            data=component["props"],
            scope=scope,
            build_child=lambda child_id, child_scope: self._build_component(
                surface, child_id, child_scope, path
            ),
        )
        return item.widget_builder(ctx)


class GenUiSurface(MDBoxLayout):
    """Container showing one surface; cleared when the surface is deleted."""

    def __init__(self, host, catalog, surface_id, **kwargs):
        kwargs.setdefault("orientation", "vertical")
        kwargs.setdefault("adaptive_height", True)
        kwargs.setdefault("padding", dp(4))
        super().__init__(**kwargs)
        self.host = host
        self.surface_id = surface_id
        self.renderer = SurfaceRenderer(host, catalog)
        self._listener = host.add_listener(on_removed=self._on_surface_removed)
        self.refresh()

    def refresh(self):
        self.clear_widgets()
        tree = self.renderer.build(self.surface_id)
        if tree is not None:
            self.add_widget(tree)

    def _on_surface_removed(self, update):
        if update.surface_id == self.surface_id:
            self.clear_widgets()

    def dispose(self):
        self.host.remove_listener(self._listener)
