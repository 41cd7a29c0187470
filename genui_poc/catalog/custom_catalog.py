# --- Purpose -------------------------------------------------------------------
# The catalog this app hands to the model: every core item, except that
# Button is wrapped with vertical padding so adjacent buttons never touch, plus
# a "Scale" item for single-question agree/disagree or how-often answers.

from kivy.metrics import dp
from kivy.uix.widget import Widget
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.button import MDRaisedButton
from kivymd.uix.label import MDLabel
from kivymd.uix.slider import MDSlider

from genui_poc.catalog import Catalog, CatalogItem
from genui_poc.catalog import core_items
from genui_poc.scale_model import ScaleSelection, parse_options

CATALOG_ID = "a2ui_jobs_v2.custom_catalog"
BUTTON_VERTICAL_PADDING = 6
DEFAULT_SCALE_ACTION = "submit_scale"


def build_padded_button(ctx):
    core_widget = core_items.button.widget_builder(ctx)
    wrapper = MDBoxLayout(adaptive_height=True, padding=(0, dp(BUTTON_VERTICAL_PADDING)))
    wrapper.add_widget(core_widget)
    return wrapper


button = CatalogItem(
    core_items.button.name,
    build_padded_button,
    data_schema=core_items.button.data_schema,
    example_data=core_items.button.example_data,
)


class ScaleInput(MDBoxLayout):
    """Question label, a slider over the option indices, and a submit button."""

    def __init__(self, selection, question="", submit_text="Submit", **kwargs):
        kwargs.setdefault("orientation", "vertical")
        kwargs.setdefault("adaptive_height", True)
        kwargs.setdefault("spacing", dp(6))
        super().__init__(**kwargs)
        self.selection = selection
        count = len(selection.options)

        if question:
            self.add_widget(MDLabel(text=question, font_style="Subtitle1",
                                    adaptive_height=True))
        self.slider = MDSlider(
            min=0,
            max=max(count - 1, 1),
            step=1,
            value=selection.displayed_index,
            hint=False,
            disabled=count < 2,
            size_hint_y=None,
            height=dp(48),
        )
        self.slider.bind(value=self.on_slider_value)
        self.add_widget(self.slider)

        ends = MDBoxLayout(orientation="horizontal", adaptive_height=True)
        ends.add_widget(MDLabel(text=selection.options[0], font_style="Caption",
                                adaptive_height=True))
        ends.add_widget(MDLabel(text=selection.options[-1], font_style="Caption",
                                halign="right", adaptive_height=True))
        self.add_widget(ends)

        self.current_label = MDLabel(text=selection.displayed_label, halign="center",
                                     font_style="Body1", adaptive_height=True)
        self.add_widget(self.current_label)

        submit = MDRaisedButton(text=submit_text, pos_hint={"center_x": 0.5})
        submit.bind(on_release=lambda instance: self.selection.submit())
        self.add_widget(submit)

    def on_slider_value(self, instance, value):
        index = self.selection.select(round(value))
        if index is None:
            return
        self.current_label.text = self.selection.displayed_label
        if index != value:
            # snap back when the slider overshoots the option range
            instance.value = index


def scale_selection(ctx, clock=None):
    """The `ScaleSelection` behind a Scale component, or None without options.

    Drags are written to the `value` path (when it is bound) and submit sends
    the component's action with `selectedIndex` and `selectedLabel` added.
    """
    options = parse_options(ctx.data.get("options"), ctx.resolve)
    if not options:
        return None
    value = ctx.data.get("value")
    path = core_items.bound_path(value)
    action = ctx.data.get("action") or {"name": DEFAULT_SCALE_ACTION}
    return ScaleSelection(
        options,
        external_value=ctx.resolve(value),
        on_change=(lambda index: ctx.update_data(path, index)) if path else None,
        on_submit=lambda payload: ctx.dispatch(action, payload),
        clock=clock,
    )


def build_scale(ctx):
    selection = scale_selection(ctx)
    if selection is None:
        # transient empty option lists render nothing
        return Widget(size_hint_y=None, height=0)
    return ScaleInput(
        selection,
        question=str(ctx.resolve(ctx.data.get("question"), "")),
        submit_text=str(ctx.resolve(ctx.data.get("submitLabel"), "Submit")),
    )


def _scale_example():
    return {
        "id": "teamwork_scale",
        "component": {
            "Scale": {
                "question": {"literalString": "I enjoy working as part of a team."},
                "options": {"literalArray": [
                    "Strongly disagree", "Disagree", "Neutral", "Agree", "Strongly agree",
                ]},
                "value": {"path": "/teamwork"},
                "action": {
                    "name": DEFAULT_SCALE_ACTION,
                    "context": [{"key": "question", "value": {"literalString": "teamwork"}}],
                },
            }
        },
    }


scale = CatalogItem(
    "Scale",
    build_scale,
    data_schema={
        "type": "object",
        "properties": {
            "question": {"type": "object"},
            "options": {"type": "object"},
            "value": {"type": "object"},
            "submitLabel": {"type": "object"},
            "action": {"type": "object"},
        },
        "required": ["question", "options"],
    },
    example_data=_scale_example,
)


def as_catalog():
    """Our padded button, the Scale item, and all other core items."""
    items = [button if item.name == button.name else item for item in core_items.CORE_ITEMS]
    items.append(scale)
    return Catalog(items, catalog_id=CATALOG_ID)
