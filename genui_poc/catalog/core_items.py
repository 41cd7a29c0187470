# --- Purpose -------------------------------------------------------------------
# KivyMD renderers for the basic A2UI component types (text, layout, inputs).
#
# Each builder receives an `ItemContext` and returns a widget (or None to skip
# the component). Inputs write user edits straight into the surface data model
# so that later actions can read them through their context bindings.

import math
import re
from datetime import datetime

from kivy.core.audio import SoundLoader
from kivy.logger import Logger
# dp: device-independent pixels, so spacing looks the same on phone and desktop.
from kivy.metrics import dp
from kivy.uix.image import AsyncImage
from kivy.uix.video import Video
from kivy.uix.widget import Widget
from kivymd.icon_definitions import md_icons
from kivymd.uix.boxlayout import MDBoxLayout
from kivymd.uix.button import MDFlatButton, MDIconButton, MDRaisedButton
from kivymd.uix.card import MDCard, MDSeparator
from kivymd.uix.dialog import MDDialog
from kivymd.uix.label import MDIcon, MDLabel
from kivymd.uix.selectioncontrol import MDCheckbox
from kivymd.uix.slider import MDSlider
from kivymd.uix.textfield import MDTextField

from genui_poc.a2ui import resolve_path
from genui_poc.catalog import CatalogItem

# A2UI usage hints → KivyMD font styles
TEXT_STYLES = {
    "h1": "H4",
    "h2": "H5",
    "h3": "H6",
    "h4": "Subtitle1",
    "h5": "Subtitle2",
    "caption": "Caption",
    "body": "Body1",
}
FALLBACK_ICON = "help-circle-outline"


def _literal(text):
    return {"literalString": text}


def _number(value, default):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def bound_path(bound):
    if isinstance(bound, dict) and isinstance(bound.get("path"), str):
        return bound["path"]
    return None


def build_children(ctx):
    """Widgets for `children`: an explicit id list or a data-bound template."""
    children = ctx.data.get("children") or {}
    if isinstance(children, list):
        children = {"explicitList": children}
    elif not isinstance(children, dict):
        children = {}
    widgets = []
    for child_id in children.get("explicitList") or []:
        widgets.append(ctx.build_child(child_id, ctx.scope))
    template = children.get("template")
    if isinstance(template, dict):
        binding = template.get("dataBinding") or template.get("dataPath")
        items = ctx.host.get_data(ctx.surface_id, binding, ctx.scope)
        if isinstance(items, dict):
            keys = list(items)
        elif isinstance(items, list):
            keys = range(len(items))
        else:
            keys = []
        base = resolve_path(binding, ctx.scope)
        for key in keys:
            widgets.append(ctx.build_child(template.get("componentId"), f"{base}/{key}"))
    return [widget for widget in widgets if widget is not None]


def _box(ctx, orientation):
    box = MDBoxLayout(
        orientation=orientation,
        adaptive_height=True,
        spacing=dp(8),
    )
    for child in build_children(ctx):
        box.add_widget(child)
    return box


def build_text(ctx):
    hint = ctx.data.get("usageHint") or ctx.data.get("hint") or "body"
    label = MDLabel(
        text=str(ctx.resolve(ctx.data.get("text"), "")),
        font_style=TEXT_STYLES.get(hint, "Body1"),
        adaptive_height=True,
    )
    return label


def build_column(ctx):
    return _box(ctx, "vertical")


def build_row(ctx):
    return _box(ctx, "horizontal")


def build_list(ctx):
    direction = ctx.data.get("direction", "vertical")
    return _box(ctx, "horizontal" if direction == "horizontal" else "vertical")


def build_card(ctx):
    card = MDCard(
        orientation="vertical",
        adaptive_height=True,
        padding=dp(12),
        elevation=1,
    )
    child = ctx.child(ctx.data.get("child"))
    if child is not None:
        card.add_widget(child)
    return card


def build_divider(ctx):
    return MDSeparator()


def button_label(ctx):
    """Buttons point at a child Text component; fall back to a `label` value."""
    surface = ctx.host.surfaces.get(ctx.surface_id)
    child = surface.component(ctx.data.get("child")) if surface else None
    if child is not None and child["type"] == "Text":
        return str(ctx.resolve(child["props"].get("text"), ""))
    return str(ctx.resolve(ctx.data.get("label"), "OK"))


def build_button(ctx):
    button_cls = MDRaisedButton if ctx.data.get("primary") else MDFlatButton
    button = button_cls(text=button_label(ctx))
    action = ctx.data.get("action")
    button.bind(on_release=lambda instance: ctx.dispatch(action))
    return button


def build_check_box(ctx):
    row = MDBoxLayout(orientation="horizontal", adaptive_height=True, spacing=dp(8))
    value = ctx.data.get("value")
    checkbox = MDCheckbox(
        active=bool(ctx.resolve(value, False)),
        size_hint=(None, None),
        size=(dp(48), dp(48)),
    )
    path = bound_path(value)
    if path:
        checkbox.bind(active=lambda instance, active: ctx.update_data(path, active))
    row.add_widget(checkbox)
    row.add_widget(MDLabel(text=str(ctx.resolve(ctx.data.get("label"), "")),
                           adaptive_height=True))
    return row


def build_text_field(ctx):
    text = ctx.data.get("text")
    field = MDTextField(
        hint_text=str(ctx.resolve(ctx.data.get("label"), "")),
        text=str(ctx.resolve(text, "")),
        multiline=ctx.data.get("textFieldType") == "longText",
        password=ctx.data.get("textFieldType") == "obscured",
    )
    path = bound_path(text)
    if path:
        field.bind(text=lambda instance, value: ctx.update_data(path, value))
    return field


def build_slider(ctx):
    value = ctx.data.get("value")
    low = _number(ctx.resolve(ctx.data.get("minValue")), 0.0)
    high = _number(ctx.resolve(ctx.data.get("maxValue")), 100.0)
    if high <= low:
        high = low + 1
    current = min(max(_number(ctx.resolve(value), low), low), high)
    slider = MDSlider(min=low, max=high, value=current, step=1,
                      size_hint_y=None, height=dp(48))
    path = bound_path(value)
    if path:
        slider.bind(value=lambda instance, new: ctx.update_data(path, new))
    return slider


def build_image(ctx):
    url = ctx.resolve(ctx.data.get("url"), "")
    if not url:
        return Widget(size_hint_y=None, height=0)
    return AsyncImage(source=str(url), size_hint_y=None, height=dp(160))


def icon_name(name):
    """A2UI icon names are camelCase (`accountCircle`); KivyMD uses `account-circle`."""
    kebab = re.sub(r"(?<!^)(?=[A-Z])", "-", str(name or "")).lower()
    return kebab if kebab in md_icons else FALLBACK_ICON


def build_icon(ctx):
    return MDIcon(
        icon=icon_name(ctx.resolve(ctx.data.get("name"), "")),
        adaptive_size=True,
    )


def build_image_fixed_size(ctx):
    url = ctx.resolve(ctx.data.get("url"), "")
    size = _number(ctx.resolve(ctx.data.get("size")), 64)
    if not url:
        return Widget(size_hint=(None, None), size=(dp(size), dp(size)))
    return AsyncImage(source=str(url), size_hint=(None, None), size=(dp(size), dp(size)))


def choice_options(ctx):
    """(label, value) pairs of a MultipleChoice; the value defaults to the label."""
    pairs = []
    for option in ctx.data.get("options") or []:
        if not isinstance(option, dict):
            continue
        label = str(ctx.resolve(option.get("label"), ""))
        value = ctx.resolve(option.get("value"), label)
        if label or value:
            pairs.append((label or str(value), value))
    return pairs


def toggle_choice(selected, value, active, max_allowed=None):
    """New selection list after one option is checked or unchecked."""
    selected = [item for item in (selected or []) if item != value]
    if active:
        selected.append(value)
        if max_allowed and len(selected) > max_allowed:
            # oldest picks give way to the newest
            selected = selected[-max_allowed:]
    return selected


def build_multiple_choice(ctx):
    box = MDBoxLayout(orientation="vertical", adaptive_height=True)
    selections = ctx.data.get("selections")
    path = bound_path(selections)
    max_allowed = _number(ctx.resolve(ctx.data.get("maxAllowedSelections")), None)
    max_allowed = int(max_allowed) if max_allowed else None
    current = ctx.resolve(selections, [])
    if not isinstance(current, list):
        current = [current]
    group = f"{ctx.surface_id}:{ctx.component_id}:{ctx.scope}" if max_allowed == 1 else None

    def on_active(value, active):
        if path:
            chosen = ctx.host.get_data(ctx.surface_id, path, ctx.scope)
            ctx.update_data(path, toggle_choice(chosen, value, active, max_allowed))

    for label, value in choice_options(ctx):
        row = MDBoxLayout(orientation="horizontal", adaptive_height=True, spacing=dp(8))
        checkbox = MDCheckbox(
            active=value in current,
            size_hint=(None, None),
            size=(dp(48), dp(48)),
        )
        if group:
            checkbox.group = group
        checkbox.bind(active=lambda instance, active, value=value: on_active(value, active))
        row.add_widget(checkbox)
        row.add_widget(MDLabel(text=label, adaptive_height=True))
        box.add_widget(row)
    return box


def build_tabs(ctx):
    tab_items = [tab for tab in ctx.data.get("tabItems") or [] if isinstance(tab, dict)]
    box = MDBoxLayout(orientation="vertical", adaptive_height=True, spacing=dp(4))
    header = MDBoxLayout(orientation="horizontal", adaptive_height=True, spacing=dp(4))
    content = MDBoxLayout(orientation="vertical", adaptive_height=True)
    buttons = []

    def show(index):
        content.clear_widgets()
        for position, tab_button in enumerate(buttons):
            tab_button.md_bg_color = (
                tab_button.theme_cls.primary_light if position == index else (0, 0, 0, 0)
            )
        child = ctx.child(tab_items[index].get("child"))
        if child is not None:
            content.add_widget(child)

    for index, tab in enumerate(tab_items):
        tab_button = MDFlatButton(text=str(ctx.resolve(tab.get("title"), f"Tab {index + 1}")))
        tab_button.bind(on_release=lambda instance, index=index: show(index))
        buttons.append(tab_button)
        header.add_widget(tab_button)
    box.add_widget(header)
    box.add_widget(MDSeparator())
    box.add_widget(content)
    if tab_items:
        show(0)
    return box


def build_modal(ctx):
    entry = ctx.child(ctx.data.get("entryPointChild"))
    content_id = ctx.data.get("contentChild")

    def open_dialog(*args):
        content = ctx.child(content_id)
        if content is None:
            Logger.warning(f"GenUI: modal {ctx.component_id} has no content yet")
            return
        dialog = MDDialog(type="custom", content_cls=content)
        dialog.open()

    # the first pressable widget of the entry point (usually a Button) opens the dialog
    trigger = None
    if entry is not None:
        trigger = next(
            (widget for widget in entry.walk() if widget.is_event_type("on_release")), None
        )
    if trigger is not None:
        trigger.bind(on_release=open_dialog)
        return entry
    opener = MDFlatButton(text="Open")
    opener.bind(on_release=open_dialog)
    if entry is None:
        return opener
    box = MDBoxLayout(orientation="vertical", adaptive_height=True)
    box.add_widget(entry)
    box.add_widget(opener)
    return box


# (enableDate, enableTime) → strptime format and the hint shown to the user
DATE_TIME_FORMATS = {
    (True, False): ("%Y-%m-%d", "YYYY-MM-DD"),
    (False, True): ("%H:%M", "HH:MM"),
    (True, True): ("%Y-%m-%d %H:%M", "YYYY-MM-DD HH:MM"),
}


def _date_time_format(enable_date, enable_time):
    return DATE_TIME_FORMATS.get((enable_date, enable_time), DATE_TIME_FORMATS[(True, False)])


def parse_date_time(text, enable_date=True, enable_time=False):
    """ISO 8601 text for a typed date and/or time, or None when it does not parse."""
    fmt, _ = _date_time_format(enable_date, enable_time)
    try:
        parsed = datetime.strptime(text.strip(), fmt)
    except ValueError:
        return None
    if enable_date and enable_time:
        return parsed.isoformat(timespec="minutes")
    if enable_time:
        return parsed.time().isoformat(timespec="minutes")
    return parsed.date().isoformat()


def build_date_time_input(ctx):
    enable_date = bool(ctx.data.get("enableDate", True))
    enable_time = bool(ctx.data.get("enableTime", False))
    value = ctx.data.get("value")
    _, hint = _date_time_format(enable_date, enable_time)
    field = MDTextField(
        hint_text=str(ctx.resolve(ctx.data.get("label"), "")) or hint,
        helper_text=hint,
        helper_text_mode="on_error",
        text=str(ctx.resolve(value, "")),
    )
    path = bound_path(value)

    def on_text(instance, text):
        parsed = parse_date_time(text, enable_date, enable_time) if text else None
        instance.error = bool(text) and parsed is None
        if path and parsed is not None:
            ctx.update_data(path, parsed)

    field.bind(text=on_text)
    return field


def build_audio_player(ctx):
    url = str(ctx.resolve(ctx.data.get("url"), ""))
    row = MDBoxLayout(orientation="horizontal", adaptive_height=True, spacing=dp(8))
    play = MDIconButton(icon="play")
    state = {"sound": None}

    def toggle(instance):
        sound = state["sound"]
        if sound is None:
            sound = state["sound"] = SoundLoader.load(url) if url else None
            if sound is None:
                Logger.warning(f"GenUI: cannot play audio {url!r}")
                return
            sound.bind(on_stop=lambda *args: setattr(play, "icon", "play"))
        if sound.state == "play":
            sound.stop()
        else:
            sound.play()
            play.icon = "pause"

    play.bind(on_release=toggle)
    row.add_widget(play)
    row.add_widget(MDLabel(text=str(ctx.resolve(ctx.data.get("description"), url)),
                           adaptive_height=True))
    return row


def build_video(ctx):
    url = ctx.resolve(ctx.data.get("url"), "")
    if not url:
        return Widget(size_hint_y=None, height=0)
    box = MDBoxLayout(orientation="vertical", adaptive_height=True)
    player = Video(source=str(url), state="stop", size_hint_y=None, height=dp(200))
    play = MDIconButton(icon="play", pos_hint={"center_x": 0.5})

    def toggle(instance):
        player.state = "pause" if player.state == "play" else "play"
        play.icon = "pause" if player.state == "play" else "play"

    play.bind(on_release=toggle)
    box.add_widget(player)
    box.add_widget(play)
    return box


def _example(kind, **props):
    return lambda: {"id": f"example_{kind.lower()}", "component": {kind: props}}


text = CatalogItem(
    "Text", build_text,
    example_data=_example("Text", text=_literal("Infantry"), usageHint="h3"),
)
column = CatalogItem(
    "Column", build_column,
    example_data=_example("Column", children={"explicitList": ["title", "choices"]}),
)
row = CatalogItem(
    "Row", build_row,
    example_data=_example("Row", children={"explicitList": ["yes_button", "no_button"]}),
)
list_ = CatalogItem(
    "List", build_list,
    example_data=_example(
        "List",
        direction="vertical",
        children={"template": {"componentId": "career_card", "dataBinding": "/careers"}},
    ),
)
card = CatalogItem("Card", build_card, example_data=_example("Card", child="card_body"))
divider = CatalogItem("Divider", build_divider, example_data=_example("Divider"))
button = CatalogItem(
    "Button", build_button,
    example_data=_example(
        "Button",
        child="yes_label",
        primary=True,
        action={"name": "answer", "context": [{"key": "answer", "value": _literal("yes")}]},
    ),
)
check_box = CatalogItem(
    "CheckBox", build_check_box,
    example_data=_example("CheckBox", label=_literal("Willing to relocate"),
                          value={"path": "/relocate"}),
)
text_field = CatalogItem(
    "TextField", build_text_field,
    example_data=_example("TextField", label=_literal("Your hobbies"),
                          text={"path": "/hobbies"}, textFieldType="shortText"),
)
slider = CatalogItem(
    "Slider", build_slider,
    example_data=_example("Slider", value={"path": "/years"},
                          minValue={"literalNumber": 0}, maxValue={"literalNumber": 10}),
)
image = CatalogItem(
    "Image", build_image,
    example_data=_example("Image", url=_literal("https://example.com/badge.png")),
)

icon = CatalogItem("Icon", build_icon, example_data=_example("Icon", name=_literal("star")))
image_fixed_size = CatalogItem(
    "ImageFixedSize", build_image_fixed_size,
    example_data=_example("ImageFixedSize", url=_literal("https://example.com/insignia.png"),
                          size={"literalNumber": 48}),
)
multiple_choice = CatalogItem(
    "MultipleChoice", build_multiple_choice,
    example_data=_example(
        "MultipleChoice",
        selections={"path": "/interests"},
        options=[
            {"label": _literal("Working outdoors"), "value": "outdoors"},
            {"label": _literal("Fixing machines"), "value": "mechanics"},
            {"label": _literal("Helping people"), "value": "medical"},
        ],
        maxAllowedSelections=2,
    ),
)
tabs = CatalogItem(
    "Tabs", build_tabs,
    example_data=_example("Tabs", tabItems=[
        {"title": _literal("Duties"), "child": "duties_text"},
        {"title": _literal("Training"), "child": "training_text"},
    ]),
)
modal = CatalogItem(
    "Modal", build_modal,
    example_data=_example("Modal", entryPointChild="details_button",
                          contentChild="details_card"),
)
date_time_input = CatalogItem(
    "DateTimeInput", build_date_time_input,
    example_data=_example("DateTimeInput", value={"path": "/available_from"},
                          enableDate=True, enableTime=False),
)
audio_player = CatalogItem(
    "AudioPlayer", build_audio_player,
    example_data=_example("AudioPlayer", url=_literal("https://example.com/cadence.mp3"),
                          description=_literal("Marching cadence")),
)
video = CatalogItem(
    "Video", build_video,
    example_data=_example("Video", url=_literal("https://example.com/basic-training.mp4")),
)

CORE_ITEMS = [
    audio_player, button, card, check_box, column, date_time_input, divider, icon, image,
    image_fixed_size, list_, modal, multiple_choice, row, slider, tabs, text, text_field,
    video,
]
