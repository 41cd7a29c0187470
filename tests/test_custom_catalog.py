"""
Tests for genui_poc.catalog.custom_catalog and the pure helpers of core_items.

The modules import headless (see conftest). Builders that would create KivyMD
widgets are not called; the empty Scale placeholder is a plain Kivy widget.
"""

import json

import pytest
from kivy.uix.widget import Widget

from genui_poc.a2ui import SurfaceHost
from genui_poc.catalog import ItemContext
from genui_poc.catalog import core_items
from genui_poc.catalog.custom_catalog import (
    CATALOG_ID,
    DEFAULT_SCALE_ACTION,
    ScaleInput,
    as_catalog,
    build_padded_button,
    build_scale,
    scale_selection,
)

FREQUENCY = ["Never", "Rarely", "Sometimes", "Often", "Always"]
CORE_NAMES = [
    "AudioPlayer", "Button", "Card", "CheckBox", "Column", "DateTimeInput", "Divider",
    "Icon", "Image", "ImageFixedSize", "List", "Modal", "MultipleChoice", "Row",
    "Slider", "Tabs", "Text", "TextField", "Video",
]


@pytest.fixture
def host():
    host = SurfaceHost()
    host.handle_message({"beginRendering": {"surfaceId": "main", "root": "root"}})
    host.handle_message({"dataModelUpdate": {"surfaceId": "main", "contents": [
        {"key": "options", "valueList": FREQUENCY},
        {"key": "frequency", "valueNumber": 1},
    ]}})
    return host


@pytest.fixture
def actions(host):
    received = []
    host.add_action_listener(received.append)
    return received


def make_context(host, data=None, component_id="scale_1"):
    return ItemContext(
        host=host,
        surface_id="main",
        component_id=component_id,
        data=data or {},
        build_child=lambda child_id, child_scope: None,
    )


# ========================================================================
# as_catalog
# ========================================================================


class TestAsCatalog:
    def test_catalog_id_and_items(self):
        catalog = as_catalog()
        assert catalog.catalog_id == CATALOG_ID == "a2ui_jobs_v2.custom_catalog"
        assert sorted(catalog.names) == sorted(CORE_NAMES + ["Scale"])
        assert len(catalog) == len(CORE_NAMES) + 1

    def test_button_is_the_padded_variant(self):
        button = as_catalog().get("Button")
        assert button.widget_builder is build_padded_button
        assert button is not core_items.button
        assert button.data_schema == core_items.button.data_schema
        assert button.example_data is core_items.button.example_data

    def test_other_core_items_kept_as_is(self):
        catalog = as_catalog()
        for item in core_items.CORE_ITEMS:
            if item.name != "Button":
                assert catalog.get(item.name) is item

    def test_scale_registered_with_schema(self):
        scale = as_catalog().get("Scale")
        assert scale.widget_builder is build_scale
        assert scale.data_schema["required"] == ["question", "options"]

    def test_describe_lists_every_item_with_json_example(self):
        description = as_catalog().describe()
        for name in CORE_NAMES + ["Scale"]:
            assert f"- {name}" in description
        examples = [line.split("example: ", 1)[1] for line in description.splitlines()
                    if line.strip().startswith("example:")]
        assert len(examples) == len(CORE_NAMES) + 1
        assert all(json.loads(example)["id"] for example in examples)


# ========================================================================
# Scale
# ========================================================================


class TestBuildScale:
    @pytest.mark.parametrize("options", [None, [], {"literalArray": []}, {"path": "/missing"},
                                         "Never", 5])
    def test_empty_options_render_no_interactive_element(self, host, options):
        widget = build_scale(make_context(host, {"question": {"literalString": "Q"},
                                                 "options": options}))
        assert isinstance(widget, Widget)
        assert not isinstance(widget, ScaleInput)
        assert widget.children == []
        assert widget.height == 0

    def test_no_selection_without_options(self, host):
        assert scale_selection(make_context(host, {"options": []})) is None


class TestScaleSelection:
    def test_options_and_value_from_data_model(self, clock, host):
        ctx = make_context(host, {"options": {"path": "/options"},
                                  "value": {"path": "/frequency"}})
        selection = scale_selection(ctx, clock=clock)
        assert selection.options == FREQUENCY
        assert selection.displayed_index == 1

    def test_non_numeric_value_shows_middle(self, clock, host):
        ctx = make_context(host, {"options": {"literalArray": FREQUENCY},
                                  "value": {"literalString": "inf"}})
        assert scale_selection(ctx, clock=clock).displayed_index == 2

    def test_drag_propagates_to_data_model_next_frame(self, clock, host):
        ctx = make_context(host, {"options": {"literalArray": FREQUENCY},
                                  "value": {"path": "/frequency"}})
        selection = scale_selection(ctx, clock=clock)
        selection.select(4)
        assert selection.displayed_index == 4
        assert host.get_data("main", "/frequency") == 1
        clock.advance()
        assert host.get_data("main", "/frequency") == 4

    def test_unbound_value_drag_stays_local(self, clock, host):
        ctx = make_context(host, {"options": {"literalArray": FREQUENCY},
                                  "value": {"literalNumber": 0}})
        selection = scale_selection(ctx, clock=clock)
        selection.select(3)
        clock.advance()
        assert selection.displayed_index == 3
        assert host.get_data("main", "/frequency") == 1

    def test_submit_dispatches_selected_index_and_label(self, clock, host, actions):
        ctx = make_context(host, {
            "options": {"literalArray": FREQUENCY},
            "action": {"name": "rate_exercise",
                       "context": [{"key": "question", "value": {"literalString": "exercise"}}]},
        })
        selection = scale_selection(ctx, clock=clock)
        selection.select(3)
        selection.submit()
        assert len(actions) == 1
        assert actions[0].name == "rate_exercise"
        assert actions[0].source_component_id == "scale_1"
        assert actions[0].context == {
            "question": "exercise",
            "selectedIndex": 3,
            "selectedLabel": "Often",
        }

    def test_submit_without_action_uses_default_name(self, clock, host, actions):
        ctx = make_context(host, {"options": ["Yes", "No"]})
        scale_selection(ctx, clock=clock).submit()
        assert actions[0].name == DEFAULT_SCALE_ACTION
        assert actions[0].context == {"selectedIndex": 0, "selectedLabel": "Yes"}


# ========================================================================
# Core item helpers
# ========================================================================


class TestChoiceHelpers:
    def test_choice_options_resolve_labels(self, host):
        ctx = make_context(host, {"options": [
            {"label": {"literalString": "Outdoors"}, "value": "outdoors"},
            {"label": {"literalString": "Machines"}},
            "junk",
            {},
        ]})
        assert core_items.choice_options(ctx) == [
            ("Outdoors", "outdoors"), ("Machines", "Machines"),
        ]

    @pytest.mark.parametrize(
        "selected, value, active, max_allowed, expected",
        [
            ([], "a", True, None, ["a"]),
            (["a"], "b", True, None, ["a", "b"]),
            (["a", "b"], "a", False, None, ["b"]),
            (["a"], "b", True, 1, ["b"]),
            (["a", "b"], "c", True, 2, ["b", "c"]),
            (["a"], "a", True, None, ["a"]),
            (None, "a", False, None, []),
        ],
    )
    def test_toggle_choice(self, selected, value, active, max_allowed, expected):
        assert core_items.toggle_choice(selected, value, active, max_allowed) == expected


class TestDateTimeHelpers:
    @pytest.mark.parametrize(
        "text, enable_date, enable_time, expected",
        [
            ("2026-03-01", True, False, "2026-03-01"),
            (" 2026-03-01 ", True, False, "2026-03-01"),
            ("07:30", False, True, "07:30"),
            ("2026-03-01 07:30", True, True, "2026-03-01T07:30"),
            ("01/03/2026", True, False, None),
            ("2026-02-30", True, False, None),
            ("25:00", False, True, None),
            ("", True, False, None),
        ],
    )
    def test_parse_date_time(self, text, enable_date, enable_time, expected):
        assert core_items.parse_date_time(text, enable_date, enable_time) == expected

    def test_neither_flag_means_date(self):
        assert core_items.parse_date_time("2026-03-01", False, False) == "2026-03-01"


class TestIconName:
    @pytest.mark.parametrize(
        "name, expected",
        [
            ("star", "star"),
            ("accountCircle", "account-circle"),
            ("notAnIconAtAll", core_items.FALLBACK_ICON),
            (None, core_items.FALLBACK_ICON),
        ],
    )
    def test_icon_name(self, name, expected):
        assert core_items.icon_name(name) == expected
