from autoflow.core.templating import apply_mapping, get_nested_value, has_path, pick_fields, render_template


DATA = {
    "city": "Berlin",
    "current": {"temperature": 31.5, "alerts": ["heat", "uv"]},
    "ok": True,
}


def test_get_nested_value():
    assert get_nested_value(DATA, "current.temperature") == 31.5
    assert get_nested_value(DATA, "current.alerts.1") == "uv"
    assert get_nested_value(DATA, "current.alerts.5") is None
    assert get_nested_value(DATA, "missing.path", "fallback") == "fallback"
    assert get_nested_value(DATA, "") is DATA


def test_has_path_distinguishes_none_values():
    assert has_path({"a": None}, "a")
    assert not has_path({"a": None}, "b")


def test_render_template():
    rendered = render_template("{{city}}: {{ current.temperature }}C, alert={{ok}}", DATA)
    assert rendered == "Berlin: 31.5C, alert=true"


def test_render_template_leaves_unresolved_placeholders():
    assert render_template("Hello {{name}}", DATA) == "Hello {{name}}"
    assert render_template("Hello {{name}}", None) == "Hello {{name}}"


def test_render_template_serializes_collections():
    assert render_template("{{current.alerts}}", DATA) == '["heat", "uv"]'


def test_apply_mapping():
    mapping = {"temp": "$.current.temperature", "all": "$", "unit": "celsius", "missing": "$.nope"}
    assert apply_mapping(mapping, DATA) == {
        "temp": 31.5,
        "all": DATA,
        "unit": "celsius",
        "missing": None,
    }


def test_pick_fields():
    assert pick_fields(DATA, ("city", "current.temperature")) == {
        "city": "Berlin",
        "current.temperature": 31.5,
    }
