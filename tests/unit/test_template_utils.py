from utils.template_utils import get_nested_value, stringify_value, interpolate_variables, interpolate_structure


def test_get_nested_value_walks_dicts_and_lists():
    data = {"order": {"items": [{"name": "Lamp"}, {"name": "Desk"}]}}

    assert get_nested_value(data, "order.items[1].name") == "Desk"
    assert get_nested_value(data, "order.items[5].name") is None
    assert get_nested_value(data, "order.missing.name") is None
    assert get_nested_value(data, "order.items.name") is None


def test_stringify_value():
    assert stringify_value(None) == ""
    assert stringify_value(True) == "true"
    assert stringify_value(False) == "false"
    assert stringify_value(3) == "3"
    assert stringify_value(5.0) == "5"
    assert stringify_value(2.5) == "2.5"
    assert stringify_value({"a": 1}) == '{"a": 1}'


def test_interpolate_variables():
    variables = {"name": "Ada", "cart": {"total": 12.5}, "vip": True}

    assert interpolate_variables("Hi {{name}}, total {{ cart.total }}", variables) == "Hi Ada, total 12.5"
    assert interpolate_variables("VIP: {{vip}}", variables) == "VIP: true"
    assert interpolate_variables("Unknown: [{{nope}}]", variables) == "Unknown: []"
    assert interpolate_variables("", variables) == ""


def test_interpolate_structure_substitutes_inside_strings_only():
    variables = {"name": 'Jo "JJ"', "count": 2}
    body = {"name": "{{name}}", "items": ["{{count}}", 3, None], "flag": True}

    assert interpolate_structure(body, variables) == {"name": 'Jo "JJ"', "items": ["2", 3, None], "flag": True}
