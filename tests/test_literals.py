import pytest

from pixel_auditor.literals import extract_object_literal, extract_parameters_manually, parse_params_object


def test_extract_simple_literal():
    assert extract_object_literal("gtag('event', 'x', {a: 1}); more()") == "{a: 1}"


def test_extract_nested_literal():
    text = "push({event: 'x', ecommerce: {items: [{id: 1}]}}); after({b: 2})"
    assert extract_object_literal(text) == "{event: 'x', ecommerce: {items: [{id: 1}]}}"


def test_braces_inside_strings_are_ignored():
    text = """f({label: "a } b", other: 'c { d', tpl: `e } f`}) tail"""
    assert extract_object_literal(text) == """{label: "a } b", other: 'c { d', tpl: `e } f`}"""


def test_escaped_quotes_inside_strings():
    text = r"f({name: 'it\'s } here', x: 1})"
    assert extract_object_literal(text) == r"{name: 'it\'s } here', x: 1}"


def test_start_index_skips_earlier_literals():
    text = "{first: 1} then {second: 2}"
    assert extract_object_literal(text, text.index('then')) == "{second: 2}"


@pytest.mark.parametrize("text", [None, "", "no braces here", "{never: 'closed'", "{a: {b: 1}"])
def test_returns_none_for_missing_or_unterminated(text):
    assert extract_object_literal(text) is None


def test_parse_js_style_object():
    params = parse_params_object("{value: 10.5, currency: 'EUR', transaction_id: 'T-1', items: [],}")
    assert params == {'value': 10.5, 'currency': 'EUR', 'transaction_id': 'T-1', 'items': []}


def test_parse_json_object():
    assert parse_params_object('{"value": 3, "debug": true}') == {'value': 3, 'debug': True}


def test_parse_falls_back_to_manual_scan():
    params = parse_params_object("{value: price * 2, currency: 'USD', count: 4, enabled: false}")
    assert params['currency'] == 'USD'
    assert params['count'] == 4
    assert params['enabled'] is False
    assert params['value'] == 'price * 2'


def test_parse_empty_literal():
    assert parse_params_object('') == {}
    assert parse_params_object(None) == {}


def test_manual_scan_coerces_quoted_scalars():
    assert extract_parameters_manually("{a: '12', b: \"null\", c: x}") == {'a': 12, 'b': None, 'c': 'x'}
