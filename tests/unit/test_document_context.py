import pytest

from jsonpathwalk import jsonpathwalk, parse, read
from jsonpathwalk.errors import PathNotFoundError


def test_json_string__integer_scalar():
    assert parse(5).json_string() == "5"


def test_json_string__float_scalar_keeps_decimal_point():
    assert parse(5.0).json_string() == "5.0"


def test_json_string__boolean_scalar():
    assert parse(True).json_string() == "true"


def test_json_string__document():
    assert parse({"a": [1, None]}).json_string() == '{"a": [1, null]}'


def test_parse__reads_from_bound_document(store):
    context = parse(store)

    assert context.document is store
    assert context.read("$.store.bicycle.color") == "red"
    assert context.read_paths("$.store.bicycle.color") == [
        "$['store']['bicycle']['color']"
    ]
    assert context.exists("$.store.book[?(@.isbn)]") is True
    assert [match.value for match in context.find("$.expensive")] == [10]


def test_parse_json__parses_text():
    context = jsonpathwalk.parse_json('{"numbers": [1.5, 2.5], "flag": true}')

    assert context.read("$.numbers.sum()") == 4.0
    assert context.read("$.flag") is True


def test_parse__scalar_document_root_path():
    assert parse(5).read("$") == 5

    with pytest.raises(PathNotFoundError):
        parse(5).read("$.a")


def test_read__package_level_helper():
    assert read({"a": {"b": 1}}, "$.a.b") == 1
