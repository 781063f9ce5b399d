import pytest

from jsonpathwalk import compile_path, jsonpathwalk
from jsonpathwalk.errors import InvalidPathError
from jsonpathwalk.predicate import (
    Comparison,
    Empty,
    Existence,
    Literal,
    Logical,
    LogicalOp,
    PathOperand,
    RegexLiteral,
    SizeOf,
    TypeOf,
    evaluate_predicate,
    parse_literal_list,
    parse_predicate,
)


def _compile_operand(text):
    return compile_path(text, relative=True)


def _resolve_from(values):
    def resolve(operand, candidate):
        return values.get(operand.path.raw, [])

    return resolve


def _select(data, predicate):
    return jsonpathwalk.read({"items": data}, f"$.items[?({predicate})]")


def test_parse_predicate__precedence_of_and_over_or():
    predicate = parse_predicate("@.a || @.b && @.c", _compile_operand)

    assert isinstance(predicate, Logical)
    assert predicate.op is LogicalOp.OR
    assert isinstance(predicate.children[0], Existence)
    assert predicate.children[1].op is LogicalOp.AND


def test_parse_predicate__parentheses_group():
    predicate = parse_predicate("(@.a || @.b) && @.c", _compile_operand)

    assert predicate.op is LogicalOp.AND
    assert predicate.children[0].op is LogicalOp.OR


def test_parse_predicate__word_operators_are_case_insensitive():
    predicate = parse_predicate("@.a IN [1, 2]", _compile_operand)

    assert isinstance(predicate, Comparison)
    assert predicate.op == "in"
    assert predicate.right == Literal((1, 2))


def test_parse_predicate__variants():
    assert isinstance(parse_predicate("@.a size 2", _compile_operand), SizeOf)
    assert isinstance(parse_predicate("@.a empty true", _compile_operand), Empty)
    assert isinstance(parse_predicate("@.a type 'string'", _compile_operand), TypeOf)
    regex = parse_predicate("@.a =~ /ab+/i", _compile_operand).right
    assert regex == RegexLiteral("ab+", "i")


def test_parse_literal_list__literals():
    assert parse_literal_list("1, -2.5, 'x', \"y\", true, false, null, [1, 'a']") == (
        1,
        -2.5,
        "x",
        "y",
        True,
        False,
        None,
        (1, "a"),
    )
    assert parse_literal_list("  ") == ()
    assert parse_literal_list("1e3") == (1000.0,)


def test_evaluate_predicate__missing_operand_is_false():
    predicate = Comparison(
        "==", PathOperand(_compile_operand("@.a"), absolute=False), Literal(None)
    )

    assert evaluate_predicate(predicate, {}, _resolve_from({})) is False
    assert evaluate_predicate(predicate, {}, _resolve_from({"@.a": [None]})) is True


def test_evaluate_predicate__not_equal_with_missing_operand_is_false():
    predicate = Comparison(
        "!=", PathOperand(_compile_operand("@.a"), absolute=False), Literal(1)
    )

    assert evaluate_predicate(predicate, {}, _resolve_from({})) is False


def test_evaluate_predicate__not_inverts():
    inner = Existence(PathOperand(_compile_operand("@.a"), absolute=False))
    predicate = Logical(LogicalOp.NOT, (inner,))

    assert evaluate_predicate(predicate, {}, _resolve_from({})) is True
    assert evaluate_predicate(predicate, {}, _resolve_from({"@.a": [1]})) is False


def test_predicate__numbers_compare_numerically():
    data = [{"v": 1}, {"v": 1.0}, {"v": 2}]

    assert _select(data, "@.v == 1") == [{"v": 1}, {"v": 1.0}]
    assert _select(data, "@.v > 1.5") == [{"v": 2}]


def test_predicate__number_and_numeric_string_compare_numerically():
    data = [{"id": "1"}, {"id": 2}, {"id": "x"}]

    assert _select(data, "@.id == 1") == [{"id": "1"}]
    assert _select(data, "@.id < 2") == [{"id": "1"}]


def test_predicate__strings_compare_lexicographically():
    data = [{"n": "apple"}, {"n": "banana"}, {"n": "cherry"}]

    assert _select(data, "@.n < 'banana'") == [{"n": "apple"}]
    assert _select(data, "@.n >= 'banana'") == [{"n": "banana"}, {"n": "cherry"}]


def test_predicate__numeric_strings_compare_as_strings_with_strings():
    data = [{"n": "10"}, {"n": "9"}]

    assert _select(data, "@.n < '9'") == [{"n": "10"}]


def test_predicate__booleans_only_equal_booleans():
    data = [{"b": True}, {"b": 1}, {"b": "true"}]

    assert _select(data, "@.b == true") == [{"b": True}]
    assert _select(data, "@.b == 1") == [{"b": 1}]


def test_predicate__null_equals_null():
    data = [{"a": None}, {"a": 0}, {}]

    assert _select(data, "@.a == null") == [{"a": None}]


def test_predicate__incomparable_ordering_is_false():
    data = [{"a": "x"}, {"a": [1]}, {"a": None}]

    assert _select(data, "@.a > 1") == []
    assert _select(data, "@.a < 1") == []


def test_predicate__not_equal_is_negation_for_resolved_operands():
    data = [{"a": 1}, {"a": 2}, {"b": 1}]

    assert _select(data, "@.a != 1") == [{"a": 2}]


def test_predicate__regex_full_match():
    data = [{"s": "abc"}, {"s": "xabc"}, {"s": "ABC"}, {"s": 1}]

    assert _select(data, "@.s =~ /abc/") == [{"s": "abc"}]
    assert _select(data, "@.s =~ /abc/i") == [{"s": "abc"}, {"s": "ABC"}]
    assert _select(data, "@.s =~ '.*abc'") == [{"s": "abc"}, {"s": "xabc"}]


def test_predicate__regex_with_slash_and_brackets():
    data = [{"p": "a/b"}, {"p": "a]b"}]

    assert _select(data, r"@.p =~ /a\/b/") == [{"p": "a/b"}]
    assert _select(data, "@.p =~ /a[\\]]b/") == [{"p": "a]b"}]


def test_predicate__in_and_nin():
    data = [{"c": "a"}, {"c": "b"}, {"c": 1}, {}]

    assert _select(data, "@.c in ['a', 1]") == [{"c": "a"}, {"c": 1}]
    assert _select(data, "@.c nin ['a', 1]") == [{"c": "b"}]


def test_predicate__in_uses_numeric_equality():
    data = [{"c": 1.0}, {"c": 3}]

    assert _select(data, "@.c in [1, 2]") == [{"c": 1.0}]


def test_predicate__subsetof_anyof_noneof():
    data = [{"t": ["a", "b"]}, {"t": ["a", "z"]}, {"t": ["z"]}, {"t": "a"}]

    assert _select(data, "@.t subsetof ['a', 'b', 'c']") == [{"t": ["a", "b"]}]
    assert _select(data, "@.t anyof ['a']") == [{"t": ["a", "b"]}, {"t": ["a", "z"]}]
    assert _select(data, "@.t noneof ['a', 'b']") == [{"t": ["z"]}]


def test_predicate__contains_for_strings_and_lists():
    data = [{"v": "hello world"}, {"v": ["world"]}, {"v": "hi"}]

    assert _select(data, "@.v contains 'world'") == [
        {"v": "hello world"},
        {"v": ["world"]},
    ]


def test_predicate__size():
    data = [{"v": "abc"}, {"v": [1, 2, 3]}, {"v": {"a": 1}}, {"v": 3}]

    assert _select(data, "@.v size 3") == [{"v": "abc"}, {"v": [1, 2, 3]}]
    assert _select(data, "@.v size 1") == [{"v": {"a": 1}}]


def test_predicate__empty():
    data = [{"v": ""}, {"v": []}, {"v": {}}, {"v": [1]}, {"v": 0}, {}]

    assert _select(data, "@.v empty true") == [{"v": ""}, {"v": []}, {"v": {}}]
    assert _select(data, "@.v empty false") == [{"v": [1]}]


def test_predicate__type():
    data = [{"v": "s"}, {"v": 1}, {"v": True}, {"v": None}, {"v": []}, {"v": {}}]

    assert _select(data, "@.v type 'string'") == [{"v": "s"}]
    assert _select(data, "@.v type 'number'") == [{"v": 1}]
    assert _select(data, "@.v type 'boolean'") == [{"v": True}]
    assert _select(data, "@.v type 'null'") == [{"v": None}]
    assert _select(data, "@.v type 'array'") == [{"v": []}]
    assert _select(data, "@.v type 'object'") == [{"v": {}}]


def test_predicate__compares_two_paths():
    data = [{"a": 1, "b": 1}, {"a": 1, "b": 2}]

    assert _select(data, "@.a == @.b") == [{"a": 1, "b": 1}]


def test_predicate__structural_equality_of_arrays():
    data = [{"v": [1, "a"]}, {"v": [1, "b"]}]

    assert _select(data, "@.v == [1, 'a']") == [{"v": [1, "a"]}]


def test_predicate__function_failure_in_operand_is_false():
    data = [{"v": [1, 2]}, {"v": ["a"]}]

    assert _select(data, "@.v.sum() > 2") == [{"v": [1, 2]}]


def test_predicate__existence_of_indefinite_operand():
    data = [{"v": [{"x": 1}]}, {"v": [{"y": 1}]}, {"v": []}]

    assert _select(data, "@.v[*].x") == [{"v": [{"x": 1}]}]


@pytest.mark.parametrize("predicate", ["@.a =", "@.a &&", "'a'", "@.a == 1 1"])
def test_parse_predicate__rejects_malformed(predicate):
    with pytest.raises(InvalidPathError):
        parse_predicate(predicate, _compile_operand)


@pytest.mark.parametrize("predicate", ["!" * 5000 + "@.x", "(" * 5000 + "@.x" + ")" * 5000])
def test_parse_predicate__deep_nesting_is_an_invalid_path(predicate):
    with pytest.raises(InvalidPathError) as ex:
        parse_predicate(predicate, _compile_operand)

    assert "nested too deeply" in ex.value.message


def test_compile__deeply_nested_filter_is_an_invalid_path():
    with pytest.raises(InvalidPathError):
        compile_path("$.a[?(" + "!" * 5000 + "@.x)]")


def test_parse_literal_list__deep_nesting_is_an_invalid_path():
    with pytest.raises(InvalidPathError):
        parse_literal_list("[" * 5000 + "]" * 5000)
