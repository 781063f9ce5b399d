import dataclasses
from types import SimpleNamespace

import pytest

from jsonpathwalk import (
    Configuration,
    JsonPathWalk,
    LRUPathCache,
    NativeNodeProvider,
    NoopPathCache,
    Option,
    ResultLimit,
    default_configuration,
)
from jsonpathwalk import cache as cache_module
from jsonpathwalk.errors import PathEvaluationError


class NamespaceProvider(NativeNodeProvider):
    def is_object(self, node):
        return isinstance(node, SimpleNamespace)

    def has_property(self, node, name):
        return self.is_object(node) and name in vars(node)

    def get_property(self, node, name):
        return vars(node)[name]

    def iter_properties(self, node):
        return iter(vars(node).items())

    def unwrap(self, node):
        if self.is_object(node):
            return {key: self.unwrap(value) for key, value in vars(node).items()}
        if self.is_array(node):
            return [self.unwrap(value) for value in node]
        return node


def _namespace_document():
    return SimpleNamespace(
        meta=SimpleNamespace(name="shop", open=True),
        items=[
            SimpleNamespace(name="pen", price=2),
            SimpleNamespace(name="book", price=12),
            SimpleNamespace(name="cup", price=6),
        ],
    )


def test_configuration__is_immutable():
    configuration = Configuration()

    with pytest.raises(dataclasses.FrozenInstanceError):
        configuration.options = frozenset({Option.AS_PATH_LIST})


def test_configuration__option_helpers_return_new_instances():
    base = Configuration(cache=NoopPathCache())
    added = base.add_options(Option.ALWAYS_RETURN_LIST, Option.SUPPRESS_EXCEPTIONS)
    replaced = added.set_options(Option.AS_PATH_LIST)

    assert base.options == frozenset()
    assert added.contains_option(Option.ALWAYS_RETURN_LIST)
    assert added.contains_option(Option.SUPPRESS_EXCEPTIONS)
    assert replaced.options == frozenset({Option.AS_PATH_LIST})


def test_configuration__listener_helpers():
    first, second = ResultLimit(1), ResultLimit(2)
    configuration = Configuration().add_evaluation_listeners(first)

    assert configuration.add_evaluation_listeners(second).listeners == (first, second)
    assert configuration.set_evaluation_listeners(second).listeners == (second,)


def test_configuration__with_provider_and_cache():
    provider = NamespaceProvider()
    cache = LRUPathCache(max_size=5)
    configuration = Configuration().with_provider(provider).with_cache(cache)

    assert configuration.provider is provider
    assert configuration.cache is cache


def test_configuration__functions_are_read_only():
    configuration = Configuration()

    with pytest.raises(TypeError):
        configuration.functions["double"] = lambda x: x * 2


def test_configuration__add_function_keeps_original_untouched():
    base = Configuration()
    extended = base.add_function("double", lambda x: x * 2)

    assert "double" in extended.functions
    assert "double" not in base.functions
    assert extended.fingerprint != base.fingerprint


def test_configuration__with_functions_replaces_registry():
    configuration = Configuration().with_functions({})

    assert dict(configuration.functions) == {}


def test_configuration__fingerprint_depends_on_options():
    base = Configuration()

    assert base.fingerprint == Configuration().fingerprint
    assert base.add_options(Option.AS_PATH_LIST).fingerprint != base.fingerprint


def test_configuration__rejects_non_positive_scan_depth():
    with pytest.raises(ValueError):
        Configuration(max_scan_depth=0)


def test_default_configuration__uses_shared_cache(isolated_shared_cache):
    first = default_configuration()
    second = default_configuration(options=[Option.SUPPRESS_EXCEPTIONS])

    assert first.cache is second.cache
    assert isinstance(first.cache, LRUPathCache)
    assert second.options == frozenset({Option.SUPPRESS_EXCEPTIONS})
    assert isinstance(first.provider, NativeNodeProvider)


def test_default_configuration__explicit_cache():
    cache = NoopPathCache()

    assert default_configuration(cache=cache).cache is cache


def test_walk__default_configuration_when_none_given(isolated_shared_cache):
    walk = JsonPathWalk()

    assert walk.configuration.cache is cache_module.shared_path_cache()


def test_walk__configured_options_apply_to_every_read():
    walk = JsonPathWalk(
        Configuration(options={Option.ALWAYS_RETURN_LIST}, cache=NoopPathCache())
    )

    assert walk.read({"a": 1}, "$.a") == [1]
    assert walk.read({"a": 1}, "$.a", options=[Option.AS_PATH_LIST]) == ["$['a']"]


def test_walk__deep_scan_depth_is_bounded():
    walk = JsonPathWalk(Configuration(max_scan_depth=2, cache=NoopPathCache()))
    data = {"a": {"b": {"c": {"d": 1}}}}

    with pytest.raises(PathEvaluationError):
        walk.read(data, "$..d")

    assert walk.read({"a": {"d": 1}}, "$..d") == [1]


def test_walk__deep_scan_over_very_deep_document_reports_error():
    data = {}
    node = data
    for _ in range(5000):
        node["n"] = {}
        node = node["n"]
    walk = JsonPathWalk(Configuration(cache=NoopPathCache()))

    with pytest.raises(PathEvaluationError):
        walk.read(data, "$..missing")


def test_walk__custom_provider_reads_namespaces():
    walk = JsonPathWalk(
        Configuration(provider=NamespaceProvider(), cache=NoopPathCache())
    )
    document = _namespace_document()

    assert walk.read(document, "$.meta.name") == "shop"
    assert walk.read(document, "$.items[?(@.price < 10)].name") == ["pen", "cup"]
    assert walk.read(document, "$.items[*].price.sum()") == 20
    assert walk.read(document, "$.meta.keys()") == ["name", "open"]
    assert walk.read_paths(document, "$..price") == [
        "$['items'][0]['price']",
        "$['items'][1]['price']",
        "$['items'][2]['price']",
    ]


def test_walk__custom_provider_json_string():
    walk = JsonPathWalk(
        Configuration(provider=NamespaceProvider(), cache=NoopPathCache())
    )
    document = SimpleNamespace(a=[1, SimpleNamespace(b=None)])

    assert walk.parse(document).json_string() == '{"a": [1, {"b": null}]}'
