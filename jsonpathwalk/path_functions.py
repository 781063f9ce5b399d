import math
from collections.abc import Callable, Mapping
from decimal import Decimal
from types import MappingProxyType
from typing import Any

from .errors import PathFunctionError


class PathFunction:
    def __init__(self, function_fn: Callable[..., Any], *args: Any, **kwargs: Any):
        self._function_fn = function_fn
        self._args = args
        self._kwargs = kwargs

    def __call__(self, current_value: Any) -> Any:
        return self._function_fn(current_value, *self._args, **self._kwargs)

    def with_args(self, *args: Any, **kwargs: Any) -> "PathFunction":
        return PathFunction(self._function_fn, *args, **kwargs)


def register_path_function(
    registry: Mapping[str, PathFunction],
    name: str,
    path_function: PathFunction | Callable[..., Any],
) -> Mapping[str, PathFunction]:
    """Return a new read-only registry with `name` bound to `path_function`."""
    if not name or not name.isidentifier():
        raise ValueError(f"Invalid path function name '{name}'.")
    if not isinstance(path_function, PathFunction):
        path_function = PathFunction(path_function)
    return MappingProxyType({**registry, name: path_function})


def get_path_function(registry: Mapping[str, PathFunction], name: str) -> PathFunction:
    try:
        return registry[name]
    except KeyError as ex:
        raise KeyError(f"Path function '{name}' is not registered.") from ex


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float | Decimal) and not isinstance(value, bool)


def _numbers(name: str, value: Any, extra: tuple[Any, ...]) -> list[Any]:
    items = list(value) if isinstance(value, list | tuple) else [value]
    items.extend(extra)
    for item in items:
        if not _is_number(item):
            raise PathFunctionError(
                name, f"Expected numeric values, got {type(item).__name__}."
            )
    if not items:
        raise PathFunctionError(
            name, "Aggregation function attempted to calculate value using empty array."
        )
    return items


def _avg(value: Any, *extra: Any) -> Any:
    numbers = _numbers("avg", value, extra)
    return sum(numbers) / len(numbers)


def _stddev(value: Any, *extra: Any) -> Any:
    numbers = _numbers("stddev", value, extra)
    mean = sum(numbers) / len(numbers)
    return math.sqrt(sum((number - mean) ** 2 for number in numbers) / len(numbers))


def _sequence(name: str, value: Any) -> list[Any]:
    if not isinstance(value, list | tuple):
        raise PathFunctionError(name, f"Expected an array, got {type(value).__name__}.")
    return list(value)


def _length(value: Any) -> int:
    if isinstance(value, list | tuple | dict | str):
        return len(value)
    raise PathFunctionError(
        "length", f"Expected an array, object or string, got {type(value).__name__}."
    )


def _keys(value: Any) -> list[str]:
    if isinstance(value, dict):
        return list(value.keys())
    raise PathFunctionError("keys", f"Expected an object, got {type(value).__name__}.")


def _concat(value: Any, *extra: Any) -> str:
    items = list(value) if isinstance(value, list | tuple) else [value]
    items.extend(extra)
    parts: list[str] = []
    for item in items:
        if item is None:
            continue
        if isinstance(item, dict | list | tuple):
            raise PathFunctionError(
                "concat", f"Cannot concatenate a {type(item).__name__}."
            )
        parts.append(item if isinstance(item, str) else str(item))
    return "".join(parts)


def _element(name: str, value: Any, index: int) -> Any:
    items = _sequence(name, value)
    if not isinstance(index, int) or isinstance(index, bool):
        raise PathFunctionError(name, f"Index must be an integer, got {index!r}.")
    if not -len(items) <= index < len(items):
        raise PathFunctionError(
            name, f"Index {index} out of bounds for array of length {len(items)}."
        )
    return items[index]


DEFAULT_PATH_FUNCTION_REGISTRY = MappingProxyType(
    {
        "min": lambda x, *extra: min(_numbers("min", x, extra)),
        "max": lambda x, *extra: max(_numbers("max", x, extra)),
        "avg": _avg,
        "stddev": _stddev,
        "sum": lambda x, *extra: sum(_numbers("sum", x, extra)),
        "length": _length,
        "keys": _keys,
        "concat": _concat,
        "append": lambda x, *extra: _sequence("append", x) + list(extra),
        "first": lambda x: _element("first", x, 0),
        "last": lambda x: _element("last", x, -1),
        "index": lambda x, index: _element("index", x, index),
    }
)


def default_path_functions() -> Mapping[str, PathFunction]:
    return MappingProxyType(
        {
            name: PathFunction(function_fn)
            for name, function_fn in DEFAULT_PATH_FUNCTION_REGISTRY.items()
        }
    )
