import json
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import PathEvaluationError, PathFunctionError, PathNotFoundError
from .nodes import NodeProvider
from .options import Option


def quote_name(name: str) -> str:
    escaped = name.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def iter_children(
    provider: NodeProvider, node: Any, path: str
) -> Iterator[tuple[Any, str]]:
    if provider.is_object(node):
        for key, child in provider.iter_properties(node):
            yield child, f"{path}[{quote_name(key)}]"
    elif provider.is_array(node):
        for index, child in enumerate(provider.iter_elements(node)):
            yield child, f"{path}[{index}]"


class PathToken(Protocol):
    """
    One step of a compiled path.

    `resolve` receives a single (node, canonical path) pair and yields the
    pairs the step produces from it, in document order. `ctx` is the
    evaluation context of the running call.
    """

    @property
    def is_definite(self) -> bool: ...

    def render(self) -> str: ...

    def resolve(
        self, node: Any, path: str, ctx: Any, *, strict: bool, leaf: bool
    ) -> Iterator[tuple[Any, str]]: ...


@dataclass(frozen=True)
class RootToken(PathToken):
    symbol: str = "$"

    @property
    def is_definite(self):
        return True

    def render(self):
        return self.symbol

    def resolve(self, node, path, ctx, *, strict, leaf):
        yield node, self.symbol


@dataclass(frozen=True)
class PropertyToken(PathToken):
    names: tuple[str, ...]

    @property
    def is_definite(self):
        return len(self.names) == 1

    def render(self):
        return "[" + ",".join(quote_name(name) for name in self.names) + "]"

    def resolve(self, node, path, ctx, *, strict, leaf):
        provider = ctx.provider
        if not provider.is_object(node):
            if strict and ctx.definite:
                raise PathNotFoundError(
                    path=path,
                    token=self.render(),
                    message=(
                        f"Expected to find an object with property {self.render()} "
                        f"in path {path} but found '{type(provider.unwrap(node)).__name__}'"
                    ),
                )
            return

        for name in self.names:
            child_path = f"{path}[{quote_name(name)}]"
            if provider.has_property(node, name):
                yield provider.get_property(node, name), child_path
            elif leaf and ctx.has_option(Option.DEFAULT_PATH_LEAF_TO_NULL):
                yield None, child_path
            elif strict and (ctx.definite or ctx.has_option(Option.REQUIRE_PROPERTIES)):
                raise PathNotFoundError(
                    path=path,
                    token=name,
                    message=f"Missing property in path {child_path}",
                )


@dataclass(frozen=True)
class WildcardToken(PathToken):
    @property
    def is_definite(self):
        return False

    def render(self):
        return "[*]"

    def resolve(self, node, path, ctx, *, strict, leaf):
        yield from iter_children(ctx.provider, node, path)


@dataclass(frozen=True)
class ArrayIndexToken(PathToken):
    indices: tuple[int, ...]

    @property
    def is_definite(self):
        return len(self.indices) == 1

    def render(self):
        return "[" + ",".join(str(index) for index in self.indices) + "]"

    def resolve(self, node, path, ctx, *, strict, leaf):
        provider = ctx.provider
        if not provider.is_array(node):
            if strict and ctx.definite:
                raise PathNotFoundError(
                    path=path,
                    token=self.render(),
                    message=(
                        f"Expected to find an array with index {self.render()} "
                        f"in path {path} but found '{type(provider.unwrap(node)).__name__}'"
                    ),
                )
            return

        length = provider.length(node)
        for index in self.indices:
            position = index + length if index < 0 else index
            if 0 <= position < length:
                yield provider.get_element(node, position), f"{path}[{position}]"
            elif strict and ctx.has_option(Option.REQUIRE_PROPERTIES):
                raise PathNotFoundError(
                    path=path,
                    token=str(index),
                    message=f"Index {index} out of bounds in path {path} (length {length})",
                )


@dataclass(frozen=True)
class ArraySliceToken(PathToken):
    start: int | None = None
    end: int | None = None
    step: int | None = None

    @property
    def is_definite(self):
        return False

    def render(self):
        start = "" if self.start is None else str(self.start)
        end = "" if self.end is None else str(self.end)
        if self.step is None:
            return f"[{start}:{end}]"
        return f"[{start}:{end}:{self.step}]"

    def resolve(self, node, path, ctx, *, strict, leaf):
        provider = ctx.provider
        if not provider.is_array(node):
            return
        bounds = slice(self.start, self.end, self.step).indices(provider.length(node))
        for position in range(*bounds):
            yield provider.get_element(node, position), f"{path}[{position}]"


@dataclass(frozen=True)
class DeepScanToken(PathToken):
    @property
    def is_definite(self):
        return False

    def render(self):
        return ".."

    def resolve(self, node, path, ctx, *, strict, leaf):
        # Pre-order with an explicit stack so deep documents cannot exhaust the
        # interpreter's recursion limit.
        stack: list[tuple[Any, str, int]] = [(node, path, 0)]
        while stack:
            current, current_path, depth = stack.pop()
            if depth > ctx.max_scan_depth:
                raise PathEvaluationError(
                    f"Deep scan exceeded the maximum depth of {ctx.max_scan_depth} "
                    f"at {current_path}."
                )
            yield current, current_path
            children = list(iter_children(ctx.provider, current, current_path))
            stack.extend(
                (child, child_path, depth + 1)
                for child, child_path in reversed(children)
            )


@dataclass(frozen=True)
class FilterToken(PathToken):
    predicate: Any
    text: str

    @property
    def is_definite(self):
        return False

    def render(self):
        return f"[?{self.text}]"

    def resolve(self, node, path, ctx, *, strict, leaf):
        for child, child_path in iter_children(ctx.provider, node, path):
            if ctx.test(self.predicate, child):
                yield child, child_path


@dataclass(frozen=True)
class FunctionToken:
    """Terminal step: consumes the whole result of the preceding tokens."""

    name: str
    args: tuple[Any, ...] = ()

    @property
    def is_definite(self):
        return True

    def render(self):
        rendered_args = ", ".join(json.dumps(arg) for arg in self.args)
        return f".{self.name}({rendered_args})"

    def apply(self, value: Any, functions: Mapping[str, Any]) -> Any:
        try:
            path_function = functions[self.name]
        except KeyError as ex:
            raise PathFunctionError(self.name, "Function is not registered.") from ex
        if self.args:
            path_function = path_function.with_args(*self.args)
        try:
            return path_function(value)
        except PathFunctionError:
            raise
        except (TypeError, ValueError, ArithmeticError, KeyError, IndexError) as ex:
            raise PathFunctionError(self.name, str(ex)) from ex
