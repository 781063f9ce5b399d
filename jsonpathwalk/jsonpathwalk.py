import json
import logging
import re
from collections.abc import Callable, Iterable
from typing import Any

from .compiler import CompiledPath, compile_path
from .configuration import Configuration, default_configuration
from .errors import InvalidPathError, PathNotFoundError
from .evaluator import Match, evaluate
from .options import Option
from .path_functions import PathFunction, get_path_function
from .predicate import parse_literal_list
from .tokens import FunctionToken

logger = logging.getLogger(__name__)

_FUNCTION_CALL_RE = re.compile(r"^\s*([A-Za-z_]\w*)\s*(?:\((.*)\))?\s*$", re.DOTALL)


def _compile(configuration: Configuration, path: str | CompiledPath) -> CompiledPath:
    if isinstance(path, CompiledPath):
        return path
    key = (path, configuration.fingerprint)
    return configuration.cache.get_or_compile(
        key, lambda: compile_path(path, configuration.functions)
    )


def _empty_result(compiled: CompiledPath, options: frozenset[Option]) -> Any:
    if Option.AS_PATH_LIST in options or Option.ALWAYS_RETURN_LIST in options:
        return []
    if (
        compiled.is_definite
        or compiled.is_function_path
        or Option.REQUIRE_SINGLE_RESULT in options
    ):
        return None
    return []


def _shape_result(
    compiled: CompiledPath, matches: list[Match], options: frozenset[Option]
) -> Any:
    if Option.AS_PATH_LIST in options:
        return [match.path for match in matches]
    values = [match.value for match in matches]
    if compiled.is_function_path:
        return values[0] if values else None
    if Option.ALWAYS_RETURN_LIST in options:
        return values
    if compiled.is_definite:
        return values[0] if values else None
    if Option.REQUIRE_SINGLE_RESULT in options:
        if len(values) != 1:
            raise PathNotFoundError(
                path=compiled.raw,
                token=None,
                message=f"Expected exactly one result for path {compiled}, found {len(values)}",
            )
        return values[0]
    return values


def _read_path_value(
    document: Any,
    path: str | CompiledPath,
    configuration: Configuration,
    options: Iterable[Option],
) -> Any:
    compiled = _compile(configuration, path)
    effective = configuration.options | frozenset(options)
    try:
        matches = evaluate(compiled, document, configuration, options=effective)
        return _shape_result(compiled, matches, effective)
    except PathNotFoundError as ex:
        if Option.SUPPRESS_EXCEPTIONS not in effective:
            raise
        logger.debug(f"Suppressed missing path {compiled}: {ex.message}")
        return _empty_result(compiled, effective)


def _run_path_function(configuration: Configuration, call: str, value: Any) -> Any:
    match = _FUNCTION_CALL_RE.match(call)
    if not match:
        raise InvalidPathError(
            path=call,
            token=call,
            message="Invalid function call. Expected '<name>' or '<name>(<args>)'.",
        )
    name, args_string = match.groups()
    if name not in configuration.functions:
        raise InvalidPathError(
            path=call, token=name, message=f"Function '{name}' is not registered."
        )
    args = parse_literal_list(args_string or "")
    return FunctionToken(name, args).apply(value, configuration.functions)


class DocumentContext:
    """A parsed document bound to the walker that reads from it."""

    def __init__(self, document: Any, walk: "JsonPathWalk"):
        self._document = document
        self._walk = walk

    @property
    def document(self) -> Any:
        return self._document

    def read(self, path: str | CompiledPath, *, options: Iterable[Option] = ()) -> Any:
        return self._walk.read(self._document, path, options=options)

    def read_paths(self, path: str | CompiledPath) -> list[str]:
        return self._walk.read_paths(self._document, path)

    def find(self, path: str | CompiledPath) -> list[Match]:
        return self._walk.find(self._document, path)

    def exists(self, path: str | CompiledPath) -> bool:
        return self._walk.exists(self._document, path)

    def json_string(self) -> str:
        provider = self._walk.configuration.provider
        return json.dumps(provider.unwrap(self._document))


class JsonPathWalk:
    def __init__(self, configuration: Configuration | None = None):
        self._configuration = (
            configuration if configuration is not None else default_configuration()
        )

    @property
    def configuration(self) -> Configuration:
        return self._configuration

    def register_path_function(
        self, name: str, path_function: PathFunction | Callable[..., Any]
    ) -> "JsonPathWalk":
        """
        Return a new `JsonPathWalk` with `name` bound to `path_function`.

        The receiver is left untouched.
        Registered functions can terminate a path, e.g. `$.prices.double()`,
        and receive literal arguments such as `$.prices.scale(2)`.

        Args:
            name: Function name used in path expressions.
            path_function: A `PathFunction` or callable to wrap as `PathFunction`.
                It is called with the selected value followed by the arguments.

        Returns:
            A walker sharing this walker's configuration plus the new function.
        """
        return JsonPathWalk(self._configuration.add_function(name, path_function))

    def get_path_function(self, name: str) -> PathFunction:
        """
        Retrieve a registered path function by name.

        Raises:
            KeyError: If the function name is not registered.
        """
        return get_path_function(self._configuration.functions, name)

    def compile(self, path: str) -> CompiledPath:
        """
        Compile `path`, going through the configured cache.

        Raises:
            InvalidPathError: If the path expression is invalid.
        """
        return _compile(self._configuration, path)

    def find(
        self,
        document: Any,
        path: str | CompiledPath,
        *,
        options: Iterable[Option] = (),
    ) -> list[Match]:
        """
        Return every match of `path` as `Match(value, path)` pairs.

        With `SUPPRESS_EXCEPTIONS` a path that cannot be resolved yields `[]`.
        """
        compiled = _compile(self._configuration, path)
        effective = self._configuration.options | frozenset(options)
        try:
            return evaluate(compiled, document, self._configuration, options=effective)
        except PathNotFoundError:
            if Option.SUPPRESS_EXCEPTIONS not in effective:
                raise
            return []

    def read(
        self,
        document: Any,
        path: str | CompiledPath,
        *,
        options: Iterable[Option] = (),
    ) -> Any:
        """
        Evaluate `path` against `document` and return the selected value(s).

        This method supports:
        - Dot and bracket notation: `$.a.b`, `$['a']['b']`
        - Wildcards: `$.a.*`, `$.a[*]`
        - Array indexes, unions and slices: `$.a[0]`, `$.a[0,2]`, `$.a[1:-1]`, `$.a[::-1]`
        - Deep scan: `$..price`
        - Filters: `$.items[?(@.price < 10 && @.inStock == true)]`
        - Terminal functions: `$.numbers.avg()`

        Args:
            document: Root document to read from.
            path: Path expression or an already compiled path.
            options: Options added to the configured ones for this call.

        Returns:
            A single value for definite and function paths, otherwise a list.
            `ALWAYS_RETURN_LIST` forces a list and `AS_PATH_LIST` returns
            canonical paths instead of values.

        Raises:
            InvalidPathError: If the path expression is invalid.
            PathNotFoundError: If a definite or required path does not resolve
                and `SUPPRESS_EXCEPTIONS` is not set.
            PathFunctionError: If a function cannot process the selected values.

        Examples:
            >>> jsonpathwalk.read({"a": {"b": {"c": 5}}}, "$.a.b.c")
            5
            >>> jsonpathwalk.read({"a": {"x": 1, "y": 2}}, "$.a.*")
            [1, 2]
            >>> jsonpathwalk.read({"arr": [0, 1, 2, 3, 4]}, "$.arr[1:-1]")
            [1, 2, 3]
            >>> jsonpathwalk.read({"numbers": [2, 4, 6]}, "$.numbers.avg()")
            4.0
            >>> jsonpathwalk.read({"a": {"b": {"c": 5}}}, "$.a.b.c", options=[Option.AS_PATH_LIST])
            ["$['a']['b']['c']"]
        """
        return _read_path_value(document, path, self._configuration, options)

    def read_paths(self, document: Any, path: str | CompiledPath) -> list[str]:
        """Return the canonical bracket-notation paths of every match."""
        return _read_path_value(
            document, path, self._configuration, (Option.AS_PATH_LIST,)
        )

    def exists(self, document: Any, path: str | CompiledPath) -> bool:
        """
        Check whether `path` selects at least one node of `document`.

        Raises:
            InvalidPathError: If the path expression is invalid.
        """
        try:
            return len(self.find(document, path)) > 0
        except PathNotFoundError:
            return False

    def parse(self, document: Any) -> DocumentContext:
        return DocumentContext(document, self)

    def parse_json(self, text: str) -> DocumentContext:
        return DocumentContext(json.loads(text), self)

    def run_path_function(self, call: str, value: Any) -> Any:
        """
        Apply a registered function directly to `value`.

        Examples:
            >>> jsonpathwalk.run_path_function("sum", [1, 2, 3])
            6
            >>> jsonpathwalk.run_path_function("append(4)", [1, 2, 3])
            [1, 2, 3, 4]
        """
        return _run_path_function(self._configuration, call, value)


jsonpathwalk = JsonPathWalk()
