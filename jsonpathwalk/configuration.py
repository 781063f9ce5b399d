from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from .cache import NoopPathCache, PathCache, shared_path_cache
from .listeners import EvaluationListener
from .nodes import NativeNodeProvider, NodeProvider
from .options import Option
from .path_functions import PathFunction, default_path_functions, register_path_function

DEFAULT_MAX_SCAN_DEPTH = 1000


@dataclass(frozen=True, kw_only=True)
class Configuration:
    """
    Immutable settings threaded through compilation and evaluation.

    Every `with_*`/`add_*`/`set_*` helper returns a new configuration; the
    receiver is never changed.
    """

    provider: NodeProvider = field(default_factory=NativeNodeProvider)
    options: frozenset[Option] = frozenset()
    listeners: tuple[EvaluationListener, ...] = ()
    functions: Mapping[str, PathFunction] = field(default_factory=default_path_functions)
    cache: PathCache = field(default_factory=NoopPathCache, compare=False)
    max_scan_depth: int = DEFAULT_MAX_SCAN_DEPTH

    def __post_init__(self):
        object.__setattr__(self, "options", frozenset(self.options))
        object.__setattr__(self, "listeners", tuple(self.listeners))
        object.__setattr__(
            self,
            "functions",
            MappingProxyType(
                {
                    name: fn if isinstance(fn, PathFunction) else PathFunction(fn)
                    for name, fn in self.functions.items()
                }
            ),
        )
        if self.max_scan_depth < 1:
            raise ValueError(
                f"max_scan_depth must be positive, got {self.max_scan_depth}."
            )

    @property
    def fingerprint(self) -> tuple[frozenset[str], frozenset[str]]:
        """Cache key component: compile results depend on options and function names."""
        return (
            frozenset(option.value for option in self.options),
            frozenset(self.functions),
        )

    def contains_option(self, option: Option) -> bool:
        return option in self.options

    def add_options(self, *options: Option) -> "Configuration":
        return replace(self, options=self.options | frozenset(options))

    def set_options(self, *options: Option) -> "Configuration":
        return replace(self, options=frozenset(options))

    def add_evaluation_listeners(self, *listeners: EvaluationListener) -> "Configuration":
        return replace(self, listeners=self.listeners + listeners)

    def set_evaluation_listeners(self, *listeners: EvaluationListener) -> "Configuration":
        return replace(self, listeners=listeners)

    def with_provider(self, provider: NodeProvider) -> "Configuration":
        return replace(self, provider=provider)

    def with_cache(self, cache: PathCache) -> "Configuration":
        return replace(self, cache=cache)

    def with_functions(
        self, functions: Mapping[str, PathFunction | Callable[..., Any]]
    ) -> "Configuration":
        return replace(self, functions=functions)

    def add_function(
        self, name: str, path_function: PathFunction | Callable[..., Any]
    ) -> "Configuration":
        return replace(
            self, functions=register_path_function(self.functions, name, path_function)
        )


def default_configuration(
    *,
    options: Iterable[Option] = (),
    cache: PathCache | None = None,
) -> Configuration:
    """
    Build the standard configuration: native Python documents, the built-in
    function registry and the process-wide compiled path cache.

    Call it once at startup and pass the result around.
    """
    return Configuration(
        options=frozenset(options),
        cache=shared_path_cache() if cache is None else cache,
    )
