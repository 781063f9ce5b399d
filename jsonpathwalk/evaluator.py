import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from .compiler import CompiledPath
from .configuration import Configuration
from .errors import PathFunctionError, PathNotFoundError
from .listeners import Continuation, EvaluationListener, FoundResult
from .nodes import NodeProvider
from .options import Option
from .path_functions import PathFunction
from .predicate import PathOperand, evaluate_predicate
from .tokens import DeepScanToken, PathToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    value: Any
    path: str


class _EvaluationAborted(Exception):
    pass


@dataclass(kw_only=True)
class EvaluationContext:
    """State owned by a single evaluation call; never shared between calls."""

    root: Any
    compiled: CompiledPath
    provider: NodeProvider
    functions: Mapping[str, PathFunction]
    options: frozenset[Option] = frozenset()
    listeners: tuple[EvaluationListener, ...] = ()
    max_scan_depth: int = 1000
    strict: bool = True
    matches: list[Match] = field(default_factory=list)

    @property
    def definite(self) -> bool:
        return self.compiled.is_definite

    def has_option(self, option: Option) -> bool:
        return option in self.options

    def before_step(self, path: str, node: Any):
        for listener in self.listeners:
            if listener.before_step(path, node) is Continuation.ABORT:
                logger.debug(f"Evaluation of {self.compiled} aborted before {path}")
                raise _EvaluationAborted()

    def add_result(self, value: Any, path: str):
        self.matches.append(Match(value, path))
        found = FoundResult(len(self.matches) - 1, path, value)
        for listener in self.listeners:
            if listener.result_found(found) is Continuation.ABORT:
                logger.debug(f"Evaluation of {self.compiled} aborted after {path}")
                raise _EvaluationAborted()

    def test(self, predicate: Any, candidate: Any) -> bool:
        return evaluate_predicate(predicate, candidate, self._resolve_operand)

    def _resolve_operand(self, operand: PathOperand, candidate: Any) -> list[Any]:
        operand_ctx = EvaluationContext(
            root=self.root,
            compiled=operand.path,
            provider=self.provider,
            functions=self.functions,
            max_scan_depth=self.max_scan_depth,
            strict=False,
        )
        start = self.root if operand.absolute else candidate
        try:
            matches = _collect(operand_ctx, start)
        except (PathNotFoundError, PathFunctionError) as ex:
            logger.debug(f"Filter operand {operand.path} did not resolve: {ex}")
            return []
        if operand.path.is_function_path:
            return [match.value for match in matches]
        return [self.provider.unwrap(match.value) for match in matches]


def _walk(
    ctx: EvaluationContext,
    steps: tuple[PathToken, ...],
    index: int,
    node: Any,
    path: str,
) -> Iterator[tuple[Any, str]]:
    if index == len(steps):
        yield node, path
        return

    token = steps[index]
    ctx.before_step(path, node)
    # Candidates fanned out by a deep scan are speculative: a miss is not an error.
    strict = ctx.strict and not (index > 0 and isinstance(steps[index - 1], DeepScanToken))
    leaf = index == len(steps) - 1
    for child, child_path in token.resolve(node, path, ctx, strict=strict, leaf=leaf):
        yield from _walk(ctx, steps, index + 1, child, child_path)


def _apply_function(ctx: EvaluationContext, start: Any) -> tuple[Any, str]:
    compiled = ctx.compiled
    function = compiled.function
    prefix = list(_walk(ctx, compiled.steps, 0, start, compiled.root_symbol))
    if compiled.is_definite and not prefix:
        raise PathNotFoundError(
            path=compiled.raw,
            token=function.name,
            message=f"No results for path: {compiled}",
        )
    # A single array or object match is passed as-is, even after `..` or `[*]`.
    if len(prefix) == 1 and (
        compiled.is_definite
        or ctx.provider.is_array(prefix[0][0])
        or ctx.provider.is_object(prefix[0][0])
    ):
        node, parent = prefix[0]
        value = ctx.provider.unwrap(node)
    else:
        parent = compiled.root_symbol
        value = [ctx.provider.unwrap(node) for node, _ in prefix]
    return function.apply(value, ctx.functions), f"{parent}.{function.name}()"


def _collect(ctx: EvaluationContext, start: Any) -> list[Match]:
    compiled = ctx.compiled
    try:
        if compiled.is_function_path:
            ctx.add_result(*_apply_function(ctx, start))
        else:
            for node, path in _walk(ctx, compiled.steps, 0, start, compiled.root_symbol):
                ctx.add_result(node, path)
    except _EvaluationAborted:
        return ctx.matches

    if ctx.strict and compiled.is_definite and not ctx.matches:
        raise PathNotFoundError(
            path=compiled.raw,
            token=None,
            message=f"No results for path: {compiled}",
        )
    return ctx.matches


def evaluate(
    compiled: CompiledPath,
    document: Any,
    configuration: Configuration,
    *,
    options: Iterable[Option] = (),
) -> list[Match]:
    """
    Apply a compiled path to `document` and return the ordered matches.

    Args:
        compiled: Path produced by `compile_path`.
        document: Root node, interpreted through `configuration.provider`.
        configuration: Provider, options, listeners and functions to use.
        options: Extra options for this call only.

    Returns:
        A list of `Match(value, path)` in document order. A function path
        yields exactly one match holding the function result.

    Raises:
        PathNotFoundError: If a definite path (or a required property) does
            not resolve.
        PathFunctionError: If a function cannot handle the selected values.
        PathEvaluationError: If a deep scan exceeds `max_scan_depth`.
    """
    ctx = EvaluationContext(
        root=document,
        compiled=compiled,
        provider=configuration.provider,
        functions=configuration.functions,
        options=configuration.options | frozenset(options),
        listeners=configuration.listeners,
        max_scan_depth=configuration.max_scan_depth,
    )
    return _collect(ctx, document)
