from typing import Any

from .cache import LRUPathCache, NoopPathCache, resolve_cache
from .compiler import CompiledPath, compile_path
from .configuration import Configuration, default_configuration
from .errors import (
    InvalidPathError,
    JsonPathWalkError,
    PathEvaluationError,
    PathFunctionError,
    PathNotFoundError,
)
from .evaluator import Match, evaluate
from .jsonpathwalk import DocumentContext, JsonPathWalk, jsonpathwalk
from .listeners import Continuation, EvaluationListener, FoundResult, ResultLimit
from .nodes import NativeNodeProvider, NodeProvider
from .options import Option
from .path_functions import PathFunction


def read(document: Any, path: str, *, options=()) -> Any:
    return jsonpathwalk.read(document, path, options=options)


def parse(document: Any) -> DocumentContext:
    return jsonpathwalk.parse(document)


def run_path_function(call: str, value: Any) -> Any:
    return jsonpathwalk.run_path_function(call, value)


__all__ = [
    "CompiledPath",
    "Configuration",
    "Continuation",
    "DocumentContext",
    "EvaluationListener",
    "FoundResult",
    "InvalidPathError",
    "JsonPathWalk",
    "JsonPathWalkError",
    "LRUPathCache",
    "Match",
    "NativeNodeProvider",
    "NodeProvider",
    "NoopPathCache",
    "Option",
    "PathEvaluationError",
    "PathFunction",
    "PathFunctionError",
    "PathNotFoundError",
    "ResultLimit",
    "compile_path",
    "default_configuration",
    "evaluate",
    "jsonpathwalk",
    "parse",
    "read",
    "resolve_cache",
    "run_path_function",
]
