from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol


class Continuation(Enum):
    CONTINUE = "continue"
    ABORT = "abort"


@dataclass(frozen=True)
class FoundResult:
    index: int
    path: str
    value: Any


class EvaluationListener(Protocol):
    """
    Hooks invoked synchronously by the evaluation engine.

    Subclass and override either hook. Returning `Continuation.ABORT` stops
    the evaluation; whatever was found so far becomes the result.
    """

    def before_step(self, path: str, node: Any) -> Continuation:
        return Continuation.CONTINUE

    def result_found(self, found: FoundResult) -> Continuation:
        return Continuation.CONTINUE


class ResultLimit(EvaluationListener):
    """Stops evaluation once `limit` results have been found."""

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"Result limit must be positive, got {limit}.")
        self.limit = limit

    def result_found(self, found: FoundResult) -> Continuation:
        if found.index + 1 >= self.limit:
            return Continuation.ABORT
        return Continuation.CONTINUE
