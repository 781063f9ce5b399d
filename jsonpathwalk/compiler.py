import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import InvalidPathError
from .lexer import (
    ARGS,
    COLON,
    COMMA,
    DEEP_SCAN,
    DOT,
    FILTER,
    LBRACKET,
    NAME,
    NUMBER,
    RBRACKET,
    ROOT,
    STAR,
    STRING,
    LexToken,
    tokenize,
)
from .path_functions import DEFAULT_PATH_FUNCTION_REGISTRY
from .predicate import parse_literal_list, parse_predicate
from .tokens import (
    ArrayIndexToken,
    ArraySliceToken,
    DeepScanToken,
    FilterToken,
    FunctionToken,
    PathToken,
    PropertyToken,
    RootToken,
    WildcardToken,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledPath:
    """
    Immutable, parsed form of a path expression.

    Instances are safe to share between threads and to evaluate any number
    of times. Equality is structural: two compilations of the same text
    compare equal.
    """

    raw: str
    tokens: tuple[PathToken | FunctionToken, ...]
    is_definite: bool = field(init=False, compare=False)
    is_function_path: bool = field(init=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self,
            "is_function_path",
            bool(self.tokens) and isinstance(self.tokens[-1], FunctionToken),
        )
        object.__setattr__(
            self, "is_definite", all(token.is_definite for token in self.tokens)
        )

    @property
    def root_symbol(self) -> str:
        return self.tokens[0].symbol

    @property
    def steps(self) -> tuple[PathToken, ...]:
        """Tokens that walk the document, i.e. everything but a trailing function."""
        if self.is_function_path:
            return self.tokens[:-1]
        return self.tokens

    @property
    def function(self) -> FunctionToken | None:
        return self.tokens[-1] if self.is_function_path else None

    def __str__(self) -> str:
        return "".join(token.render() for token in self.tokens)


def _dedupe(values: list[Any]) -> tuple[Any, ...]:
    return tuple(dict.fromkeys(values))


class _PathCompiler:
    def __init__(self, raw: str, functions: Mapping[str, Any], relative: bool):
        self._raw = raw
        self._functions = functions
        self._relative = relative
        self._tokens = tokenize(raw)
        self._idx = 0

    def compile(self) -> CompiledPath:
        root = self._peek()
        allowed = "$@" if self._relative else "$"
        if root is None or root.kind != ROOT or root.value not in allowed:
            expected = "'$' or '@'" if self._relative else "'$'"
            raise InvalidPathError(
                path=self._raw,
                token=None if root is None else str(root.value),
                message=f"Path must start with {expected}.",
            )
        self._idx += 1

        chain: list[PathToken | FunctionToken] = [RootToken(root.value)]
        while self._peek() is not None:
            if isinstance(chain[-1], FunctionToken):
                raise InvalidPathError(
                    path=self._raw,
                    token=str(self._peek().value),
                    message="A function must be the last step of a path.",
                )
            chain.extend(self._compile_segment())
        return CompiledPath(raw=self._raw.strip(), tokens=tuple(chain))

    def _compile_segment(self) -> list[PathToken | FunctionToken]:
        token = self._next()
        if token.kind == DEEP_SCAN:
            following = self._peek()
            if following.kind == LBRACKET:
                self._idx += 1
                return [DeepScanToken(), self._compile_bracket()]
            if following.kind == STAR:
                self._idx += 1
                return [DeepScanToken(), WildcardToken()]
            name = self._next()
            if self._peek_kind() == ARGS:
                raise InvalidPathError(
                    path=self._raw,
                    token=name.value,
                    message="A function cannot directly follow a deep scan.",
                )
            return [DeepScanToken(), PropertyToken((name.value,))]

        if token.kind == DOT:
            following = self._next()
            if following.kind == STAR:
                return [WildcardToken()]
            if self._peek_kind() == ARGS:
                return [self._compile_function(following, self._next())]
            return [PropertyToken((following.value,))]

        if token.kind == LBRACKET:
            return [self._compile_bracket()]

        raise InvalidPathError(
            path=self._raw,
            token=str(token.value),
            message=f"Unexpected '{token.value}' at position {token.position}.",
        )

    def _compile_bracket(self) -> PathToken:
        first = self._peek()
        if first is None or first.kind == RBRACKET:
            raise InvalidPathError(
                path=self._raw, token="[]", message="Empty bracket segment '[]'."
            )

        if first.kind == FILTER:
            self._idx += 1
            self._expect(RBRACKET, "]")
            predicate = parse_predicate(first.value, self._compile_operand)
            return FilterToken(predicate, first.value)

        if first.kind == STAR:
            self._idx += 1
            self._expect(RBRACKET, "]")
            return WildcardToken()

        if first.kind == STRING:
            return PropertyToken(_dedupe(self._compile_union(STRING, "a quoted name")))

        if first.kind in (NUMBER, COLON):
            if self._bracket_has_colon():
                return self._compile_slice()
            return ArrayIndexToken(_dedupe(self._compile_union(NUMBER, "an integer index")))

        raise InvalidPathError(
            path=self._raw,
            token=str(first.value),
            message=f"Unexpected '{first.value}' inside brackets at position {first.position}.",
        )

    def _compile_union(self, kind: str, description: str) -> list[Any]:
        values = [self._expect(kind, description).value]
        while self._peek_kind() == COMMA:
            self._idx += 1
            values.append(self._expect(kind, description).value)
        self._expect(RBRACKET, "]")
        return values

    def _bracket_has_colon(self) -> bool:
        for token in self._tokens[self._idx :]:
            if token.kind == RBRACKET:
                return False
            if token.kind == COLON:
                return True
        return False

    def _compile_slice(self) -> ArraySliceToken:
        parts: list[int | None] = [None]
        while self._peek_kind() != RBRACKET:
            token = self._next()
            if token.kind == NUMBER and parts[-1] is None:
                parts[-1] = token.value
            elif token.kind == COLON and len(parts) < 3:
                parts.append(None)
            else:
                raise InvalidPathError(
                    path=self._raw,
                    token=str(token.value),
                    message=f"Invalid array slice at position {token.position}.",
                )
        self._idx += 1
        start, end, step = parts + [None] * (3 - len(parts))
        if step == 0:
            raise InvalidPathError(
                path=self._raw, token="0", message="Array slice step cannot be zero."
            )
        return ArraySliceToken(start, end, step)

    def _compile_function(self, name: LexToken, args: LexToken) -> FunctionToken:
        if name.value not in self._functions:
            raise InvalidPathError(
                path=self._raw,
                token=name.value,
                message=f"Function '{name.value}' is not registered.",
            )
        try:
            arguments = parse_literal_list(args.value)
        except InvalidPathError as ex:
            raise InvalidPathError(
                path=self._raw,
                token=args.value,
                message=f"Invalid arguments for function '{name.value}': {ex.message}",
            ) from ex
        return FunctionToken(name.value, arguments)

    def _compile_operand(self, text: str) -> CompiledPath:
        return _PathCompiler(text, self._functions, relative=True).compile()

    def _peek(self) -> LexToken | None:
        if self._idx >= len(self._tokens):
            return None
        return self._tokens[self._idx]

    def _peek_kind(self) -> str | None:
        token = self._peek()
        return None if token is None else token.kind

    def _next(self) -> LexToken:
        token = self._peek()
        if token is None:
            raise InvalidPathError(
                path=self._raw, token=None, message="Unexpected end of path."
            )
        self._idx += 1
        return token

    def _expect(self, kind: str, description: str) -> LexToken:
        token = self._peek()
        if token is None or token.kind != kind:
            raise InvalidPathError(
                path=self._raw,
                token=None if token is None else str(token.value),
                message=f"Expected {description} in path.",
            )
        self._idx += 1
        return token


def compile_path(
    raw: str,
    functions: Mapping[str, Any] = DEFAULT_PATH_FUNCTION_REGISTRY,
    *,
    relative: bool = False,
) -> CompiledPath:
    """
    Compile a path expression into an immutable `CompiledPath`.

    Args:
        raw: Path expression, e.g. `$.store.book[?(@.price < 10)].title`.
        functions: Registry used to validate function names.
        relative: Allow paths rooted at the current node (`@`), as used for
            filter operands.

    Raises:
        InvalidPathError: If the expression is malformed or names an unknown
            function.
    """
    compiled = _PathCompiler(raw, functions, relative).compile()
    logger.debug(f"Compiled path '{raw}' as {compiled}")
    return compiled
