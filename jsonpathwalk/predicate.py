import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any

from .errors import InvalidPathError
from .lexer import read_quoted, scan_balanced, skip_regex

logger = logging.getLogger(__name__)

MISSING = object()

_LPAREN = "LPAREN"
_RPAREN = "RPAREN"
_AND = "AND"
_OR = "OR"
_NOT = "NOT"
_OP = "OP"
_PATH = "PATH"
_LITERAL = "LITERAL"
_REGEX = "REGEX"

_SYMBOL_OPERATORS = ("==", "!=", "<=", ">=", "=~", "<", ">")
_WORD_OPERATORS = frozenset(
    {"in", "nin", "subsetof", "anyof", "noneof", "contains", "size", "empty", "type"}
)
_COLLECTION_OPERATORS = frozenset({"in", "nin", "subsetof", "anyof", "noneof"})
_TYPE_NAMES = frozenset({"string", "number", "boolean", "null", "array", "object"})
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL, "x": re.VERBOSE}

_NUMBER_RE = re.compile(r"-?[0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")
_WORD_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_PATH_STOP = frozenset(" \t\r\n=!<>&|~),")


class LogicalOp(Enum):
    AND = "&&"
    OR = "||"
    NOT = "!"


@dataclass(frozen=True)
class Literal:
    value: Any


@dataclass(frozen=True)
class RegexLiteral:
    pattern: str
    flags: str = ""

    def compiled(self) -> re.Pattern:
        bits = 0
        for flag in self.flags:
            bits |= _REGEX_FLAGS[flag]
        return re.compile(self.pattern, bits)


@dataclass(frozen=True)
class PathOperand:
    path: Any
    absolute: bool


@dataclass(frozen=True)
class Comparison:
    op: str
    left: Any
    right: Any


@dataclass(frozen=True)
class Logical:
    op: LogicalOp
    children: tuple[Any, ...]


@dataclass(frozen=True)
class Existence:
    operand: PathOperand


@dataclass(frozen=True)
class SizeOf:
    operand: Any
    size: Any


@dataclass(frozen=True)
class Empty:
    operand: Any
    expected: bool


@dataclass(frozen=True)
class TypeOf:
    operand: Any
    type_name: str


@dataclass(frozen=True)
class _PredicateToken:
    kind: str
    value: Any
    position: int


def _read_number(text: str, start: int) -> tuple[Any, int] | None:
    match = _NUMBER_RE.match(text, start)
    if match is None:
        return None
    end = match.end()
    if end < len(text) and (text[end].isalnum() or text[end] in "._"):
        raise InvalidPathError(
            path=text,
            token=text[start : end + 1],
            message=f"Malformed numeric literal at position {start}.",
        )
    raw = match.group()
    if any(c in raw for c in ".eE"):
        return float(raw), end
    return int(raw), end


def _read_array(text: str, start: int) -> tuple[tuple[Any, ...], int]:
    items: list[Any] = []
    i = start + 1
    expect_item = True
    while i < len(text):
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if ch == "]" and (not expect_item or not items):
            return tuple(items), i + 1
        if ch == "," and not expect_item:
            expect_item = True
            i += 1
            continue
        if expect_item:
            literal = _read_literal(text, i)
            if literal is not None:
                value, i = literal
                items.append(value)
                expect_item = False
                continue
        raise InvalidPathError(
            path=text,
            token=ch,
            message=f"Unexpected '{ch}' in array literal at position {i}.",
        )
    raise InvalidPathError(
        path=text, token=text[start:], message="Unterminated array literal."
    )


def _read_literal(text: str, start: int) -> tuple[Any, int] | None:
    ch = text[start]
    if ch in "'\"":
        return read_quoted(text, start)
    if ch == "[":
        return _read_array(text, start)
    if ch == "-" or ch.isdigit():
        return _read_number(text, start)
    word = _WORD_RE.match(text, start)
    if word is not None:
        keyword = word.group()
        if keyword == "true":
            return True, word.end()
        if keyword == "false":
            return False, word.end()
        if keyword == "null":
            return None, word.end()
    return None


def parse_literal_list(text: str) -> tuple[Any, ...]:
    """Parse comma separated literals, as used for function call arguments."""
    if not text.strip():
        return ()
    wrapped = f"[{text}]"
    try:
        values, end = _read_array(wrapped, 0)
    except RecursionError as ex:
        raise InvalidPathError(
            path=text, token=text[:20], message="Arguments are nested too deeply."
        ) from ex
    if end != len(wrapped):
        raise InvalidPathError(
            path=text, token=wrapped[end:], message="Unexpected text after arguments."
        )
    return values


def _read_regex(text: str, start: int) -> tuple[RegexLiteral, int]:
    end = skip_regex(text, start)
    body = text[start + 1 : end]
    slash = body.rfind("/")
    pattern, flags = body[:slash].replace("\\/", "/"), body[slash + 1 :]
    unknown = set(flags) - set(_REGEX_FLAGS)
    if unknown:
        raise InvalidPathError(
            path=text,
            token=text[start:end],
            message=f"Unknown regular expression flags '{''.join(sorted(unknown))}'.",
        )
    regex = RegexLiteral(pattern, flags)
    try:
        regex.compiled()
    except re.error as ex:
        raise InvalidPathError(
            path=text, token=text[start:end], message=f"Invalid regular expression: {ex}."
        ) from ex
    return regex, end


def _scan_path(text: str, start: int) -> int:
    i = start + 1
    while i < len(text):
        ch = text[i]
        if ch == "[":
            i = scan_balanced(text, i + 1, "]") + 1
        elif ch == "(":
            i = scan_balanced(text, i + 1, ")") + 1
        elif ch in _PATH_STOP:
            break
        else:
            i += 1
    return i


def _tokenize_predicate(text: str) -> list[_PredicateToken]:
    tokens: list[_PredicateToken] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch.isspace():
            i += 1
            continue
        if text.startswith("&&", i):
            tokens.append(_PredicateToken(_AND, "&&", i))
            i += 2
            continue
        if text.startswith("||", i):
            tokens.append(_PredicateToken(_OR, "||", i))
            i += 2
            continue
        symbol = next((op for op in _SYMBOL_OPERATORS if text.startswith(op, i)), None)
        if symbol is not None:
            tokens.append(_PredicateToken(_OP, symbol, i))
            i += len(symbol)
            continue
        if ch == "!":
            tokens.append(_PredicateToken(_NOT, "!", i))
            i += 1
            continue
        if ch == "(":
            tokens.append(_PredicateToken(_LPAREN, "(", i))
            i += 1
            continue
        if ch == ")":
            tokens.append(_PredicateToken(_RPAREN, ")", i))
            i += 1
            continue
        if ch in "@$":
            end = _scan_path(text, i)
            tokens.append(_PredicateToken(_PATH, text[i:end], i))
            i = end
            continue
        if ch == "/":
            regex, end = _read_regex(text, i)
            tokens.append(_PredicateToken(_REGEX, regex, i))
            i = end
            continue
        literal = _read_literal(text, i)
        if literal is not None:
            value, end = literal
            tokens.append(_PredicateToken(_LITERAL, value, i))
            i = end
            continue
        word = _WORD_RE.match(text, i)
        if word is not None and word.group().lower() in _WORD_OPERATORS:
            tokens.append(_PredicateToken(_OP, word.group().lower(), i))
            i = word.end()
            continue
        raise InvalidPathError(
            path=text,
            token=word.group() if word else ch,
            message=f"Unknown operator or operand at position {i} in filter expression.",
        )
    return tokens


class _PredicateParser:
    def __init__(self, text: str, compile_operand: Callable[[str], Any]):
        self._text = text
        self._tokens = _tokenize_predicate(text)
        self._idx = 0
        self._compile_operand = compile_operand

    def parse(self) -> Any:
        if not self._tokens:
            raise InvalidPathError(
                path=self._text, token=None, message="Filter expression cannot be empty."
            )
        result = self._parse_or()
        if self._idx != len(self._tokens):
            token = self._tokens[self._idx]
            raise InvalidPathError(
                path=self._text,
                token=str(token.value),
                message=f"Unexpected token '{token.value}' in filter expression.",
            )
        return result

    def _parse_or(self) -> Any:
        children = [self._parse_and()]
        while self._peek_kind() == _OR:
            self._idx += 1
            children.append(self._parse_and())
        if len(children) == 1:
            return children[0]
        return Logical(LogicalOp.OR, tuple(children))

    def _parse_and(self) -> Any:
        children = [self._parse_not()]
        while self._peek_kind() == _AND:
            self._idx += 1
            children.append(self._parse_not())
        if len(children) == 1:
            return children[0]
        return Logical(LogicalOp.AND, tuple(children))

    def _parse_not(self) -> Any:
        if self._peek_kind() == _NOT:
            self._idx += 1
            return Logical(LogicalOp.NOT, (self._parse_not(),))
        return self._parse_primary()

    def _parse_primary(self) -> Any:
        if self._peek_kind() == _LPAREN:
            self._idx += 1
            inner = self._parse_or()
            self._consume(_RPAREN, ")")
            return inner

        left = self._parse_operand()
        if self._peek_kind() != _OP:
            if isinstance(left, PathOperand):
                return Existence(left)
            raise InvalidPathError(
                path=self._text,
                token=self._current_text(),
                message="Expected a comparison operator after literal operand.",
            )
        op_token = self._tokens[self._idx]
        self._idx += 1
        right = self._parse_operand()
        return self._build_relation(op_token, left, right)

    def _parse_operand(self) -> Any:
        token = self._peek()
        if token is None:
            raise InvalidPathError(
                path=self._text,
                token=None,
                message="Unexpected end of filter expression.",
            )
        self._idx += 1
        if token.kind == _PATH:
            return PathOperand(
                self._compile_operand(token.value), absolute=token.value.startswith("$")
            )
        if token.kind == _LITERAL:
            return Literal(token.value)
        if token.kind == _REGEX:
            return token.value
        raise InvalidPathError(
            path=self._text,
            token=str(token.value),
            message=f"Expected an operand, got '{token.value}'.",
        )

    def _build_relation(self, op_token: _PredicateToken, left: Any, right: Any) -> Any:
        op = op_token.value
        if isinstance(left, RegexLiteral):
            self._fail(op_token, "A regular expression can only appear right of '=~'.")
        if op == "=~":
            if isinstance(right, Literal) and isinstance(right.value, str):
                right = RegexLiteral(right.value)
            if not isinstance(right, RegexLiteral | PathOperand):
                self._fail(op_token, "Operator '=~' requires a regular expression.")
            return Comparison(op, left, right)
        if isinstance(right, RegexLiteral):
            self._fail(op_token, f"Operator '{op}' does not accept a regular expression.")
        if op == "size":
            if isinstance(right, Literal) and (
                not isinstance(right.value, int) or isinstance(right.value, bool)
            ):
                self._fail(op_token, "Operator 'size' requires an integer.")
            return SizeOf(left, right)
        if op == "empty":
            if not (isinstance(right, Literal) and isinstance(right.value, bool)):
                self._fail(op_token, "Operator 'empty' requires true or false.")
            return Empty(left, right.value)
        if op == "type":
            if not (isinstance(right, Literal) and right.value in _TYPE_NAMES):
                names = ", ".join(sorted(_TYPE_NAMES))
                self._fail(op_token, f"Operator 'type' requires one of: {names}.")
            return TypeOf(left, right.value)
        if op in _COLLECTION_OPERATORS and isinstance(right, Literal):
            if not isinstance(right.value, tuple):
                self._fail(op_token, f"Operator '{op}' requires an array.")
        return Comparison(op, left, right)

    def _fail(self, token: _PredicateToken, message: str):
        raise InvalidPathError(path=self._text, token=str(token.value), message=message)

    def _peek(self) -> _PredicateToken | None:
        if self._idx >= len(self._tokens):
            return None
        return self._tokens[self._idx]

    def _peek_kind(self) -> str | None:
        token = self._peek()
        return None if token is None else token.kind

    def _current_text(self) -> str | None:
        token = self._peek()
        return None if token is None else str(token.value)

    def _consume(self, kind: str, expected: str):
        token = self._peek()
        if token is None or token.kind != kind:
            raise InvalidPathError(
                path=self._text,
                token=None if token is None else str(token.value),
                message=f"Expected '{expected}' in filter expression.",
            )
        self._idx += 1


def parse_predicate(text: str, compile_operand: Callable[[str], Any]) -> Any:
    """
    Parse the body of a `[?...]` filter into a predicate tree.

    `compile_operand` turns an `@...`/`$...` operand into a compiled path.
    """
    try:
        return _PredicateParser(text, compile_operand).parse()
    except RecursionError as ex:
        raise InvalidPathError(
            path=text,
            token=text[:20],
            message="Filter expression is nested too deeply.",
        ) from ex


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float | Decimal) and not isinstance(value, bool)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, list | tuple)


def _as_decimal(value: Any) -> Decimal | None:
    if _is_number(value):
        return Decimal(str(value))
    if isinstance(value, str) and _NUMBER_RE.fullmatch(value.strip()):
        return Decimal(value.strip())
    return None


def _numeric_pair(left: Any, right: Any) -> tuple[Decimal, Decimal] | None:
    # Strings only take part in numeric comparison against an actual number.
    if not (_is_number(left) or _is_number(right)):
        return None
    left_number, right_number = _as_decimal(left), _as_decimal(right)
    if left_number is None or right_number is None:
        return None
    return left_number, right_number


def _equals(left: Any, right: Any) -> bool:
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    pair = _numeric_pair(left, right)
    if pair is not None:
        try:
            return pair[0] == pair[1]
        except InvalidOperation:
            return False
    if left is None or right is None:
        return left is None and right is None
    if _is_sequence(left) and _is_sequence(right):
        return len(left) == len(right) and all(
            _equals(a, b) for a, b in zip(left, right)
        )
    if isinstance(left, dict) and isinstance(right, dict):
        return left.keys() == right.keys() and all(
            _equals(left[key], right[key]) for key in left
        )
    if type(left) is not type(right) and not (
        isinstance(left, str) and isinstance(right, str)
    ):
        return False
    return left == right


def _ordered(op: str, left: Any, right: Any) -> bool:
    pair = _numeric_pair(left, right)
    if pair is None:
        if not (isinstance(left, str) and isinstance(right, str)):
            return False
        pair = left, right
    a, b = pair
    try:
        if op == "<":
            return a < b
        if op == "<=":
            return a <= b
        if op == ">":
            return a > b
        return a >= b
    except InvalidOperation:
        return False


def _contains(container: Any, item: Any) -> bool:
    if _is_sequence(container):
        return any(_equals(element, item) for element in container)
    return False


def _compare(op: str, left: Any, right: Any) -> bool:
    if left is MISSING or right is MISSING:
        return False
    match op:
        case "==":
            return _equals(left, right)
        case "!=":
            return not _equals(left, right)
        case "<" | "<=" | ">" | ">=":
            return _ordered(op, left, right)
        case "=~":
            if not isinstance(left, str):
                return False
            if isinstance(right, str):
                right = RegexLiteral(right)
            if not isinstance(right, RegexLiteral):
                return False
            try:
                return right.compiled().fullmatch(left) is not None
            except re.error:
                return False
        case "in":
            return _contains(right, left)
        case "nin":
            return _is_sequence(right) and not _contains(right, left)
        case "subsetof":
            return (
                _is_sequence(left)
                and _is_sequence(right)
                and all(_contains(right, item) for item in left)
            )
        case "anyof":
            return (
                _is_sequence(left)
                and _is_sequence(right)
                and any(_contains(right, item) for item in left)
            )
        case "noneof":
            return (
                _is_sequence(left)
                and _is_sequence(right)
                and not any(_contains(right, item) for item in left)
            )
        case "contains":
            if isinstance(left, str) and isinstance(right, str):
                return right in left
            return _contains(left, right)
    return False


def _length_of(value: Any) -> int | None:
    if isinstance(value, str | list | tuple | dict):
        return len(value)
    return None


def _matches_type(value: Any, type_name: str) -> bool:
    match type_name:
        case "string":
            return isinstance(value, str)
        case "number":
            return _is_number(value)
        case "boolean":
            return isinstance(value, bool)
        case "null":
            return value is None
        case "array":
            return _is_sequence(value)
        case "object":
            return isinstance(value, dict)
    return False


Resolver = Callable[[PathOperand, Any], list[Any]]


def _operand_value(operand: Any, candidate: Any, resolve: Resolver) -> Any:
    if isinstance(operand, Literal):
        return operand.value
    if isinstance(operand, RegexLiteral):
        return operand
    values = resolve(operand, candidate)
    if operand.path.is_definite or operand.path.is_function_path:
        return values[0] if values else MISSING
    return values


def evaluate_predicate(predicate: Any, candidate: Any, resolve: Resolver) -> bool:
    """
    Evaluate a predicate tree against one candidate node.

    `resolve(operand, candidate)` returns the values an operand path selects;
    absolute operands resolve against the document root. Unresolvable
    operands make the enclosing relation false rather than raising.
    """
    match predicate:
        case Logical(op=LogicalOp.AND, children=children):
            return all(evaluate_predicate(c, candidate, resolve) for c in children)
        case Logical(op=LogicalOp.OR, children=children):
            return any(evaluate_predicate(c, candidate, resolve) for c in children)
        case Logical(op=LogicalOp.NOT, children=(child,)):
            return not evaluate_predicate(child, candidate, resolve)
        case Existence(operand=operand):
            return len(resolve(operand, candidate)) > 0
        case Comparison(op=op, left=left, right=right):
            return _compare(
                op,
                _operand_value(left, candidate, resolve),
                _operand_value(right, candidate, resolve),
            )
        case SizeOf(operand=operand, size=size):
            length = _length_of(_operand_value(operand, candidate, resolve))
            expected = _operand_value(size, candidate, resolve)
            return length is not None and expected is not MISSING and _equals(length, expected)
        case Empty(operand=operand, expected=expected):
            length = _length_of(_operand_value(operand, candidate, resolve))
            return length is not None and (length == 0) == expected
        case TypeOf(operand=operand, type_name=type_name):
            value = _operand_value(operand, candidate, resolve)
            return value is not MISSING and _matches_type(value, type_name)
    logger.debug(f"Unsupported predicate node {predicate!r}, treating as no match")
    return False
