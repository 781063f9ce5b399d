import re
from dataclasses import dataclass
from typing import Any

from .errors import InvalidPathError

ROOT = "ROOT"
DOT = "DOT"
DEEP_SCAN = "DEEP_SCAN"
NAME = "NAME"
ARGS = "ARGS"
STAR = "STAR"
LBRACKET = "LBRACKET"
RBRACKET = "RBRACKET"
STRING = "STRING"
NUMBER = "NUMBER"
COLON = "COLON"
COMMA = "COMMA"
FILTER = "FILTER"

_NAME_RE = re.compile(r"[^\s.\[\]()'\"*,:?!=<>&|~@]+")
_NUMBER_RE = re.compile(r"-?[0-9]+")
_NUMBER_TERMINATORS = frozenset(" \t\r\n,:]")
_ESCAPES = {
    '"': '"',
    "'": "'",
    "\\": "\\",
    "/": "/",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
}
_OPENERS = {"(": ")", "[": "]"}


@dataclass(frozen=True)
class LexToken:
    kind: str
    value: Any
    position: int


def read_quoted(raw: str, start: int) -> tuple[str, int]:
    """Read a quoted literal starting at `raw[start]`; returns (text, index after the closing quote)."""
    quote = raw[start]
    chars: list[str] = []
    i = start + 1
    while i < len(raw):
        ch = raw[i]
        if ch == quote:
            return "".join(chars), i + 1
        if ch == "\\":
            if i + 1 >= len(raw):
                break
            escaped = raw[i + 1]
            if escaped == "u":
                hex_digits = raw[i + 2 : i + 6]
                if len(hex_digits) != 4 or not all(
                    c in "0123456789abcdefABCDEF" for c in hex_digits
                ):
                    raise InvalidPathError(
                        path=raw,
                        token=raw[i : i + 6],
                        message=f"Invalid unicode escape at position {i}.",
                    )
                chars.append(chr(int(hex_digits, 16)))
                i += 6
                continue
            if escaped not in _ESCAPES:
                raise InvalidPathError(
                    path=raw,
                    token=raw[i : i + 2],
                    message=f"Invalid escape sequence at position {i}.",
                )
            chars.append(_ESCAPES[escaped])
            i += 2
            continue
        chars.append(ch)
        i += 1
    raise InvalidPathError(
        path=raw, token=raw[start:], message="Unterminated string literal."
    )


def skip_regex(raw: str, start: int) -> int:
    """Skip a `/pattern/flags` literal starting at `raw[start]`."""
    i = start + 1
    while i < len(raw):
        if raw[i] == "\\":
            i += 2
            continue
        if raw[i] == "/":
            i += 1
            while i < len(raw) and raw[i].isalpha():
                i += 1
            return i
        i += 1
    raise InvalidPathError(
        path=raw, token=raw[start:], message="Unterminated regular expression."
    )


def scan_balanced(raw: str, start: int, closer: str) -> int:
    """
    Return the index of the `closer` that balances an opening bracket placed
    just before `start`.

    Quoted strings and regex literals (after `=~`) are skipped so brackets
    inside them do not count.
    """
    expected = [closer]
    i = start
    while i < len(raw):
        ch = raw[i]
        if ch in "'\"":
            _, i = read_quoted(raw, i)
            continue
        if ch == "/" and raw[:i].rstrip().endswith("=~"):
            i = skip_regex(raw, i)
            continue
        if ch in _OPENERS:
            expected.append(_OPENERS[ch])
        elif ch in ")]":
            if ch != expected[-1]:
                raise InvalidPathError(
                    path=raw,
                    token=ch,
                    message=f"Unbalanced '{ch}' at position {i}.",
                )
            expected.pop()
            if not expected:
                return i
        i += 1
    raise InvalidPathError(
        path=raw,
        token=raw[start - 1 :],
        message=f"Unterminated expression, expected '{expected[-1]}'.",
    )


def _lex_name(raw: str, start: int, tokens: list[LexToken]) -> int:
    match = _NAME_RE.match(raw, start)
    if match is None:
        raise InvalidPathError(
            path=raw, token=raw[start:], message=f"Expected a name at position {start}."
        )
    tokens.append(LexToken(NAME, match.group(), start))
    i = match.end()
    if i < len(raw) and raw[i] == "(":
        end = scan_balanced(raw, i + 1, ")")
        tokens.append(LexToken(ARGS, raw[i + 1 : end].strip(), i))
        i = end + 1
    return i


def _lex_bracket(raw: str, start: int, tokens: list[LexToken]) -> int:
    tokens.append(LexToken(LBRACKET, "[", start))
    i = start + 1
    while i < len(raw) and raw[i].isspace():
        i += 1

    if i < len(raw) and raw[i] == "?":
        end = scan_balanced(raw, i + 1, "]")
        tokens.append(LexToken(FILTER, raw[i + 1 : end].strip(), i))
        tokens.append(LexToken(RBRACKET, "]", end))
        return end + 1

    while i < len(raw):
        ch = raw[i]
        if ch.isspace():
            i += 1
            continue
        if ch == "]":
            tokens.append(LexToken(RBRACKET, "]", i))
            return i + 1
        if ch in "'\"":
            value, end = read_quoted(raw, i)
            tokens.append(LexToken(STRING, value, i))
            i = end
            continue
        if ch == "-" or ch.isdigit():
            match = _NUMBER_RE.match(raw, i)
            end = match.end() if match else i + 1
            if match is None or (end < len(raw) and raw[end] not in _NUMBER_TERMINATORS):
                bad_end = end
                while bad_end < len(raw) and raw[bad_end] not in _NUMBER_TERMINATORS:
                    bad_end += 1
                raise InvalidPathError(
                    path=raw,
                    token=raw[i:bad_end],
                    message=f"Malformed numeric literal at position {i}.",
                )
            tokens.append(LexToken(NUMBER, int(match.group()), i))
            i = end
            continue
        if ch == ":":
            tokens.append(LexToken(COLON, ch, i))
        elif ch == ",":
            tokens.append(LexToken(COMMA, ch, i))
        elif ch == "*":
            tokens.append(LexToken(STAR, ch, i))
        else:
            raise InvalidPathError(
                path=raw,
                token=ch,
                message=f"Unexpected character '{ch}' inside brackets at position {i}.",
            )
        i += 1

    raise InvalidPathError(
        path=raw, token=raw[start:], message="Unterminated '[' in path."
    )


def tokenize(raw: str) -> list[LexToken]:
    """
    Split a path expression into lexical tokens in a single pass.

    Filter bodies (`[?...]`) and function arguments (`name(...)`) are kept as
    opaque text; they have their own grammar.
    """
    if not raw or not raw.strip():
        raise InvalidPathError(path=raw, token=None, message="Path cannot be empty.")

    raw = raw.strip()
    tokens: list[LexToken] = []
    i = 0
    if raw[0] in "$@":
        tokens.append(LexToken(ROOT, raw[0], 0))
        i = 1

    while i < len(raw):
        ch = raw[i]
        if raw.startswith("..", i):
            tokens.append(LexToken(DEEP_SCAN, "..", i))
            i += 2
            if i < len(raw) and raw[i] == "[":
                continue
            if i < len(raw) and raw[i] == "*":
                tokens.append(LexToken(STAR, "*", i))
                i += 1
                continue
            if i >= len(raw) or not _NAME_RE.match(raw, i):
                raise InvalidPathError(
                    path=raw,
                    token="..",
                    message="Deep scan '..' must be followed by a name, '*' or '['.",
                )
            i = _lex_name(raw, i, tokens)
            continue
        if ch == ".":
            tokens.append(LexToken(DOT, ".", i))
            i += 1
            if i < len(raw) and raw[i] == "*":
                tokens.append(LexToken(STAR, "*", i))
                i += 1
                continue
            if i >= len(raw) or not _NAME_RE.match(raw, i):
                raise InvalidPathError(
                    path=raw,
                    token=".",
                    message=f"Expected a property name or '*' after '.' at position {i - 1}.",
                )
            i = _lex_name(raw, i, tokens)
            continue
        if ch == "[":
            i = _lex_bracket(raw, i, tokens)
            continue
        if i == 0 and _NAME_RE.match(raw, i):
            # Reported by the compiler as a path that does not start at the root.
            i = _lex_name(raw, i, tokens)
            continue
        raise InvalidPathError(
            path=raw,
            token=ch,
            message=f"Unexpected character '{ch}' at position {i}.",
        )

    return tokens
