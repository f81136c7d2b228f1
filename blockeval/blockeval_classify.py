"""
Turns captured value text into a Value.

Bracketed collection text such as `[1, 'a', 3]` or `[1 "a" 3]` is rewritten
into an s-expression and read into nested List/Scalar nodes. Anything else,
including collection text that fails to read, comes back as a Scalar.
"""
from __future__ import annotations

import re

from blockeval.blockeval_datatypes import List, Scalar, Value, _dbg

_COLLECTION_RE = re.compile(r"^\[.*\]$", re.DOTALL)

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<open>\()
  | (?P<close>\))
  | (?P<string>"(?:\\.|[^"\\])*")
  | (?P<atom>[^\s()"]+)
    """,
    re.VERBOSE | re.DOTALL,
)


class _ReadError(ValueError):
    pass


def looks_like_collection(text: str) -> bool:
    return bool(_COLLECTION_RE.match((text or "").strip()))


def rewrite_collection(text: str) -> str:
    """Rewrite bracket/comma/quote syntax into the generic list-literal syntax."""
    out = text.strip()
    out = out.replace("[", "(").replace("]", ")")
    out = out.replace(", ", " ")
    out = out.replace("'", '"')
    return out


def _tokenize(text: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    while pos < len(text):
        m = _TOKEN_RE.match(text, pos)
        if m is None:
            # Only an unterminated string can stop the scanner
            raise _ReadError(f"unreadable text at offset {pos}")
        kind = m.lastgroup
        if kind != "ws":
            tokens.append((kind, m.group()))
        pos = m.end()
    return tokens


def read_literal(text: str) -> Value:
    """Read one s-expression literal; raises ValueError on malformed input."""
    tokens = _tokenize(text)
    if not tokens:
        raise _ReadError("empty input")
    value, pos = _read(tokens, 0)
    if pos != len(tokens):
        raise _ReadError("trailing text after literal")
    return value


def _read(tokens: list[tuple[str, str]], pos: int) -> tuple[Value, int]:
    if pos >= len(tokens):
        raise _ReadError("unexpected end of input")
    kind, text = tokens[pos]
    match kind:
        case "open":
            items = []
            pos += 1
            while True:
                if pos >= len(tokens):
                    raise _ReadError("unbalanced '('")
                if tokens[pos][0] == "close":
                    return List(items), pos + 1
                item, pos = _read(tokens, pos)
                items.append(item)
        case "close":
            raise _ReadError("unexpected ')'")
        case _:
            return Scalar(text), pos + 1


def classify(text: str) -> Value:
    """Classify captured text as a nested List or an opaque Scalar."""
    if text is None:
        return Scalar("")
    if not looks_like_collection(text):
        return Scalar(text)
    try:
        return read_literal(rewrite_collection(text))
    except ValueError as e:
        _dbg("CLASSIFY", "fallback to scalar:", e)
        return Scalar(text)


__all__ = [
    "classify",
    "looks_like_collection",
    "rewrite_collection",
    "read_literal",
]
