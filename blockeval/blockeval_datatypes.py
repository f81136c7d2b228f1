"""
Defines the core data types for the blockeval engine.

This module provides the request/result types that flow through the
dispatcher, the generic Value model produced by classification, and the
error taxonomy shared by every component.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List as _List, Tuple, Union

NO_SESSION = "none"


class BlockEvalError(Exception):
    """Base class for all errors surfaced by the engine."""
    pass


class ConfigurationError(BlockEvalError):
    """Neither a runtime binary nor a bootstrap archive is configured."""
    pass


class SessionStartError(BlockEvalError):
    def __init__(self, session_id: str, detail: str = ""):
        msg = f"session {session_id!r} did not become ready"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.session_id = session_id


class ProcessStartError(BlockEvalError):
    """The runtime executable could not be spawned."""
    def __init__(self, argv, detail: str = ""):
        exe = argv[0] if argv else ""
        msg = f"cannot start runtime {exe!r}"
        if detail:
            msg = f"{msg}: {detail}"
        super().__init__(msg)
        self.argv = tuple(argv)


class SessionClosedError(BlockEvalError):
    def __init__(self, session_id: str):
        super().__init__(f"session {session_id!r} exited before the request completed")
        self.session_id = session_id


def _dbg(*parts):
    if os.environ.get("BLOCKEVAL_DEBUG"):
        try:
            print("[DBG]", *parts, file=sys.stderr)
        except Exception:
            pass


# =================================================================
# Requests
# =================================================================

class ResultKind(Enum):
    OUTPUT = "output"
    VALUE = "value"

    @classmethod
    def parse(cls, text: Union[str, 'ResultKind']) -> 'ResultKind':
        if isinstance(text, ResultKind):
            return text
        key = str(text).strip().lower()
        for kind in cls:
            if kind.value == key:
                return kind
        raise ValueError(f"Unknown result kind: {text!r}")


class SessionState(Enum):
    NONE = "none"
    ABSENT = "absent"
    LIVE = "live"
    DEAD = "dead"


@dataclass(frozen=True)
class EvaluationRequest:
    """A single code block handed over by the document layer."""
    body: str
    bindings: Dict[str, Any] = field(default_factory=dict)
    result_kind: ResultKind = ResultKind.OUTPUT
    session_ref: str = NO_SESSION

    @property
    def uses_session(self) -> bool:
        return bool(self.session_ref) and self.session_ref != NO_SESSION


# An argv vector, never mutated once built.
LaunchSpec = Tuple[str, ...]


# =================================================================
# Values
# =================================================================

@dataclass
class Scalar:
    """An opaque piece of result text."""
    text: str

    def __repr__(self):
        return f"Scalar({self.text!r})"


@dataclass
class List:
    """An ordered sequence of Values read from a collection literal."""
    items: _List['Value'] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __iter__(self):
        return iter(self.items)

    def __repr__(self):
        return f"List({self.items!r})"


Value = Union[Scalar, List]


__all__ = [
    "NO_SESSION",
    "BlockEvalError",
    "ConfigurationError",
    "SessionStartError",
    "SessionClosedError",
    "ResultKind",
    "SessionState",
    "EvaluationRequest",
    "LaunchSpec",
    "Scalar",
    "List",
    "Value",
]
