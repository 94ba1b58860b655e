from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar

T = TypeVar("T")

MissKind = Literal[
    "empty_schema",
    "unresolved_ref",
    "no_response",
    "not_json",
    "not_applicable",
    "field_absent",
]


@dataclass(frozen=True)
class RecoverableError:
    """A best-effort step that produced no data. Never raised."""

    kind: MissKind
    message: str = ""


@dataclass(frozen=True)
class Result(Generic[T]):
    """
    Either a value or a RecoverableError.

    Synthesis and capture return these instead of a bare None so callers
    (and tests) can tell "nothing to do" apart from "produced something".
    """

    value: Optional[T] = None
    error: Optional[RecoverableError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def miss(cls, kind: MissKind, message: str = "") -> "Result[T]":
        return cls(error=RecoverableError(kind=kind, message=message))

    @property
    def is_ok(self) -> bool:
        return self.error is None
