"""Success/failure values returned by every fallible operation.

Callers branch on ``result.success`` (or ``isinstance``) instead of catching
exceptions, so error handling stays explicit at each call site.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def success(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying a typed error."""

    error: E

    @property
    def success(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
