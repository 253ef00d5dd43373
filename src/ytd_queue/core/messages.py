"""Messages delivered from a running process to the scheduler.

A process emits any number of :class:`Line` and :class:`Error` messages,
in arrival order, followed by exactly one :class:`Exit`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True, slots=True)
class Line:
    """One line of output, from either stdout or stderr."""

    text: str


@dataclass(frozen=True, slots=True)
class Error:
    """A non-fatal failure while reading the process output."""

    cause: BaseException


@dataclass(frozen=True, slots=True)
class Exit:
    """The process terminated.  Always the last message."""

    code: int | None


ProcessMessage = Union[Line, Error, Exit]
