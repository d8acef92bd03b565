"""Pledge exception hierarchy."""

from dataclasses import dataclass
from typing import Any


class PledgeError(Exception):
    """Base exception for errors raised by pledge itself."""
    pass


class InvalidStateError(PledgeError):
    """Operation is not valid in the future's current state."""
    pass


class ReactorError(PledgeError):
    """Reactor misuse (no running loop, turn limit exceeded, ...)."""
    pass


class UnhandledRejection(PledgeError):
    """A rejection reached Future.done() without being handled."""
    
    def __init__(self, error: BaseException, future: Any = None):
        self.error = error
        self.future = future
        super().__init__(f"Unhandled rejection: {error!r}")


@dataclass(frozen=True)
class InputRejected:
    """
    The input rejection that decided a combinator's outcome.
    
    Diagnostics only: the combinator forwards ``error`` verbatim and
    never raises this record.
    """
    error: BaseException
    index: int
