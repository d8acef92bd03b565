"""
Pledge Core

Single-assignment futures, turn-based reactors and combinators.
"""

from .combinators import AllCombinator, when_all
from .exceptions import (
    InputRejected,
    InvalidStateError,
    PledgeError,
    ReactorError,
    UnhandledRejection,
)
from .future import Deferred, Future, FutureState
from .reactor import AsyncioReactor, ManualReactor, Reactor, get_reactor, set_reactor

__all__ = [
    'Future',
    'FutureState',
    'Deferred',
    'when_all',
    'AllCombinator',
    'Reactor',
    'AsyncioReactor',
    'ManualReactor',
    'get_reactor',
    'set_reactor',
    'PledgeError',
    'InvalidStateError',
    'ReactorError',
    'UnhandledRejection',
    'InputRejected',
]
