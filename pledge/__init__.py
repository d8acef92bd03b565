"""
Pledge - Settle-Once Futures

Promise-style futures for single-threaded, turn-scheduled code.

Features:
- Single-assignment futures with then/catch/done chaining
- Executor-style construction that turns raised exceptions into rejections
- asyncio bridge (await any future)
- when_all: ordered, settle-once, first-rejection-wins aggregation
- Deterministic ManualReactor for tests and embedding
"""

from .config import PledgeConfig, configure
from .core import (
    AllCombinator,
    AsyncioReactor,
    Deferred,
    Future,
    FutureState,
    InputRejected,
    InvalidStateError,
    ManualReactor,
    PledgeError,
    Reactor,
    ReactorError,
    UnhandledRejection,
    get_reactor,
    set_reactor,
    when_all,
)

__version__ = "0.1.0"

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
    'PledgeConfig',
    'configure',
]
