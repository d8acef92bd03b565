"""
Reactor: Scheduling Turns

Every future callback is queued on a reactor and runs on a later turn,
never inside the stack frame that settled the future or registered the
listener.
"""

import asyncio
import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Any, Callable, Deque, List, Optional, Tuple

from .exceptions import ReactorError, UnhandledRejection

logger = logging.getLogger(__name__)


class Reactor(ABC):
    """
    Turn-based callback scheduler.
    
    Concurrency is interleaved, not parallel: callbacks run one at a time,
    in the order they were queued.
    """
    
    @abstractmethod
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        """
        Queue a callback for a later turn.
        
        Args:
            callback: Function to invoke
            *args: Positional arguments for the callback
        """
    
    @abstractmethod
    def report_unhandled(self, error: BaseException, future: Any = None) -> None:
        """
        Surface a rejection that reached Future.done() unhandled.
        
        Args:
            error: The rejection error
            future: The future that carried it
        """
    
    def bind(self) -> "Reactor":
        """Reactor to hand to a new future; most reactors return themselves."""
        return self


class AsyncioReactor(Reactor):
    """
    Reactor driven by an asyncio event loop.
    
    One loop iteration is one turn. Without an explicit loop, the loop
    running in the calling thread is used.
    """
    
    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Create an asyncio reactor.
        
        Args:
            loop: Event loop to schedule on (default: the running loop)
        """
        self._loop = loop
    
    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        """The loop callbacks are scheduled on."""
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            raise ReactorError(
                "No running event loop; pass loop= or use a ManualReactor"
            ) from None
    
    def bind(self) -> "AsyncioReactor":
        """
        Pin the running loop.
        
        An unbound reactor resolves the loop per call, which fails on a
        worker thread; futures created inside a loop keep that loop instead.
        """
        if self._loop is None:
            loop = _running_loop()
            if loop is not None:
                return AsyncioReactor(loop)
        return self
    
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        loop = self.loop
        if _running_loop() is loop:
            loop.call_soon(callback, *args)
        else:
            # Settled from another thread
            loop.call_soon_threadsafe(callback, *args)
    
    def report_unhandled(self, error: BaseException, future: Any = None) -> None:
        self.loop.call_exception_handler({
            "message": "Unhandled rejection reached Future.done()",
            "exception": error,
            "future": future,
        })


class ManualReactor(Reactor):
    """
    Deterministic reactor driven by explicit turns.
    
    Examples:
        reactor = ManualReactor()
        future = Future.resolved(1, reactor=reactor)
        future.then(print)
        reactor.run_until_idle()
    """
    
    def __init__(self, max_turns: int = 10000, raise_unhandled: bool = True):
        """
        Create a manual reactor.
        
        Args:
            max_turns: Turn limit for run_until_idle()
            raise_unhandled: Re-raise done() rejections from run_until_idle()
        """
        if max_turns <= 0:
            raise ValueError("max_turns must be positive")
        self.max_turns = max_turns
        self.raise_unhandled = raise_unhandled
        self.unhandled: List[UnhandledRejection] = []
        self.turns = 0
        self._queue: Deque[Tuple[Callable[..., Any], Tuple[Any, ...]]] = deque()
        self._lock = threading.Lock()
    
    def call_soon(self, callback: Callable[..., Any], *args: Any) -> None:
        with self._lock:
            self._queue.append((callback, args))
    
    def report_unhandled(self, error: BaseException, future: Any = None) -> None:
        logger.debug(f"Unhandled rejection recorded: {error!r}")
        self.unhandled.append(UnhandledRejection(error, future))
    
    def pending(self) -> int:
        """Number of callbacks waiting for a turn."""
        with self._lock:
            return len(self._queue)
    
    def run_turn(self) -> int:
        """
        Run one turn.
        
        Only callbacks queued before the turn started run; anything they
        queue waits for the next turn. An exception raised by a callback
        propagates and leaves the rest of the turn queued.
        
        Returns:
            Number of callbacks run
        """
        with self._lock:
            batch = len(self._queue)
        
        ran = 0
        for _ in range(batch):
            with self._lock:
                callback, args = self._queue.popleft()
            ran += 1
            callback(*args)
        
        self.turns += 1
        return ran
    
    def run_until_idle(self) -> int:
        """
        Run turns until no callbacks are queued.
        
        Returns:
            Number of turns run
            
        Raises:
            ReactorError: if the queue is still busy after max_turns turns
            UnhandledRejection: for the first rejection that reached done()
        """
        turns = 0
        while self.pending():
            if turns >= self.max_turns:
                raise ReactorError(
                    f"Reactor still busy after {self.max_turns} turns"
                )
            self.run_turn()
            turns += 1
        
        logger.debug(f"Reactor idle after {turns} turns")
        
        if self.raise_unhandled and self.unhandled:
            raise self.unhandled.pop(0)
        return turns


_default_reactor: Optional[Reactor] = None


def get_reactor() -> Reactor:
    """
    Get the process-wide default reactor.
    
    Created on first use as an AsyncioReactor bound to the running loop.
    """
    global _default_reactor
    if _default_reactor is None:
        _default_reactor = AsyncioReactor()
    return _default_reactor


def set_reactor(reactor: Optional[Reactor]) -> None:
    """
    Install the process-wide default reactor.
    
    Args:
        reactor: Reactor to use, or None to fall back to an AsyncioReactor
    """
    global _default_reactor
    logger.debug(f"Default reactor set to {type(reactor).__name__}")
    _default_reactor = reactor


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None
