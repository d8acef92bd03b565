"""
Future Combinators

Composing several futures into one.
"""

import logging
import threading
from functools import partial
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

from .exceptions import InputRejected
from .future import Deferred, Future
from .reactor import get_reactor

logger = logging.getLogger(__name__)

T = TypeVar('T')

DeferredFactory = Callable[[], Deferred]

_UNSET = object()


class AllCombinator(Generic[T]):
    """
    Settle-once aggregation of N input futures.
    
    The output future fulfills with every input's value in input order, or
    rejects with the first input rejection processed. Exactly one
    fulfillment listener and one rejection listener are registered on each
    input; settlements arriving after the outcome is decided are ignored.
    
    Tie-break: inputs settling on the same turn are processed in the order
    their listeners were queued. For inputs already settled when the
    combinator is created that is input index order, so the lowest-index
    rejection wins.
    
    Attributes:
        future: The output future
        remaining: Inputs not yet fulfilled
        settled: Whether the outcome has been decided
        failure: The deciding rejection (index and error), if any
    """
    
    def __init__(
        self,
        inputs: Sequence[Future[T]],
        factory: Optional[DeferredFactory] = None,
    ):
        """
        Start combining.
        
        Args:
            inputs: Futures to wait for (may already be settled)
            factory: Produces the Deferred behind the output future
                (default: Deferred on the first input's reactor)
        """
        self.inputs = list(inputs)
        self.results: List[Any] = [_UNSET] * len(self.inputs)
        self.remaining = len(self.inputs)
        self.settled = False
        self.failure: Optional[InputRejected] = None
        self._lock = threading.Lock()
        
        self._output = (factory or _default_factory(self.inputs))()
        self.future: Future[List[T]] = self._output.future
        
        logger.debug(f"when_all started with {len(self.inputs)} inputs")
        
        if not self.inputs:
            self.future.reactor.call_soon(self._on_fulfilled, -1, None)
            return
        
        for index, source in enumerate(self.inputs):
            try:
                source.add_listeners(
                    partial(self._on_fulfilled, index),
                    partial(self._on_rejected, index),
                )
            except Exception as e:
                self._reject_registration(index, e)
    
    def _reject_registration(self, index: int, error: Exception) -> None:
        try:
            self.future.reactor.call_soon(self._on_rejected, index, error)
        except Exception:
            # Output reactor cannot schedule (e.g. no running loop): settle now
            self._on_rejected(index, error)
    
    def _on_fulfilled(self, index: int, value: Any) -> None:
        with self._lock:
            if self.settled:
                return
            if index >= 0:
                self.results[index] = value
                self.remaining -= 1
            if self.remaining:
                return
            self.settled = True
            results = self.results
            self._release()
        
        logger.debug(f"when_all fulfilled with {len(results)} results")
        self._output.resolve(results)
    
    def _on_rejected(self, index: int, error: BaseException) -> None:
        with self._lock:
            if self.settled:
                return
            self.settled = True
            self.failure = InputRejected(error=error, index=index)
            self._release()
        
        logger.debug(f"when_all rejected by input {index}")
        self._output.reject(error)
    
    def _release(self) -> None:
        # Inputs that never settle still point here; drop what they would pin
        self.inputs = []
        self.results = []


def when_all(
    inputs: Sequence[Future[T]],
    factory: Optional[DeferredFactory] = None,
) -> Future[List[T]]:
    """
    Wait for all futures to complete.
    
    Returns immediately; the returned future settles on a later turn.
    Callers must attach a rejection handler (catch(), then(..., on_rejected)
    or done()) to the result: the first input error is forwarded verbatim
    and is otherwise not reported anywhere.
    
    Args:
        inputs: Futures to wait for
        factory: Produces the Deferred behind the output future
        
    Returns:
        Future of the list of results, in input order
        
    Example:
        when_all([fetch(a), fetch(b)]).then(print).catch(log_error)
        
        users, products = await when_all([
            db.query("SELECT * FROM users"),
            db.query("SELECT * FROM products"),
        ])
    """
    return AllCombinator(inputs, factory).future


def _default_factory(inputs: List[Any]) -> DeferredFactory:
    reactor = next((f.reactor for f in inputs if isinstance(f, Future)), None)
    return partial(Deferred, reactor if reactor is not None else get_reactor())
