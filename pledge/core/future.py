"""
Single-Assignment Futures

A Future settles exactly once, either fulfilled with a value or rejected
with an error. Listeners always run on a later reactor turn, even when
registered after settlement.
"""

import asyncio
import threading
from enum import Enum
from typing import Any, Callable, Generic, List, Optional, Tuple, TypeVar

from .exceptions import InvalidStateError
from .reactor import Reactor, get_reactor

T = TypeVar('T')
U = TypeVar('U')

OnFulfilled = Optional[Callable[[Any], Any]]
OnRejected = Optional[Callable[[BaseException], Any]]


class FutureState(Enum):
    """Lifecycle states of a future."""
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class Future(Generic[T]):
    """
    Single-assignment future bound to a reactor.
    
    Consumers observe it with .then()/.catch()/.done() or by awaiting it;
    producers settle it through a Deferred.
    
    Examples:
        # Explicit chaining
        Future.resolved(10).then(lambda x: x * 2).then(print)
        
        # Async/await
        result = await future
    """
    
    def __init__(self, reactor: Optional[Reactor] = None):
        """
        Create a pending future.
        
        Args:
            reactor: Reactor that runs this future's listeners
                (default: the process-wide reactor)
        """
        self._reactor = (reactor if reactor is not None else get_reactor()).bind()
        self._state = FutureState.PENDING
        self._value: Optional[T] = None
        self._error: Optional[BaseException] = None
        self._listeners: List[Tuple[OnFulfilled, OnRejected]] = []
        self._lock = threading.Lock()
    
    def __repr__(self) -> str:
        if self._state is FutureState.FULFILLED:
            return f"<Future fulfilled value={self._value!r}>"
        if self._state is FutureState.REJECTED:
            return f"<Future rejected error={self._error!r}>"
        return f"<Future pending listeners={len(self._listeners)}>"
    
    def __await__(self):
        """
        Make future awaitable.
        
        The future's reactor must be driven for the await to finish; the
        asyncio reactor is driven by the awaiting loop itself.
        """
        async def _await_impl():
            loop = asyncio.get_running_loop()
            waiter = loop.create_future()
            
            def deliver(setter, arg):
                if not waiter.done():
                    setter(arg)
            
            def on_fulfilled(value):
                _call_in_loop(loop, deliver, waiter.set_result, value)
            
            def on_rejected(error):
                _call_in_loop(loop, deliver, waiter.set_exception, error)
            
            self.add_listeners(on_fulfilled, on_rejected)
            return await waiter
        
        return _await_impl().__await__()
    
    @property
    def reactor(self) -> Reactor:
        """Reactor that runs this future's listeners."""
        return self._reactor
    
    @property
    def state(self) -> FutureState:
        return self._state
    
    def is_pending(self) -> bool:
        return self._state is FutureState.PENDING
    
    def is_fulfilled(self) -> bool:
        return self._state is FutureState.FULFILLED
    
    def is_rejected(self) -> bool:
        return self._state is FutureState.REJECTED
    
    def result(self) -> T:
        """
        Get the value without waiting.
        
        Returns:
            The fulfillment value
            
        Raises:
            The rejection error if the future was rejected
            InvalidStateError: if the future is still pending
        """
        if self._state is FutureState.PENDING:
            raise InvalidStateError("Future is still pending")
        if self._state is FutureState.REJECTED:
            raise self._error
        return self._value
    
    def exception(self) -> Optional[BaseException]:
        """
        Get the rejection error, or None if the future fulfilled.
        
        Raises:
            InvalidStateError: if the future is still pending
        """
        if self._state is FutureState.PENDING:
            raise InvalidStateError("Future is still pending")
        return self._error
    
    def add_listeners(
        self,
        on_fulfilled: OnFulfilled = None,
        on_rejected: OnRejected = None,
    ) -> None:
        """
        Register raw settlement callbacks.
        
        Each call is an independent registration. Callbacks run on a later
        turn, including when the future is already settled. Exceptions they
        raise are not caught here; use then() for chaining.
        
        Args:
            on_fulfilled: Called with the value
            on_rejected: Called with the error
        """
        with self._lock:
            if self._state is FutureState.PENDING:
                self._listeners.append((on_fulfilled, on_rejected))
                return
        self._dispatch(on_fulfilled, on_rejected)
    
    def then(
        self,
        on_fulfilled: Optional[Callable[[T], U]] = None,
        on_rejected: Optional[Callable[[BaseException], U]] = None,
    ) -> 'Future[U]':
        """
        Chain a continuation.
        
        Args:
            on_fulfilled: Continuation that receives the value
            on_rejected: Handler that receives the error
            
        Returns:
            New future settled with the handler's return value (a returned
            future is adopted) or rejected with the exception it raised.
            A missing handler passes the outcome through unchanged.
            
        Example:
            read(url).then(lambda id: read(f"{url}/{id}")).then(json.loads)
        """
        deferred: Deferred[U] = Deferred(self._reactor)
        
        def fulfilled(value):
            if on_fulfilled is None:
                deferred.resolve(value)
            else:
                _run_handler(on_fulfilled, value, deferred)
        
        def rejected(error):
            if on_rejected is None:
                deferred.reject(error)
            else:
                _run_handler(on_rejected, error, deferred)
        
        self.add_listeners(fulfilled, rejected)
        return deferred.future
    
    def catch(self, on_rejected: Callable[[BaseException], U]) -> 'Future[U]':
        """Handle errors in the future chain."""
        return self.then(None, on_rejected)
    
    def done(
        self,
        on_fulfilled: Optional[Callable[[T], Any]] = None,
        on_rejected: Optional[Callable[[BaseException], Any]] = None,
    ) -> None:
        """
        Terminate a chain.
        
        A rejection that reaches this point unhandled, or an error raised by
        either handler, is reported to the reactor instead of disappearing.
        """
        reactor = self._reactor
        
        def report(error):
            reactor.report_unhandled(error, self)
        
        self.then(on_fulfilled, on_rejected).add_listeners(None, report)
    
    @staticmethod
    def create(
        executor: Callable[[Callable[[Any], bool], Callable[[BaseException], bool]], Any],
        reactor: Optional[Reactor] = None,
    ) -> 'Future[Any]':
        """
        Create a future from an executor.
        
        The executor runs synchronously with (resolve, reject). An exception
        it raises rejects the future instead of propagating.
        
        Example:
            Future.create(lambda resolve, reject: resolve(json.loads(text)))
        """
        deferred: Deferred[Any] = Deferred(reactor)
        try:
            executor(deferred.resolve, deferred.reject)
        except Exception as e:
            deferred.reject(e)
        return deferred.future
    
    @staticmethod
    def resolved(value: T, reactor: Optional[Reactor] = None) -> 'Future[T]':
        """Create a future that's already fulfilled."""
        deferred: Deferred[T] = Deferred(reactor)
        deferred.resolve(value)
        return deferred.future
    
    @staticmethod
    def rejected(error: BaseException, reactor: Optional[Reactor] = None) -> 'Future[Any]':
        """Create a future that's already rejected."""
        deferred: Deferred[Any] = Deferred(reactor)
        deferred.reject(error)
        return deferred.future
    
    def _settle(self, state: FutureState, outcome: Any) -> bool:
        with self._lock:
            if self._state is not FutureState.PENDING:
                return False
            if state is FutureState.FULFILLED:
                self._value = outcome
            else:
                self._error = outcome
            self._state = state
            listeners = self._listeners
            self._listeners = []
        
        # Every listener gets queued even if scheduling one of them fails
        failure: Optional[Exception] = None
        for on_fulfilled, on_rejected in listeners:
            try:
                self._dispatch(on_fulfilled, on_rejected)
            except Exception as e:
                if failure is None:
                    failure = e
        if failure is not None:
            raise failure
        return True
    
    def _dispatch(self, on_fulfilled: OnFulfilled, on_rejected: OnRejected) -> None:
        if self._state is FutureState.FULFILLED:
            if on_fulfilled is not None:
                self._reactor.call_soon(on_fulfilled, self._value)
        elif on_rejected is not None:
            self._reactor.call_soon(on_rejected, self._error)


class Deferred(Generic[T]):
    """
    Producer side of a future.
    
    The first resolve() or reject() wins; later calls return False and
    change nothing. Resolving with another future adopts its outcome.
    """
    
    def __init__(self, reactor: Optional[Reactor] = None):
        self.future: Future[T] = Future(reactor)
        self._locked = False
        self._lock = threading.Lock()
    
    def resolve(self, value: Any) -> bool:
        """
        Fulfill the future, or follow another future's outcome.
        
        Returns:
            True if this call decided the future's outcome
        """
        if isinstance(value, Future):
            if value is self.future:
                return self.reject(TypeError("A future cannot be resolved with itself"))
            if not self._lock_in():
                return False
            value.add_listeners(self._fulfill, self._reject)
            return True
        if not self._lock_in():
            return False
        return self._fulfill(value)
    
    def reject(self, error: BaseException) -> bool:
        """
        Reject the future.
        
        Returns:
            True if this call decided the future's outcome
        """
        if not isinstance(error, BaseException):
            raise TypeError(f"Futures reject with exceptions, got {type(error).__name__}")
        if not self._lock_in():
            return False
        return self._reject(error)
    
    def _lock_in(self) -> bool:
        with self._lock:
            if self._locked:
                return False
            self._locked = True
            return True
    
    def _fulfill(self, value: Any) -> bool:
        return self.future._settle(FutureState.FULFILLED, value)
    
    def _reject(self, error: BaseException) -> bool:
        return self.future._settle(FutureState.REJECTED, error)


def _run_handler(handler: Callable[[Any], Any], arg: Any, deferred: Deferred) -> None:
    try:
        result = handler(arg)
    except Exception as e:
        deferred.reject(e)
    else:
        deferred.resolve(result)


def _call_in_loop(loop: asyncio.AbstractEventLoop, callback: Callable[..., Any], *args: Any) -> None:
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        callback(*args)
    else:
        loop.call_soon_threadsafe(callback, *args)
