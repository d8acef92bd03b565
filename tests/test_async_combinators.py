"""
Comprehensive tests for when_all (combinators.py).

Tests:
- Ordered results regardless of arrival order
- Empty input settles on a later turn
- First processed rejection wins, with a pinned tie-break
- Nothing settles inside the when_all() call
- Late input settlements are inert
- Listener registration and factory injection
- asyncio integration
- Uses randomized inputs per project guidelines
"""

import asyncio
import random
import string
from functools import partial

import pytest

from pledge import AllCombinator, Deferred, Future, InputRejected, when_all


# =============================================================================
# Test Fixtures and Helpers
# =============================================================================

class CountingFuture(Future):
    """Future that records listener registrations."""

    def __init__(self, reactor=None):
        super().__init__(reactor)
        self.registrations = []

    def add_listeners(self, on_fulfilled=None, on_rejected=None):
        self.registrations.append((on_fulfilled, on_rejected))
        super().add_listeners(on_fulfilled, on_rejected)


def random_string(length: int = 10) -> str:
    """Generate a random string."""
    return ''.join(random.choices(string.ascii_letters, k=length))


def random_int(min_val: int = -1000, max_val: int = 1000) -> int:
    """Generate a random integer."""
    return random.randint(min_val, max_val)


def observe(future):
    """Record the outcome of a future as it is delivered to listeners."""
    seen = []
    future.add_listeners(
        lambda value: seen.append(("fulfilled", value)),
        lambda error: seen.append(("rejected", error)),
    )
    return seen


# =============================================================================
# Success path
# =============================================================================

class TestWhenAll:
    """Tests for when_all fulfillment."""

    def test_two_resolved(self, reactor):
        """when_all([resolved(1), resolved(2)]) fulfills with [1, 2]."""
        out = when_all([Future.resolved(1, reactor), Future.resolved(2, reactor)])
        reactor.run_until_idle()
        assert out.result() == [1, 2]

    def test_preserves_input_order(self, reactor, deferred):
        """Results follow input order, not arrival order."""
        values = [random_int() for _ in range(8)]
        sources = [deferred() for _ in values]
        out = when_all([d.future for d in sources])

        order = list(range(len(values)))
        random.shuffle(order)
        for i in order:
            sources[i].resolve(values[i])
            reactor.run_turn()

        reactor.run_until_idle()
        assert out.result() == values

    def test_mixed_settled_and_pending(self, reactor, deferred):
        """Inputs may already be settled at call time."""
        late = deferred()
        out = when_all([Future.resolved("a", reactor), late.future, Future.resolved("c", reactor)])

        reactor.run_until_idle()
        assert out.is_pending()

        late.resolve("b")
        reactor.run_until_idle()
        assert out.result() == ["a", "b", "c"]

    def test_single_input(self, reactor):
        """Test with single future."""
        value = random_string()
        out = when_all([Future.resolved(value, reactor)])
        reactor.run_until_idle()
        assert out.result() == [value]

    def test_results_may_be_none(self, reactor):
        """None is a value like any other."""
        out = when_all([Future.resolved(None, reactor), Future.resolved(0, reactor)])
        reactor.run_until_idle()
        assert out.result() == [None, 0]

    def test_adopted_inputs(self, reactor, deferred):
        """Inputs that follow other futures report the followed value."""
        outer = deferred()
        outer.resolve(Future.resolved(5, reactor))
        out = when_all([outer.future, Future.resolved(6, reactor)])
        reactor.run_until_idle()
        assert out.result() == [5, 6]


# =============================================================================
# Empty input
# =============================================================================

class TestWhenAllEmpty:
    """Tests for when_all([])."""

    def test_empty_list(self, reactor):
        """Test with empty list of futures."""
        out = when_all([], factory=partial(Deferred, reactor))
        reactor.run_until_idle()
        assert out.result() == []

    def test_empty_list_is_asynchronous(self, reactor):
        """when_all([]) does not settle within the call."""
        out = when_all([], factory=partial(Deferred, reactor))
        assert out.is_pending()

        reactor.run_turn()
        assert out.result() == []


# =============================================================================
# Failure path
# =============================================================================

class TestWhenAllRejection:
    """Tests for when_all rejection."""

    def test_pending_rejects(self, reactor, deferred):
        """when_all([pending that rejects "boom", resolved(2)]) rejects with "boom"."""
        boom = deferred()
        out = when_all([boom.future, Future.resolved(2, reactor)])
        error = RuntimeError("boom")
        boom.reject(error)

        reactor.run_until_idle()
        assert out.exception() is error

    def test_error_forwarded_verbatim(self, reactor):
        """The input error is forwarded, not wrapped."""
        error = KeyError(random_string())
        combinator = AllCombinator([Future.resolved(1, reactor), Future.rejected(error, reactor)])
        reactor.run_until_idle()

        assert combinator.future.exception() is error
        assert combinator.failure == InputRejected(error=error, index=1)

    def test_rejects_before_other_inputs_settle(self, reactor, deferred):
        """The first rejection decides without waiting for the rest."""
        never = deferred()
        failing = deferred()
        out = when_all([never.future, failing.future])

        failing.reject(ValueError("fast"))
        reactor.run_until_idle()
        assert out.is_rejected()
        assert never.future.is_pending()

    def test_tie_break_presettled_lowest_index(self, reactor):
        """Inputs rejected before the call: the lowest index wins."""
        first, second = ValueError("first"), ValueError("second")
        combinator = AllCombinator([
            Future.resolved(0, reactor),
            Future.rejected(first, reactor),
            Future.rejected(second, reactor),
        ])

        reactor.run_until_idle()
        assert combinator.future.exception() is first
        assert combinator.failure.index == 1

    def test_tie_break_same_turn_processing_order(self, reactor, deferred):
        """Inputs rejected on the same turn: the first processed wins."""
        a, b = deferred(), deferred()
        combinator = AllCombinator([a.future, b.future])

        b.reject(ValueError("b"))
        a.reject(ValueError("a"))

        reactor.run_until_idle()
        assert str(combinator.future.exception()) == "b"
        assert combinator.failure.index == 1

    def test_tie_break_across_turns(self, reactor, deferred):
        """A rejection on an earlier turn beats a lower index."""
        a, b = deferred(), deferred()
        out = when_all([a.future, b.future])

        b.reject(ValueError("earlier"))
        reactor.run_turn()
        a.reject(ValueError("later"))

        reactor.run_until_idle()
        assert str(out.exception()) == "earlier"

    def test_registration_failure_rejects(self, reactor):
        """An input that cannot take listeners rejects the output."""
        out = when_all([Future.resolved(1, reactor), object()])
        assert out.is_pending()

        reactor.run_until_idle()
        assert isinstance(out.exception(), AttributeError)

    def test_registration_failure_first_input(self, reactor):
        """A non-future at index 0 still rejects on a later turn."""
        combinator = AllCombinator([object(), Future.resolved(1, reactor)])
        assert combinator.future.reactor is reactor
        assert combinator.future.is_pending()
        
        reactor.run_until_idle()
        assert isinstance(combinator.future.exception(), AttributeError)
        assert combinator.failure.index == 0
    
    def test_registration_failure_without_loop(self):
        """With no reactor able to schedule, the output rejects instead of raising."""
        combinator = AllCombinator([object()])
        assert isinstance(combinator.future.exception(), AttributeError)
        assert combinator.failure.index == 0


# =============================================================================
# Settle-once and ordering guarantees
# =============================================================================

class TestWhenAllGuarantees:
    """Tests for settle-once semantics and asynchronous delivery."""

    def test_not_settled_within_call(self, reactor):
        """Already-settled inputs still settle the output on a later turn."""
        out = when_all([Future.resolved(1, reactor), Future.rejected(ValueError(), reactor)])
        assert out.is_pending()

    def test_observers_run_after_deciding_turn(self, reactor, deferred):
        """Observers of the output run strictly after the deciding turn."""
        d = deferred()
        out = when_all([d.future])
        seen = observe(out)

        d.resolve(1)
        reactor.run_turn()
        assert out.is_fulfilled()
        assert seen == []

        reactor.run_turn()
        assert seen == [("fulfilled", [1])]

    def test_late_fulfillment_is_inert(self, reactor, deferred):
        """Inputs settling after a rejection change nothing."""
        a, b = deferred(), deferred()
        combinator = AllCombinator([a.future, b.future])
        seen = observe(combinator.future)
        error = ValueError("boom")

        a.reject(error)
        reactor.run_until_idle()

        b.resolve(random_int())
        reactor.run_until_idle()

        assert seen == [("rejected", error)]
        assert combinator.remaining == 2
        assert combinator.future.exception() is error

    def test_late_rejection_is_inert(self, reactor, deferred):
        """Second rejection is observed but does not re-settle."""
        a, b = deferred(), deferred()
        combinator = AllCombinator([a.future, b.future])
        seen = observe(combinator.future)
        first = ValueError("first")

        a.reject(first)
        reactor.run_until_idle()
        b.reject(ValueError("second"))
        reactor.run_until_idle()

        assert seen == [("rejected", first)]
        assert combinator.failure.index == 0

    def test_delivered_results_not_mutated(self, reactor, deferred):
        """The delivered list is final."""
        values = [random_int() for _ in range(3)]
        out = when_all([Future.resolved(v, reactor) for v in values])
        reactor.run_until_idle()

        delivered = out.result()
        reactor.run_until_idle()
        assert delivered == values
        assert out.result() is delivered

    def test_releases_inputs_once_settled(self, reactor, deferred):
        """A finalized combinator stops holding inputs and values."""
        never = deferred()
        combinator = AllCombinator([never.future, Future.resolved(1, reactor), Future.rejected(ValueError(), reactor)])
        reactor.run_until_idle()
        
        assert combinator.settled
        assert combinator.inputs == []
        assert combinator.results == []
    
    def test_releases_inputs_after_success(self, reactor):
        """The delivered list survives releasing the combinator's state."""
        combinator = AllCombinator([Future.resolved(1, reactor), Future.resolved(2, reactor)])
        reactor.run_until_idle()
        
        assert combinator.future.result() == [1, 2]
        assert combinator.inputs == []

    def test_one_listener_pair_per_input(self, reactor):
        """Exactly one fulfillment and one rejection listener per input."""
        sources = [CountingFuture(reactor) for _ in range(3)]
        when_all(sources)

        for source in sources:
            assert len(source.registrations) == 1
            on_fulfilled, on_rejected = source.registrations[0]
            assert on_fulfilled is not None
            assert on_rejected is not None


# =============================================================================
# Factory injection
# =============================================================================

class TestWhenAllFactory:
    """Tests for the output handle factory."""

    def test_factory_produces_output(self, reactor):
        """The output future comes from the factory."""
        made = []

        def factory():
            d = Deferred(reactor)
            made.append(d)
            return d

        out = when_all([Future.resolved(1, reactor)], factory=factory)
        assert len(made) == 1
        assert out is made[0].future

    def test_default_factory_uses_input_reactor(self, reactor):
        """Without a factory the output shares the first input's reactor."""
        out = when_all([Future.resolved(1, reactor)])
        assert out.reactor is reactor


# =============================================================================
# asyncio integration
# =============================================================================

class TestWhenAllAsyncio:
    """Tests for when_all on the asyncio reactor."""

    @pytest.mark.asyncio
    async def test_when_all_basic(self):
        """Test waiting for all futures to complete."""
        values = [random_int() for _ in range(5)]
        results = await when_all([Future.resolved(v) for v in values])
        assert results == values

    @pytest.mark.asyncio
    async def test_when_all_reordered_arrival(self):
        """Results keep input order when settled out of order by the loop."""
        loop = asyncio.get_running_loop()
        values = [random_string() for _ in range(5)]
        sources = [Deferred() for _ in values]
        delays = random.sample(range(1, 6), len(values))
        for d, v, delay in zip(sources, values, delays):
            loop.call_later(delay / 1000, d.resolve, v)

        results = await when_all([d.future for d in sources])
        assert results == values

    @pytest.mark.asyncio
    async def test_when_all_with_exception(self):
        """Test that exception propagates."""
        error_msg = random_string()
        failing = Deferred()
        asyncio.get_running_loop().call_later(0.01, failing.reject, ValueError(error_msg))

        with pytest.raises(ValueError, match=error_msg):
            await when_all([Future.resolved(1), failing.future])

    @pytest.mark.asyncio
    async def test_when_all_empty_list(self):
        """Test with empty list of futures."""
        out = when_all([])
        assert out.is_pending()
        assert await out == []
