"""pytest configuration and fixtures for pledge tests."""

import logging
from functools import partial

import pytest

from pledge import Deferred, ManualReactor, set_reactor


@pytest.fixture(autouse=True)
def reset_defaults():
    """Restore the default reactor and package log level after each test."""
    yield
    set_reactor(None)
    logging.getLogger("pledge").setLevel(logging.NOTSET)


@pytest.fixture
def reactor() -> ManualReactor:
    """A deterministic reactor, driven explicitly by the test."""
    return ManualReactor(max_turns=100)


@pytest.fixture
def deferred(reactor):
    """Factory for pending futures on the test reactor.
    
    Returns:
        Callable producing a new Deferred bound to ``reactor``.
    """
    return partial(Deferred, reactor)
