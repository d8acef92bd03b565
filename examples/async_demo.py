"""
Async Future Demo

Demonstrates executor-style futures, sequential chains and when_all,
on both the asyncio reactor and a manually driven one.
"""

import asyncio
import json
import logging
import sys

from pledge import Deferred, Future, ManualReactor, when_all


def delayed(value, delay: float) -> Future:
    """A future fulfilled by the running loop after ``delay`` seconds."""
    d = Deferred()
    asyncio.get_running_loop().call_later(delay, d.resolve, value)
    return d.future


# Example 1: Executor-style construction
async def example_parse(text: str):
    """Demo of exceptions turning into rejections."""
    print("\n=== Example 1: Parse ===")
    
    parsed = Future.create(lambda resolve, reject: resolve(json.loads(text)))
    try:
        print(f"Parsed: {await parsed}")
    except ValueError as e:
        print(f"Rejected: {e}")


# Example 2: Sequential chain
async def example_chain():
    """Demo of a continuation that returns another future."""
    print("\n=== Example 2: Sequential Chain ===")
    
    records = {"index": "7", "7": '{"name": "widget"}'}
    result = await (delayed(records["index"], 0.01)
                    .then(lambda key: delayed(records[key], 0.01))
                    .then(json.loads))
    print(f"Chained result: {result}")


# Example 3: Combining concurrent futures
async def example_when_all():
    """Demo of ordered results from out-of-order completion."""
    print("\n=== Example 3: when_all ===")
    
    results = await when_all([delayed("slow", 0.03), delayed("fast", 0.01)])
    print(f"Results: {results}")
    
    try:
        await when_all([delayed(1, 0.02), Future.rejected(RuntimeError("boom"))])
    except RuntimeError as e:
        print(f"First rejection: {e}")


# Example 4: Manual turns
def example_manual():
    """Demo of driving turns explicitly."""
    print("\n=== Example 4: Manual Reactor ===")
    
    reactor = ManualReactor()
    out = when_all([Future.resolved(1, reactor), Future.resolved(2, reactor)])
    out.done(lambda values: print(f"Settled: {values}"))
    
    print(f"Pending after call: {out.is_pending()}")
    reactor.run_until_idle()


async def main():
    await example_parse(sys.argv[1] if len(sys.argv) > 1 else '{"ok": true}')
    await example_chain()
    await example_when_all()
    example_manual()


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    asyncio.run(main())
