#!/usr/bin/env python3
"""
Unit tests for async cache wrappers
Shared in-flight computations, failure retry, cancellation, invalidation
"""

import asyncio

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from cache import CacheController, memoize, cached_async, cached_by_key_async

pytestmark = pytest.mark.asyncio


class GatedDelegate:
    """Async delegate that blocks until released, recording every start."""

    def __init__(self):
        self.started = []
        self.gate = asyncio.Event()
        self.error = None

    async def __call__(self, *args, **kwargs):
        self.started.append(args)
        await self.gate.wait()
        if self.error is not None:
            error, self.error = self.error, None
            raise error
        return {"run": len(self.started), "args": args}


@pytest.fixture
def controller():
    return CacheController("async-test")


class TestSharedComputation:
    """Concurrent callers share one pending computation."""

    async def test_concurrent_keyed_calls_start_once(self, controller):
        """Test: two callers before resolution -> one delegate start, same value."""
        delegate = GatedDelegate()
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        first = asyncio.ensure_future(wrapped("a"))
        second = asyncio.ensure_future(wrapped("a"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert delegate.started == [("a",)]
        delegate.gate.set()

        result_first, result_second = await asyncio.gather(first, second)
        assert result_first is result_second
        assert delegate.started == [("a",)]

    async def test_concurrent_unkeyed_calls_start_once(self, controller):
        """Test: unkeyed variant shares the pending call too."""
        delegate = GatedDelegate()
        wrapped = memoize(delegate, controller, is_async=True)

        delegate.gate.set()
        results = await asyncio.gather(*(wrapped() for _ in range(10)))

        assert len(delegate.started) == 1
        assert all(result is results[0] for result in results)

    async def test_different_keys_run_separately(self, controller):
        """Test: distinct keys each get their own computation."""
        delegate = GatedDelegate()
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        delegate.gate.set()
        a, b = await asyncio.gather(wrapped("a"), wrapped("b"))

        assert sorted(delegate.started) == [("a",), ("b",)]
        assert a is not b

    async def test_resolved_value_served_from_cache(self, controller):
        """Test: later calls reuse the resolved result."""
        delegate = GatedDelegate()
        delegate.gate.set()
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        first = await wrapped("a", "extra")
        second = await wrapped("a", "other")

        assert second is first
        assert delegate.started == [("a", "extra")]
        assert wrapped.cache_stats.hits == 1


class TestFailures:
    """Failed computations are never replayed."""

    async def test_failure_then_retry(self, controller):
        """Test: the next call after a failure re-runs the delegate."""
        delegate = GatedDelegate()
        delegate.gate.set()
        delegate.error = RuntimeError("download failed")
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        with pytest.raises(RuntimeError, match="download failed"):
            await wrapped("a")

        result = await wrapped("a")
        assert result["run"] == 2
        assert len(delegate.started) == 2

    async def test_failure_reaches_every_waiter(self, controller):
        """Test: all callers sharing a failing computation see the error."""
        delegate = GatedDelegate()
        delegate.error = ValueError("bad payload")
        wrapped = memoize(delegate, controller, is_async=True)

        waiters = [asyncio.ensure_future(wrapped()) for _ in range(3)]
        await asyncio.sleep(0)
        delegate.gate.set()

        results = await asyncio.gather(*waiters, return_exceptions=True)
        assert all(isinstance(result, ValueError) for result in results)
        assert len(delegate.started) == 1

        assert (await wrapped())["run"] == 2

    async def test_failure_does_not_evict_other_keys(self, controller):
        """Test: only the failing key is emptied."""
        calls = []

        async def delegate(key):
            calls.append(key)
            if key == "bad" and calls.count("bad") == 1:
                raise RuntimeError("boom")
            return key.upper()

        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        assert await wrapped("good") == "GOOD"
        with pytest.raises(RuntimeError):
            await wrapped("bad")
        assert await wrapped("bad") == "BAD"
        assert await wrapped("good") == "GOOD"
        assert calls == ["good", "bad", "bad"]


class TestCancellation:
    """A caller giving up does not cancel the shared computation."""

    async def test_cancelled_caller_does_not_cancel_others(self, controller):
        """Test: cancelling one waiter leaves the computation running."""
        delegate = GatedDelegate()
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        quitter = asyncio.ensure_future(wrapped("a"))
        stayer = asyncio.ensure_future(wrapped("a"))
        await asyncio.sleep(0)

        quitter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await quitter

        delegate.gate.set()
        result = await stayer

        assert result["run"] == 1
        assert await wrapped("a") is result
        assert len(delegate.started) == 1

    async def test_task_cancelled_before_start_is_not_cached(self, controller):
        """Test: a shared task cancelled before its first step is dropped from the slot."""
        delegate = GatedDelegate()
        delegate.gate.set()
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        caller = asyncio.ensure_future(wrapped("a"))
        await asyncio.sleep(0)

        # Stored but not yet started
        pending = wrapped._store._entries["a"]
        assert not pending.done()
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await caller
        assert delegate.started == []

        result = await wrapped("a")
        assert result["run"] == 1
        assert delegate.started == [("a",)]


class TestInvalidation:
    """Async wrappers follow the controller epoch."""

    async def test_invalidate_recomputes(self, controller):
        """Test: the next call after invalidate() runs the delegate again."""
        delegate = GatedDelegate()
        delegate.gate.set()
        wrapped = memoize(delegate, controller, is_async=True)

        before = await wrapped()
        controller.invalidate()
        after = await wrapped()

        assert after is not before
        assert len(delegate.started) == 2

    async def test_invalidate_drops_all_keys(self, controller):
        """Test: a, b, invalidate, a -> two runs for a."""
        delegate = GatedDelegate()
        delegate.gate.set()
        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        await wrapped("a")
        await wrapped("b")
        controller.invalidate()
        await wrapped("a")

        assert [args[0] for args in delegate.started] == ["a", "b", "a"]

    async def test_pending_call_not_served_after_invalidate(self, controller):
        """Test: a computation from the old epoch is not shared with new callers."""
        delegate = GatedDelegate()
        wrapped = memoize(delegate, controller, is_async=True)

        old = asyncio.ensure_future(wrapped())
        await asyncio.sleep(0)
        controller.invalidate()
        new = asyncio.ensure_future(wrapped())
        await asyncio.sleep(0)

        delegate.gate.set()
        old_result, new_result = await asyncio.gather(old, new)

        assert old_result is not new_result
        assert len(delegate.started) == 2
        assert await wrapped() is new_result

    async def test_shared_controller_invalidates_both(self, controller):
        """Test: two unkeyed wrappers on one controller refresh together."""
        counts = {"versions": 0, "blocks": 0}

        @cached_async(controller)
        async def versions():
            counts["versions"] += 1
            return counts["versions"]

        @cached_async(controller)
        async def blocks():
            counts["blocks"] += 1
            return counts["blocks"]

        assert (await versions(), await blocks()) == (1, 1)
        assert (await versions(), await blocks()) == (1, 1)
        controller.invalidate()
        assert (await versions(), await blocks()) == (2, 2)

    async def test_old_epoch_failure_keeps_new_task(self, controller):
        """Test: an old-epoch task failing after invalidate() does not evict the new one."""
        starts = []
        gates = [asyncio.Event(), asyncio.Event()]

        async def delegate(key):
            run = len(starts)
            starts.append(key)
            await gates[run].wait()
            if run == 0:
                raise RuntimeError("stale failure")
            return f"fresh:{key}"

        wrapped = memoize(delegate, controller, keyed=True, is_async=True)

        old = asyncio.ensure_future(wrapped("a"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert starts == ["a"]

        controller.invalidate()
        new = asyncio.ensure_future(wrapped("a"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert starts == ["a", "a"]

        gates[0].set()
        with pytest.raises(RuntimeError, match="stale failure"):
            await old

        late = asyncio.ensure_future(wrapped("a"))
        gates[1].set()
        assert await new == "fresh:a"
        assert await late == "fresh:a"
        assert starts == ["a", "a"]


class TestAsyncMethods:
    """Decorated coroutine methods."""

    async def test_keyed_method(self, controller):
        """Test: self is bound and the key is the first argument after it."""

        class Source:
            def __init__(self):
                self.calls = []

            @cached_by_key_async(controller)
            async def load(self, version):
                self.calls.append(version)
                await asyncio.sleep(0)
                return f"summary:{version}"

        source = Source()
        results = await asyncio.gather(source.load("1.19.2"), source.load("1.19.2"))

        assert results == ["summary:1.19.2", "summary:1.19.2"]
        assert source.calls == ["1.19.2"]
