"""Tests for hooks, lazy values and error types."""

import asyncio

import pytest

from shipit.errors import ConfigurationError, ErrorKind, PreconditionError, ProviderError, PublishError
from shipit.hooks import Hook, HookType, ShipitHooks
from shipit.lazy import Lazy


class TestHook:
    """Tests for the three hook strategies."""

    def test_waterfall_threads_value(self):
        hook = Hook("render", HookType.WATERFALL)
        hook.tap("double", lambda value: value * 2)
        hook.tap("increment", lambda value: value + 1)

        assert asyncio.run(hook.call(5)) == 11

    def test_waterfall_none_keeps_value(self):
        """A tap returning None leaves the running value alone."""
        hook = Hook("render", HookType.WATERFALL)
        hook.tap("observer", lambda value: None)

        assert asyncio.run(hook.call("line")) == "line"

    def test_waterfall_passes_extra_args(self):
        hook = Hook("next", HookType.WATERFALL)
        hook.tap("append", lambda versions, bump: versions + [bump])

        assert asyncio.run(hook.call([], "minor")) == ["minor"]

    def test_bail_stops_at_first_answer(self):
        calls = []
        hook = Hook("title", HookType.BAIL)
        hook.tap("silent", lambda label: calls.append("silent"))
        hook.tap("answer", lambda label: f"## {label}")
        hook.tap("never", lambda label: calls.append("never"))

        assert asyncio.run(hook.call("patch")) == "## patch"
        assert calls == ["silent"]

    def test_bail_without_answer(self):
        hook = Hook("title", HookType.BAIL)
        hook.tap("silent", lambda label: None)

        assert asyncio.run(hook.call("patch")) is None

    def test_series_collects_results(self):
        hook = Hook("publish", HookType.SERIES)
        hook.tap("one", lambda bump: 1)
        hook.tap("two", lambda bump: 2)

        assert asyncio.run(hook.call("patch")) == [1, 2]

    def test_async_taps(self):
        """Coroutine functions are awaited like plain functions return."""
        async def upper(value):
            return value.upper()

        hook = Hook("line", HookType.WATERFALL)
        hook.tap("upper", upper)
        hook.tap("exclaim", lambda value: value + "!")

        assert asyncio.run(hook.call("ship")) == "SHIP!"

    def test_tap_errors_propagate(self):
        def broken(value):
            raise ValueError("broken tap")

        hook = Hook("line", HookType.WATERFALL)
        hook.tap("broken", broken)

        with pytest.raises(ValueError, match="broken tap"):
            asyncio.run(hook.call("x"))

    def test_tap_names_and_usage(self):
        hook = Hook("version", HookType.SERIES)
        assert not hook.is_used()

        hook.tap("git-tag", lambda bump: None)

        assert hook.is_used()
        assert hook.tap_names == ["git-tag"]

    def test_hook_sets_are_independent(self):
        """Each orchestrator gets its own hooks."""
        first, second = ShipitHooks(), ShipitHooks()
        first.version.tap("a", lambda bump: None)

        assert not second.version.is_used()


class TestLazy:
    """Tests for Lazy."""

    def test_computes_once(self):
        calls = []

        async def factory():
            calls.append(1)
            await asyncio.sleep(0)
            return "value"

        async def run():
            lazy = Lazy(factory)
            results = await asyncio.gather(lazy.get(), lazy.get(), lazy.get())
            again = await lazy.get()
            return results, again

        results, again = asyncio.run(run())

        assert results == ["value", "value", "value"]
        assert again == "value"
        assert calls == [1]

    def test_failure_is_not_cached(self):
        attempts = []

        async def factory():
            attempts.append(1)
            if len(attempts) == 1:
                raise ProviderError("flaky", stage="test")
            return "ok"

        async def run():
            lazy = Lazy(factory)
            with pytest.raises(ProviderError):
                await lazy.get()
            return await lazy.get()

        assert asyncio.run(run()) == "ok"
        assert len(attempts) == 2

    def test_invalidate(self):
        counter = iter(range(10))

        async def factory():
            return next(counter)

        async def run():
            lazy = Lazy(factory)
            first = await lazy.get()
            lazy.invalidate()
            return first, await lazy.get(), lazy.done

        assert asyncio.run(run()) == (0, 1, True)


class TestErrors:
    """Tests for the error types."""

    def test_kinds(self):
        assert ConfigurationError("bad").kind == ErrorKind.CONFIGURATION
        assert ProviderError("down", stage="search").kind == ErrorKind.PROVIDER
        assert PreconditionError("changelog").kind == ErrorKind.PRECONDITION

    def test_context_in_message(self):
        error = ProviderError("Not found", stage="get_pull_request", status=404)

        assert str(error) == "Not found (stage=get_pull_request, status=404)"

    def test_wrap_keeps_status(self):
        cause = ProviderError("Forbidden", stage="publish", status=403)
        error = PublishError.wrap(cause, "publish release")

        assert error.kind == ErrorKind.PUBLISH
        assert error.status == 403
        assert error.message == "publish release failed: Forbidden"

    def test_precondition_names_operation(self):
        error = PreconditionError("changelog")

        assert error.operation == "changelog"
        assert "load_config()" in error.message
