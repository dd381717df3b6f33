"""
Tests for the hook pipeline and registry.
"""

import pytest

from plugins import HookMode, HookPipeline, HookPoint, HookRegistry


class TestHookRegistry:
    def test_register_in_order(self):
        registry = HookRegistry()
        first = registry.register("copy", lambda *a: None)
        second = registry.register(HookPoint.COPY, lambda *a: None, HookMode.OBSERVE)
        assert registry.get_for_hook("copy") == [first, second]
        assert len(registry) == 2
        assert "copy" in registry
        assert "init" not in registry

    def test_unknown_hook_point(self):
        with pytest.raises(ValueError):
            HookRegistry().register("nope", lambda: None)

    def test_callback_must_be_callable(self):
        with pytest.raises(TypeError):
            HookRegistry().register("copy", "not callable")

    def test_unregister(self):
        registry = HookRegistry()
        callback = lambda *a: None  # noqa: E731
        registry.register("copy", callback)
        assert registry.unregister("copy", callback) is True
        assert registry.unregister("copy", callback) is False
        assert registry.get_for_hook("copy") == []

    def test_notifications(self):
        assert HookPoint.PROMPT.is_notification
        assert HookPoint.EXTRACT_FILE.is_notification
        assert not HookPoint.COPY_FILE.is_notification


class TestHookPipeline:
    async def test_body_runs_without_interceptors(self):
        pipeline = HookPipeline()
        result = await pipeline.hook("copy", lambda x: x * 2)(21)
        assert result == 42

    async def test_interceptors_run_in_registration_order(self):
        pipeline = HookPipeline()
        calls = []

        async def first(state, proceed):
            calls.append("first:before")
            await proceed()
            calls.append("first:after")

        def second(state, proceed):
            calls.append("second")
            return proceed()

        pipeline.on("copy", first)
        pipeline.on("copy", second)

        await pipeline.call("copy", lambda state: calls.append("body"), {})
        assert calls == ["first:before", "second", "body", "first:after"]

    async def test_short_circuit_skips_body_and_later_interceptors(self):
        pipeline = HookPipeline()
        calls = []

        pipeline.on("copy", lambda state, proceed: calls.append("veto"))
        pipeline.on("copy", lambda state, proceed: calls.append("never"))

        result = await pipeline.call("copy", lambda state: calls.append("body"), {})
        assert calls == ["veto"]
        assert result is None

    async def test_observer_continues_automatically(self):
        pipeline = HookPipeline()
        seen = []

        pipeline.observe("copy", lambda state: seen.append(dict(state)))
        result = await pipeline.call("copy", lambda state: "done", {"a": 1})

        assert seen == [{"a": 1}]
        assert result == "done"

    async def test_mutations_visible_downstream(self):
        pipeline = HookPipeline()

        async def add_c(opts, proceed):
            opts["c"] = "d"
            await proceed()
            assert opts == {"a": "b", "c": "d", "e": "f"}

        def add_e(opts):
            assert opts == {"a": "b", "c": "d"}
            opts["e"] = "f"

        pipeline.on("init", add_c)
        pipeline.observe("init", add_e)

        result = await pipeline.call("init", lambda opts: dict(opts), {"a": "b"})
        assert result == {"a": "b", "c": "d", "e": "f"}

    async def test_replace_argument_through_proceed_args(self):
        pipeline = HookPipeline()

        async def swap(value, proceed):
            proceed.args[0] = "swapped"
            return await proceed()

        pipeline.on("copy", swap)
        assert await pipeline.call("copy", lambda value: value, "original") == "swapped"

    async def test_replace_arguments_by_calling_proceed(self):
        pipeline = HookPipeline()
        pipeline.on("copy", lambda value, proceed: proceed("other"))
        assert await pipeline.call("copy", lambda value: value, "original") == "other"

    async def test_interceptor_result_wins(self):
        pipeline = HookPipeline()

        async def override(state, proceed):
            await proceed()
            return "override"

        pipeline.on("git-clone", override)
        assert await pipeline.call("git-clone", lambda state: "body", {}) == "override"

    async def test_none_result_falls_back_to_body_result(self):
        pipeline = HookPipeline()

        async def passthrough(state, proceed):
            await proceed()

        pipeline.on("git-clone", passthrough)
        assert await pipeline.call("git-clone", lambda state: "body", {}) == "body"

    async def test_proceed_runs_rest_of_chain_once(self):
        pipeline = HookPipeline()
        calls = []

        async def twice(state, proceed):
            first = await proceed()
            second = await proceed()
            assert first == second

        pipeline.on("copy", twice)
        await pipeline.call("copy", lambda state: calls.append("body") or len(calls), {})
        assert calls == ["body"]

    async def test_exceptions_propagate(self):
        pipeline = HookPipeline()

        def boom(state, proceed):
            raise RuntimeError("boom")

        pipeline.on("copy", boom)
        with pytest.raises(RuntimeError, match="boom"):
            await pipeline.call("copy", lambda state: None, {})

    async def test_off_removes_interceptor(self):
        pipeline = HookPipeline()
        calls = []

        def observer(state):
            calls.append(state)

        pipeline.observe("copy", observer)
        assert pipeline.off("copy", observer) is True
        await pipeline.call("copy", lambda state: None, "x")
        assert calls == []

    async def test_emit_notifies_without_body(self):
        pipeline = HookPipeline()
        events = []

        pipeline.observe("extract-progress", lambda state, percent: events.append(percent))
        await pipeline.emit("extract-progress", {}, 50)
        await pipeline.emit("extract-progress", {}, 100)

        assert events == [50, 100]

    async def test_decorators(self):
        pipeline = HookPipeline()
        seen = []

        @pipeline.observer("prompt")
        def on_prompt(state):
            seen.append("observer")

        @pipeline.interceptor("prompt")
        async def around_prompt(state, proceed):
            seen.append("interceptor")
            await proceed()

        await pipeline.emit("prompt", {})
        assert seen == ["observer", "interceptor"]

    async def test_pipelines_do_not_share_registrations(self):
        one, two = HookPipeline(), HookPipeline()
        one.on("copy", lambda state, proceed: None)

        assert await two.call("copy", lambda state: "ran", {}) == "ran"
