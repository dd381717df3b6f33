"""Ordered interceptor chains around named pipeline stages.

An interceptor registered with ``on`` receives the stage arguments plus a
``proceed`` continuation. Awaiting ``proceed()`` runs the rest of the chain
(later interceptors, then the stage body) and returns its result. Not
calling it short-circuits the stage.

Example:
    pipeline = HookPipeline()

    @pipeline.interceptor("copy-file")
    async def skip_lockfiles(state, proceed):
        if state.src_file.suffix != ".lock":
            await proceed()
"""

import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .registry import HookMode, HookPoint, HookRegistry, Interceptor

logger = logging.getLogger(__name__)


async def resolve(value: Any) -> Any:
    """Await value if it is awaitable."""
    if inspect.isawaitable(value):
        return await value
    return value


class _Chain:
    """One invocation of a hook point: shared arguments and a snapshot of interceptors."""

    def __init__(
        self,
        point: HookPoint,
        interceptors: list[Interceptor],
        args: list[Any],
        body: Callable[..., Any] | None,
    ) -> None:
        self.point = point
        self.interceptors = interceptors
        self.args = args
        self.body = body

    async def step(self, index: int) -> Any:
        if index >= len(self.interceptors):
            if self.body is None:
                return None
            return await resolve(self.body(*self.args))

        interceptor = self.interceptors[index]
        proceed = Continuation(self, index + 1)

        if interceptor.mode is HookMode.OBSERVE:
            await resolve(interceptor.callback(*self.args))
            return await proceed()

        result = await resolve(interceptor.callback(*self.args, proceed))
        if result is not None:
            return result
        if not proceed.called:
            logger.debug("Hook %s short-circuited by %s", self.point.value, interceptor.name)
        return proceed.result


class Continuation:
    """The ``proceed`` callable handed to a wrapping interceptor.

    ``args`` is the live argument list shared by the whole chain; assigning
    into it replaces what later interceptors and the body receive. Calling
    with positional arguments replaces the whole list. The rest of the chain
    runs at most once; repeated calls return the first result.
    """

    def __init__(self, chain: _Chain, index: int) -> None:
        self._chain = chain
        self._index = index
        self.called = False
        self.result: Any = None

    @property
    def args(self) -> list[Any]:
        return self._chain.args

    async def __call__(self, *args: Any) -> Any:
        if args:
            self._chain.args[:] = args
        if not self.called:
            self.called = True
            self.result = await self._chain.step(self._index)
        return self.result


class HookPipeline:
    """Runs stage bodies inside their registered interceptor chains.

    Registrations live on the pipeline's own registry, so two pipelines
    never see each other's hooks.
    """

    def __init__(self, registry: HookRegistry | None = None) -> None:
        self.registry = registry or HookRegistry()

    def on(self, point: HookPoint | str, callback: Callable[..., Any]) -> Interceptor:
        """Register a wrapping interceptor ``callback(*args, proceed)``."""
        return self.registry.register(point, callback, HookMode.WRAP)

    def observe(self, point: HookPoint | str, callback: Callable[..., Any]) -> Interceptor:
        """Register an observer ``callback(*args)``; the chain continues after it."""
        return self.registry.register(point, callback, HookMode.OBSERVE)

    def off(self, point: HookPoint | str, callback: Callable[..., Any]) -> bool:
        """Remove a registration made with on() or observe()."""
        return self.registry.unregister(point, callback)

    def interceptor(self, point: HookPoint | str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of on()."""

        def decorator(callback: Callable[..., Any]) -> Callable[..., Any]:
            self.on(point, callback)
            return callback

        return decorator

    def observer(self, point: HookPoint | str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator form of observe()."""

        def decorator(callback: Callable[..., Any]) -> Callable[..., Any]:
            self.observe(point, callback)
            return callback

        return decorator

    def hook(self, point: HookPoint | str, body: Callable[..., Any]) -> Callable[..., Awaitable[Any]]:
        """Wrap a stage body in the chain registered for a hook point.

        Returns:
            Async callable taking the stage arguments
        """
        hook = HookPoint(point)

        async def run(*args: Any) -> Any:
            return await self.call(hook, body, *args)

        return run

    async def call(self, point: HookPoint | str, body: Callable[..., Any] | None, *args: Any) -> Any:
        """Run the chain for a hook point once with the given arguments."""
        hook = HookPoint(point)
        interceptors = self.registry.get_for_hook(hook)
        if interceptors:
            logger.debug("Running hook %s through %d interceptor(s)", hook.value, len(interceptors))
        chain = _Chain(hook, interceptors, list(args), body)
        return await chain.step(0)

    async def emit(self, point: HookPoint | str, *args: Any) -> None:
        """Fire a notification; interceptors run, there is no body."""
        await self.call(point, None, *args)
