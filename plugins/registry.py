"""Hook registry for pipeline interceptors.

Stores registered interceptors per hook point, in registration order.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)


class HookPoint(str, Enum):
    """Valid hook points in the template pipeline."""

    # Stages
    INIT = "init"
    GIT_CLONE = "git-clone"
    DOWNLOAD = "download"
    EXTRACT = "extract"
    NPM_DOWNLOAD = "npm-download"
    LOAD_META = "load-meta"
    CREATE = "create"
    COPY = "copy"
    COPY_FILE = "copy-file"
    NPM_INSTALL = "npm-install"
    GIT_INIT = "git-init"
    CLEANUP = "cleanup"

    # Notifications
    EXTRACT_FILE = "extract-file"
    EXTRACT_PROGRESS = "extract-progress"
    PROMPT = "prompt"

    @property
    def is_notification(self) -> bool:
        """Notifications have no stage body to wrap."""
        return self in NOTIFICATIONS


NOTIFICATIONS = frozenset({HookPoint.EXTRACT_FILE, HookPoint.EXTRACT_PROGRESS, HookPoint.PROMPT})


class HookMode(str, Enum):
    """How an interceptor takes part in the chain."""

    WRAP = "wrap"  # receives proceed, may short-circuit
    OBSERVE = "observe"  # chain continues once it returns


@dataclass
class Interceptor:
    """A registered hook callback."""

    point: HookPoint
    callback: Callable[..., Any]
    mode: HookMode = HookMode.WRAP
    enabled: bool = True

    @property
    def name(self) -> str:
        """Callback name, for logs."""
        return getattr(self.callback, "__qualname__", repr(self.callback))


class HookRegistry:
    """Registry of interceptors by hook point.

    Order of registration is order of execution. The same callback may be
    registered more than once and will then run more than once.
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._by_hook: dict[HookPoint, list[Interceptor]] = {}

    def register(
        self,
        point: HookPoint | str,
        callback: Callable[..., Any],
        mode: HookMode = HookMode.WRAP,
    ) -> Interceptor:
        """Register an interceptor.

        Args:
            point: Hook point or its string tag
            callback: Sync or async callable
            mode: WRAP or OBSERVE

        Returns:
            The registered interceptor

        Raises:
            ValueError: If the hook point is unknown
            TypeError: If callback is not callable
        """
        if not callable(callback):
            raise TypeError("Expected hook callback to be callable")

        hook = HookPoint(point)
        interceptor = Interceptor(point=hook, callback=callback, mode=mode)
        self._by_hook.setdefault(hook, []).append(interceptor)

        logger.debug("Registered %s interceptor %s on %s", mode.value, interceptor.name, hook.value)
        return interceptor

    def unregister(self, point: HookPoint | str, callback: Callable[..., Any]) -> bool:
        """Remove the most recent registration of a callback.

        Args:
            point: Hook point
            callback: Callback or Interceptor previously registered

        Returns:
            True if a registration was removed, False if not found
        """
        hook = HookPoint(point)
        entries = self._by_hook.get(hook, [])

        for index in range(len(entries) - 1, -1, -1):
            entry = entries[index]
            if entry is callback or entry.callback == callback:
                del entries[index]
                logger.debug("Unregistered interceptor %s from %s", entry.name, hook.value)
                return True

        return False

    def get_for_hook(self, point: HookPoint | str) -> list[Interceptor]:
        """Get enabled interceptors for a hook point, in execution order."""
        return [i for i in self._by_hook.get(HookPoint(point), []) if i.enabled]

    def list_all(self) -> list[Interceptor]:
        """List all registered interceptors."""
        return [i for entries in self._by_hook.values() for i in entries]

    def clear(self, point: HookPoint | str | None = None) -> None:
        """Remove all registrations, or those of one hook point."""
        if point is None:
            self._by_hook.clear()
        else:
            self._by_hook.pop(HookPoint(point), None)

    def __len__(self) -> int:
        """Number of registered interceptors."""
        return sum(len(entries) for entries in self._by_hook.values())

    def __contains__(self, point: object) -> bool:
        """Check if any interceptor is registered for a hook point."""
        try:
            return bool(self._by_hook.get(HookPoint(point)))
        except ValueError:
            return False
