"""Template engine: the run pipeline.

A run goes through these stages, each wrapped by the hook pipeline:

    init -> (git-clone | download | extract | npm-download) -> load-meta
         -> create (copy -> copy-file..., npm-install, git-init) -> cleanup

cleanup always runs once the state exists, whether the run succeeded or
not, and every temp directory is removed afterwards even if a cleanup
interceptor short-circuits.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import httpx

from pipeline.config import Config, get_config
from plugins import HookPipeline, HookPoint
from plugins.hooks import resolve
from sources.classifier import SourceResolver
from tools import GitManager, ShellTool

from .errors import InvalidArgumentError, SourceNotFoundError
from .materialize import copy_tree
from .meta import DescriptorLoader, load_meta, locate_meta
from .post import git_init, npm_install
from .resources import ResourceLedger
from .state import RunState, ensure_state, init_state

logger = logging.getLogger(__name__)


class TemplateEngine:
    """Builds projects from templates.

    Example:
        engine = TemplateEngine()
        engine.observe("copy-file", lambda state: print(state.dest_file))
        state = await engine.run({"src": "./my-template", "dest": "./my-app"})
    """

    def __init__(
        self,
        config: Config | None = None,
        hooks: HookPipeline | None = None,
        client_factory: Callable[[], httpx.AsyncClient] | None = None,
        descriptor_loader: DescriptorLoader | None = None,
        shell: ShellTool | None = None,
    ) -> None:
        """Initialize engine.

        Args:
            config: Configuration (defaults to the loaded global config)
            hooks: Hook pipeline to run stages through
            client_factory: Returns a fresh httpx.AsyncClient per request
            descriptor_loader: Loader for template descriptor files
            shell: Subprocess runner for git and npm
        """
        self.config = config or get_config()
        self.hooks = hooks or HookPipeline()
        self.client_factory = client_factory or self._default_client
        self.descriptor_loader = descriptor_loader or DescriptorLoader()
        self.shell = shell or ShellTool()
        self.git = GitManager(self.config.git.command, self.shell)
        self.resolver = SourceResolver(self.hooks, self.config, self.git, self.client_factory)

    def on(self, point: HookPoint | str, callback: Callable[..., Any]) -> Any:
        """Register a wrapping interceptor. See HookPipeline.on()."""
        return self.hooks.on(point, callback)

    def observe(self, point: HookPoint | str, callback: Callable[..., Any]) -> Any:
        """Register an observer. See HookPipeline.observe()."""
        return self.hooks.observe(point, callback)

    def off(self, point: HookPoint | str, callback: Callable[..., Any]) -> bool:
        """Remove a registration."""
        return self.hooks.off(point, callback)

    def _default_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.config.http.timeout,
            follow_redirects=self.config.http.follow_redirects,
        )

    def _new_ledger(self) -> ResourceLedger:
        return ResourceLedger(
            self.config.engine.resolved_temp_root(),
            prefix=self.config.engine.temp_prefix,
        )

    async def run(self, opts: Mapping[str, Any]) -> RunState:
        """Build a project.

        Args:
            opts: Run options; see init_state()

        Returns:
            The final run state

        Raises:
            TemplateKitError: On any failure, after cleanup has run
        """
        if not isinstance(opts, Mapping):
            raise InvalidArgumentError("Expected options to be an object")

        ledger = self._new_ledger()

        def init_body(opts: Any) -> RunState:
            return init_state(opts, self.config.engine.default_filters, ledger)

        state = await self.hooks.call(HookPoint.INIT, init_body, dict(opts))
        if not isinstance(state, RunState):
            raise InvalidArgumentError("Expected options to be an object")
        if state.ledger is None:
            state.ledger = ledger

        logger.info("Creating project %s from %s", state.dest, state.src)
        failed = False
        try:
            await self.resolver.resolve(state)

            locate_meta(state, self.config.engine.meta_filenames)
            await load_meta(state, self.hooks, self.descriptor_loader)

            if state.template:
                state.src = Path(state.src, state.template).resolve()
                if not state.src.is_dir():
                    raise SourceNotFoundError(f"Template directory not found: {state.src}")

            await self.hooks.call(HookPoint.CREATE, self._create, state)

            if callable(state.complete):
                await resolve(state.complete(state))
        except BaseException:
            failed = True
            raise
        finally:
            await self._cleanup(state, ledger, failed)

        logger.info("Project created in %s", state.dest)
        return state

    async def _create(self, state: RunState) -> None:
        state = ensure_state(state)
        await self.hooks.call(HookPoint.COPY, lambda s: copy_tree(s, self.hooks), state)
        await npm_install(state, self.hooks, self.config, self.shell)
        await git_init(state, self.hooks, self.git)

    async def _cleanup(self, state: RunState, ledger: ResourceLedger, failed: bool) -> None:
        """Run the cleanup stage, then sweep anything it left behind."""

        def body(state: RunState) -> list[str]:
            state = ensure_state(state)
            return (state.ledger or ledger).dispose()

        try:
            await self.hooks.call(HookPoint.CLEANUP, body, state)
        except Exception as e:
            if not failed:
                raise
            logger.error("Cleanup failed: %s", e)
        finally:
            for owner in {id(ledger): ledger, id(state.ledger): state.ledger}.values():
                if owner is not None:
                    owner.dispose()


def create_project(opts: Mapping[str, Any], config: Config | None = None) -> RunState:
    """Build a project synchronously.

    Args:
        opts: Run options
        config: Optional configuration

    Returns:
        The final run state
    """
    return asyncio.run(TemplateEngine(config).run(opts))
