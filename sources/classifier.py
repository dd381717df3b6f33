"""Template source classification and resolution.

Turns whatever the caller passed as ``src`` into a local directory:

    git reference  -> clone
    http(s) URL    -> download, then extract
    local file     -> extract
    local dir      -> used as-is
    anything else  -> global npm package, else npm registry
"""

import asyncio
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any

from pipeline.config import Config
from plugins import HookPipeline
from scaffolding.errors import SourceNotFoundError
from scaffolding.state import RunState, ensure_state, expand_path
from tools import GitManager

from .archive import extract
from .download import ClientFactory, download, is_url
from .git import git_clone, parse_hosted_git
from .npm import NpmRegistry, find_global_package, npm_download, resolve_remote_package

logger = logging.getLogger(__name__)


class SourceKind(str, Enum):
    """Resolution branch taken for a template source."""

    GIT = "git"
    URL = "url"
    FILE = "file"
    DIRECTORY = "directory"
    GLOBAL_PACKAGE = "global-package"
    REMOTE_PACKAGE = "remote-package"


def classify(src: str) -> SourceKind:
    """Decide which branch a source starts on, without touching the network.

    Packages are reported as REMOTE_PACKAGE; whether one is installed
    globally is only known during resolution.
    """
    if parse_hosted_git(src):
        return SourceKind.GIT
    if is_url(src):
        return SourceKind.URL
    path = expand_path(src)
    if path.is_file():
        return SourceKind.FILE
    if path.is_dir():
        return SourceKind.DIRECTORY
    return SourceKind.REMOTE_PACKAGE


def _local_path(src: Any) -> Path | None:
    return Path(src) if isinstance(src, (str, os.PathLike)) else None


class SourceResolver:
    """Runs the fetch stages needed to turn state.src into a local directory."""

    def __init__(
        self,
        hooks: HookPipeline,
        config: Config,
        git: GitManager,
        client_factory: ClientFactory,
    ) -> None:
        self.hooks = hooks
        self.config = config
        self.git = git
        self.client_factory = client_factory
        self.registry = NpmRegistry(config.npm.registry_url, client_factory)

    async def resolve(self, state: RunState) -> SourceKind:
        """Resolve state.src in place.

        Returns:
            The branch that was taken

        Raises:
            SourceNotFoundError: If nothing can supply the template
        """
        state = ensure_state(state)
        kind = None

        state.git_info = parse_hosted_git(state.src)
        if state.git_info:
            kind = SourceKind.GIT
            await git_clone(state, self.hooks, self.git, self.config.git.clone_depth)
        elif is_url(state.src):
            kind = SourceKind.URL
            await download(state, self.hooks, self.client_factory)
        elif expand_path(state.src).exists():
            state.src = expand_path(state.src)

        path = _local_path(state.src)
        if path is not None and path.is_file():
            kind = kind or SourceKind.FILE
            await extract(state, self.hooks)
            path = _local_path(state.src)

        if path is not None and path.is_dir():
            state.src = path
            logger.info("Using template directory %s", state.src)
            return kind or SourceKind.DIRECTORY

        if kind is not None:
            # A clone or download that did not produce a directory
            raise SourceNotFoundError("Unable to determine template source")

        # Asking npm for its global root spawns a process
        global_dir = await asyncio.to_thread(self.config.global_modules_dir)
        found = await asyncio.to_thread(find_global_package, global_dir, state.src)
        if found:
            state.src, state.pkg = found
            logger.info("Found global npm package: %s", state.src)
            return SourceKind.GLOBAL_PACKAGE

        await resolve_remote_package(state, self.registry)
        await npm_download(state, self.hooks, self.registry)
        return SourceKind.REMOTE_PACKAGE
