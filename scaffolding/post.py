"""Post-generation steps: dependency installation and git init."""

import logging
import os
from typing import Any

from pipeline.config import Config
from plugins import HookPipeline, HookPoint
from tools import GitManager, ShellTool

from .state import RunState, ensure_state

logger = logging.getLogger(__name__)


def install_args(base_args: list[str], npm_args: list[str]) -> list[str]:
    """Installer arguments in order, without duplicates."""
    return list(dict.fromkeys([*base_args, *npm_args]))


async def npm_install(
    state: RunState,
    hooks: HookPipeline,
    config: Config,
    shell: ShellTool,
) -> int | None:
    """Install the generated project's npm dependencies.

    Skipped when the destination has no package.json. A non-zero exit is
    logged, never raised.

    Returns:
        npm's exit code, or None if skipped or short-circuited
    """
    state = ensure_state(state)
    if not (state.dest / "package.json").is_file():
        logger.info("Template does not have a package.json, skipping npm install")
        return None

    cache_dir = state.make_temp()
    args = install_args(config.npm.install_args, state.npm_args)
    env = {
        **os.environ,
        "NO_UPDATE_NOTIFIER": "1",
        "npm_config_cache": str(cache_dir),
    }

    async def body(state: RunState, cmd: str, args: list[str], opts: dict[str, Any]) -> int:
        ensure_state(state)
        logger.info("Installing template dependencies in %s", state.dest)
        executable = shell.which(cmd) or cmd
        result = await shell.run(executable, args, cwd=opts.get("cwd"), env=opts.get("env"), check=False)
        return result.code

    code = None
    try:
        code = await hooks.call(
            HookPoint.NPM_INSTALL,
            body,
            state,
            config.npm.command,
            args,
            {"cwd": state.dest, "env": env},
        )
    finally:
        if code:
            logger.warning("npm install exited (code %s)", code)
        else:
            logger.info("npm install exited (code %s)", code)

    return code


async def git_init(state: RunState, hooks: HookPipeline, git: GitManager) -> bool:
    """Initialize a git repository in the destination.

    Returns:
        True if the git-init stage ran
    """
    state = ensure_state(state)
    if state.git is False:
        logger.warning("git init disabled, skipping")
        return False

    executable = git.find()
    if not executable:
        logger.warning("git executable not found, skipping git init")
        return False

    async def body(state: RunState, args: list[str], opts: dict[str, Any]) -> None:
        ensure_state(state)
        logger.info("Initializing git repo in %s", opts["cwd"])
        await git.init_repo(executable, args, opts["cwd"])

    await hooks.call(HookPoint.GIT_INIT, body, state, ["init"], {"cwd": state.dest})
    return True
