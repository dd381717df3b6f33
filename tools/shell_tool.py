"""Subprocess execution for the git and npm collaborators."""

import asyncio
import logging
import os
import shutil
from pathlib import Path

from .base import ToolResult, ToolStatus

logger = logging.getLogger(__name__)


class CommandFailedError(Exception):
    """Raised when a checked command exits non-zero."""

    def __init__(self, result: ToolResult):
        self.result = result
        self.stderr = result.stderr
        super().__init__(
            f"Command failed with exit code {result.code}: {' '.join(result.command)}\n"
            f"{result.stderr.strip()}"
        )


class ShellTool:
    """Runs external commands without blocking the event loop.

    Unlike the stage bodies, this knows nothing about run state: callers
    hand it an executable, arguments, and options.
    """

    def __init__(self, timeout: float | None = None) -> None:
        """Initialize shell tool.

        Args:
            timeout: Default timeout in seconds (None = no limit)
        """
        self.timeout = timeout

    @staticmethod
    def which(command: str) -> str | None:
        """Locate an executable on PATH.

        Returns:
            Absolute path or None if not found.
        """
        return shutil.which(command)

    async def run(
        self,
        command: str,
        args: list[str],
        cwd: Path | str | None = None,
        env: dict[str, str] | None = None,
        check: bool = True,
    ) -> ToolResult:
        """Run a command and capture its output.

        Args:
            command: Executable name or path
            args: Arguments passed to the executable
            cwd: Working directory
            env: Full environment for the child (None = inherit)
            check: Raise CommandFailedError on a non-zero exit

        Returns:
            ToolResult with exit code and captured output

        Raises:
            FileNotFoundError: If the executable cannot be launched
            CommandFailedError: If check is set and the command fails
        """
        parts = [command, *args]
        logger.debug("Running %s (cwd=%s)", " ".join(parts), cwd)

        process = await asyncio.create_subprocess_exec(
            *parts,
            cwd=os.fspath(cwd) if cwd is not None else None,
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise

        code = process.returncode if process.returncode is not None else -1
        result = ToolResult(
            status=ToolStatus.SUCCESS if code == 0 else ToolStatus.FAILURE,
            code=code,
            stdout=stdout.decode(errors="replace"),
            stderr=stderr.decode(errors="replace"),
            command=parts,
        )

        if check and not result.success:
            raise CommandFailedError(result)

        return result
