"""Git executable wrapper used for cloning sources and initializing projects."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from .base import ToolResult
from .shell_tool import ShellTool

logger = logging.getLogger(__name__)

# Hosting services report failures on a line like "ERROR: Repository not found."
REMOTE_ERROR_RE = re.compile(r"^ERROR:\s*(.+?)\.?$", re.MULTILINE)


@dataclass
class GitResult:
    """Result of a git operation."""
    success: bool
    message: str
    output: str = ""


class GitManager:
    """Manages the git executable for template-kit.

    Handles:
    - Locating the executable
    - Shallow clones of template sources
    - Repository initialization in generated projects
    """

    def __init__(self, command: str = "git", shell: ShellTool | None = None) -> None:
        """Initialize git manager.

        Args:
            command: Name or path of the git executable
            shell: Shell tool used to run git
        """
        self.command = command
        self.shell = shell or ShellTool()

    def find(self) -> str | None:
        """Attempt to locate the git executable.

        Returns:
            Path to git, or None if it is not installed.
        """
        return self.shell.which(self.command)

    async def run(self, executable: str, args: list[str], cwd: Path | str) -> ToolResult:
        """Run git with the given arguments, raising on failure."""
        return await self.shell.run(executable, args, cwd=cwd)

    async def init_repo(self, executable: str, args: list[str], cwd: Path | str) -> GitResult:
        """Initialize a new git repository.

        Args:
            executable: Path to git
            args: Arguments, normally ["init"]
            cwd: Project directory

        Returns:
            GitResult with success status
        """
        result = await self.run(executable, args, cwd)
        return GitResult(
            success=True,
            message=f"Initialized git repository in {cwd}",
            output=result.stdout,
        )

    @staticmethod
    def clone_args(url: str, depth: int = 1, branch: str | None = None) -> list[str]:
        """Build the argument list for a shallow clone."""
        args = ["clone", f"--depth={depth}"]
        if branch:
            args.extend(["--branch", branch])
        args.append(url)
        return args

    @staticmethod
    def remote_error(stderr: str) -> str | None:
        """Extract the remote's own error line from git's stderr, if any."""
        match = REMOTE_ERROR_RE.search(stderr or "")
        return match.group(1) if match else None
