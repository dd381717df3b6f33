"""Tools module for external command collaborators.

Provides thin wrappers for:
- Shell commands (npm install)
- Git operations (clone, init)
"""

from .base import ToolResult, ToolStatus
from .git_manager import GitManager, GitResult
from .shell_tool import CommandFailedError, ShellTool

__all__ = [
    "ToolResult",
    "ToolStatus",
    "GitManager",
    "GitResult",
    "ShellTool",
    "CommandFailedError",
]
