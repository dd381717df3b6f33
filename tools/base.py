"""Result types shared by the command-line tool wrappers."""

from dataclasses import dataclass, field
from enum import Enum


class ToolStatus(Enum):
    """Status of a tool execution."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class ToolResult:
    """Result of running an external command."""

    status: ToolStatus
    code: int
    stdout: str = ""
    stderr: str = ""
    command: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.status == ToolStatus.SUCCESS

    def __bool__(self) -> bool:
        return self.success
