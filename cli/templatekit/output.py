"""Rich console output utilities for the template-kit CLI."""

import logging
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.tree import Tree

from plugins import HookPoint

console = Console()
error_console = Console(stderr=True)


# Arguments each hook point receives, for `template-kit hooks`
HOOK_ARGUMENTS = {
    HookPoint.INIT: "opts",
    HookPoint.GIT_CLONE: "state, args, opts{cwd}",
    HookPoint.DOWNLOAD: "state",
    HookPoint.EXTRACT: "state",
    HookPoint.EXTRACT_FILE: "state, name",
    HookPoint.EXTRACT_PROGRESS: "state, percent",
    HookPoint.NPM_DOWNLOAD: "state",
    HookPoint.LOAD_META: "state",
    HookPoint.PROMPT: "state",
    HookPoint.CREATE: "state",
    HookPoint.COPY: "state",
    HookPoint.COPY_FILE: "state",
    HookPoint.NPM_INSTALL: "state, cmd, args, opts{cwd, env}",
    HookPoint.GIT_INIT: "state, args, opts{cwd}",
    HookPoint.CLEANUP: "state",
}


def setup_logging(level: str = "INFO") -> None:
    """Route log records through rich."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]✓[/green] {message}")


def print_error(message: str) -> None:
    """Print an error message to stderr."""
    error_console.print(f"[red]✗[/red] {message}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]→[/blue] {message}")


def print_file_tree(root: Path, files: list[Path]) -> None:
    """Print created files as a tree rooted at the project directory."""
    if not files:
        print_info("No files created.")
        return

    tree = Tree(f"[bold]{root}[/bold]")
    nodes: dict[str, Any] = {}

    for path in sorted(Path(f).relative_to(root).as_posix() for f in files):
        parts = path.split("/")
        current = tree

        for i, part in enumerate(parts[:-1]):
            path_so_far = "/".join(parts[: i + 1])
            if path_so_far not in nodes:
                nodes[path_so_far] = current.add(f"[blue]{part}/[/blue]")
            current = nodes[path_so_far]

        current.add(f"[green]{parts[-1]}[/green]")

    console.print(tree)


def print_prompts(prompts: dict[str, Any], data: dict[str, Any]) -> None:
    """Print the template's prompt descriptors and the value each resolved to."""
    table = Table(show_header=True, header_style="bold", title="Template prompts")
    table.add_column("Name")
    table.add_column("Message")
    table.add_column("Type")
    table.add_column("Required")
    table.add_column("Value")

    for name, prompt in prompts.items():
        value = data.get(name)
        table.add_row(
            name,
            prompt.message or "",
            prompt.type,
            "yes" if prompt.required else "no",
            "[dim]unset[/dim]" if value is None else str(value),
        )

    console.print(table)


def print_hooks() -> None:
    """Print the hook points and their arguments."""
    table = Table(show_header=True, header_style="bold")
    table.add_column("Hook")
    table.add_column("Kind")
    table.add_column("Arguments")

    for point in HookPoint:
        kind = "[dim]notification[/dim]" if point.is_notification else "stage"
        table.add_row(point.value, kind, HOOK_ARGUMENTS.get(point, ""))

    console.print(table)
