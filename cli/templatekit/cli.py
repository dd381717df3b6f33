"""template-kit CLI.

Command-line interface for building projects from templates.
"""

import asyncio
from pathlib import Path
from typing import Any, Optional

import typer
import yaml

from cli.templatekit.output import (
    console,
    print_error,
    print_file_tree,
    print_hooks,
    print_info,
    print_prompts,
    print_success,
    setup_logging,
)
from pipeline.config import get_config, load_config
from scaffolding.engine import TemplateEngine
from scaffolding.errors import TemplateKitError

app = typer.Typer(
    name="template-kit",
    help="Create projects from directories, archives, git repos and npm packages.",
    no_args_is_help=True,
)


def parse_data(pairs: list[str]) -> dict[str, Any]:
    """Parse KEY=VALUE pairs; values are read as YAML scalars."""
    data: dict[str, Any] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        key = key.strip()
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got '{pair}'", param_hint="--data")
        try:
            value = yaml.safe_load(raw) if raw else ""
        except yaml.YAMLError:
            value = raw
        data[key] = raw if isinstance(value, (dict, list)) or value is None else value
    return data


@app.command()
def create(
    src: str = typer.Argument(..., help="Directory, archive, URL, git repo or npm package"),
    dest: Path = typer.Argument(..., help="Directory to create the project in"),
    force: bool = typer.Option(
        False,
        "--force",
        help="Write into a non-empty destination",
    ),
    no_git: bool = typer.Option(
        False,
        "--no-git",
        help="Skip git init",
    ),
    data: Optional[list[str]] = typer.Option(
        None,
        "--data",
        "-d",
        help="Template data as KEY=VALUE (repeatable)",
    ),
    filters: Optional[list[str]] = typer.Option(
        None,
        "--filter",
        "-f",
        help="File pattern to include, or exclude with a leading ! (repeatable)",
    ),
    npm_args: Optional[list[str]] = typer.Option(
        None,
        "--npm-arg",
        help="Extra argument for npm install (repeatable)",
    ),
    template: Optional[str] = typer.Option(
        None,
        "--template",
        "-t",
        help="Subdirectory of the source holding the template files",
    ),
    config_path: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to template-kit.toml",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
) -> None:
    """Create a new project from a template."""
    config = load_config(config_path) if config_path else get_config()
    setup_logging("DEBUG" if verbose else config.logging.level)

    opts: dict[str, Any] = {
        "src": src,
        "dest": str(dest),
        "force": force,
        "git": not no_git,
        "data": parse_data(data or []),
    }
    if filters:
        opts["filters"] = filters
    if npm_args:
        opts["npm_args"] = npm_args
    if template:
        opts["template"] = template

    engine = TemplateEngine(config)
    created: list[Path] = []
    engine.observe("copy-file", lambda state: created.append(state.dest_file))

    print_info(f"Creating [bold]{dest}[/bold] from [cyan]{src}[/cyan]")

    try:
        state = asyncio.run(engine.run(opts))
    except TemplateKitError as e:
        print_error(str(e))
        raise typer.Exit(1)
    except KeyboardInterrupt:
        print_error("Interrupted")
        raise typer.Exit(130)

    print_file_tree(state.dest, created)
    if state.prompts:
        print_prompts(state.prompts, state.data)

    print_success(f"Created {len(created)} file(s) in {state.dest}")


@app.command()
def hooks() -> None:
    """List hook points and the arguments interceptors receive."""
    print_hooks()


@app.command()
def version() -> None:
    """Show template-kit version."""
    from cli.templatekit import __version__

    console.print(f"template-kit v{__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
