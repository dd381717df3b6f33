"""File materialization: selecting, rendering and writing template files.

Text files are rendered with Jinja2 using the run's data as context.
Binary files are copied byte for byte. Filenames may carry ``{{name}}``
tokens which are substituted from the same data.
"""

import asyncio
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

from plugins import HookPipeline, HookPoint

from .errors import RenderError
from .filters import select_files
from .state import RunState, ensure_state

logger = logging.getLogger(__name__)

FILENAME_TOKEN_RE = re.compile(r"\{\{(\w+?)\}\}")

# Bytes inspected when deciding whether a file is binary
BINARY_SNIFF_SIZE = 8000


def render_filename(path: Any, data: Any) -> Any:
    """Replace ``{{name}}`` tokens in a path with values from data.

    Tokens whose name is not a key of data are left as-is. Anything other
    than a string path and a mapping of data is returned unchanged.

    Example:
        >>> render_filename("/foo/{{bar}}/{{baz}}.txt", {"bar": "bow"})
        '/foo/bow/{{baz}}.txt'
    """
    if not isinstance(path, str) or not isinstance(data, Mapping):
        return path

    def replace(match: re.Match[str]) -> str:
        name = match.group(1)
        return str(data[name]) if name in data else match.group(0)

    return FILENAME_TOKEN_RE.sub(replace, path)


def is_binary_file(path: Path | str) -> bool:
    """Check the head of a file for NUL bytes or invalid UTF-8."""
    with open(path, "rb") as f:
        head = f.read(BINARY_SNIFF_SIZE)

    if b"\x00" in head:
        return True
    try:
        head.decode("utf-8")
    except UnicodeDecodeError as e:
        # A multi-byte character cut off by the read size is still text
        return e.start < len(head) - 3
    return False


def create_environment(root: Path) -> Environment:
    """Create the Jinja2 environment for a template source.

    Includes and extends resolve relative to the template root.
    """
    env = Environment(
        loader=FileSystemLoader(str(root)),
        enable_async=True,
        autoescape=False,  # rendering source files, not HTML
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )

    env.filters["snake_case"] = lambda s: str(s).replace("-", "_").replace(" ", "_").lower()
    env.filters["kebab_case"] = lambda s: str(s).replace("_", "-").replace(" ", "-").lower()

    return env


def _sibling_temp(dest: Path) -> Path:
    fd, tmp_name = tempfile.mkstemp(prefix=".tk-", dir=dest.parent)
    os.close(fd)
    return Path(tmp_name)


def _atomic_write(dest: Path, content: bytes) -> None:
    """Write to a sibling temp file and move it into place."""
    tmp_path = _sibling_temp(dest)
    try:
        tmp_path.write_bytes(content)
        tmp_path.replace(dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _atomic_copy(src: Path, dest: Path) -> None:
    tmp_path = _sibling_temp(dest)
    try:
        shutil.copyfile(src, tmp_path)
        shutil.copymode(src, tmp_path)
        tmp_path.replace(dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def _read_text(path: Path) -> str | None:
    """Read a file as text, or None if it turns out to be binary."""
    if is_binary_file(path):
        return None
    try:
        with path.open(encoding="utf-8", newline="") as f:
            return f.read()
    except UnicodeDecodeError:
        return None


async def copy_file(state: RunState, env: Environment) -> None:
    """Body of the copy-file stage: render or copy state.src_file to state.dest_file."""
    state = ensure_state(state)
    src_file, dest_file = state.src_file, state.dest_file
    if not src_file or not dest_file:
        raise ValueError("copy-file requires src_file and dest_file")
    src_file, dest_file = Path(src_file), Path(dest_file)

    await asyncio.to_thread(dest_file.parent.mkdir, parents=True, exist_ok=True)

    contents = await asyncio.to_thread(_read_text, src_file)
    if contents is None:
        logger.debug("Copying %s => %s", src_file, dest_file)
        await asyncio.to_thread(_atomic_copy, src_file, dest_file)
        return

    logger.debug("Rendering %s => %s", src_file, dest_file)
    try:
        template = env.from_string(contents)
        rendered = await template.render_async(state.data)
    except TemplateError as e:
        raise RenderError(src_file, str(e)) from e

    await asyncio.to_thread(_atomic_write, dest_file, rendered.encode("utf-8"))
    await asyncio.to_thread(shutil.copymode, src_file, dest_file)


async def copy_tree(state: RunState, hooks: HookPipeline) -> list[Path]:
    """Body of the copy stage: materialize every selected file under state.dest.

    Each file goes through the copy-file hook with state.src_file and
    state.dest_file set for the duration.

    Returns:
        Destination paths of the files written
    """
    state = ensure_state(state)
    src = Path(state.src)
    logger.debug("Building template file list (filters: %s)", list(state.filters))
    paths = await asyncio.to_thread(select_files, src, state.filters)

    await asyncio.to_thread(state.dest.mkdir, parents=True, exist_ok=True)
    env = create_environment(src)
    written = []

    try:
        for rel in paths:
            state.src_file = src.joinpath(*rel.split("/"))
            state.dest_file = state.dest.joinpath(*render_filename(rel, state.data).split("/"))

            if state.src_file.is_dir():
                logger.debug("Creating directory %s", state.dest_file)
                await asyncio.to_thread(state.dest_file.mkdir, parents=True, exist_ok=True)
                continue

            dest_file = state.dest_file
            await hooks.call(HookPoint.COPY_FILE, lambda s: copy_file(s, env), state)
            if dest_file.exists() or dest_file.is_symlink():
                written.append(dest_file)
    finally:
        state.src_file = None
        state.dest_file = None

    logger.info("Wrote %d file(s) to %s", len(written), state.dest)
    return written
