"""Archive extraction and the extract stage.

Supports zip files, tar files with any compression tarfile understands,
and single-file gzip or bzip2 payloads. Entries that would land outside
the destination are rejected.
"""

import asyncio
import bz2
import copy
import gzip
import logging
import shutil
import tarfile
import zipfile
from collections.abc import Awaitable, Callable
from pathlib import Path

from plugins import HookPipeline, HookPoint
from scaffolding.errors import TransportError
from scaffolding.state import RunState, ensure_state

logger = logging.getLogger(__name__)

GZIP_MAGIC = b"\x1f\x8b"
BZIP2_MAGIC = b"BZh"

EntryCallback = Callable[[str, int], Awaitable[None]]


class ArchiveError(Exception):
    """Raised when an archive cannot be read or extracted."""

    pass


def _strip(name: str, components: int) -> str:
    parts = [p for p in name.replace("\\", "/").split("/") if p and p != "."]
    return "/".join(parts[components:])


def _safe_join(dest: Path, name: str) -> Path:
    root = Path(dest).resolve()
    target = (root / name).resolve()
    if not target.is_relative_to(root):
        raise ArchiveError(f"Archive entry escapes destination: {name}")
    return target


def _sniff(path: Path) -> str:
    if zipfile.is_zipfile(path):
        return "zip"
    if tarfile.is_tarfile(path):
        return "tar"
    with path.open("rb") as f:
        magic = f.read(3)
    if magic.startswith(GZIP_MAGIC):
        return "gzip"
    if magic.startswith(BZIP2_MAGIC):
        return "bzip2"
    raise ArchiveError(f"Unsupported archive format: {path.name}")


class ArchiveReader:
    """Entry-by-entry extraction so progress can be reported between entries."""

    def __init__(self, path: Path | str, strip_components: int = 0) -> None:
        self.path = Path(path)
        self.strip_components = strip_components
        self.kind = _sniff(self.path)
        self._zip: zipfile.ZipFile | None = None
        self._tar: tarfile.TarFile | None = None

        if self.kind == "zip":
            self._zip = zipfile.ZipFile(self.path)
        elif self.kind == "tar":
            self._tar = tarfile.open(self.path)

    def entries(self) -> list[str]:
        """Entry names as stored in the archive."""
        if self._zip is not None:
            return self._zip.namelist()
        if self._tar is not None:
            return self._tar.getnames()
        return [self._single_name()]

    def _single_name(self) -> str:
        base = self.path.name
        for suffix in (".gz", ".bz2"):
            if base.lower().endswith(suffix):
                return base[: -len(suffix)] or "file"
        return base + ".out"

    def extract(self, name: str, dest: Path) -> str | None:
        """Extract one entry under dest.

        Returns:
            The entry's path relative to dest, or None if it was stripped away
        """
        rel = _strip(name, self.strip_components)
        if not rel:
            return None

        if self._zip is not None:
            self._extract_zip(name, rel, dest)
        elif self._tar is not None:
            self._extract_tar(name, rel, dest)
        else:
            self._extract_single(rel, dest)
        return rel

    def _extract_zip(self, name: str, rel: str, dest: Path) -> None:
        info = self._zip.getinfo(name)
        target = _safe_join(dest, rel)
        if info.is_dir():
            target.mkdir(parents=True, exist_ok=True)
            return

        target.parent.mkdir(parents=True, exist_ok=True)
        with self._zip.open(info) as src, target.open("wb") as out:
            shutil.copyfileobj(src, out)

        mode = (info.external_attr >> 16) & 0o777
        if mode:
            target.chmod(mode)

    def _extract_tar(self, name: str, rel: str, dest: Path) -> None:
        member = self._tar.getmember(name)
        _safe_join(dest, rel)
        if self.strip_components:
            member = copy.copy(member)
            member.name = rel
            if member.islnk():
                member.linkname = _strip(member.linkname, self.strip_components)
        self._tar.extract(member, dest, filter="data")

    def _extract_single(self, rel: str, dest: Path) -> None:
        target = _safe_join(dest, rel)
        opener = gzip.open if self.kind == "gzip" else bz2.open
        with opener(self.path, "rb") as src, target.open("wb") as out:
            shutil.copyfileobj(src, out)

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
        if self._tar is not None:
            self._tar.close()

    def __enter__(self) -> "ArchiveReader":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


async def extract_archive(
    path: Path | str,
    dest: Path | str,
    on_entry: EntryCallback | None = None,
    strip_components: int = 0,
) -> list[str]:
    """Extract an archive into dest.

    Args:
        path: Archive file
        dest: Destination directory (created if needed)
        on_entry: Awaited with (relative name, integer percent) after each entry
        strip_components: Leading path components to drop from entry names

    Returns:
        Relative names of extracted entries

    Raises:
        TransportError: If the archive cannot be read or extracted
    """
    try:
        reader = await asyncio.to_thread(ArchiveReader, path, strip_components)
    except (OSError, ArchiveError, zipfile.BadZipFile, tarfile.TarError) as e:
        raise TransportError(str(e)) from e

    dest = Path(dest)
    extracted = []
    with reader:
        await asyncio.to_thread(dest.mkdir, parents=True, exist_ok=True)
        names = await asyncio.to_thread(reader.entries)
        total = len(names)

        for index, name in enumerate(names, start=1):
            try:
                rel = await asyncio.to_thread(reader.extract, name, dest)
            except (OSError, ArchiveError, zipfile.BadZipFile, tarfile.TarError, EOFError) as e:
                raise TransportError(str(e)) from e

            if rel is None:
                continue
            extracted.append(rel)
            logger.debug("Extracted %s", rel)
            if on_entry is not None:
                await on_entry(rel, int(index * 100 / total))

    return extracted


async def extract(state: RunState, hooks: HookPipeline) -> None:
    """Extract the archive at state.src into a temp directory and point state.src at it."""
    state = ensure_state(state)
    state.extract_dest = state.make_temp()

    async def body(state: RunState) -> Path:
        state = ensure_state(state)
        logger.info("Extracting %s => %s", state.src, state.extract_dest)

        async def on_entry(name: str, percent: int) -> None:
            await hooks.emit(HookPoint.EXTRACT_FILE, state, name)
            await hooks.emit(HookPoint.EXTRACT_PROGRESS, state, percent)

        await extract_archive(state.src, state.extract_dest, on_entry)
        state.src = state.extract_dest
        return state.src

    await hooks.call(HookPoint.EXTRACT, body, state)
