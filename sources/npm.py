"""npm package sources: global installs and the registry.

A template source that is neither a path nor a URL is looked up first
among globally installed npm packages, then fetched from the registry.
"""

import asyncio
import hashlib
import logging
import re
from pathlib import Path
from typing import Any

import httpx

from plugins import HookPipeline, HookPoint
from scaffolding.errors import SourceNotFoundError, TransportError
from scaffolding.meta import load_package
from scaffolding.state import RunState, ensure_state

from .archive import extract_archive
from .download import ClientFactory, status_error

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 214
# Legacy packages may contain uppercase letters, so match case-insensitively
NAME_RE = re.compile(r"^(?:@[a-z0-9-~][a-z0-9-._~]*/)?[a-z0-9-~][a-z0-9-._~]*$", re.IGNORECASE)


class PackageNotFoundError(Exception):
    """Raised when the registry cannot satisfy a package spec."""

    pass


def parse_package_spec(spec: str) -> tuple[str, str]:
    """Split ``name@version-or-tag`` into its parts.

    Example:
        >>> parse_package_spec("@scope/pkg@1.2.3")
        ('@scope/pkg', '1.2.3')
    """
    at = spec.find("@", 1)
    if at == -1:
        return spec, ""
    return spec[:at], spec[at + 1 :]


def is_valid_package_name(name: str) -> bool:
    if not name or len(name) > MAX_NAME_LENGTH:
        return False
    if name.startswith((".", "_")):
        return False
    return bool(NAME_RE.match(name))


def find_global_package(global_dir: Path | None, name: str) -> tuple[Path, dict[str, Any]] | None:
    """Find a globally installed package by its package.json name.

    Scoped packages are searched one level down, under their ``@scope``
    directory.

    Returns:
        (package directory, parsed package.json), or None
    """
    if global_dir is None or not global_dir.is_dir():
        return None

    candidates = []
    for entry in sorted(global_dir.iterdir()):
        if entry.name.startswith("@") and entry.is_dir():
            candidates.extend(sorted(p for p in entry.iterdir() if p.is_dir()))
        elif entry.is_dir():
            candidates.append(entry)

    for directory in candidates:
        pkg = load_package(directory)
        if pkg and pkg.get("name") == name:
            return directory, pkg

    return None


def restore_gitignore(root: Path | str) -> list[Path]:
    """Rename ``gitignore`` files to ``.gitignore`` throughout a tree.

    npm publishes strip ``.gitignore``, so templates ship it without the dot.
    """
    renamed = []
    for src in sorted(Path(root).rglob("gitignore")):
        dest = src.with_name(".gitignore")
        if src.is_file() and not dest.exists():
            logger.debug("Renaming %s => %s", src, dest)
            src.rename(dest)
            renamed.append(dest)
    return renamed


class NpmRegistry:
    """Minimal npm registry client: manifests and tarballs."""

    def __init__(self, registry_url: str, client_factory: ClientFactory) -> None:
        self.registry_url = registry_url.rstrip("/")
        self.client_factory = client_factory

    def packument_url(self, name: str) -> str:
        return f"{self.registry_url}/{name.replace('/', '%2f')}"

    async def fetch_manifest(self, spec: str) -> dict[str, Any]:
        """Resolve a package spec to a single version manifest.

        Args:
            spec: ``name``, ``name@version`` or ``name@tag``

        Raises:
            PackageNotFoundError: If the name is invalid or nothing matches
            TransportError: On connection failures and non-2xx responses
        """
        name, wanted = parse_package_spec(spec)
        if not is_valid_package_name(name):
            raise PackageNotFoundError(f"Invalid npm package name: {name}")

        try:
            async with self.client_factory() as client:
                response = await client.get(
                    self.packument_url(name), headers={"Accept": "application/json"}
                )
        except httpx.HTTPError as e:
            raise TransportError(f"Connection error: {e}") from e

        if response.status_code == 404:
            raise PackageNotFoundError(f"Package not found: {name}")
        if not response.is_success:
            raise status_error(response)

        packument = response.json()
        if not isinstance(packument, dict):
            raise PackageNotFoundError(f"Malformed registry response for {name}")

        versions = packument.get("versions") or {}
        tags = packument.get("dist-tags") or {}

        version = wanted or "latest"
        if version not in versions:
            version = tags.get(version, "")
        if version not in versions:
            raise PackageNotFoundError(f"No matching version for {spec}")

        return versions[version]

    async def download_tarball(self, manifest: dict[str, Any], target: Path) -> None:
        """Stream a manifest's tarball to target, verifying its sha1.

        Raises:
            TransportError: On HTTP failures or a checksum mismatch
        """
        dist = manifest.get("dist") or {}
        url = dist.get("tarball")
        if not url:
            raise TransportError(f"Package {manifest.get('name')} has no tarball")

        digest = hashlib.sha1()
        try:
            async with self.client_factory() as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise status_error(response)
                    with target.open("wb") as f:
                        async for chunk in response.aiter_bytes():
                            digest.update(chunk)
                            await asyncio.to_thread(f.write, chunk)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to download {url}: {e}") from e

        expected = dist.get("shasum")
        if expected and digest.hexdigest() != expected:
            raise TransportError(
                f"Checksum mismatch for {manifest.get('name')}@{manifest.get('version')}. "
                "The download may be corrupted."
            )


async def resolve_remote_package(state: RunState, registry: NpmRegistry) -> None:
    """Fetch the registry manifest for state.src into state.npm_manifest.

    Raises:
        SourceNotFoundError: If the package cannot be resolved for any reason
    """
    try:
        state.npm_manifest = await registry.fetch_manifest(state.src)
    except (PackageNotFoundError, TransportError, ValueError) as e:
        logger.debug("Registry lookup for %s failed: %s", state.src, e)
        raise SourceNotFoundError("Unable to determine template source") from e


async def npm_download(state: RunState, hooks: HookPipeline, registry: NpmRegistry) -> None:
    """Download and unpack state.npm_manifest into a temp directory."""
    state = ensure_state(state)
    state.src = state.make_temp()

    async def body(state: RunState) -> None:
        state = ensure_state(state)
        manifest = state.npm_manifest or {}
        logger.info("Downloading %s@%s", manifest.get("name"), manifest.get("version"))

        tarball = state.make_temp() / "package.tgz"
        await registry.download_tarball(manifest, tarball)
        await extract_archive(tarball, state.src, strip_components=1)

    await hooks.call(HookPoint.NPM_DOWNLOAD, body, state)
    await asyncio.to_thread(restore_gitignore, state.src)
