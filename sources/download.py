"""Remote archive download stage."""

import asyncio
import logging
import re
import time
from collections.abc import Callable, Mapping
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlsplit

import httpx

from plugins import HookPipeline, HookPoint
from scaffolding.errors import TransportError, UnknownFileTypeError
from scaffolding.state import RunState, ensure_state

logger = logging.getLogger(__name__)

URL_RE = re.compile(r"^https?://", re.IGNORECASE)
ARCHIVE_RE = re.compile(
    r"[^\\/]+(\.zip|\.tgz|\.tbz2|\.tar\.gz|\.tar\.bz2|(?<!\.tar)\.gz|(?<!\.tar)\.bz2)$",
    re.IGNORECASE,
)
CONTENT_DISPOSITION_RE = re.compile(r"""filename\*?=(?:[\w-]+'[\w-]*')?['"]*([^'";\n]*)""", re.IGNORECASE)
ZIP_CONTENT_TYPES = ("application/zip", "application/x-zip-compressed")

ClientFactory = Callable[[], httpx.AsyncClient]


def is_url(src: str) -> bool:
    return bool(URL_RE.match(src))


def resolve_filename(url: str, headers: Mapping[str, str]) -> str | None:
    """Pick a local filename for a downloaded template.

    Tried in order: the Content-Disposition filename, an archive name at
    the end of the URL path, and a zip content type.

    Returns:
        A bare filename, or None if the archive type cannot be told
    """
    disposition = headers.get("content-disposition")
    if disposition:
        m = CONTENT_DISPOSITION_RE.search(disposition)
        filename = PurePosixPath(unquote(m.group(1)).strip().replace("\\", "/")).name if m else ""
        if filename:
            return filename

    m = ARCHIVE_RE.search(unquote(urlsplit(url).path))
    if m:
        return m.group(0)

    content_type = headers.get("content-type", "").split(";", 1)[0].strip().lower()
    if content_type in ZIP_CONTENT_TYPES:
        return f"temp-template-{int(time.time() * 1000)}.zip"

    return None


def status_error(response: httpx.Response) -> TransportError:
    return TransportError(f"Response code {response.status_code} ({response.reason_phrase})")


async def download(state: RunState, hooks: HookPipeline, client_factory: ClientFactory) -> None:
    """Stream the archive at state.src into a temp directory and point state.src at it.

    Raises:
        TransportError: On connection failures and non-2xx responses
        UnknownFileTypeError: If the payload's archive type cannot be told
    """

    async def body(state: RunState) -> Path:
        state = ensure_state(state)
        url = state.src
        logger.info("Downloading %s", url)

        try:
            async with client_factory() as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        raise status_error(response)

                    filename = resolve_filename(url, response.headers)
                    if not filename:
                        raise UnknownFileTypeError("Unable to determine source file type")

                    target = state.make_temp() / filename
                    length = response.headers.get("content-length", "?")
                    logger.debug("Writing file to %s (%s bytes)", target, length)

                    size = 0
                    with target.open("wb") as f:
                        async for chunk in response.aiter_bytes():
                            await asyncio.to_thread(f.write, chunk)
                            size += len(chunk)
        except httpx.HTTPError as e:
            raise TransportError(f"Failed to download {url}: {e}") from e

        logger.debug("Wrote %d bytes", size)
        state.src = target
        return target

    await hooks.call(HookPoint.DOWNLOAD, body, state)
