"""Hosted git references and the git-clone stage.

Recognizes GitHub, GitLab and Bitbucket repositories in the usual
spellings:

    git@github.com:owner/repo.git
    https://github.com/owner/repo
    git+ssh://git@gitlab.com/owner/repo.git#v1.0.0
    github:owner/repo
    owner/repo                  (GitHub, when no such local path exists)
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.parse import unquote, urlsplit

from plugins import HookPipeline, HookPoint
from scaffolding.errors import GitCloneError, GitNotFoundError
from scaffolding.state import RunState, ensure_state
from tools import CommandFailedError, GitManager

logger = logging.getLogger(__name__)

HOSTS = {
    "github": "github.com",
    "gitlab": "gitlab.com",
    "bitbucket": "bitbucket.org",
}
DOMAINS = {domain: name for name, domain in HOSTS.items()}

SEGMENT = r"[\w.-]+"
SHORTCUT_RE = re.compile(rf"^(github|gitlab|bitbucket):({SEGMENT})/({SEGMENT}?)(?:\.git)?(?:#(.+))?$")
SCP_RE = re.compile(
    rf"^(?:git\+)?({SEGMENT})@(github\.com|gitlab\.com|bitbucket\.org):/?({SEGMENT})/({SEGMENT}?)(?:\.git)?/?(?:#(.+))?$"
)
BARE_RE = re.compile(rf"^({SEGMENT})/({SEGMENT}?)(?:\.git)?(?:#(.+))?$")

SSH_SCHEMES = {"git+ssh", "ssh"}
URL_SCHEMES = {"https", "http", "git+https", "git+http", "git", *SSH_SCHEMES}


@dataclass
class GitInfo:
    """A parsed hosted-git repository reference."""

    host: str  # github, gitlab or bitbucket
    user: str
    project: str
    committish: str | None = None
    default_representation: str = "shortcut"  # shortcut, sshurl, https, git

    @property
    def domain(self) -> str:
        return HOSTS[self.host]

    def ssh_url(self) -> str:
        return f"git@{self.domain}:{self.user}/{self.project}.git"

    def https_url(self) -> str:
        return f"https://{self.domain}/{self.user}/{self.project}.git"

    def clone_url(self) -> str:
        """SSH when the reference was written as SSH, HTTPS otherwise."""
        if self.default_representation == "sshurl":
            return self.ssh_url()
        return self.https_url()


def _valid_segment(segment: str) -> bool:
    return bool(segment) and segment not in (".", "..")


def _from_url(src: str) -> GitInfo | None:
    try:
        parts = urlsplit(src)
    except ValueError:
        return None

    if parts.scheme not in URL_SCHEMES or not parts.hostname:
        return None

    hostname = parts.hostname.lower()
    if hostname.startswith("www."):
        hostname = hostname[4:]
    host = DOMAINS.get(hostname)
    if host is None:
        return None

    segments = [unquote(s) for s in parts.path.split("/") if s]
    committish = unquote(parts.fragment) or None

    # github.com/owner/repo/tree/branch
    if len(segments) == 4 and segments[2] == "tree" and host == "github":
        committish = committish or segments[3]
        segments = segments[:2]

    if len(segments) != 2:
        return None

    user, project = segments
    if project.endswith(".git"):
        project = project[:-4]
    if not (_valid_segment(user) and _valid_segment(project)):
        return None

    if parts.scheme in SSH_SCHEMES:
        representation = "sshurl"
    elif parts.scheme == "git":
        representation = "git"
    else:
        representation = "https"

    return GitInfo(host, user, project, committish, representation)


def parse_hosted_git(src: Any) -> GitInfo | None:
    """Parse a template source as a hosted git reference.

    Args:
        src: Template source string

    Returns:
        GitInfo, or None if src is not a recognized repository
    """
    if not isinstance(src, str) or not src:
        return None

    if m := SHORTCUT_RE.match(src):
        host, user, project, committish = m.groups()
        if _valid_segment(project):
            return GitInfo(host, user, project, committish, "shortcut")
        return None

    if m := SCP_RE.match(src):
        _, domain, user, project, committish = m.groups()
        if _valid_segment(project):
            return GitInfo(DOMAINS[domain], user, project, committish, "sshurl")
        return None

    if "://" in src:
        return _from_url(src)

    if m := BARE_RE.match(src):
        user, project, committish = m.groups()
        if user.startswith(".") or not _valid_segment(project):
            return None
        if Path(src.split("#", 1)[0]).expanduser().exists():
            return None
        return GitInfo("github", user, project, committish, "shortcut")

    return None


async def git_clone(state: RunState, hooks: HookPipeline, git: GitManager, depth: int = 1) -> None:
    """Shallow-clone state.git_info into a temp directory and point state.src at it.

    Raises:
        GitNotFoundError: If git is not installed
        GitCloneError: If the clone fails
    """
    state = ensure_state(state)
    info = state.git_info
    if info is None:
        raise ValueError("git_clone requires state.git_info")

    directory = state.make_temp()
    executable = git.find()
    if not executable:
        raise GitNotFoundError('Unable to find "git" executable')

    args = git.clone_args(info.clone_url(), depth=depth, branch=info.committish)

    async def body(state: RunState, args: list[str], opts: dict[str, Any]) -> Path:
        ensure_state(state)
        logger.info("Cloning repo into %s", opts["cwd"])
        await git.run(executable, args, opts["cwd"])
        return directory / info.project

    try:
        result = await hooks.call(HookPoint.GIT_CLONE, body, state, args, {"cwd": directory})
    except CommandFailedError as e:
        message = git.remote_error(e.stderr)
        raise GitCloneError(message or str(e)) from e
    except FileNotFoundError as e:
        raise GitNotFoundError('Unable to find "git" executable') from e

    if result is not None:
        state.src = result
