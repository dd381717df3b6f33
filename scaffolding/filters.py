"""Include/exclude file patterns and template file selection.

Patterns prefixed with ``!`` exclude. Positive patterns are globs matched
against the whole relative POSIX path (``**`` spans directories, ``*``
stays inside one). Exclusions follow gitignore rules: a pattern without a
slash matches any path component, one with a slash is anchored at the
template root, and an excluded directory excludes everything beneath it.
"""

import fnmatch
import functools
import logging
import os
import re
from collections.abc import Iterable, Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

NEGATION = "!"
MATCH_ALL = "**"


class FilterSet:
    """Ordered set of glob patterns."""

    def __init__(self, patterns: Iterable[str] = ()) -> None:
        self._patterns: dict[str, None] = {}
        for pattern in patterns:
            self.add(pattern)

    def add(self, pattern: str) -> None:
        if not isinstance(pattern, str):
            raise TypeError(f"Expected file pattern to be a string, got {type(pattern).__name__}")
        self._patterns[pattern] = None

    def discard(self, pattern: str) -> None:
        self._patterns.pop(pattern, None)

    def merge(self, patterns: Iterable[str]) -> "FilterSet":
        """Add patterns, letting each one cancel its own negation.

        ``README.md`` removes an earlier ``!README.md`` and vice versa.
        """
        for pattern in patterns:
            self.discard(negate(pattern))
            self.add(pattern)
        return self

    @property
    def includes(self) -> list[str]:
        """Positive patterns, or ``**`` when there are none."""
        patterns = [p for p in self._patterns if not p.startswith(NEGATION)]
        return patterns or [MATCH_ALL]

    @property
    def excludes(self) -> list[str]:
        """Exclusion patterns without their ``!`` prefix."""
        return [p[1:] for p in self._patterns if p.startswith(NEGATION)]

    def __contains__(self, pattern: object) -> bool:
        return pattern in self._patterns

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._patterns))

    def __len__(self) -> int:
        return len(self._patterns)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FilterSet):
            return list(self) == list(other)
        if isinstance(other, (set, frozenset)):
            return set(self._patterns) == other
        if isinstance(other, (list, tuple)):
            return list(self) == list(other)
        return NotImplemented

    def __repr__(self) -> str:
        return f"FilterSet({list(self._patterns)!r})"


def negate(pattern: str) -> str:
    """Return the opposite pattern."""
    if pattern.startswith(NEGATION):
        return pattern[1:]
    return NEGATION + pattern


@functools.lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    """Translate a path glob into a regex where ``*`` never crosses ``/``."""
    parts = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern[i : i + 2] == "**":
                if pattern[i : i + 3] == "**/":
                    parts.append("(?:.*/)?")
                    i += 3
                else:
                    parts.append(".*")
                    i += 2
                continue
            parts.append("[^/]*")
        elif c == "?":
            parts.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                parts.append(re.escape(c))
            else:
                body = pattern[i + 1 : end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                parts.append(f"[{body}]")
                i = end
        else:
            parts.append(re.escape(c))
        i += 1
    return re.compile("".join(parts) + r"\Z", re.DOTALL)


def _prefixes(rel_path: str) -> Iterator[str]:
    """Yield a path and each of its ancestors: a/b/c, a/b, a."""
    parts = rel_path.split("/")
    for end in range(len(parts), 0, -1):
        yield "/".join(parts[:end])


def is_included(rel_path: str, includes: Iterable[str]) -> bool:
    """A path is included if it, or a directory containing it, matches."""
    for pattern in includes:
        regex = _compile_glob(pattern.lstrip("/"))
        if any(regex.match(prefix) for prefix in _prefixes(rel_path)):
            return True
    return False


def is_excluded(rel_path: str, excludes: Iterable[str]) -> bool:
    """Gitignore-style exclusion test for a relative POSIX path."""
    components = rel_path.split("/")
    for pattern in excludes:
        pattern = pattern.rstrip("/")
        if not pattern:
            continue
        if "/" not in pattern:
            if any(fnmatch.fnmatchcase(part, pattern) for part in components):
                return True
            continue
        regex = _compile_glob(pattern.lstrip("/"))
        if any(regex.match(prefix) for prefix in _prefixes(rel_path)):
            return True
    return False


def select_files(root: Path | str, filters: FilterSet) -> list[str]:
    """List relative POSIX paths under root that pass the filters.

    Returns files plus empty directories, dotfiles included, sorted so a
    directory always precedes its children.

    Args:
        root: Template source directory
        filters: Patterns to apply

    Returns:
        Sorted list of relative paths
    """
    includes = filters.includes
    excludes = filters.excludes
    selected = []

    root = Path(root)
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        rel_dir = "" if rel_dir == "." else rel_dir

        kept_dirs = []
        for name in sorted(dirnames):
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if is_excluded(rel, excludes):
                logger.debug("Excluding directory %s", rel)
                continue
            kept_dirs.append(name)
        dirnames[:] = kept_dirs

        if rel_dir and not dirnames and not filenames and is_included(rel_dir, includes):
            selected.append(rel_dir)

        for name in filenames:
            rel = f"{rel_dir}/{name}" if rel_dir else name
            if is_excluded(rel, excludes) or not is_included(rel, includes):
                continue
            selected.append(rel)

    selected.sort()
    logger.debug("Selected %d path(s) from %s", len(selected), root)
    return selected
