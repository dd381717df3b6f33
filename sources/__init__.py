"""Template source resolution.

Fetch adapters for each kind of template source:
- Git repositories (clone)
- Archive URLs (download)
- Local archives (extract)
- npm packages (global install or registry)
"""

from .archive import ArchiveReader, extract_archive
from .classifier import SourceKind, SourceResolver, classify
from .download import resolve_filename
from .git import GitInfo, parse_hosted_git
from .npm import NpmRegistry, find_global_package, parse_package_spec

__all__ = [
    "ArchiveReader",
    "extract_archive",
    "SourceKind",
    "SourceResolver",
    "classify",
    "resolve_filename",
    "GitInfo",
    "parse_hosted_git",
    "NpmRegistry",
    "find_global_package",
    "parse_package_spec",
]
