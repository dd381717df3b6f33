"""Run state and option validation.

A RunState is created from caller options by init_state(), then threaded
through every stage of a run. Stages mutate it in place; nothing outlives
the run.
"""

import logging
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from .errors import DestinationExistsError, InvalidArgumentError
from .filters import FilterSet
from .resources import ResourceLedger

if TYPE_CHECKING:
    from sources.git import GitInfo

logger = logging.getLogger(__name__)

FILTER_TYPES = (list, tuple, set, frozenset, FilterSet)

# Options consumed by init_state; anything else lands in RunState.extra
OPTION_KEYS = frozenset(
    {"src", "dest", "force", "git", "data", "filters", "npmArgs", "npm_args", "template"}
)


class PromptDescriptor(BaseModel):
    """A question the template wants answered before files are rendered.

    Only collected and forwarded through the ``prompt`` notification; the
    UI that asks is up to the caller. Unknown keys are kept.
    """

    model_config = ConfigDict(extra="allow")

    message: str | None = Field(None, description="Question shown to the user")
    type: str = Field("text", description="Prompt type: text, toggle, select, ...")
    required: bool = Field(False, description="Whether an answer is required")
    default: Any = Field(None, description="Value used when the caller supplied none")

    @property
    def has_default(self) -> bool:
        """True when the descriptor explicitly declared a default."""
        return "default" in self.model_fields_set


@dataclass
class RunState:
    """Mutable state of a single template run.

    ``src`` starts as whatever the caller passed and becomes a Path once
    the source has been resolved to a local directory.
    """

    src: str | Path
    dest: Path
    force: bool = False
    git: bool = True
    data: dict[str, Any] = field(default_factory=dict)
    filters: FilterSet = field(default_factory=FilterSet)
    npm_args: list[str] = field(default_factory=list)
    template: str = "."

    # Filled in by later stages
    meta: dict[str, Any] = field(default_factory=dict)
    prompts: dict[str, PromptDescriptor] = field(default_factory=dict)
    complete: Callable[..., Any] | None = None
    pkg: dict[str, Any] | None = None
    git_info: "GitInfo | None" = None
    npm_manifest: dict[str, Any] | None = None
    extract_dest: Path | None = None
    meta_file: Path | None = None
    src_file: Path | None = None
    dest_file: Path | None = None

    extra: dict[str, Any] = field(default_factory=dict)
    ledger: ResourceLedger | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.dest = Path(self.dest)

    @property
    def disposables(self) -> tuple[Path, ...]:
        """Temporary paths owned by this run."""
        if self.ledger is None:
            return ()
        return self.ledger.disposables

    def make_temp(self) -> Path:
        """Create a temp directory owned by this run."""
        if self.ledger is None:
            raise RuntimeError("RunState has no resource ledger attached")
        return self.ledger.make_temp()


def ensure_state(value: Any) -> RunState:
    """Check that a stage received a RunState.

    Raises:
        InvalidArgumentError: If a hook swapped the state for something else
    """
    if not isinstance(value, RunState):
        raise InvalidArgumentError("Expected options to be an object")
    return value


def expand_path(path: str) -> Path:
    """Expand environment variables and ``~``, then make absolute."""
    return Path(os.path.expandvars(path)).expanduser().resolve()


def _is_empty_dir(path: Path) -> bool:
    return path.is_dir() and not any(path.iterdir())


def init_state(
    opts: Any,
    default_filters: list[str] | None = None,
    ledger: ResourceLedger | None = None,
) -> RunState:
    """Validate caller options and build a RunState.

    Args:
        opts: Caller options mapping
        default_filters: Patterns every run starts with
        ledger: Resource ledger to attach

    Returns:
        A fresh RunState

    Raises:
        InvalidArgumentError: If an option has the wrong shape
        DestinationExistsError: If dest is a non-empty path and force is off
    """
    if not isinstance(opts, Mapping):
        raise InvalidArgumentError("Expected options to be an object")

    src = opts.get("src")
    if not src or not isinstance(src, str):
        raise InvalidArgumentError("Expected source to be a path, npm package name, URL, or git repo")

    dest = opts.get("dest")
    if not dest or not isinstance(dest, str):
        raise InvalidArgumentError("Expected destination to be a path")
    dest = expand_path(dest)

    force = bool(opts.get("force", False))
    if (dest.exists() or dest.is_symlink()) and not force and not _is_empty_dir(dest):
        raise DestinationExistsError("Destination already exists")

    data = opts.get("data")
    if data is None:
        data = {}
    elif not isinstance(data, Mapping):
        raise InvalidArgumentError("Expected data to be an object")

    filters = FilterSet(default_filters or [])
    caller_filters = opts.get("filters")
    if caller_filters is not None:
        if not isinstance(caller_filters, FILTER_TYPES) or not all(
            isinstance(f, str) for f in caller_filters
        ):
            raise InvalidArgumentError("Expected filters to be an array or set of file patterns")
        filters.merge(caller_filters)

    npm_args = opts.get("npmArgs", opts.get("npm_args"))
    if npm_args is None:
        npm_args = []
    elif isinstance(npm_args, str) or not isinstance(npm_args, (list, tuple)):
        raise InvalidArgumentError("Expected npm args to be an array")

    template = opts.get("template") or "."
    if not isinstance(template, str):
        raise InvalidArgumentError("Expected template to be a path")

    state = RunState(
        src=src,
        dest=dest,
        force=force,
        git=opts.get("git", True) is not False,
        data=dict(data),
        filters=filters,
        npm_args=[str(arg) for arg in npm_args],
        template=template,
        extra={k: v for k, v in opts.items() if k not in OPTION_KEYS},
        ledger=ledger,
    )
    logger.debug("Initialized run: src=%s dest=%s force=%s", state.src, state.dest, state.force)
    return state
