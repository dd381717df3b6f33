"""Template descriptor discovery, loading and merging.

A template may ship a descriptor next to its files that supplies default
data, extra filters, prompts and a completion callback. Descriptors are
Python modules, YAML or JSON files.

Python descriptors either define a module-level ``default`` (a mapping, or
a callable taking the RunState and returning one, sync or async) or
define any of ``data``, ``filters``, ``prompts`` and ``complete`` directly:

    # meta.py
    data = {"license": "MIT"}
    filters = ["!docs/internal/**"]

    async def complete(state):
        print(f"Created {state.dest}")
"""

import importlib.util
import json
import logging
import sys
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from plugins import HookPipeline, HookPoint
from plugins.hooks import resolve

from .errors import InvalidMetaError
from .state import PromptDescriptor, RunState, ensure_state

logger = logging.getLogger(__name__)

DESCRIPTOR_SUFFIXES = (".py", ".yaml", ".yml", ".json")
DESCRIPTOR_FIELDS = ("data", "filters", "prompts", "complete")
FILTER_TYPES = (list, tuple, set, frozenset)


class ExportKind(str, Enum):
    """Shape of what a descriptor file exports."""

    ABSENT = "absent"
    OBJECT = "object"
    CALLABLE = "callable"


@dataclass
class DescriptorExport:
    """A loaded descriptor, tagged by kind."""

    kind: ExportKind
    value: Any = None
    source: str | None = None

    @classmethod
    def absent(cls) -> "DescriptorExport":
        return cls(kind=ExportKind.ABSENT)

    @classmethod
    def wrap(cls, value: Any, source: str | None = None) -> "DescriptorExport":
        """Tag an arbitrary exported value."""
        if value is None:
            return cls(kind=ExportKind.ABSENT, source=source)
        if callable(value) and not isinstance(value, Mapping):
            return cls(kind=ExportKind.CALLABLE, value=value, source=source)
        return cls(kind=ExportKind.OBJECT, value=value, source=source)

    async def evaluate(self, state: RunState) -> Any:
        """Produce the descriptor value, calling it with the state if needed."""
        if self.kind is ExportKind.ABSENT:
            return {}
        if self.kind is ExportKind.CALLABLE:
            result = await resolve(self.value(state))
            return {} if result is None else result
        return self.value


class DescriptorLoader:
    """Loads descriptor files into DescriptorExport values.

    Subclass and override load() to support other descriptor formats.
    """

    def load(self, path: Path | str | None) -> DescriptorExport:
        """Load a descriptor file.

        Args:
            path: Descriptor path, or None when the template has none

        Returns:
            Tagged export

        Raises:
            InvalidMetaError: If the file cannot be loaded
        """
        if not path:
            return DescriptorExport.absent()

        path = Path(path)
        suffix = path.suffix.lower()
        logger.debug("Loading metadata: %s", path)

        if suffix == ".py":
            return self._load_module(path)
        if suffix in (".yaml", ".yml", ".json"):
            return DescriptorExport(kind=ExportKind.OBJECT, value=self._load_static(path), source=str(path))

        raise InvalidMetaError(f"Unsupported template meta file type: {path}")

    def _load_module(self, path: Path) -> DescriptorExport:
        """Execute a Python descriptor under a unique module name.

        The module is registered only while it executes, so repeated runs
        leave sys.modules as they found it.
        """
        module_name = f"template_kit_meta_{uuid.uuid4().hex}"

        spec = importlib.util.spec_from_file_location(module_name, path)
        if spec is None or spec.loader is None:
            raise InvalidMetaError(f"Could not load template meta from {path}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as e:
            raise InvalidMetaError(f"Failed to load template meta {path}: {e}") from e
        finally:
            sys.modules.pop(module_name, None)

        if hasattr(module, "default"):
            return DescriptorExport.wrap(module.default, source=str(path))

        value = {name: getattr(module, name) for name in DESCRIPTOR_FIELDS if hasattr(module, name)}
        return DescriptorExport(kind=ExportKind.OBJECT, value=value, source=str(path))

    def _load_static(self, path: Path) -> Any:
        try:
            with path.open(encoding="utf-8") as f:
                if path.suffix.lower() == ".json":
                    return json.load(f)
                return yaml.safe_load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise InvalidMetaError(f"Failed to load template meta {path}: {e}") from e


def load_package(directory: Path | str) -> dict[str, Any] | None:
    """Read package.json from a directory, or None if missing or unreadable."""
    try:
        with Path(directory, "package.json").open(encoding="utf-8") as f:
            pkg = json.load(f)
    except (OSError, ValueError):
        return None
    return pkg if isinstance(pkg, dict) else None


def find_meta_file(src: Path | str, pkg: Mapping[str, Any] | None, filenames: list[str]) -> Path | None:
    """Locate a template's descriptor file.

    The package.json ``main`` entry wins when it names an existing
    descriptor file, then each conventional filename in order.
    """
    src = Path(src)
    main = pkg.get("main") if pkg else None
    candidates = [main] if isinstance(main, str) and main.lower().endswith(DESCRIPTOR_SUFFIXES) else []

    for name in [*candidates, *filenames]:
        candidate = src / name
        if candidate.is_file():
            return candidate.absolute()

    return None


def locate_meta(state: RunState, filenames: list[str]) -> Path | None:
    """Find the descriptor for the resolved source and keep it out of the output."""
    src = Path(state.src)
    if state.pkg is None:
        state.pkg = load_package(src)

    meta_file = find_meta_file(src, state.pkg, filenames)
    if meta_file:
        state.meta_file = meta_file
        if meta_file.is_relative_to(src.absolute()):
            state.filters.add(f"!{meta_file.relative_to(src.absolute()).as_posix()}")
        logger.debug("Found template meta %s", meta_file)
    return meta_file


async def apply_meta(state: RunState, meta: Any, hooks: HookPipeline) -> None:
    """Validate a descriptor and merge it into the run state.

    Raises:
        InvalidMetaError: If any part of the descriptor has the wrong shape
    """
    if not isinstance(meta, Mapping):
        raise InvalidMetaError("Expected template meta export to be an object or function")

    complete = meta.get("complete")
    if complete:
        if not callable(complete):
            raise InvalidMetaError("Expected template meta complete callback to be a function")
        state.complete = complete

    data = meta.get("data")
    if data:
        if not isinstance(data, Mapping):
            raise InvalidMetaError("Expected template meta data to be an object")
        state.data = {**data, **state.data}

    filters = meta.get("filters")
    if filters:
        if not isinstance(filters, FILTER_TYPES) or not all(isinstance(f, str) for f in filters):
            raise InvalidMetaError("Expected template meta filters to be an array or set of file patterns")
        state.filters.merge(filters)

    raw_prompts = meta.get("prompts")
    if raw_prompts:
        if not isinstance(raw_prompts, Mapping):
            raise InvalidMetaError("Expected template meta prompts to be an object")

        prompts: dict[str, PromptDescriptor] = {}
        for name, descriptor in raw_prompts.items():
            if not isinstance(descriptor, Mapping):
                raise InvalidMetaError(f'Expected meta prompt descriptor for "{name}" to be an object')
            try:
                prompts[name] = PromptDescriptor.model_validate(dict(descriptor))
            except ValidationError as e:
                raise InvalidMetaError(f'Invalid meta prompt descriptor for "{name}": {e}') from e

        if prompts:
            state.prompts = prompts
            await hooks.emit(HookPoint.PROMPT, state)

            for name, prompt in state.prompts.items():
                if prompt.has_default and name not in state.data:
                    state.data[name] = prompt.default

    state.meta = dict(meta)


async def load_meta(state: RunState, hooks: HookPipeline, loader: DescriptorLoader) -> None:
    """Run the load-meta stage and merge its result into the state."""
    state = ensure_state(state)

    async def body(state: RunState) -> Any:
        state = ensure_state(state)
        export = loader.load(state.meta_file)
        return await export.evaluate(state)

    meta = await hooks.call(HookPoint.LOAD_META, body, state)
    await apply_meta(state, {} if meta is None else meta, hooks)
