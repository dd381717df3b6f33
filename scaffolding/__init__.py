"""Project scaffolding core for template-kit.

Creates new projects from templates with:
- Option validation and run state
- Include/exclude file filtering
- Jinja2 rendering of text files and filename tokens
- Template descriptors (data, filters, prompts, completion callback)
- Temp directory bookkeeping

The run pipeline itself lives in scaffolding.engine:

    from scaffolding.engine import TemplateEngine, create_project
"""

from .errors import (
    DestinationExistsError,
    GitCloneError,
    GitNotFoundError,
    InvalidArgumentError,
    InvalidMetaError,
    RenderError,
    SourceNotFoundError,
    TemplateKitError,
    TransportError,
    UnknownFileTypeError,
)
from .filters import FilterSet, select_files
from .materialize import is_binary_file, render_filename
from .meta import DescriptorExport, DescriptorLoader, ExportKind
from .resources import ResourceLedger
from .state import PromptDescriptor, RunState, init_state

__all__ = [
    # Errors
    "TemplateKitError",
    "InvalidArgumentError",
    "DestinationExistsError",
    "SourceNotFoundError",
    "GitNotFoundError",
    "GitCloneError",
    "UnknownFileTypeError",
    "TransportError",
    "InvalidMetaError",
    "RenderError",
    # Filters
    "FilterSet",
    "select_files",
    # Materialization
    "render_filename",
    "is_binary_file",
    # Descriptors
    "DescriptorExport",
    "DescriptorLoader",
    "ExportKind",
    # State
    "ResourceLedger",
    "PromptDescriptor",
    "RunState",
    "init_state",
]
