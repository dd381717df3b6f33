"""template-kit CLI.

Command-line interface for creating projects from templates.
"""

__version__ = "0.1.0"

from cli.templatekit.cli import app, main

__all__ = ["__version__", "app", "main"]
