"""Hook system for extending the template pipeline.

Third parties attach interceptors to named stages and can veto, augment,
or observe each one.

Hook points:
    init, git-clone, download, extract, npm-download, load-meta,
    create, copy, copy-file, npm-install, git-init, cleanup

Notifications (no stage body):
    extract-file, extract-progress, prompt

Example:
    engine = TemplateEngine()
    engine.hooks.observe("copy-file", lambda state: print(state.dest_file))
"""

from .hooks import Continuation, HookPipeline
from .registry import NOTIFICATIONS, HookMode, HookPoint, HookRegistry, Interceptor

__all__ = [
    "Continuation",
    "HookPipeline",
    "HookMode",
    "HookPoint",
    "HookRegistry",
    "Interceptor",
    "NOTIFICATIONS",
]
