"""
Autosave engine for long-lived document editors.

Captures editor snapshots, fingerprints them, debounces bursts of edits and
writes drafts through a Save Transport with an optimistic version check.
"""

from .core.types import (
    AutosaveDiagnostics,
    DocumentIdentity,
    DocumentKind,
    SaveAck,
    SaveStatus,
)
from .engine.engine import AutosaveEngine
from .engine.scheduler import LoopScheduler, ManualScheduler

__all__ = [
    "AutosaveDiagnostics",
    "AutosaveEngine",
    "DocumentIdentity",
    "DocumentKind",
    "LoopScheduler",
    "ManualScheduler",
    "SaveAck",
    "SaveStatus",
]

__version__ = "0.1.0"
