"""
Autosave engine and its debounce schedulers.
"""

from .engine import AutosaveEngine, DEFAULT_DEBOUNCE_MS
from .scheduler import SaveScheduler, LoopScheduler, ManualScheduler

__all__ = [
    "AutosaveEngine",
    "DEFAULT_DEBOUNCE_MS",
    "SaveScheduler",
    "LoopScheduler",
    "ManualScheduler",
]
