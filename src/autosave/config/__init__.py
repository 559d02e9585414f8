"""
Configuration loading for the autosave engine.
"""

from .config_loader import AutosaveConfig, build_transport

__all__ = ["AutosaveConfig", "build_transport"]
