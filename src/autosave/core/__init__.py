"""
Core subpackage for the autosave engine.

Contains types, exceptions, and logging utilities.
"""

from .types import (
    SaveStatus,
    DocumentKind,
    DocumentIdentity,
    SaveAck,
    AutosaveDiagnostics,
)
from .exceptions import (
    AutosaveError,
    AutosaveConfigError,
    PreconditionError,
    TransportError,
    TransientTransportError,
    VersionConflictError,
    InvalidResponseError,
)

__all__ = [
    # Types
    "SaveStatus",
    "DocumentKind",
    "DocumentIdentity",
    "SaveAck",
    "AutosaveDiagnostics",
    # Exceptions
    "AutosaveError",
    "AutosaveConfigError",
    "PreconditionError",
    "TransportError",
    "TransientTransportError",
    "VersionConflictError",
    "InvalidResponseError",
]
