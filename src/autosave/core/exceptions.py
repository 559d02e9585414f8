"""
Custom exceptions for the autosave engine.
"""

from typing import List, Optional


class AutosaveError(Exception):
    """Base exception for all autosave errors."""
    pass


class AutosaveConfigError(AutosaveError):
    """
    Error in autosave configuration.
    
    Raised when:
    - Configuration file is missing or invalid
    - Configuration values are out of valid range
    - An unknown transport type is requested
    """
    pass


class PreconditionError(AutosaveError):
    """
    A save was attempted without the identity it needs.
    
    Not retryable by the debounce timer; the caller has to re-establish
    the document identity first.
    """
    
    def __init__(self, message: str, missing_fields: Optional[List[str]] = None):
        super().__init__(message)
        self.missing_fields = missing_fields or []


class TransportError(AutosaveError):
    """
    Error raised by a Save Transport.
    
    Attributes:
        transient: True when repeating the same call may succeed
    """
    
    transient = False
    
    def __init__(self, message: str, document_id: str = None):
        super().__init__(message)
        self.document_id = document_id


class TransientTransportError(TransportError):
    """
    Network failure, server error or driver exception.
    
    Raised when:
    - The store is unreachable
    - The request times out
    - The server reports an internal error
    """
    
    transient = True


class VersionConflictError(TransportError):
    """
    The server rejected the write because the expected version is stale.
    
    Another writer advanced the document since the engine last saw it.
    """
    
    def __init__(
        self,
        message: str,
        document_id: str = None,
        expected_version: Optional[int] = None,
        current_version: Optional[int] = None,
    ):
        super().__init__(message, document_id=document_id)
        self.expected_version = expected_version
        self.current_version = current_version


class InvalidResponseError(TransportError):
    """
    The server answered but the acknowledgment is unusable.
    
    Raised when:
    - No acknowledgment row is returned
    - The acknowledgment has no document id
    - The returned version is not an integer
    """
    pass
