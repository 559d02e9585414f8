"""
Save Transport contract.

A transport writes one draft payload for a document, guarded by the version
the caller believes is current, and returns the server's acknowledgment.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..core.types import DocumentIdentity, SaveAck


class SaveTransport(ABC):
    """
    Abstract base for draft writers.
    
    Implementations raise:
    - VersionConflictError when ``expected_version`` is stale
    - TransientTransportError for network / server / driver failures
    - InvalidResponseError when the acknowledgment is unusable
    """

    @abstractmethod
    async def save(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> SaveAck:
        """
        Persist ``payload`` as the draft of ``identity``.
        
        Args:
            identity: Target document
            payload: Snapshot to store
            expected_version: Version the caller last saw, or None for a first write
            
        Returns:
            SaveAck carrying the new version and server timestamp
        """

    def close(self) -> None:
        """Release any held resources."""
