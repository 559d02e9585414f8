"""
In-process draft store and transport.

Mirrors the server-side upsert semantics closely enough to exercise the
engine without a database: every write bumps the version by one and is
rejected when the expected version is stale.
"""

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from ..core.exceptions import VersionConflictError
from ..core.types import DocumentIdentity, SaveAck
from .base import SaveTransport


logger = logging.getLogger(__name__)


@dataclass
class DraftRecord:
    """A stored draft."""
    document_id: str
    version: int
    payload: Any
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class InMemoryDraftStore:
    """
    Dictionary-backed draft storage keyed by (kind, document_id).
    
    Args:
        strict_first_write: Reject a None expected version when a draft exists
    """

    def __init__(self, strict_first_write: bool = True):
        self.strict_first_write = strict_first_write
        self._drafts: Dict[Tuple[str, str], DraftRecord] = {}

    def get(self, identity: DocumentIdentity) -> Optional[DraftRecord]:
        return self._drafts.get(self._key(identity))

    def seed(self, identity: DocumentIdentity, payload: Any, version: int = 1) -> DraftRecord:
        """Store a draft directly, as if another writer had saved it."""
        record = DraftRecord(
            document_id=identity.document_id,
            version=version,
            payload=copy.deepcopy(payload),
        )
        self._drafts[self._key(identity)] = record
        return record

    def upsert(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> DraftRecord:
        """
        Write a draft if ``expected_version`` matches the stored version.
        
        Raises:
            VersionConflictError: If the stored version moved on
        """
        key = self._key(identity)
        current = self._drafts.get(key)
        current_version = current.version if current else None

        stale = expected_version != current_version
        if expected_version is None and current is not None and not self.strict_first_write:
            stale = False

        if stale:
            raise VersionConflictError(
                f"Draft version conflict: expected {expected_version}, current {current_version}",
                document_id=identity.document_id,
                expected_version=expected_version,
                current_version=current_version,
            )

        record = DraftRecord(
            document_id=identity.document_id,
            version=(current_version or 0) + 1,
            payload=copy.deepcopy(payload),
        )
        self._drafts[key] = record
        return record

    @staticmethod
    def _key(identity: DocumentIdentity) -> Tuple[str, str]:
        return (identity.kind.value, identity.document_id)


class InMemoryTransport(SaveTransport):
    """
    Save Transport over an InMemoryDraftStore.
    
    Records every call in ``calls`` as (document_id, payload, expected_version).
    
    Args:
        store: Backing store (a fresh one by default)
        latency_ms: Simulated round-trip delay
    """

    def __init__(self, store: Optional[InMemoryDraftStore] = None, latency_ms: float = 0.0):
        self.store = store or InMemoryDraftStore()
        self.latency_ms = latency_ms
        self.calls: List[Tuple[str, Any, Optional[int]]] = []

    async def save(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> SaveAck:
        self.calls.append((identity.document_id, copy.deepcopy(payload), expected_version))
        if self.latency_ms:
            await asyncio.sleep(self.latency_ms / 1000.0)

        record = self.store.upsert(identity, payload, expected_version)
        logger.debug(f"Stored draft {record.document_id} v{record.version}")
        return SaveAck(
            document_id=record.document_id,
            version=record.version,
            updated_at=record.updated_at,
        )
