"""
Core data types for the autosave engine.

Uses dataclasses and str-valued enums, following the pattern of the
other contract modules.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class SaveStatus(str, Enum):
    """Observable status of an autosave engine. Exactly one is active."""
    SAVED = "saved"
    SAVING = "saving"
    DIRTY = "dirty"
    ERROR = "error"


class DocumentKind(str, Enum):
    """Kind of long-lived document backed by an autosave engine."""
    PROPOSAL = "proposal"
    ESTIMATE = "estimate"


@dataclass(frozen=True)
class DocumentIdentity:
    """
    Identifies the document an engine writes to.
    
    The engine treats every field as opaque; it only checks that none is empty.
    
    Attributes:
        kind: Document kind (selects the server-side upsert procedure)
        company_id: Owning company / tenant
        document_id: Proposal or estimate id
        project_id: Project the document belongs to
    """
    kind: DocumentKind
    company_id: Optional[str]
    document_id: Optional[str]
    project_id: Optional[str]

    def missing_fields(self) -> List[str]:
        """Return the names of the identity fields that are empty."""
        missing = []
        if not self.company_id:
            missing.append("company_id")
        if not self.document_id:
            missing.append("document_id")
        if not self.project_id:
            missing.append("project_id")
        return missing

    @property
    def is_complete(self) -> bool:
        return not self.missing_fields()


@dataclass(frozen=True)
class SaveAck:
    """
    Server acknowledgment of a successful draft write.
    
    Attributes:
        document_id: Id of the document that was written
        version: New draft version assigned by the server
        updated_at: Server timestamp of the write
    """
    document_id: str
    version: int
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "document_id": self.document_id,
            "version": self.version,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class AutosaveDiagnostics:
    """
    Point-in-time diagnostics snapshot of an engine.
    
    Attributes:
        last_payload_size: Byte size of the canonical form of the last captured payload
        last_payload_keys_sample: Sorted sample of the payload's top-level keys
        status: Engine status at capture time
        error_message: Current error message, if any
        expected_version: Version the next save will send
        in_flight: Whether a transport call is outstanding
        pending_queued: Whether a follow-up save is queued
        last_saved_fingerprint: Fingerprint of the last persisted snapshot
        save_count: Successful saves since construction
        failure_count: Failed saves since construction
        last_success_at: UTC time of the last successful save
        last_error_at: UTC time of the last failure
    """
    last_payload_size: int = 0
    last_payload_keys_sample: List[str] = field(default_factory=list)
    status: SaveStatus = SaveStatus.SAVED
    error_message: Optional[str] = None
    expected_version: Optional[int] = None
    in_flight: bool = False
    pending_queued: bool = False
    last_saved_fingerprint: Optional[str] = None
    save_count: int = 0
    failure_count: int = 0
    last_success_at: Optional[datetime] = None
    last_error_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "last_payload_size": self.last_payload_size,
            "last_payload_keys_sample": list(self.last_payload_keys_sample),
            "status": self.status.value,
            "error_message": self.error_message,
            "expected_version": self.expected_version,
            "in_flight": self.in_flight,
            "pending_queued": self.pending_queued,
            "last_saved_fingerprint": self.last_saved_fingerprint,
            "save_count": self.save_count,
            "failure_count": self.failure_count,
            "last_success_at": self.last_success_at.isoformat() if self.last_success_at else None,
            "last_error_at": self.last_error_at.isoformat() if self.last_error_at else None,
        }
