"""
Unit tests for the in-memory draft store and transport.
"""

import pytest

from autosave.core.exceptions import VersionConflictError
from autosave.core.types import DocumentIdentity, DocumentKind
from autosave.transport.memory import InMemoryDraftStore, InMemoryTransport


class TestInMemoryDraftStore:
    """Tests for version-checked upserts."""
    
    def test_first_write_creates_version_one(self, identity):
        store = InMemoryDraftStore()
        record = store.upsert(identity, {"title": "x"}, None)
        
        assert record.version == 1
        assert store.get(identity).payload == {"title": "x"}
    
    def test_matching_version_bumps(self, identity):
        store = InMemoryDraftStore()
        store.upsert(identity, {"title": "x"}, None)
        record = store.upsert(identity, {"title": "y"}, 1)
        
        assert record.version == 2
    
    def test_stale_version_rejected(self, identity):
        store = InMemoryDraftStore()
        store.seed(identity, {"title": "theirs"}, version=4)
        
        with pytest.raises(VersionConflictError) as exc_info:
            store.upsert(identity, {"title": "mine"}, 3)
        
        assert exc_info.value.expected_version == 3
        assert exc_info.value.current_version == 4
        assert store.get(identity).payload == {"title": "theirs"}
    
    def test_none_version_over_existing_draft(self, identity):
        strict = InMemoryDraftStore()
        strict.seed(identity, {}, version=2)
        with pytest.raises(VersionConflictError):
            strict.upsert(identity, {"a": 1}, None)
        
        lenient = InMemoryDraftStore(strict_first_write=False)
        lenient.seed(identity, {}, version=2)
        assert lenient.upsert(identity, {"a": 1}, None).version == 3
    
    def test_kinds_are_separate(self, identity):
        store = InMemoryDraftStore()
        estimate = DocumentIdentity(
            kind=DocumentKind.ESTIMATE,
            company_id=identity.company_id,
            document_id=identity.document_id,
            project_id=identity.project_id,
        )
        store.upsert(identity, {"kind": "proposal"}, None)
        
        assert store.get(estimate) is None
        assert store.upsert(estimate, {"kind": "estimate"}, None).version == 1
    
    def test_stored_payload_is_a_copy(self, identity):
        store = InMemoryDraftStore()
        payload = {"lines": [1]}
        store.upsert(identity, payload, None)
        payload["lines"].append(2)
        
        assert store.get(identity).payload == {"lines": [1]}


class TestInMemoryTransport:
    """Tests for the async transport wrapper."""
    
    @pytest.mark.asyncio
    async def test_save_returns_ack(self, identity):
        transport = InMemoryTransport()
        ack = await transport.save(identity, {"title": "x"}, None)
        
        assert ack.document_id == "proposal-42"
        assert ack.version == 1
        assert ack.updated_at is not None
        assert transport.calls == [("proposal-42", {"title": "x"}, None)]
    
    @pytest.mark.asyncio
    async def test_conflict_propagates(self, identity):
        transport = InMemoryTransport()
        transport.store.seed(identity, {}, version=2)
        
        with pytest.raises(VersionConflictError):
            await transport.save(identity, {"title": "x"}, 1)
