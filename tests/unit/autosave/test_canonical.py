"""
Unit tests for canonical serialization and snapshot fingerprints.
"""

from datetime import datetime, timezone

from autosave.snapshot.canonical import (
    FINGERPRINT_LENGTH,
    canonicalize,
    compute_fingerprint,
    payload_keys_sample,
    payload_size,
)


class TestCanonicalize:
    """Tests for canonical JSON serialization."""
    
    def test_keys_sorted_recursively(self):
        obj = {"z": {"b": 1, "a": 2}, "a": 0}
        assert canonicalize(obj) == '{"a":0,"z":{"a":2,"b":1}}'
    
    def test_list_order_preserved(self):
        assert canonicalize({"items": [3, 1, 2]}) == '{"items":[3,1,2]}'
    
    def test_tuple_serialized_as_list(self):
        assert canonicalize({"pair": (1, 2)}) == canonicalize({"pair": [1, 2]})
    
    def test_unicode_normalization(self):
        composed = "\u00e9"
        decomposed = "e\u0301"
        assert canonicalize({"name": composed}) == canonicalize({"name": decomposed})
    
    def test_non_ascii_kept_verbatim(self):
        assert canonicalize({"city": "Zürich"}) == '{"city":"Zürich"}'
    
    def test_datetime_as_isoformat(self):
        moment = datetime(2026, 3, 1, 12, 30, tzinfo=timezone.utc)
        assert canonicalize({"at": moment}) == '{"at":"2026-03-01T12:30:00+00:00"}'
    
    def test_to_dict_objects(self):
        class LineItem:
            def to_dict(self):
                return {"qty": 2, "code": "03-300"}
        
        assert canonicalize([LineItem()]) == '[{"code":"03-300","qty":2}]'
    
    def test_sets_are_ordered(self):
        assert canonicalize({"tags": {"b", "a", "c"}}) == '{"tags":["a","b","c"]}'
    
    def test_null_and_bool(self):
        assert canonicalize({"a": None, "t": True, "f": False}) == '{"a":null,"f":false,"t":true}'


class TestFingerprint:
    """Tests for compute_fingerprint."""
    
    def test_short_hex(self):
        fingerprint = compute_fingerprint({"title": "Bathroom"})
        assert len(fingerprint) == FINGERPRINT_LENGTH
        int(fingerprint, 16)
    
    def test_equal_canonical_forms_share_fingerprint(self):
        a = {"sections": [{"id": 1, "lines": []}], "title": "Deck"}
        b = {"title": "Deck", "sections": [{"lines": [], "id": 1}]}
        assert compute_fingerprint(a) == compute_fingerprint(b)
    
    def test_different_content_differs(self):
        assert compute_fingerprint({"total": 100}) != compute_fingerprint({"total": 101})
    
    def test_list_order_matters(self):
        assert compute_fingerprint([1, 2]) != compute_fingerprint([2, 1])
    
    def test_stable_across_calls(self):
        snapshot = {"c": 1, "a": 2, "b": [3, 4]}
        assert len({compute_fingerprint(snapshot) for _ in range(10)}) == 1


class TestPayloadHelpers:
    """Tests for payload_size and payload_keys_sample."""
    
    def test_payload_size_counts_utf8_bytes(self):
        assert payload_size({"a": "é"}) == len('{"a":"é"}'.encode("utf-8"))
    
    def test_keys_sample_sorted_and_truncated(self):
        snapshot = {"title": 1, "intro_text": 2, "settings": 3, "areas": 4}
        assert payload_keys_sample(snapshot, limit=3) == ["areas", "intro_text", "settings"]
    
    def test_keys_sample_non_mapping(self):
        assert payload_keys_sample([{"a": 1}]) == []
        assert payload_keys_sample(None) == []
