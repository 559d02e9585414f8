"""
Canonical JSON serialization and snapshot fingerprinting.

Provides stable, platform-independent serialization of editor snapshots.
The canonicalization ensures:
- Keys are sorted recursively
- Unicode is normalized (NFC)
- No insignificant whitespace
- Consistent null handling

Fingerprints are used only for equality checks, never for storage or security.
"""

import hashlib
import json
import unicodedata
from collections.abc import Mapping
from typing import Any, List

FINGERPRINT_LENGTH = 16
DEFAULT_KEYS_SAMPLE_SIZE = 10


def canonicalize(obj: Any) -> str:
    """
    Canonicalize a snapshot to a stable JSON string.
    
    Args:
        obj: The snapshot to canonicalize
        
    Returns:
        Canonical JSON string
    """
    return json.dumps(
        _normalize_for_canonical(obj),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        default=_canonical_default,
    )


def _normalize_for_canonical(obj: Any) -> Any:
    """
    Recursively normalize an object for canonical serialization.
    
    - Normalizes unicode strings (NFC)
    - Recursively processes mappings and sequences
    - Leaves other types to the JSON default handler
    """
    if obj is None:
        return None
    
    if isinstance(obj, str):
        return unicodedata.normalize("NFC", obj)
    
    if isinstance(obj, bool):
        # Handle bool before int (bool is subclass of int)
        return obj
    
    if isinstance(obj, (int, float)):
        return obj
    
    if isinstance(obj, Mapping):
        return {
            str(_normalize_for_canonical(k)): _normalize_for_canonical(v)
            for k, v in obj.items()
        }
    
    if isinstance(obj, (list, tuple)):
        return [_normalize_for_canonical(item) for item in obj]
    
    if hasattr(obj, "to_dict"):
        return _normalize_for_canonical(obj.to_dict())
    
    return obj


def _canonical_default(obj: Any) -> Any:
    """
    Default handler for JSON serialization of non-standard types.
    """
    if hasattr(obj, "isoformat"):
        # datetime / date objects
        return obj.isoformat()
    
    if isinstance(obj, (set, frozenset)):
        return sorted(
            (_normalize_for_canonical(item) for item in obj),
            key=canonicalize,
        )
    
    return unicodedata.normalize("NFC", str(obj))


def compute_fingerprint(snapshot: Any) -> str:
    """
    Compute a short, deterministic fingerprint of a snapshot.
    
    Two snapshots with the same canonical form always share a fingerprint.
    
    Args:
        snapshot: The snapshot to fingerprint
        
    Returns:
        First 16 hex characters of the SHA256 of the canonical form
        
    Example:
        >>> compute_fingerprint({"b": 1, "a": 2}) == compute_fingerprint({"a": 2, "b": 1})
        True
    """
    canonical_str = canonicalize(snapshot)
    return hashlib.sha256(canonical_str.encode("utf-8")).hexdigest()[:FINGERPRINT_LENGTH]


def payload_size(snapshot: Any) -> int:
    """Byte length of the canonical UTF-8 form of a snapshot."""
    return len(canonicalize(snapshot).encode("utf-8"))


def payload_keys_sample(snapshot: Any, limit: int = DEFAULT_KEYS_SAMPLE_SIZE) -> List[str]:
    """
    Sample of the top-level keys of a mapping snapshot.
    
    Args:
        snapshot: The snapshot to inspect
        limit: Maximum number of keys returned
        
    Returns:
        Sorted keys, truncated to ``limit``; empty for non-mapping snapshots
    """
    if not isinstance(snapshot, Mapping):
        return []
    return sorted(str(k) for k in snapshot.keys())[:max(limit, 0)]
