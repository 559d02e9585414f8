"""
Snapshot fingerprinting.
"""

from .canonical import (
    canonicalize,
    compute_fingerprint,
    payload_size,
    payload_keys_sample,
)

__all__ = [
    "canonicalize",
    "compute_fingerprint",
    "payload_size",
    "payload_keys_sample",
]
