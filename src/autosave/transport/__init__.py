"""
Save Transport implementations.

- SaveTransport: abstract contract consumed by the engine
- InMemoryTransport: in-process draft store with version checks
- SqlServerDraftTransport: stored-procedure upsert through pyodbc
- RetryingTransport: retries transient failures with backoff
- FaultInjectingTransport: forces failures for reproduction
"""

from .base import SaveTransport
from .memory import InMemoryDraftStore, InMemoryTransport, DraftRecord
from .retrying import RetryingTransport
from .sql_transport import SqlServerDraftTransport, DraftStoreConfig
from .fault_injection import FaultInjectingTransport, FORCE_SAVE_ERROR_ENV

__all__ = [
    "SaveTransport",
    "InMemoryDraftStore",
    "InMemoryTransport",
    "DraftRecord",
    "RetryingTransport",
    "SqlServerDraftTransport",
    "DraftStoreConfig",
    "FaultInjectingTransport",
    "FORCE_SAVE_ERROR_ENV",
]
