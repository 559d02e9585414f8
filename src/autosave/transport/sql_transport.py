"""
SQL Server draft transport.

Writes drafts through the usp_upsert_<kind>_draft stored procedures, which
check the expected version and bump it atomically. See
scripts/db/draft_autosave.sql for the schema.
"""

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

try:
    import pyodbc
except ImportError:
    pyodbc = None  # Defer error to runtime when connection is attempted

from ..core.exceptions import (
    InvalidResponseError,
    TransientTransportError,
    VersionConflictError,
)
from ..core.types import DocumentIdentity, SaveAck
from ..snapshot.canonical import canonicalize
from .base import SaveTransport


logger = logging.getLogger(__name__)
_DOTENV_LOADED = False

# THROW number raised by the upsert procedures on a stale expected version
VERSION_CONFLICT_ERROR_NUMBER = 50409
_CONFLICT_PATTERN = re.compile(r"\b50409\b|version_conflict", re.IGNORECASE)


def _load_dotenv_if_present() -> None:
    """
    Load .env into process env for local runs.

    Existing shell environment variables take precedence.
    """
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return

    # sql_transport.py -> transport -> autosave -> src -> repo root
    env_path = Path(__file__).resolve().parents[3] / ".env"
    if not env_path.exists():
        _DOTENV_LOADED = True
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'").strip('"')
        if key and os.environ.get(key) is None:
            os.environ[key] = value

    _DOTENV_LOADED = True


def _first_non_empty_env(*keys: str) -> Optional[str]:
    """Return the first non-empty env var value for the given keys."""
    for key in keys:
        value = os.environ.get(key)
        if value is not None and value.strip() != "":
            return value
    return None


@dataclass
class DraftStoreConfig:
    """Connection settings for the SQL Server draft store."""
    host: str = "localhost"
    port: int = 1433
    database: str = "Operations"
    username: str = "sa"
    password: str = ""
    driver: str = "ODBC Driver 18 for SQL Server"
    schema: str = "drafts"
    connection_string: Optional[str] = None

    @classmethod
    def from_env(cls) -> "DraftStoreConfig":
        """Create config from environment variables."""
        _load_dotenv_if_present()

        conn_str = _first_non_empty_env("AUTOSAVE_SQLSERVER_CONN_STR")
        if conn_str:
            return cls(
                connection_string=conn_str,
                schema=_first_non_empty_env("AUTOSAVE_SQLSERVER_SCHEMA") or "drafts",
            )

        return cls(
            host=_first_non_empty_env("AUTOSAVE_SQLSERVER_HOST") or "localhost",
            port=int(_first_non_empty_env("AUTOSAVE_SQLSERVER_PORT") or "1433"),
            database=_first_non_empty_env("AUTOSAVE_SQLSERVER_DATABASE", "MSSQL_DATABASE") or "Operations",
            username=_first_non_empty_env("AUTOSAVE_SQLSERVER_USER") or "sa",
            password=_first_non_empty_env("AUTOSAVE_SQLSERVER_PASSWORD", "MSSQL_SA_PASSWORD") or "",
            driver=_first_non_empty_env("AUTOSAVE_SQLSERVER_DRIVER") or "ODBC Driver 18 for SQL Server",
            schema=_first_non_empty_env("AUTOSAVE_SQLSERVER_SCHEMA") or "drafts",
        )

    def get_connection_string(self) -> str:
        """Build the ODBC connection string."""
        if self.connection_string:
            return self.connection_string

        return (
            f"Driver={{{self.driver}}};"
            f"Server={self.host},{self.port};"
            f"Database={self.database};"
            f"UID={self.username};"
            f"PWD={self.password};"
            f"Encrypt=no;"
            f"TrustServerCertificate=yes"
        )


class SqlServerDraftTransport(SaveTransport):
    """
    Save Transport backed by SQL Server stored procedures.
    
    Procedures (one per document kind):
    - usp_upsert_proposal_draft
    - usp_upsert_estimate_draft
    
    Both take (@company_id, @document_id, @project_id, @payload, @expected_version)
    and return one row (out_document_id, out_draft_version, out_updated_at).
    The blocking driver call runs on a worker thread so the event loop keeps
    serving edits while a write is outstanding.
    
    Example:
        >>> transport = SqlServerDraftTransport(DraftStoreConfig.from_env())
        >>> ack = await transport.save(identity, snapshot, expected_version=3)
    """

    def __init__(self, config: Optional[DraftStoreConfig] = None):
        self.config = config or DraftStoreConfig.from_env()
        self._conn = None

        if not self._is_valid_identifier(self.config.schema):
            raise ValueError(f"Invalid schema name: {self.config.schema}")

        logger.debug(f"SqlServerDraftTransport initialized for schema {self.config.schema}")

    @staticmethod
    def _is_valid_identifier(name: str) -> bool:
        """Validate that a name is a safe SQL identifier."""
        return bool(name and name.replace('_', '').isalnum() and not name[0].isdigit())

    def _get_connection(self):
        """Get or create a database connection."""
        if self._conn is None:
            if pyodbc is None:
                raise TransientTransportError(
                    "pyodbc is not installed. Install it with: pip install pyodbc"
                )
            try:
                self._conn = pyodbc.connect(
                    self.config.get_connection_string(),
                    autocommit=True
                )
                logger.debug("Database connection established")
            except Exception as e:
                logger.error(f"Failed to connect to database: {e}")
                raise TransientTransportError(f"Failed to connect to database: {e}")
        return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            try:
                self._conn.close()
            except Exception as e:
                logger.debug(f"Ignoring error while closing connection: {e}")
            self._conn = None

    def procedure_name(self, identity: DocumentIdentity) -> str:
        return f"usp_upsert_{identity.kind.value}_draft"

    async def save(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> SaveAck:
        return await asyncio.to_thread(self._save_blocking, identity, payload, expected_version)

    def _save_blocking(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> SaveAck:
        procedure = self.procedure_name(identity)
        payload_json = canonicalize(payload)

        try:
            conn = self._get_connection()
            cursor = conn.cursor()
            cursor.execute(
                f"EXEC [{self.config.schema}].[{procedure}] "
                "@company_id = ?, @document_id = ?, @project_id = ?, "
                "@payload = ?, @expected_version = ?",
                (
                    identity.company_id,
                    identity.document_id,
                    identity.project_id,
                    payload_json,
                    expected_version,
                )
            )
            row = cursor.fetchone()
            columns = [column[0] for column in cursor.description] if row is not None else []
        except TransientTransportError:
            raise
        except Exception as e:
            message = str(e)
            if _CONFLICT_PATTERN.search(message):
                logger.info(f"{procedure} rejected stale version {expected_version}")
                raise VersionConflictError(
                    f"Draft version conflict: {message}",
                    document_id=identity.document_id,
                    expected_version=expected_version,
                )
            logger.error(f"{procedure} failed: {e}")
            # Drop the connection so the next attempt reconnects
            self.close()
            raise TransientTransportError(f"{procedure} failed: {message}", document_id=identity.document_id)

        if row is None:
            raise InvalidResponseError(f"Invalid server response from {procedure}")

        return parse_ack(dict(zip(columns, row)), procedure)


def parse_ack(row: Dict[str, Any], procedure: str) -> SaveAck:
    """
    Build a SaveAck from an acknowledgment row.
    
    Column names may carry an ``out_`` prefix (used by the procedures to
    avoid ambiguity with table columns) or not.
    
    Raises:
        InvalidResponseError: If the row has no document id or a non-integer version
    """
    def pick(name: str) -> Any:
        value = row.get(f"out_{name}")
        return value if value is not None else row.get(name)

    document_id = pick("document_id")
    if not document_id:
        raise InvalidResponseError(f"Invalid server response from {procedure}")

    try:
        version = int(pick("draft_version"))
    except (TypeError, ValueError):
        raise InvalidResponseError(
            f"Invalid draft version from {procedure}: {pick('draft_version')!r}"
        )

    return SaveAck(
        document_id=str(document_id),
        version=version,
        updated_at=_parse_timestamp(pick("updated_at")),
    )


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
