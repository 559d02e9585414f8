"""
Shared test fixtures and configuration for pytest.
"""

import logging
import os
import sys
from pathlib import Path

import pytest

# Add src directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


logger = logging.getLogger(__name__)


# ============================================================================
# Environment detection
# ============================================================================

def is_sqlserver_available() -> bool:
    """Check if SQL Server is available for testing."""
    password = os.environ.get("AUTOSAVE_SQLSERVER_PASSWORD") or os.environ.get("MSSQL_SA_PASSWORD")
    if not password:
        return False
    
    try:
        import pyodbc
        from autosave.transport.sql_transport import DraftStoreConfig
        
        conn = pyodbc.connect(DraftStoreConfig.from_env().get_connection_string(), timeout=5)
        conn.close()
        return True
        
    except Exception as e:
        logger.debug(f"SQL Server not available: {e}")
        return False


# ============================================================================
# Pytest hooks
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests (no external dependencies)")
    config.addinivalue_line("markers", "integration: Integration tests (requires SQL Server)")


def pytest_collection_modifyitems(config, items):
    """Automatically skip integration tests if SQL Server is not available."""
    if not any("integration" in item.keywords for item in items):
        return
    if is_sqlserver_available():
        return
    
    skip_sqlserver = pytest.mark.skip(
        reason="SQL Server not available (set AUTOSAVE_SQLSERVER_PASSWORD and ensure SQL Server is running)"
    )
    
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_sqlserver)


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def no_forced_save_errors(monkeypatch):
    """Keep a developer's force-error flag from leaking into tests."""
    monkeypatch.delenv("AUTOSAVE_FORCE_SAVE_ERROR", raising=False)


@pytest.fixture
def reset_autosave_logger():
    """Remove handlers added by configure_logging during a test."""
    package_logger = logging.getLogger("autosave")
    handlers = list(package_logger.handlers)
    level = package_logger.level
    yield package_logger
    for handler in list(package_logger.handlers):
        if handler not in handlers:
            package_logger.removeHandler(handler)
    package_logger.setLevel(level)


@pytest.fixture
def identity():
    """A complete proposal identity."""
    from autosave.core.types import DocumentIdentity, DocumentKind
    
    return DocumentIdentity(
        kind=DocumentKind.PROPOSAL,
        company_id="company-1",
        document_id="proposal-42",
        project_id="project-7",
    )
