"""
Development helper that forces draft writes to fail.

Makes save-failure reproduction deterministic so the error surface and the
retry path can be exercised on demand.
"""

import logging
import os
from typing import Any, Optional

from ..core.exceptions import TransientTransportError
from ..core.types import DocumentIdentity, SaveAck
from .base import SaveTransport


logger = logging.getLogger(__name__)

FORCE_SAVE_ERROR_ENV = "AUTOSAVE_FORCE_SAVE_ERROR"


def force_save_error_enabled() -> bool:
    """True when the force-error environment flag is set to 1."""
    return os.environ.get(FORCE_SAVE_ERROR_ENV, "").strip() == "1"


class FaultInjectingTransport(SaveTransport):
    """
    Fails every save while enabled, otherwise delegates to ``inner``.
    
    Args:
        inner: Transport used while disabled
        enabled: Explicit switch; None defers to AUTOSAVE_FORCE_SAVE_ERROR
    """

    def __init__(self, inner: SaveTransport, enabled: Optional[bool] = None):
        self.inner = inner
        self.enabled = enabled
        self.injected_count = 0

    @property
    def active(self) -> bool:
        if self.enabled is not None:
            return self.enabled
        return force_save_error_enabled()

    async def save(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> SaveAck:
        if self.active:
            self.injected_count += 1
            logger.warning(f"Injecting forced save failure for {identity.document_id}")
            raise TransientTransportError(
                "Forced server error (fault injection enabled)",
                document_id=identity.document_id,
            )
        return await self.inner.save(identity, payload, expected_version)

    def close(self) -> None:
        self.inner.close()
