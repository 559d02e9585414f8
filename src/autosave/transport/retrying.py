"""
Transport wrapper that retries transient failures.

Version conflicts and invalid acknowledgments are surfaced immediately;
only TransientTransportError is retried.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from ..core.exceptions import TransientTransportError
from ..core.types import DocumentIdentity, SaveAck
from ..utils.retry import RetryConfig, retry_async
from .base import SaveTransport


logger = logging.getLogger(__name__)


class RetryingTransport(SaveTransport):
    """
    Wraps another transport with exponential backoff on transient errors.
    
    Args:
        inner: Transport doing the actual write
        config: Retry configuration
        sleep: Awaitable sleep (injectable for tests)
    """

    def __init__(
        self,
        inner: SaveTransport,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.inner = inner
        self.config = config or RetryConfig()
        self._sleep = sleep

    async def save(
        self,
        identity: DocumentIdentity,
        payload: Any,
        expected_version: Optional[int],
    ) -> SaveAck:
        result = await retry_async(
            lambda: self.inner.save(identity, payload, expected_version),
            self.config,
            retry_on=(TransientTransportError,),
            operation_name=f"save draft {identity.document_id}",
            sleep=self._sleep,
        )
        if not result.success:
            raise result.error
        return result.result

    def close(self) -> None:
        self.inner.close()
