"""
Autosave engine for long-lived document editors.

The engine turns a stream of synchronous snapshot captures (keystrokes,
reorders, field blurs) into a small number of versioned draft writes:

- mark_dirty() fingerprints the current snapshot and (re)starts a trailing
  debounce timer, or queues a single follow-up when a save is in flight
- save_now() writes the snapshot through the Save Transport with the last
  known version as the optimistic-concurrency token
- at most one transport call is outstanding per engine
- a snapshot identical to the last persisted one never reaches the transport

All state lives on one event loop; the transport call is the only await.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, List, Optional, Set, Tuple

from ..core.exceptions import (
    AutosaveConfigError,
    AutosaveError,
    PreconditionError,
    VersionConflictError,
)
from ..core.logging import log_with_context
from ..core.types import AutosaveDiagnostics, DocumentIdentity, SaveAck, SaveStatus
from ..snapshot.canonical import (
    DEFAULT_KEYS_SAMPLE_SIZE,
    compute_fingerprint,
    payload_keys_sample,
    payload_size,
)
from ..transport.base import SaveTransport
from .scheduler import LoopScheduler, SaveScheduler


logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_MS = 1000

SnapshotAccessor = Callable[[], Any]
StatusObserver = Callable[[SaveStatus, Optional[str]], None]
AckCallback = Callable[[SaveAck], None]


class AutosaveEngine:
    """
    Debounced, coalescing, version-checked autosave for one editor session.

    Args:
        identity: Document the engine writes to
        get_snapshot: Pure accessor returning the current editable state
        transport: Save Transport used for every write
        debounce_ms: Trailing debounce window before an idle burst is flushed
        scheduler: Single-slot timer; defaults to the running event loop
        on_server_ack: Called with the SaveAck of every successful write
        keys_sample_size: Number of payload keys kept for diagnostics

    Example:
        >>> engine = AutosaveEngine(identity, lambda: editor.state, transport)
        >>> engine.set_expected_version(loaded.version)
        >>> engine.set_last_saved_from_snapshot()
        >>> editor.on_change(engine.mark_dirty)
    """

    def __init__(
        self,
        identity: DocumentIdentity,
        get_snapshot: SnapshotAccessor,
        transport: SaveTransport,
        debounce_ms: float = DEFAULT_DEBOUNCE_MS,
        scheduler: Optional[SaveScheduler] = None,
        on_server_ack: Optional[AckCallback] = None,
        keys_sample_size: int = DEFAULT_KEYS_SAMPLE_SIZE,
    ):
        if debounce_ms < 0:
            raise AutosaveConfigError(f"debounce_ms must be >= 0, got {debounce_ms}")

        self._identity = identity
        self._get_snapshot = get_snapshot
        self._transport = transport
        self.debounce_ms = debounce_ms
        self._scheduler = scheduler or LoopScheduler()
        self._on_server_ack = on_server_ack
        self._keys_sample_size = keys_sample_size
        self._observers: List[StatusObserver] = []

        self._status = SaveStatus.SAVED
        self._error_message: Optional[str] = None
        self._version: Optional[int] = None
        self._in_flight = False
        self._pending_fingerprint: Optional[str] = None
        self._last_saved_fingerprint: Optional[str] = None
        self._closing = False
        self._closed = False
        self._precondition_error: Optional[PreconditionError] = None

        self._tasks: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()

        self._last_payload_size = 0
        self._last_payload_keys: List[str] = []
        self._save_count = 0
        self._failure_count = 0
        self._last_success_at: Optional[datetime] = None
        self._last_error_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def status(self) -> SaveStatus:
        return self._status

    @property
    def error_message(self) -> Optional[str]:
        return self._error_message

    @property
    def expected_version(self) -> Optional[int]:
        return self._version

    @property
    def identity(self) -> DocumentIdentity:
        return self._identity

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def precondition_error(self) -> Optional[PreconditionError]:
        """The identity problem blocking saves, or None when identity is complete."""
        return self._precondition_error

    @property
    def has_unsaved_changes(self) -> bool:
        return self._status in (SaveStatus.DIRTY, SaveStatus.SAVING, SaveStatus.ERROR)

    def diagnostics(self) -> AutosaveDiagnostics:
        """Snapshot of the engine's internals for debugging save issues."""
        return AutosaveDiagnostics(
            last_payload_size=self._last_payload_size,
            last_payload_keys_sample=list(self._last_payload_keys),
            status=self._status,
            error_message=self._error_message,
            expected_version=self._version,
            in_flight=self._in_flight,
            pending_queued=self._pending_fingerprint is not None,
            last_saved_fingerprint=self._last_saved_fingerprint,
            save_count=self._save_count,
            failure_count=self._failure_count,
            last_success_at=self._last_success_at,
            last_error_at=self._last_error_at,
        )

    def subscribe(self, observer: StatusObserver) -> Callable[[], None]:
        """
        Register a status observer.

        The observer is called with ``(status, error_message)`` whenever
        either changes.

        Returns:
            Callable that removes the observer
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ------------------------------------------------------------------
    # Baseline setters
    # ------------------------------------------------------------------

    def set_identity(self, identity: DocumentIdentity) -> None:
        """Re-establish the document identity (e.g. after the company loads)."""
        self._identity = identity
        if identity.is_complete:
            self._precondition_error = None

    def set_expected_version(self, version: Optional[int]) -> None:
        """Seed the version sent with the next save, without writing."""
        self._version = version

    def set_last_saved_from_snapshot(self) -> None:
        """
        Treat the current snapshot as persisted, without writing.

        Used after a document is (re)loaded to establish the baseline the
        engine compares against.
        """
        _, fingerprint = self._capture()
        self._last_saved_fingerprint = fingerprint
        self._pending_fingerprint = None
        self._scheduler.cancel()
        self._set_status(SaveStatus.SAVED, None)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def mark_dirty(self) -> None:
        """
        Record that the editable state may have changed.

        Never writes directly: it either suppresses a no-op, queues a
        follow-up behind an in-flight save, or (re)starts the debounce timer.
        Exceptions raised by the snapshot accessor propagate to the caller.
        """
        if self._closed:
            raise AutosaveError("Autosave engine is closed")

        if not self._check_preconditions():
            return

        _, fingerprint = self._capture()

        # Before the baseline comparison so a revert made mid-flight is still written
        if self._in_flight:
            # Last value wins for the queue slot
            self._pending_fingerprint = fingerprint
            self._set_status(SaveStatus.SAVING, None)
            return

        if fingerprint == self._last_saved_fingerprint:
            self._scheduler.cancel()
            self._set_status(SaveStatus.SAVED, None)
            return

        self._set_status(SaveStatus.DIRTY, None)
        if not self._closing:
            self._scheduler.schedule(self.debounce_ms, self._on_timer)

    async def save_now(self, force: bool = False) -> None:
        """
        Write the current snapshot if it differs from the last persisted one.

        No-op while another save is in flight. Failures never propagate; they
        become ``error`` status with a message. A change queued during the
        write triggers exactly one follow-up write before this call returns.

        Args:
            force: Skip the fingerprint comparison (used by retry)
        """
        if not self._check_preconditions():
            return

        if self._in_flight:
            log_with_context(
                logger, logging.DEBUG, "Save already in flight, skipping",
                document_id=self._identity.document_id,
            )
            return

        self._scheduler.cancel()
        self._in_flight = True
        self._idle.clear()
        try:
            while True:
                await self._save_once(force)
                force = False

                pending = self._pending_fingerprint
                self._pending_fingerprint = None
                if pending is None or pending == self._last_saved_fingerprint:
                    break
                log_with_context(
                    logger, logging.DEBUG, "Running coalesced follow-up save",
                    document_id=self._identity.document_id, fingerprint=pending,
                )
        finally:
            self._in_flight = False
            self._idle.set()

    def retry(self) -> asyncio.Task:
        """
        Cancel the debounce timer and save immediately, bypassing the
        fingerprint comparison.

        Must be called with a running event loop.

        Returns:
            The task running the save
        """
        self._scheduler.cancel()
        return self._spawn(self.save_now(force=True))

    async def wait_idle(self) -> None:
        """Wait until no save task is scheduled or running."""
        while self._tasks or self._in_flight:
            if self._tasks:
                await asyncio.wait(list(self._tasks))
            else:
                await self._idle.wait()

    async def aclose(self) -> None:
        """
        Best-effort flush when the editor closes.

        Cancels the timer, writes any unsaved change once and waits for it.
        Edits arriving while closing are picked up by that write instead of
        starting a new timer.
        The engine rejects further mark_dirty() calls afterwards.
        """
        self._closing = True
        self._scheduler.cancel()
        await self.wait_idle()
        if self._status != SaveStatus.SAVED:
            await self.save_now()
        await self.wait_idle()
        self._scheduler.cancel()
        self._closed = True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _save_once(self, force: bool) -> None:
        try:
            snapshot, fingerprint = self._capture()
        except Exception as e:
            self._record_failure(e)
            return

        if not force and fingerprint == self._last_saved_fingerprint:
            self._set_status(SaveStatus.SAVED, None)
            return

        expected_version = self._version
        self._set_status(SaveStatus.SAVING, None)

        try:
            ack = await self._transport.save(self._identity, snapshot, expected_version)
        except Exception as e:
            self._record_failure(e, expected_version=expected_version)
            return

        previous = self._version
        self._version = ack.version
        self._last_saved_fingerprint = fingerprint
        self._save_count += 1
        self._last_success_at = datetime.now(timezone.utc)

        if previous is not None and ack.version < previous:
            log_with_context(
                logger, logging.WARNING,
                f"Server returned version {ack.version} lower than {previous}",
                document_id=self._identity.document_id,
            )

        log_with_context(
            logger, logging.INFO,
            f"Draft saved (v{expected_version} -> v{ack.version}, {self._last_payload_size} bytes)",
            document_id=self._identity.document_id, version=ack.version, fingerprint=fingerprint,
        )
        self._set_status(SaveStatus.SAVED, None)
        self._notify_ack(ack)

    def _capture(self) -> Tuple[Any, str]:
        snapshot = self._get_snapshot()
        fingerprint = compute_fingerprint(snapshot)
        self._last_payload_size = payload_size(snapshot)
        self._last_payload_keys = payload_keys_sample(snapshot, self._keys_sample_size)
        return snapshot, fingerprint

    def _check_preconditions(self) -> bool:
        if self._identity.is_complete:
            self._precondition_error = None
            return True

        missing = self._identity.missing_fields()
        error = PreconditionError(f"Cannot save: missing {' / '.join(missing)}", missing_fields=missing)
        self._precondition_error = error
        self._scheduler.cancel()
        log_with_context(logger, logging.WARNING, str(error), document_id=self._identity.document_id)
        self._set_status(SaveStatus.ERROR, str(error))
        return False

    def _record_failure(self, error: Exception, expected_version: Optional[int] = None) -> None:
        message = str(error) or "Failed to save"
        self._failure_count += 1
        self._last_error_at = datetime.now(timezone.utc)

        if isinstance(error, VersionConflictError):
            log_with_context(
                logger, logging.WARNING,
                f"Draft rejected as stale (expected v{expected_version}): {message}",
                document_id=self._identity.document_id, version=expected_version,
            )
        else:
            log_with_context(
                logger, logging.WARNING,
                f"Draft save failed ({type(error).__name__}): {message}",
                document_id=self._identity.document_id, version=expected_version,
            )
        self._set_status(SaveStatus.ERROR, message)

    def _on_timer(self) -> None:
        self._spawn(self.save_now())

    def _spawn(self, coro) -> asyncio.Task:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            raise AutosaveError("Autosave engine requires a running event loop")
        task = loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _set_status(self, status: SaveStatus, error_message: Optional[str]) -> None:
        if status == self._status and error_message == self._error_message:
            return
        previous = self._status
        self._status = status
        self._error_message = error_message
        log_with_context(
            logger, logging.DEBUG, f"Status {previous.value} -> {status.value}",
            document_id=self._identity.document_id, status=status.value,
        )
        for observer in list(self._observers):
            try:
                observer(status, error_message)
            except Exception:
                logger.exception("Autosave status observer failed")

    def _notify_ack(self, ack: SaveAck) -> None:
        if self._on_server_ack is None:
            return
        try:
            self._on_server_ack(ack)
        except Exception:
            logger.exception("Autosave ack callback failed")
