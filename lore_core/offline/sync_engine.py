# =============================================================================
# lore_core/offline/sync_engine.py
# Synchronization Engine for Pending Actions
# =============================================================================
"""
SyncEngine - drains the pending action queue against the remote service.

Features:
- Sequential drain in durable write order
- Delete-on-confirmed-success (at-least-once delivery)
- Per-action failure isolation: one poisoned action never blocks the rest
- Triggered by reconnects, manual sync_now(), and background-sync hints
- Sync state tracking and callbacks
"""

from __future__ import annotations
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
import logging

from lore_core.errors import DispatchFailedError
from lore_core.offline.models import PENDING_ACTIONS, ActionType, PendingAction

logger = logging.getLogger(__name__)


# Action type -> RemoteService method
DISPATCH_TABLE = {
    ActionType.SUBMIT_FACT: "create_fact",
    ActionType.VOTE: "upsert_vote",
    ActionType.COMMENT: "create_comment",
    ActionType.SAVE_FACT: "create_saved_fact",
}


@dataclass
class SyncReport:
    """Outcome of one drain."""
    attempted: int = 0
    synced: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    errors: Dict[int, str] = field(default_factory=dict)
    skipped: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.skipped is None and not self.failed


@dataclass
class SyncState:
    """Current sync state."""
    is_syncing: bool = False
    last_sync: Optional[datetime] = None
    last_sync_success: Optional[datetime] = None
    failed_count: int = 0
    total_synced: int = 0


class SyncEngine:
    """
    Delivers queued actions to the remote service.

    Usage:
        engine = SyncEngine(store, queue, remote, monitor)
        engine.sync_now()   # manual "retry now"
        engine.start()      # optional worker woken by background-sync hints
    """

    def __init__(
        self,
        store,
        queue=None,
        remote=None,
        monitor=None,
    ):
        """
        Args:
            store: LocalStore or MemoryStore holding pending_actions
            queue: ActionQueue whose mirror is updated after each delete
            remote: RemoteService; without one, drains are skipped
            monitor: NetworkMonitor; reconnects trigger a drain
        """
        self._store = store
        self._queue = queue
        self._remote = remote
        self._monitor = monitor
        self._state = SyncState()
        self._drain_lock = threading.Lock()
        self._callbacks: List[Callable[[SyncState], None]] = []

        self._worker: Optional[threading.Thread] = None
        self._wakeup = threading.Event()
        self._stop = threading.Event()

        if monitor is not None:
            monitor.on_online(self._on_connection_restored)

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def pending_count(self) -> int:
        """Count of actions still in the store."""
        return self._store.count(PENDING_ACTIONS)

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def _on_connection_restored(self) -> None:
        logger.info("Connection restored, triggering sync")
        self.sync_now()

    def register(self, tag: str) -> None:
        """Background-sync hint from the ActionQueue; wakes the worker."""
        logger.debug(f"Background sync requested ({tag})")
        self._wakeup.set()

    def start(self) -> None:
        """Start the worker that drains on background-sync hints."""
        if self._worker is not None and self._worker.is_alive():
            return

        self._stop.clear()
        self._worker = threading.Thread(
            target=self._worker_loop,
            daemon=True,
            name="SyncEngine"
        )
        self._worker.start()
        logger.info("Sync engine started")

    def stop(self) -> None:
        """Stop the background worker."""
        self._stop.set()
        self._wakeup.set()
        if self._worker:
            self._worker.join(timeout=10)
            self._worker = None
        logger.info("Sync engine stopped")

    def _worker_loop(self) -> None:
        while not self._stop.is_set():
            self._wakeup.wait()
            self._wakeup.clear()
            if self._stop.is_set():
                break
            try:
                self.sync_now()
            except Exception as e:
                logger.error(f"Sync error: {e}")

    # =========================================================================
    # DRAIN
    # =========================================================================

    def sync_now(self) -> SyncReport:
        """
        Drain every pending action, one at a time, in write order.

        Returns:
            SyncReport; skipped is set when offline, when no remote service
            is configured, or when another drain is already running
        """
        if self._monitor is not None and not self._monitor.is_online:
            logger.debug("Cannot sync: offline")
            return SyncReport(skipped="offline")

        if self._remote is None:
            logger.debug("Cannot sync: no remote service configured")
            return SyncReport(skipped="no_remote")

        if not self._drain_lock.acquire(blocking=False):
            return SyncReport(skipped="in_progress")

        try:
            return self._drain()
        finally:
            self._drain_lock.release()

    def _drain(self) -> SyncReport:
        report = SyncReport()
        self._state.is_syncing = True
        self._state.last_sync = datetime.now()
        self._notify_callbacks()

        try:
            try:
                # The store, not the mirror: includes actions from earlier sessions
                records = self._store.get_all(PENDING_ACTIONS)
            except Exception as e:
                logger.error(f"Failed to read pending actions: {e}")
                report.skipped = "store_error"
                return report

            if records:
                logger.info(f"Syncing {len(records)} pending actions")

            for record in records:
                report.attempted += 1
                action_id = record.get("id")
                try:
                    action = PendingAction.from_record(record)
                    self._dispatch(action)
                except Exception as e:
                    logger.error(
                        f"Failed to sync action {action_id} "
                        f"(type={record.get('type')}): {e}"
                    )
                    report.failed.append(action_id)
                    report.errors[action_id] = str(e)
                    continue

                try:
                    self._store.delete(PENDING_ACTIONS, action.id)
                except Exception as e:
                    # Delivered but still stored: it will be sent again
                    logger.error(f"Synced action {action.id} could not be removed: {e}")
                    report.failed.append(action.id)
                    report.errors[action.id] = f"delete failed: {e}"
                    continue

                if self._queue is not None:
                    self._queue.discard(action.id)
                report.synced.append(action.id)

            self._state.total_synced += len(report.synced)
            self._state.failed_count = len(report.failed)
            if not report.failed:
                self._state.last_sync_success = datetime.now()

            if records:
                logger.info(
                    f"Sync complete: {len(report.synced)} success, {len(report.failed)} failed"
                )
            return report

        finally:
            self._state.is_syncing = False
            self._notify_callbacks()

    def _dispatch(self, action: PendingAction) -> None:
        """
        Deliver one action.

        Raises:
            DispatchFailedError: the remote call raised or returned False
        """
        method = getattr(self._remote, DISPATCH_TABLE[action.type])
        try:
            result = method(action.data, action.idempotency_key)
        except Exception as e:
            raise DispatchFailedError(
                f"Remote call failed: {e}",
                action_id=action.id,
                action_type=action.type.value,
            ) from e
        if result is False:
            raise DispatchFailedError(
                "Remote service rejected the action",
                action_id=action.id,
                action_type=action.type.value,
            )

    # =========================================================================
    # CALLBACKS / STATUS
    # =========================================================================

    def register_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Register a callback for sync state changes."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[SyncState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in sync callback: {e}")

    def get_status_display(self) -> Dict[str, Any]:
        """Get sync status for UI display."""
        try:
            pending = self.pending_count
        except Exception as e:
            logger.debug(f"Pending count unavailable: {e}")
            pending = None
        return {
            "is_syncing": self._state.is_syncing,
            "last_sync": self._state.last_sync.isoformat() if self._state.last_sync else None,
            "last_success": self._state.last_sync_success.isoformat() if self._state.last_sync_success else None,
            "pending_count": pending,
            "failed_count": self._state.failed_count,
            "total_synced": self._state.total_synced,
        }
