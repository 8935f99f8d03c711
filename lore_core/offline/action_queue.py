# =============================================================================
# lore_core/offline/action_queue.py
# Durable Queue of User Intents Awaiting Delivery
# =============================================================================
"""
ActionQueue - persists user intents (submit fact, vote, comment, save) so they
survive restarts and can be delivered later by the SyncEngine.

The queue never delivers anything itself; enqueue latency is independent of
network latency. The in-memory mirror exists for immediate UI feedback and
is always rebuildable from the store.
"""

from __future__ import annotations
import dataclasses
import threading
from typing import Any, Callable, List, Optional, Protocol
import logging

from lore_core.offline.models import (
    PENDING_ACTIONS,
    ActionType,
    PendingAction,
    now_ms,
)

logger = logging.getLogger(__name__)

BACKGROUND_SYNC_TAG = "background-sync"


class BackgroundSyncScheduler(Protocol):
    """Best-effort hook asking the platform to wake a sync attempt."""

    def register(self, tag: str) -> None:
        ...


class ActionQueue:
    """
    Appends PendingActions to the durable store and mirrors them in memory.

    Usage:
        queue = ActionQueue(store)
        action = queue.enqueue("vote", {"fact_id": "f1", "is_upvote": True})
        queue.pending  # [action]
    """

    def __init__(
        self,
        store,
        scheduler: Optional[BackgroundSyncScheduler] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            store: LocalStore or MemoryStore (already opened)
            scheduler: Optional background sync scheduler
            clock: Millisecond clock used to stamp actions
        """
        self._store = store
        self._scheduler = scheduler
        self._clock = clock
        self._mirror: List[PendingAction] = []
        self._lock = threading.Lock()
        self.reload()

    def attach_scheduler(self, scheduler: Optional[BackgroundSyncScheduler]) -> None:
        """Set (or remove) the background sync scheduler."""
        self._scheduler = scheduler

    @property
    def pending(self) -> List[PendingAction]:
        """Snapshot of actions not yet confirmed by the remote service."""
        with self._lock:
            return list(self._mirror)

    def __len__(self) -> int:
        with self._lock:
            return len(self._mirror)

    def enqueue(self, action_type: Any, data: Any) -> PendingAction:
        """
        Durably queue a user intent.

        Args:
            action_type: ActionType or its string value
            data: Opaque payload for the remote call

        Returns:
            The persisted PendingAction (with its store-assigned id)

        Raises:
            InvalidActionTypeError: unknown action type (nothing is written)
            StoreWriteError: the store rejected the write
        """
        action = PendingAction(
            type=ActionType.parse(action_type),
            data=data,
            timestamp=self._clock(),
        )

        action_id = self._store.put(PENDING_ACTIONS, action.to_record())
        action = dataclasses.replace(action, id=action_id)

        # Only mirror what the store accepted
        with self._lock:
            self._mirror.append(action)

        logger.debug(f"Queued {action.type.value} action {action.id}")
        self._request_background_sync()
        return action

    def _request_background_sync(self) -> None:
        if self._scheduler is None:
            return
        try:
            self._scheduler.register(BACKGROUND_SYNC_TAG)
        except Exception as e:
            logger.warning(f"Background sync registration failed: {e}")

    def discard(self, action_id: int) -> None:
        """Drop an action from the mirror after it was removed from the store."""
        with self._lock:
            self._mirror = [a for a in self._mirror if a.id != action_id]

    def reload(self) -> List[PendingAction]:
        """Rebuild the mirror from the store."""
        actions = []
        for record in self._store.get_all(PENDING_ACTIONS):
            try:
                actions.append(PendingAction.from_record(record))
            except Exception as e:
                logger.warning(f"Skipping unreadable pending action {record.get('id')}: {e}")
        with self._lock:
            self._mirror = actions
        return list(actions)
