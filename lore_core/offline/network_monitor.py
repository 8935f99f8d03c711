# =============================================================================
# lore_core/offline/network_monitor.py
# Connection Status Detection and Management
# =============================================================================
"""
NetworkMonitor - Observes connectivity and signals when the app comes back online.

Features:
- Two-state machine (ONLINE / OFFLINE)
- Initial state read from the connectivity probe at construction
- Optimistic ONLINE when no reliable signal is available
- Edge-triggered "became online" callbacks
- Optional background polling thread
"""

from __future__ import annotations
import socket
import threading
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Optional, Sequence, Tuple
import logging

logger = logging.getLogger(__name__)


class ConnectionStatus(Enum):
    """Connection status states."""
    ONLINE = "online"
    OFFLINE = "offline"


@dataclass
class ConnectionState:
    """Current connection state with metadata."""
    status: ConnectionStatus = ConnectionStatus.ONLINE
    reliable: bool = False
    last_check: Optional[datetime] = None
    last_online: Optional[datetime] = None
    last_change: Optional[datetime] = None
    consecutive_failures: int = 0


class SocketProbe:
    """
    Connectivity probe that attempts TCP connections to well-known hosts.

    Returns True as soon as one host accepts a connection.
    """

    DEFAULT_HOSTS: Sequence[Tuple[str, int]] = (
        ("8.8.8.8", 53),         # Google DNS
        ("1.1.1.1", 53),         # Cloudflare DNS
        ("208.67.222.222", 53),  # OpenDNS
    )

    def __init__(
        self,
        hosts: Optional[Iterable[Tuple[str, int]]] = None,
        timeout: float = 5.0,
    ):
        self.hosts = list(hosts) if hosts else list(self.DEFAULT_HOSTS)
        self.timeout = timeout

    def __call__(self) -> bool:
        for host, port in self.hosts:
            try:
                with socket.create_connection((host, port), timeout=self.timeout):
                    return True
            except OSError:
                continue
        return False


class NetworkMonitor:
    """
    Online/offline signal for the offline core.

    Usage:
        monitor = NetworkMonitor(probe=SocketProbe())
        monitor.on_online(engine.sync_now)
        monitor.start_monitoring()

        # or feed platform events directly:
        monitor.set_online(False)
    """

    # Configuration
    CHECK_INTERVAL_ONLINE = 30      # Seconds between checks when online
    CHECK_INTERVAL_OFFLINE = 10     # Seconds between checks when offline

    def __init__(
        self,
        probe: Optional[Callable[[], Optional[bool]]] = None,
        check_interval_online: Optional[float] = None,
        check_interval_offline: Optional[float] = None,
    ):
        """
        Initialize the monitor and read the initial state.

        Args:
            probe: Callable returning True/False for online/offline; None,
                a raised exception or a None result mean "no reliable signal"
            check_interval_online: Polling interval while online
            check_interval_offline: Polling interval while offline
        """
        self._probe = probe
        self._state = ConnectionState()
        self._state_lock = threading.Lock()
        self._callbacks: List[Callable[[ConnectionState], None]] = []
        self._online_callbacks: List[Callable[[], None]] = []
        self._monitor_thread: Optional[threading.Thread] = None
        self._stop_monitoring = threading.Event()

        self.check_interval_online = check_interval_online or self.CHECK_INTERVAL_ONLINE
        self.check_interval_offline = check_interval_offline or self.CHECK_INTERVAL_OFFLINE

        initial = self._read_probe()
        now = datetime.now()
        self._state.last_check = now
        if initial is None:
            logger.debug("No reliable connectivity signal, assuming online")
        else:
            self._state.reliable = True
            self._state.status = ConnectionStatus.ONLINE if initial else ConnectionStatus.OFFLINE
        if self._state.status == ConnectionStatus.ONLINE:
            self._state.last_online = now

    @property
    def state(self) -> ConnectionState:
        """Get current connection state."""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        """Get current status."""
        return self._state.status

    @property
    def is_online(self) -> bool:
        return self._state.status == ConnectionStatus.ONLINE

    @property
    def is_offline(self) -> bool:
        return self._state.status == ConnectionStatus.OFFLINE

    def _read_probe(self) -> Optional[bool]:
        """Read the probe; None when there is no reliable answer."""
        if self._probe is None:
            return None
        try:
            result = self._probe()
        except Exception as e:
            logger.debug(f"Connectivity probe failed: {e}")
            return None
        if result is None:
            return None
        return bool(result)

    def check(self) -> ConnectionState:
        """
        Poll the probe and update state.

        An unreliable reading leaves the current status unchanged.
        """
        reading = self._read_probe()
        self._state.last_check = datetime.now()
        if reading is None:
            return self._state
        self._state.reliable = True
        self._transition(ConnectionStatus.ONLINE if reading else ConnectionStatus.OFFLINE)
        return self._state

    def set_online(self, online: bool) -> None:
        """Apply a platform online/offline event."""
        self._state.reliable = True
        self._transition(ConnectionStatus.ONLINE if online else ConnectionStatus.OFFLINE)

    def _transition(self, new_status: ConnectionStatus) -> None:
        with self._state_lock:
            old_status = self._state.status
            now = datetime.now()
            if new_status == ConnectionStatus.ONLINE:
                self._state.last_online = now
                self._state.consecutive_failures = 0
            else:
                self._state.consecutive_failures += 1
            if old_status == new_status:
                return
            self._state.status = new_status
            self._state.last_change = now

        logger.info(f"Connection status changed: {old_status.value} -> {new_status.value}")
        self._notify_callbacks()
        if new_status == ConnectionStatus.ONLINE:
            self._notify_online()

    # =========================================================================
    # BACKGROUND MONITORING
    # =========================================================================

    def start_monitoring(self) -> None:
        """Start background connection monitoring (no-op without a probe)."""
        if self._probe is None:
            logger.debug("No connectivity probe, background monitoring disabled")
            return
        if self._monitor_thread is not None and self._monitor_thread.is_alive():
            return

        self._stop_monitoring.clear()
        self._monitor_thread = threading.Thread(
            target=self._monitoring_loop,
            daemon=True,
            name="NetworkMonitor"
        )
        self._monitor_thread.start()
        logger.debug("Connection monitoring started")

    def stop_monitoring(self) -> None:
        """Stop background connection monitoring."""
        self._stop_monitoring.set()
        if self._monitor_thread:
            self._monitor_thread.join(timeout=5)
            self._monitor_thread = None
        logger.debug("Connection monitoring stopped")

    def _monitoring_loop(self) -> None:
        """Background monitoring loop."""
        while not self._stop_monitoring.is_set():
            interval = (
                self.check_interval_online
                if self.is_online
                else self.check_interval_offline
            )

            if self._stop_monitoring.wait(timeout=interval):
                break

            try:
                self.check()
            except Exception as e:
                logger.error(f"Error in connection check: {e}")

    # =========================================================================
    # CALLBACKS
    # =========================================================================

    def register_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Register a callback for every connection status change."""
        if callback not in self._callbacks:
            self._callbacks.append(callback)

    def unregister_callback(self, callback: Callable[[ConnectionState], None]) -> None:
        """Remove a registered callback."""
        if callback in self._callbacks:
            self._callbacks.remove(callback)

    def on_online(self, callback: Callable[[], None]) -> None:
        """Register a callback fired once per OFFLINE -> ONLINE transition."""
        if callback not in self._online_callbacks:
            self._online_callbacks.append(callback)

    def _notify_callbacks(self) -> None:
        for callback in list(self._callbacks):
            try:
                callback(self._state)
            except Exception as e:
                logger.error(f"Error in connection callback: {e}")

    def _notify_online(self) -> None:
        for callback in list(self._online_callbacks):
            try:
                callback()
            except Exception as e:
                logger.error(f"Error in online callback: {e}")

    def get_status_display(self) -> dict:
        """Get status information for UI display."""
        return {
            "status": self._state.status.value,
            "is_online": self.is_online,
            "reliable": self._state.reliable,
            "last_check": self._state.last_check.isoformat() if self._state.last_check else None,
            "last_online": self._state.last_online.isoformat() if self._state.last_online else None,
            "failures": self._state.consecutive_failures,
        }
