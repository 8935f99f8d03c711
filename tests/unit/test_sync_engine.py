# =============================================================================
# tests/unit/test_sync_engine.py
# Unit Tests for Draining the Action Queue
# =============================================================================

import threading

import pytest

from lore_core.offline.action_queue import ActionQueue
from lore_core.offline.network_monitor import NetworkMonitor
from lore_core.offline.sync_engine import DISPATCH_TABLE, SyncEngine, SyncReport
from lore_core.offline.models import ActionType


def build(store, remote, monitor=None, clock=None):
    queue = ActionQueue(store, clock=clock) if clock else ActionQueue(store)
    engine = SyncEngine(store, queue=queue, remote=remote, monitor=monitor)
    return queue, engine


class TestDrainOrder:
    """Sequential delivery in write order"""

    def test_actions_dispatched_in_write_order(self, any_store, fake_remote):
        queue, engine = build(any_store, fake_remote)
        queue.enqueue("submit_fact", {"title": "Old Mill"})
        queue.enqueue("vote", {"fact_id": "f1", "is_upvote": True})
        queue.enqueue("comment", {"fact_id": "f1", "content": "Lovely"})
        queue.enqueue("save_fact", {"fact_id": "f1"})

        report = engine.sync_now()

        assert [call[0] for call in fake_remote.calls] == [
            "create_fact", "upsert_vote", "create_comment", "create_saved_fact",
        ]
        assert report.attempted == 4
        assert report.success
        assert any_store.count("pending_actions") == 0
        assert queue.pending == []

    def test_dispatch_table_covers_every_type(self):
        assert set(DISPATCH_TABLE) == set(ActionType)

    def test_payload_and_key_passed_through(self, memory_store, fake_remote):
        queue, engine = build(memory_store, fake_remote)
        action = queue.enqueue("comment", {"fact_id": "f9", "content": "hi"})

        engine.sync_now()

        assert fake_remote.calls == [
            ("create_comment", {"fact_id": "f9", "content": "hi"}, action.idempotency_key),
        ]

    def test_empty_queue(self, memory_store, fake_remote):
        _, engine = build(memory_store, fake_remote)
        report = engine.sync_now()
        assert report.attempted == 0
        assert report.success


class TestPartialFailure:
    """Failures are isolated per action"""

    def test_failed_subset_retained(self, any_store, remote_cls):
        remote = remote_cls(fail_when=lambda method, data: data.get("n") in (1, 3))
        queue, engine = build(any_store, remote)
        actions = [queue.enqueue("comment", {"n": i}) for i in range(5)]

        report = engine.sync_now()

        failed_ids = [actions[1].id, actions[3].id]
        assert report.failed == failed_ids
        assert report.synced == [actions[0].id, actions[2].id, actions[4].id]
        assert set(report.errors) == set(failed_ids)
        assert [r["id"] for r in any_store.get_all("pending_actions")] == failed_ids
        assert [a.id for a in queue.pending] == failed_ids
        assert not report.success

    def test_retry_drains_remaining(self, memory_store, remote_cls):
        broken = {"on": True}
        remote = remote_cls(fail_when=lambda method, data: broken["on"] and data["n"] == 0)
        queue, engine = build(memory_store, remote)
        queue.enqueue("vote", {"n": 0})
        queue.enqueue("vote", {"n": 1})

        engine.sync_now()
        broken["on"] = False
        second = engine.sync_now()

        assert second.attempted == 1
        assert second.success
        assert memory_store.count("pending_actions") == 0

    def test_false_result_counts_as_failure(self, memory_store, remote_cls):
        class RejectingRemote(remote_cls):
            def upsert_vote(self, data, idempotency_key):
                super().upsert_vote(data, idempotency_key)
                return False

        queue, engine = build(memory_store, RejectingRemote())
        queue.enqueue("vote", {"fact_id": "f1"})

        report = engine.sync_now()

        assert len(report.failed) == 1
        assert memory_store.count("pending_actions") == 1

    def test_unknown_stored_type_does_not_block(self, memory_store, fake_remote):
        memory_store.put("pending_actions", {"type": "teleport", "data": {}, "timestamp": 1})
        queue, engine = build(memory_store, fake_remote)
        queue.enqueue("vote", {"fact_id": "f1"})

        report = engine.sync_now()

        assert len(report.synced) == 1
        assert len(report.failed) == 1
        assert memory_store.count("pending_actions") == 1

    def test_unreadable_row_does_not_block(self, sqlite_store, damage_row, fake_remote):
        queue, engine = build(sqlite_store, fake_remote)
        for i in range(3):
            queue.enqueue("vote", {"fact_id": f"f{i}"})
        damage_row("pending_actions", 2)

        report = engine.sync_now()

        assert report.skipped is None
        assert report.synced == [1, 3]
        assert [c[1]["fact_id"] for c in fake_remote.calls] == ["f0", "f2"]

    def test_failure_keeps_same_key_for_redelivery(self, memory_store, remote_cls):
        broken = {"on": True}
        remote = remote_cls(fail_when=lambda method, data: broken["on"])
        queue, engine = build(memory_store, remote)
        queue.enqueue("submit_fact", {"title": "Quarry"})

        engine.sync_now()
        broken["on"] = False
        engine.sync_now()

        keys = [call[2] for call in remote.calls]
        assert len(keys) == 2
        assert keys[0] == keys[1]


class TestSkippedDrains:
    """Conditions under which nothing is attempted"""

    def test_offline_skips(self, memory_store, fake_remote):
        monitor = NetworkMonitor(probe=lambda: False)
        queue, engine = build(memory_store, fake_remote, monitor=monitor)
        queue.enqueue("vote", {})

        report = engine.sync_now()

        assert report.skipped == "offline"
        assert fake_remote.calls == []
        assert memory_store.count("pending_actions") == 1

    def test_no_remote_retains_actions(self, memory_store):
        queue, engine = build(memory_store, None)
        queue.enqueue("vote", {})

        report = engine.sync_now()

        assert report.skipped == "no_remote"
        assert not report.success
        assert memory_store.count("pending_actions") == 1

    def test_concurrent_drain_is_skipped(self, memory_store, remote_cls):
        nested = []
        holder = {}

        def reenter(method, data):
            nested.append(holder["engine"].sync_now())
            return False

        queue, engine = build(memory_store, remote_cls(fail_when=reenter))
        holder["engine"] = engine
        queue.enqueue("vote", {})

        report = engine.sync_now()

        assert report.synced == [1]
        assert nested[0].skipped == "in_progress"

    def test_lock_released_after_drain(self, memory_store, fake_remote):
        queue, engine = build(memory_store, fake_remote)
        queue.enqueue("vote", {})
        engine.sync_now()

        assert engine.sync_now().skipped is None


class TestTriggers:
    """Reconnect and background-sync triggers"""

    def test_reconnect_triggers_drain(self, memory_store, fake_remote):
        probe_value = {"online": False}
        monitor = NetworkMonitor(probe=lambda: probe_value["online"])
        queue, engine = build(memory_store, fake_remote, monitor=monitor)
        queue.enqueue("save_fact", {"fact_id": "f1"})

        probe_value["online"] = True
        monitor.check()

        assert [call[0] for call in fake_remote.calls] == ["create_saved_fact"]
        assert memory_store.count("pending_actions") == 0

    def test_register_wakes_worker(self, memory_store, remote_cls):
        delivered = threading.Event()

        class SignallingRemote(remote_cls):
            def create_comment(self, data, idempotency_key):
                result = super().create_comment(data, idempotency_key)
                delivered.set()
                return result

        queue = ActionQueue(memory_store)
        engine = SyncEngine(memory_store, queue=queue, remote=SignallingRemote())
        queue.attach_scheduler(engine)
        engine.start()
        try:
            queue.enqueue("comment", {"content": "later"})
            assert delivered.wait(timeout=5)
        finally:
            engine.stop()

    def test_callbacks_see_sync_state(self, memory_store, fake_remote):
        queue, engine = build(memory_store, fake_remote)
        seen = []
        engine.register_callback(lambda state: seen.append(state.is_syncing))
        queue.enqueue("vote", {})

        engine.sync_now()

        assert seen == [True, False]
        assert engine.state.total_synced == 1


def test_status_display(memory_store, fake_remote):
    queue, engine = build(memory_store, fake_remote)
    queue.enqueue("vote", {})

    display = engine.get_status_display()

    assert display["pending_count"] == 1
    assert display["is_syncing"] is False
    assert display["last_sync"] is None


@pytest.mark.parametrize("skipped, failed, expected", [
    (None, [], True),
    (None, [3], False),
    ("offline", [], False),
])
def test_report_success(skipped, failed, expected):
    assert SyncReport(skipped=skipped, failed=failed).success is expected
