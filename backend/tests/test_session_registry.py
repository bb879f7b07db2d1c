import time

from app.session.registry import SessionRegistry


class _StubController:
    def snapshot(self):
        return "snapshot"


def test_session_registry_register_touch_inactive_cleanup():
    registry = SessionRegistry()
    controller = _StubController()

    registry.register("s1", session_controller=controller)
    entry = registry.get("s1")
    assert entry is not None
    assert entry.connected is True
    assert registry.get_controller("s1") is controller
    assert registry.snapshot("s1") == "snapshot"
    assert registry.active_count() == 1

    before_touch = entry.updated_at
    time.sleep(0.01)
    registry.touch("s1")
    assert registry.get("s1").updated_at >= before_touch

    registry.mark_inactive("s1", reason="client_disconnect")
    entry = registry.get("s1")
    assert entry.connected is False
    assert entry.close_reason == "client_disconnect"
    assert registry.active_count() == 0

    # ttl=0 clamps internally to >=30s; force old timestamp for deterministic cleanup
    registry._sessions["s1"].updated_at = time.time() - 3600  # test-only direct mutation
    removed = registry.cleanup_inactive(ttl_sec=0)
    assert removed == 1
    assert registry.get("s1") is None


def test_cleanup_keeps_connected_sessions():
    registry = SessionRegistry()
    registry.register("live", session_controller=_StubController())
    registry._sessions["live"].updated_at = time.time() - 3600

    assert registry.cleanup_inactive(ttl_sec=60) == 0
    assert registry.get_controller("live") is not None
    assert registry.get_controller("missing") is None
    assert registry.snapshot("missing") is None
