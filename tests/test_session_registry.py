"""Session registry: one live channel per user, last writer wins."""
from app.services.session_registry import SessionRegistry


def test_register_and_resolve():
    registry = SessionRegistry()
    registry.register(1, "chan-a")
    assert registry.resolve(1) == "chan-a"
    assert registry.resolve(2) is None


def test_later_registration_supersedes():
    registry = SessionRegistry()
    registry.register(1, "chan-a")
    registry.register(1, "chan-b")
    assert registry.resolve(1) == "chan-b"
    assert len(registry) == 1


def test_closing_superseded_channel_keeps_newer_binding():
    registry = SessionRegistry()
    registry.register(1, "chan-a")
    registry.register(1, "chan-b")
    registry.remove("chan-a")
    assert registry.resolve(1) == "chan-b"


def test_remove_only_touches_matching_channel():
    registry = SessionRegistry()
    registry.register(1, "chan-a")
    registry.register(2, "chan-b")
    registry.remove("chan-a")
    assert registry.resolve(1) is None
    assert registry.resolve(2) == "chan-b"


def test_remove_unknown_channel_is_noop():
    registry = SessionRegistry()
    registry.register(1, "chan-a")
    registry.remove("nope")
    assert registry.resolve(1) == "chan-a"
