from __future__ import annotations

from scan_guard import DuplicateGuard, LastAccepted, is_duplicate


def test_is_duplicate_without_history() -> None:
    assert is_duplicate("XYZ", 0, None) is False


def test_is_duplicate_is_pure() -> None:
    last = LastAccepted("XYZ", 0)

    assert is_duplicate("XYZ", 1000, last) is True
    assert is_duplicate("XYZ", 1999, last) is True
    assert is_duplicate("XYZ", 2000, last) is False
    assert is_duplicate("ABC", 1000, last) is False
    assert last == LastAccepted("XYZ", 0)


def test_guard_window_example() -> None:
    guard = DuplicateGuard(window_ms=2000)

    assert guard.accept("XYZ", 0) is True
    assert guard.accept("XYZ", 1000) is False
    assert guard.accept("XYZ", 2100) is True


def test_rejection_does_not_extend_window() -> None:
    guard = DuplicateGuard(window_ms=2000)
    guard.accept("XYZ", 0)
    guard.accept("XYZ", 1500)

    assert guard.last == LastAccepted("XYZ", 0)
    assert guard.accept("XYZ", 2000) is True


def test_different_payload_replaces_memory() -> None:
    guard = DuplicateGuard()
    guard.accept("A", 0)

    assert guard.accept("B", 10) is True
    assert guard.accept("A", 20) is True
    assert guard.accept("A", 30) is False


def test_reset_forgets_last_payload() -> None:
    guard = DuplicateGuard()
    guard.accept("A", 0)
    guard.reset()

    assert guard.accept("A", 1) is True
