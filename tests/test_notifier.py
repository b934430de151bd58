"""Tests for OrderNotifier."""

from __future__ import annotations

import threading
from typing import Optional

import pytest

from conftest import FakeClock, FakeScheduler
from models import Popup, PopupKind
from notifier import OrderNotifier, order_identity


class FakeSound:
    def __init__(self) -> None:
        self.plays = 0

    def play_notification(self) -> None:
        self.plays += 1


@pytest.fixture
def zero_clock() -> FakeClock:
    return FakeClock(start_ms=0)


@pytest.fixture
def zero_scheduler(zero_clock: FakeClock) -> FakeScheduler:
    return FakeScheduler(zero_clock)


@pytest.fixture
def popups() -> list[Optional[Popup]]:
    return []


@pytest.fixture
def sound() -> FakeSound:
    return FakeSound()


@pytest.fixture
def notifier(zero_clock, zero_scheduler, popups, sound) -> OrderNotifier:  # noqa: ANN001
    return OrderNotifier(scheduler=zero_scheduler, clock=zero_clock, sound=sound, on_popup=popups.append)


# ---------------------------------------------------------------
# Gate
# ---------------------------------------------------------------

def test_identity_and_cooldown_example(notifier, zero_clock) -> None:  # noqa: ANN001
    assert notifier.notify_order({"id": "order-1"}) is True

    zero_clock.now = 500
    assert notifier.notify_order({"id": "order-1"}) is False

    zero_clock.now = 3100
    assert notifier.notify_order({"id": "order-2"}) is True


def test_cooldown_blocks_other_orders(notifier, zero_clock) -> None:  # noqa: ANN001
    notifier.notify_order({"id": "order-1"})
    zero_clock.now = 2999

    assert notifier.notify_order({"id": "order-2"}) is False


def test_same_identity_blocked_after_cooldown(notifier, zero_clock) -> None:  # noqa: ANN001
    notifier.notify_order({"id": "order-1"})
    zero_clock.now = 60_000

    assert notifier.notify_order({"id": "order-1"}) is False


def test_orders_without_identity_only_respect_cooldown(notifier, zero_clock) -> None:  # noqa: ANN001
    assert notifier.notify_order({"item_name": "New Order"}) is True
    zero_clock.now = 3000
    assert notifier.notify_order({"item_name": "New Order"}) is True


def test_identity_prefers_id_then_order_id_then_token_no() -> None:
    assert order_identity({"id": 7, "order_id": 8}) == 7
    assert order_identity({"order_id": 8, "token_no": 9}) == 8
    assert order_identity({"token_no": 9}) == 9
    assert order_identity({"order_token": "1234"}) is None


def test_disabled_notifier_drops_everything(notifier, sound) -> None:  # noqa: ANN001
    assert notifier.toggle() is False
    assert notifier.notify_order({"id": "order-1"}) is False
    assert sound.plays == 0

    notifier.set_enabled(True)
    assert notifier.notify_order({"id": "order-1"}) is True


# ---------------------------------------------------------------
# Local-order suppression
# ---------------------------------------------------------------

def test_local_order_is_suppressed_once(notifier, zero_clock) -> None:  # noqa: ANN001
    notifier.suppress_order("order-9")

    assert notifier.notify_order({"id": "order-9"}) is False
    zero_clock.now = 100
    assert notifier.notify_order({"id": "order-9"}) is True


def test_suppression_matches_order_token(notifier) -> None:  # noqa: ANN001
    notifier.suppress_order("4321")
    assert notifier.notify_order({"id": "order-5", "order_token": "4321"}) is False


def test_suppression_expires(notifier, zero_clock) -> None:  # noqa: ANN001
    notifier.suppress_order("order-9")
    zero_clock.now = 61_000

    assert notifier.notify_order({"id": "order-9"}) is True


def test_suppressed_request_does_not_start_cooldown(notifier, zero_clock) -> None:  # noqa: ANN001
    notifier.suppress_order("order-9")
    notifier.notify_order({"id": "order-9"})
    zero_clock.now = 10

    assert notifier.notify_order({"id": "order-10"}) is True


# ---------------------------------------------------------------
# Popups
# ---------------------------------------------------------------

def test_new_order_popup_plays_sound_and_self_dismisses(notifier, zero_scheduler, popups, sound) -> None:  # noqa: ANN001
    notifier.notify_order({"id": "order-1", "item_name": "Veg Biryani", "order_token": "5678"})

    assert sound.plays == 1
    assert len(popups) == 1
    assert popups[0].kind == PopupKind.NEW_ORDER
    assert popups[0].message == "Veg Biryani (#5678)"

    zero_scheduler.advance(4999)
    assert notifier.popup is not None
    zero_scheduler.advance(1)
    assert notifier.popup is None
    assert popups[-1] is None


def test_newer_popup_supersedes_older_timer(notifier, zero_clock, zero_scheduler, popups) -> None:  # noqa: ANN001
    notifier.notify_order({"id": "order-1"})
    zero_scheduler.advance(3000)
    notifier.notify_order({"id": "order-2"})

    zero_scheduler.advance(2500)
    assert notifier.popup is not None
    assert notifier.popup.order["id"] == "order-2"

    zero_scheduler.advance(2500)
    assert notifier.popup is None
    assert popups.count(None) == 1


def test_cancellation_fires_without_popup_or_sound(notifier, popups, sound) -> None:  # noqa: ANN001
    assert notifier.notify_order({"id": "order-1", "order_type": "cancelled"}) is True
    assert popups == []
    assert sound.plays == 0


def test_error_and_availability_popups(notifier, zero_clock, popups) -> None:  # noqa: ANN001
    notifier.notify_order({"id": "e-1", "isError": True, "item_name": "Printer offline"})
    zero_clock.now = 5000
    notifier.notify_order({"id": "a-1", "isAvailabilityChange": True})

    kinds = [p.kind for p in popups if p is not None]
    assert kinds == [PopupKind.ERROR, PopupKind.AVAILABILITY_CHANGE]
    assert popups[0].title == "Error!"
    assert popups[0].message == "Printer offline"


def test_dismiss_popup_cancels_timer(notifier, zero_scheduler, popups) -> None:  # noqa: ANN001
    notifier.show_popup(PopupKind.ERROR, "Error!", "boom")
    notifier.dismiss_popup()

    assert popups[-1] is None
    assert zero_scheduler.pending == []
    notifier.dismiss_popup()
    assert popups.count(None) == 1


def test_auto_dismiss_is_delivered_before_a_concurrent_popup(zero_clock, zero_scheduler) -> None:  # noqa: ANN001
    seen: list[Optional[Popup]] = []
    blocked: list[bool] = []
    workers: list[threading.Thread] = []

    def on_popup(popup: Optional[Popup]) -> None:
        seen.append(popup)
        if popup is None and not workers:
            worker = threading.Thread(target=notifier.show_popup, args=(PopupKind.ERROR, "Error!", "late"))
            workers.append(worker)
            worker.start()
            worker.join(timeout=0.2)
            blocked.append(worker.is_alive())

    notifier = OrderNotifier(scheduler=zero_scheduler, clock=zero_clock, on_popup=on_popup)
    notifier.show_popup(PopupKind.NEW_ORDER, "New Order!", "first")
    zero_scheduler.advance(5000)
    workers[0].join(timeout=2)

    assert blocked == [True]
    assert [p.message if p else None for p in seen] == ["first", None, "late"]
    assert notifier.popup is not None
    assert notifier.popup.message == "late"
