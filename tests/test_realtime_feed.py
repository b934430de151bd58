"""Tests for the realtime payload helpers and the backup poller."""

from __future__ import annotations

from typing import Any, Optional

import pytest

import realtime_feed
from errors import NETWORK_ERROR, StoreError
from realtime_feed import (
    PLACEHOLDER_ORDER,
    OrderInsertFeed,
    PendingOrderPoller,
    extract_record,
    is_counter_order,
)

APP_USER = "app-user"


class FakeStore:
    def __init__(self) -> None:
        self.counts: list[int] = []
        self.latest: Optional[dict[str, Any]] = {"id": "o-9", "item_name": "Tea", "order_token": "42"}
        self.queries: list[tuple[str, str]] = []
        self.count_error: Optional[StoreError] = None
        self.latest_error: Optional[StoreError] = None

    def fetch_pending_orders(self, exclude_user_id: str, since_iso: str) -> list[dict[str, Any]]:
        self.queries.append((exclude_user_id, since_iso))
        if self.count_error is not None:
            raise self.count_error
        return [{"id": i} for i in range(self.counts.pop(0))]

    def fetch_latest_pending_order(self, exclude_user_id: str) -> Optional[dict[str, Any]]:
        if self.latest_error is not None:
            raise self.latest_error
        return self.latest


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def seen() -> list[dict[str, Any]]:
    return []


@pytest.fixture
def poller(store, seen, scheduler, clock) -> PendingOrderPoller:  # noqa: ANN001
    return PendingOrderPoller(store, seen.append, APP_USER, scheduler=scheduler, clock=clock)


# ---------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    "record, expected",
    [
        ({"status": "pending", "user_id": "walk-in"}, True),
        ({"status": "PENDING", "user_id": None}, True),
        ({"status": "pending", "user_id": APP_USER}, False),
        ({"status": "delivered", "user_id": "walk-in"}, False),
        ({}, False),
    ],
)
def test_is_counter_order(record, expected) -> None:  # noqa: ANN001
    assert is_counter_order(record, APP_USER) is expected


def test_extract_record_shapes() -> None:
    row = {"id": "o-1"}
    assert extract_record({"data": {"record": row}}) == row
    assert extract_record({"new": row}) == row
    assert extract_record({"record": row}) == row
    assert extract_record({"data": {}}) is None
    assert extract_record("not a payload") is None


def test_feed_forwards_inserted_rows(seen) -> None:  # noqa: ANN001
    feed = OrderInsertFeed("https://x.supabase.co", "anon", seen.append)

    feed._handle_change({"data": {"record": {"id": "o-1"}}})
    feed._handle_change({"data": {"type": "INSERT"}})

    assert seen == [{"id": "o-1"}]
    assert feed.running is False


def test_feed_requires_credentials(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(realtime_feed, "acreate_client", object())
    feed = OrderInsertFeed("", "", lambda record: None)

    with pytest.raises(RuntimeError):
        feed.start()
    feed.stop()


# ---------------------------------------------------------------
# Poller
# ---------------------------------------------------------------

def test_first_poll_only_primes_count(poller, store, seen) -> None:  # noqa: ANN001
    store.counts = [2]

    assert poller.poll_once() is None
    assert poller.last_count == 2
    assert seen == []


def test_growth_after_priming_notifies_latest(poller, store, seen, clock) -> None:  # noqa: ANN001
    store.counts = [1, 3]
    poller.poll_once()

    assert poller.poll_once() == store.latest
    assert seen == [store.latest]
    assert store.queries[0][0] == APP_USER


def test_growth_from_zero_is_not_reported(poller, store, seen) -> None:  # noqa: ANN001
    store.counts = [0, 2]
    poller.poll_once()
    poller.poll_once()

    assert seen == []


def test_shrinking_count_is_quiet(poller, store, seen) -> None:  # noqa: ANN001
    store.counts = [3, 1, 1]
    for _ in range(3):
        poller.poll_once()

    assert seen == []
    assert poller.last_count == 1


def test_latest_lookup_failure_uses_placeholder(poller, store, seen) -> None:  # noqa: ANN001
    store.counts = [1, 2]
    store.latest_error = StoreError(NETWORK_ERROR, "offline")
    poller.poll_once()
    poller.poll_once()

    assert seen == [PLACEHOLDER_ORDER]


def test_count_failure_keeps_previous_count(poller, store, seen) -> None:  # noqa: ANN001
    store.counts = [2]
    poller.poll_once()
    store.count_error = StoreError(NETWORK_ERROR, "offline")

    assert poller.poll_once() is None
    assert poller.last_count == 2


def test_start_polls_on_interval_until_stopped(poller, store, scheduler) -> None:  # noqa: ANN001
    store.counts = [1, 1, 1]
    poller.start()
    poller.start()
    assert len(scheduler.pending) == 1

    scheduler.advance(10_000)
    assert len(store.queries) == 2

    poller.stop()
    assert scheduler.pending == []
