import logging
import threading

import pytest

from pyreport import Breadcrumb, BreadcrumbStore, Level


def test_overflow_evicts_oldest_and_notifies_every_change():
    capacity = 5
    notifications = []
    store = BreadcrumbStore(capacity, on_change=notifications.append)

    for i in range(capacity + 1):
        store.add("test", f"crumb {i}")

    # Test 1: only the newest `capacity` breadcrumbs are kept, in order
    messages = [crumb.message for crumb in store]
    assert messages == [f"crumb {i}" for i in range(1, capacity + 1)]

    # Test 2: one notification per record, each carrying the state after the change
    assert len(notifications) == capacity + 1
    assert len(notifications[0]["values"]) == 1
    assert notifications[-1] == store.serialized
    assert len(notifications[-1]["values"]) == capacity


def test_record_rejects_other_types():
    store = BreadcrumbStore()
    with pytest.raises(TypeError):
        store.record({"category": "nope"})
    assert len(store) == 0


def test_invalid_capacity():
    with pytest.raises(ValueError):
        BreadcrumbStore(0)


def test_serialized_shape():
    store = BreadcrumbStore()
    store.add("http", "GET /users", level=Level.WARNING, data={"status": 500}, type="http")
    store.add("ui")

    values = store.serialized["values"]
    assert values[0]["category"] == "http"
    assert values[0]["message"] == "GET /users"
    assert values[0]["level"] == "warning"
    assert values[0]["type"] == "http"
    assert values[0]["data"] == {"status": 500}
    assert "timestamp" in values[0]
    assert "message" not in values[1]
    assert "data" not in values[1]


def test_clear_notifies_with_empty_state():
    notifications = []
    store = BreadcrumbStore(on_change=notifications.append)
    store.add("a")
    store.clear()
    assert len(store) == 0
    assert notifications[-1] == {"values": []}


def test_consume_snapshots_and_empties():
    notifications = []
    store = BreadcrumbStore(on_change=notifications.append)
    store.add("a", "first")
    store.add("b", "second")

    snapshot = store.consume()

    assert [crumb["message"] for crumb in snapshot["values"]] == ["first", "second"]
    assert len(store) == 0
    assert len(notifications) == 3
    assert notifications[-1] == {"values": []}


def test_breadcrumbs_are_immutable():
    crumb = Breadcrumb(category="a")
    with pytest.raises(ValueError):
        crumb.category = "b"


def test_failing_callback_does_not_break_recording(caplog):
    def explode(_):
        raise RuntimeError("observer down")

    store = BreadcrumbStore(on_change=explode)
    with caplog.at_level(logging.WARNING, logger="pyreport.breadcrumbs"):
        store.add("a")
    assert len(store) == 1
    assert "observer down" in caplog.text


def test_callback_may_read_the_store():
    store = BreadcrumbStore()
    seen = []
    store.set_on_change(lambda _: seen.append(len(store)))
    store.add("a")
    store.add("b")
    assert seen == [1, 2]


def test_concurrent_writers():
    capacity = 50
    per_thread = 200
    num_threads = 8
    notifications = []
    store = BreadcrumbStore(capacity, on_change=lambda s: notifications.append(len(s["values"])))

    def writer(n):
        for i in range(per_thread):
            store.add(f"thread-{n}", str(i))

    threads = [threading.Thread(target=writer, args=(n,)) for n in range(num_threads)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(store) == capacity
    assert len(notifications) == per_thread * num_threads
    assert all(count <= capacity for count in notifications)
    # Within one thread, its own breadcrumbs keep their relative order.
    for n in range(num_threads):
        mine = [int(crumb.message) for crumb in store if crumb.category == f"thread-{n}"]
        assert mine == sorted(mine)
