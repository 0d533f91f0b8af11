"""Unit tests for keyed locks and change notifications"""

import threading
import uuid

from obligation_engine.services.notifications import ChangeNotifier, EntryChangeEvent
from obligation_engine.utils.locks import KeyedLocks


def test_keyed_locks_are_dropped_after_release():
    locks = KeyedLocks()

    with locks.hold("entry:1"):
        with locks.hold("entry:2"):
            assert len(locks) == 2

    assert len(locks) == 0


def test_same_key_serializes_holders():
    """Test a second holder of the same key waits for the first"""
    locks = KeyedLocks()
    order = []
    first_in = threading.Event()

    def second_holder():
        first_in.wait()
        with locks.hold("group:a"):
            order.append("second")

    worker = threading.Thread(target=second_holder)
    worker.start()
    with locks.hold("group:a"):
        first_in.set()
        worker.join(timeout=0.2)
        assert worker.is_alive()
        order.append("first")
    worker.join(timeout=5)

    assert order == ["first", "second"]
    assert len(locks) == 0


def test_notifier_fan_out_and_unsubscribe():
    notifier = ChangeNotifier()
    seen_a, seen_b = [], []
    notifier.subscribe(seen_a.append)
    unsubscribe_b = notifier.subscribe(seen_b.append)
    event = EntryChangeEvent("confirm", "user_1", (uuid.uuid4(),))

    notifier.publish(event)
    unsubscribe_b()
    notifier.publish(event)

    assert seen_a == [event, event]
    assert seen_b == [event]


def test_failing_subscriber_does_not_starve_others():
    notifier = ChangeNotifier()
    seen = []

    def broken(event):
        raise RuntimeError("cache down")

    notifier.subscribe(broken)
    notifier.subscribe(seen.append)

    notifier.publish(EntryChangeEvent("delete", "user_1"))

    assert len(seen) == 1
