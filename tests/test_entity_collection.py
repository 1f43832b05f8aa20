"""Test the persisted entity collection."""
import logging
import threading
from unittest.mock import patch

from vantelemetry.models import Tank
from vantelemetry.persistence import InMemoryStore
from vantelemetry.services.base import EntityCollection


def make_collection(store):
    return EntityCollection(store, "tanks.json", Tank, "Tank", logging.getLogger("test"))


def test_save_holds_lock_through_the_write():
    """Test another thread cannot mutate between snapshot and write."""
    store = InMemoryStore()
    collection = make_collection(store)
    collection.load(list)
    blocked = []

    def check_lock(key, value):
        acquired = []
        other = threading.Thread(target=lambda: acquired.append(collection.lock.acquire(blocking=False)))
        other.start()
        other.join()
        blocked.append(acquired == [False])

    with patch.object(store, "save", side_effect=check_lock):
        collection.insert(Tank(name="Fresh Water"))

    assert blocked == [True]


def test_concurrent_writers_leave_latest_snapshot():
    """Test the stored document matches memory after parallel inserts."""
    store = InMemoryStore()
    collection = make_collection(store)
    collection.load(list)

    writers = [threading.Thread(target=collection.insert, args=(Tank(name=f"Tank {i}"),))
               for i in range(8)]
    for writer in writers:
        writer.start()
    for writer in writers:
        writer.join()

    assert len(store.load("tanks.json")) == 8
