"""
Unit tests for the ephemeral file store.

Run: pytest tests/unit/test_file_store_service.py -v
"""

import pytest

from exceptions import StoredFileNotFoundError
from services.file_store_service import EphemeralFileStore

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return EphemeralFileStore(ttl_seconds=3600, sweep_interval_seconds=60, clock=clock)


class TestPutGet:
    """Tests for put() and get()"""

    def test_round_trip(self, store):
        token = store.put(b"data", "products.xlsx", XLSX)

        entry = store.get(token)

        assert entry.content == b"data"
        assert entry.filename == "products.xlsx"
        assert entry.mime_type == XLSX
        assert entry.size == 4

    def test_readable_many_times(self, store):
        token = store.put(b"data", "products.xlsx", XLSX)

        assert store.get(token).content == store.get(token).content == b"data"

    def test_tokens_unique_and_unguessable(self, store):
        tokens = {store.put(b"x", "a.xlsx", XLSX) for _ in range(50)}

        assert len(tokens) == 50
        assert all(len(t) >= 32 for t in tokens)

    def test_unknown_token(self, store):
        with pytest.raises(StoredFileNotFoundError) as exc_info:
            store.get("missing")

        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "FILE_NOT_FOUND"

    def test_expired_before_sweep(self, store, clock):
        """Past the TTL a file is gone even if no sweep has run."""
        token = store.put(b"data", "products.xlsx", XLSX)
        clock.advance(3600)

        with pytest.raises(StoredFileNotFoundError):
            store.get(token)
        assert len(store) == 1

    def test_valid_just_before_expiry(self, store, clock):
        token = store.put(b"data", "products.xlsx", XLSX)
        clock.advance(3599)

        assert store.get(token).content == b"data"

    def test_delete(self, store):
        token = store.put(b"data", "products.xlsx", XLSX)

        store.delete(token)
        store.delete(token)

        assert len(store) == 0
        with pytest.raises(StoredFileNotFoundError):
            store.get(token)


class TestSweep:
    """Tests for sweep() and the background thread"""

    def test_removes_only_expired(self, store, clock):
        old = store.put(b"old", "old.xlsx", XLSX)
        clock.advance(3000)
        fresh = store.put(b"new", "new.xlsx", XLSX)
        clock.advance(700)

        removed = store.sweep()

        assert removed == 1
        assert len(store) == 1
        assert store.get(fresh).content == b"new"
        with pytest.raises(StoredFileNotFoundError):
            store.get(old)

    def test_nothing_to_sweep(self, store):
        store.put(b"data", "products.xlsx", XLSX)

        assert store.sweep() == 0

    def test_start_stop(self):
        store = EphemeralFileStore(ttl_seconds=60, sweep_interval_seconds=0.01)

        store.start()
        store.start()
        assert store._thread is not None and store._thread.is_alive()

        store.stop()
        assert store._thread is None
