"""Unit tests for JsonPersister and PipelineLock."""
import json
import os
import time
from unittest.mock import patch

import pytest

from processor.exceptions import LockHeld
from processor.models import Event, Truck
from storage.json_persister import JsonPersister, write_json_atomic
from storage.pipeline_lock import PipelineLock


@pytest.fixture
def persister(tmp_path):
    return JsonPersister(tmp_path / '_data')


@pytest.fixture
def sample_event():
    return Event(
        id='evt-1',
        truck_name='Blue Sparrow',
        start_ts='2025-01-01T10:00:00Z',
        venue='Café Allegro',
        city='Pittsburgh',
        lat=40.45,
        lng=-79.98
    )


def test_write_json_atomic_pretty_utf8(tmp_path):
    """Test that JSON is pretty-printed and keeps non-ASCII text."""
    path = tmp_path / 'nested' / 'out.json'

    write_json_atomic(path, {'venue': 'Café'})

    text = path.read_text(encoding='utf-8')
    assert 'Café' in text
    assert '\n  "venue"' in text
    assert [p.name for p in path.parent.iterdir()] == ['out.json']


def test_write_events(persister, sample_event):
    """Test that events.json holds the wire representation."""
    count = persister.write_events([sample_event])

    assert count == 1
    data = json.loads(persister.events_path.read_text(encoding='utf-8'))
    assert data[0]['id'] == 'evt-1'
    assert data[0]['truck_name'] == 'Blue Sparrow'
    assert data[0]['venue'] == 'Café Allegro'
    assert data[0]['lat'] == 40.45


def test_write_trucks(persister, sample_event):
    """Test that trucks.json holds truck summaries with their events."""
    truck = Truck(
        name='Blue Sparrow',
        slug='blue-sparrow',
        events=[sample_event],
        total_events=1,
        last_seen=sample_event.start_ts
    )

    persister.write_trucks([truck])

    data = json.loads(persister.trucks_path.read_text(encoding='utf-8'))
    assert data == [{
        'name': 'Blue Sparrow',
        'slug': 'blue-sparrow',
        'events': [sample_event.to_dict()],
        'total_events': 1,
        'last_seen': '2025-01-01T10:00:00Z'
    }]


def test_events_age_seconds(persister, sample_event):
    """Test artifact age reporting."""
    assert persister.events_age_seconds() is None

    persister.write_events([sample_event])

    age = persister.events_age_seconds()
    assert age is not None
    assert 0 <= age < 60


class TestPipelineLock:
    """Test cases for PipelineLock class."""

    def test_acquire_and_release(self, tmp_path):
        """Test that the lock file exists only while held."""
        path = tmp_path / '.data_fetcher_lock'
        lock = PipelineLock(path)

        lock.acquire()
        assert path.exists()
        owner = json.loads(path.read_text(encoding='utf-8'))
        assert owner['pid'] == os.getpid()
        assert owner['started_at'] <= time.time()

        lock.release()
        assert not path.exists()

    def test_released_on_exception(self, tmp_path):
        """Test that the context manager removes the lock on errors."""
        path = tmp_path / '.data_fetcher_lock'

        with pytest.raises(RuntimeError):
            with PipelineLock(path):
                raise RuntimeError('boom')

        assert not path.exists()

    def test_second_acquire_raises(self, tmp_path):
        """Test that a fresh lock blocks another run."""
        path = tmp_path / '.data_fetcher_lock'
        first = PipelineLock(path)
        first.acquire()

        with pytest.raises(LockHeld) as exc_info:
            PipelineLock(path).acquire()

        assert exc_info.value.pid == os.getpid()
        assert path.exists()
        first.release()

    def test_failed_acquire_does_not_remove_lock(self, tmp_path):
        """Test that a blocked run leaves the owner's lock in place."""
        path = tmp_path / '.data_fetcher_lock'
        owner = PipelineLock(path)
        owner.acquire()

        blocked = PipelineLock(path)
        with pytest.raises(LockHeld):
            blocked.acquire()
        blocked.release()

        assert path.exists()
        owner.release()

    def test_stale_lock_is_reclaimed(self, tmp_path):
        """Test that an abandoned lock is taken over."""
        path = tmp_path / '.data_fetcher_lock'
        path.write_text(
            json.dumps({'pid': 99999, 'started_at': time.time() - 7200}),
            encoding='utf-8'
        )
        lock = PipelineLock(path, max_age_seconds=3600)

        lock.acquire()

        owner = json.loads(path.read_text(encoding='utf-8'))
        assert owner['pid'] == os.getpid()
        lock.release()

    def test_unreadable_lock_is_reclaimed(self, tmp_path):
        """Test that a lock without owner data is treated as abandoned."""
        path = tmp_path / '.data_fetcher_lock'
        path.write_text('Mon Jan 01 10:00:00 2025', encoding='utf-8')

        with PipelineLock(path) as lock:
            assert lock.held

        assert not path.exists()

    def test_release_keeps_lock_taken_over_by_another_run(self, tmp_path):
        """Test that an overrunning owner does not delete its successor's lock."""
        path = tmp_path / '.data_fetcher_lock'
        first = PipelineLock(path, max_age_seconds=0)
        first.acquire()
        second = PipelineLock(path, max_age_seconds=0)
        second.acquire()

        first.release()

        assert path.exists()
        assert second.held
        assert not first.held
        second.release()
        assert not path.exists()

    def test_reclaim_does_not_remove_newer_lock(self, tmp_path):
        """Test that a lock replaced after it was read as stale is left alone."""
        path = tmp_path / '.data_fetcher_lock'
        path.write_text(
            json.dumps({'pid': 99999, 'started_at': time.time() - 7200}),
            encoding='utf-8'
        )
        other = PipelineLock(path)
        lock = PipelineLock(path, max_age_seconds=3600)
        read_owner = lock._read_owner

        def reclaimed_elsewhere():
            owner = read_owner()
            if not other.held:
                # Another run takes over between our read and our removal
                path.unlink()
                other.acquire()
            return owner

        with patch.object(lock, '_read_owner', side_effect=reclaimed_elsewhere):
            with pytest.raises(LockHeld):
                lock.acquire()

        assert path.exists()
        assert other.held
        assert not lock.held
        other.release()
