from datetime import datetime, timedelta, timezone

import pytest

from autosnap.common.errors import StoreError
from autosnap.core.snapshot import Snapshot
from autosnap.store.base import SnapshotStore, Volume
from autosnap.store.zfs import ZfsStore

NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_snapshot(age_seconds, volume='tank/data', now=NOW, used=0):
    created = now - timedelta(seconds=age_seconds)
    return Snapshot(f"{volume}@{created:%Y-%m-%dT%H:%M:%SZ}-autosnap", created, used)


class FakeRunner:
    """Answers zfs command lines from a table and records every call"""

    local = True

    def __init__(self, responses=None):
        self.responses = dict(responses or {})
        self.calls = []
        self.closed = False

    def run(self, argv):
        self.calls.append(list(argv))
        response = self.responses.get(tuple(argv), '')
        if isinstance(response, Exception):
            raise response
        return response

    def close(self):
        self.closed = True


class FakeStore(SnapshotStore):
    """In-memory store; list_volumes can be made to fail a number of times"""

    def __init__(self, volumes=(), list_failures=0, now=NOW):
        self.volumes = list(volumes)
        self.list_failures = list_failures
        self.list_calls = 0
        self.now = now
        self.created = []
        self.destroyed = []
        self.closed = False

    def list_volumes(self):
        self.list_calls += 1
        if self.list_failures:
            self.list_failures -= 1
            raise StoreError("zfs list failed")
        return list(self.volumes)

    def create_snapshot(self, volume):
        snapshot = make_snapshot(0, volume, now=self.now)
        self.created.append(snapshot.name)
        return snapshot

    def destroy_snapshot(self, snapshot):
        self.destroyed.append(snapshot.name)

    def close(self):
        self.closed = True


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def aged():
    """aged(seconds, volume=...) -> Snapshot created that long before NOW"""
    return make_snapshot


@pytest.fixture
def zfs_store():
    """zfs_store(responses) -> (ZfsStore, FakeRunner)"""
    def factory(responses=None):
        runner = FakeRunner(responses)
        return ZfsStore(runner), runner
    return factory


@pytest.fixture
def make_volume(aged):
    def factory(name, policy, ages=()):
        return Volume(name, policy, [aged(age, name) for age in ages])
    return factory


@pytest.fixture
def fake_store():
    return FakeStore
