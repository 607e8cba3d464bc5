from datetime import datetime, timezone

import pytest

from autosnap.common.errors import ConfigurationError, StoreError, UnsafeDestroyError
from autosnap.core.snapshot import Snapshot
from autosnap.core.syntax import parse_policy
from autosnap.store.zfs import (
    POLICY_PROPERTY, build_store, parse_datetime, parse_snapshots, parse_used,
)

LIST_SNAPSHOTS = ('zfs', 'list', '-H', '-p', '-t', 'snapshot', '-o', f'name,creation,used,{POLICY_PROPERTY}')
GET_POLICIES = ('zfs', 'get', '-H', '-p', '-t', 'filesystem,volume', '-o', 'name,value', POLICY_PROPERTY)


def test_parse_snapshots_skips_opted_out():
    rows = [
        ["tank/first@a", "Sat Oct 2 09:59 2021", "13G", "15m8:1h48:1d14:1w20"],
        ["tank/skip@b", "Sat Oct 2 09:59 2021", "13G", "-"],
    ]

    snapshots = parse_snapshots(rows)

    assert [s.name for s in snapshots] == ["tank/first@a"]
    assert snapshots[0].used == 13 * 1024 ** 3


def test_parse_snapshots_invalid_row():
    with pytest.raises(StoreError, match="list snapshots parse error"):
        parse_snapshots([["tank/first@a", "Sat Oct 2 09:59 2021"]])


def test_parse_datetime_invalid():
    with pytest.raises(StoreError, match="can't parse datetime:"):
        parse_datetime("yesterday")


def test_parse_datetime_epoch():
    assert parse_datetime("1633168740") == datetime(2021, 10, 2, 9, 59, tzinfo=timezone.utc)


def test_parse_datetime_human_form_is_aware():
    parsed = parse_datetime("Sat Oct 2 09:59 2021")

    assert parsed.tzinfo is not None


@pytest.mark.parametrize("value, expected", [
    ("4096", 4096),
    ("1K", 1024),
    ("1.5M", 3 * 512 * 1024),
    ("13G", 13 * 1024 ** 3),
])
def test_parse_used(value, expected):
    assert parse_used(value) == expected


def test_parse_used_invalid():
    with pytest.raises(StoreError, match="can't parse size"):
        parse_used("lots")


def test_list_volumes_groups_snapshots_per_volume(zfs_store):
    store, _ = zfs_store({
        LIST_SNAPSHOTS: (
            "tank/a@old\t1000\t100\t-inherited-\n"
            "tank/a@new\t2000\t200\t-inherited-\n"
            "tank/b@x\t1500\t300\t-inherited-\n"
            "tank/a@pinned\t1700\t5\t-\n"
        ),
        GET_POLICIES: "tank\t-\ntank/a\t1h48:15m8\ntank/b\t1d7\n",
    })

    volumes = {v.name: v for v in store.list_volumes()}

    assert sorted(volumes) == ["tank/a", "tank/b"]
    assert [s.name for s in volumes["tank/a"].snapshots] == ["tank/a@new", "tank/a@old"]
    assert volumes["tank/a"].policy == parse_policy("15m8:1h48")
    assert [s.used for s in volumes["tank/b"].snapshots] == [300]


def test_volume_without_snapshots_is_listed(zfs_store):
    store, _ = zfs_store({GET_POLICIES: "tank/a\t1h2\n"})

    volumes = store.list_volumes()

    assert len(volumes) == 1
    assert volumes[0].snapshots == ()


def test_invalid_policy_names_the_volume(zfs_store):
    store, _ = zfs_store({GET_POLICIES: "tank/a\t1q2\n"})

    with pytest.raises(ConfigurationError, match="tank/a"):
        store.list_volumes()


def test_list_unconfigured(zfs_store):
    store, _ = zfs_store({GET_POLICIES: "tank\t-\ntank/a\t1h2\ntank/b\t-\n"})

    assert store.list_unconfigured() == ["tank", "tank/b"]


def test_listing_failure_propagates(zfs_store):
    store, _ = zfs_store({LIST_SNAPSHOTS: StoreError("pool is busy")})

    with pytest.raises(StoreError, match="pool is busy"):
        store.list_volumes()


def test_create_snapshot_names_it_after_the_time(zfs_store):
    now = datetime(2024, 3, 1, 12, 30, 15, tzinfo=timezone.utc)
    name = "tank/a@2024-03-01T12:30:15Z-autosnap"
    describe = LIST_SNAPSHOTS + (name,)
    store, runner = zfs_store({describe: f"{name}\t1709296215\t0\t-inherited-\n"})

    snapshot = store.create_snapshot("tank/a", now=now)

    assert runner.calls[0] == ["zfs", "snapshot", name]
    assert snapshot == Snapshot(name, now, 0)


def test_create_snapshot_of_a_snapshot_is_refused(zfs_store):
    store, runner = zfs_store({})

    with pytest.raises(StoreError):
        store.create_snapshot("tank/a@x")
    assert runner.calls == []


def test_destroy_snapshot(zfs_store):
    store, runner = zfs_store({})

    store.destroy_snapshot(Snapshot("tank/a@x", datetime(2024, 1, 1, tzinfo=timezone.utc)))

    assert runner.calls == [["zfs", "destroy", "tank/a@x"]]


@pytest.mark.parametrize("name", ["tank/a", "@x", "tank/a@", "tank/a@x@y", ""])
def test_destroy_refuses_non_snapshots(zfs_store, name):
    store, runner = zfs_store({})

    with pytest.raises(UnsafeDestroyError):
        store.destroy_snapshot(Snapshot(name, datetime(2024, 1, 1, tzinfo=timezone.utc)))
    assert runner.calls == []


def test_set_and_clear_policy(zfs_store):
    store, runner = zfs_store({})

    store.set_policy("tank/a", parse_policy("1d14:1h48"))
    store.clear_policy("tank/a")

    assert runner.calls == [
        ["zfs", "set", f"{POLICY_PROPERTY}=1h48:1d14", "tank/a"],
        ["zfs", "inherit", POLICY_PROPERTY, "tank/a"],
    ]


def test_build_store_local_and_remote():
    local = build_store({'zfs_command': '/sbin/zfs'})
    remote = build_store({'ssh': {'host': 'nas.local'}})

    assert local.local and local.zfs_command == '/sbin/zfs'
    assert not remote.local


def test_ssh_needs_a_host():
    with pytest.raises(ConfigurationError):
        build_store({'ssh': {'port': 22}})
